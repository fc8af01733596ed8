"""
Quill - a small personal blog generator.

Quill renders markdown posts through Jinja2 templates and stamps every post
with the date and author of its first and latest commit, read from
``git blame --porcelain``.
"""

__version__ = "1.0.0"

from .blame import BlameResult, LineRecord, RevisionRecord, parse_blame
from .history import BlameCommandError, SelectionPolicy, first_change, last_change, collect_changes
from .core import Quill

__all__ = [
    'BlameResult', 'LineRecord', 'RevisionRecord', 'parse_blame',
    'BlameCommandError', 'SelectionPolicy', 'first_change', 'last_change', 'collect_changes',
    'Quill',
]
