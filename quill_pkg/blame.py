"""
Parser for ``git blame --porcelain`` output.

The porcelain format repeats a header for every line of the blamed file::

    <hash> <original_line> <final_line> [<num_lines>]
    author <name>
    author-mail <<email>>
    author-time <epoch seconds>
    ...
    filename <path>
    <TAB><line content>

Revision metadata only follows the first header seen for a given hash.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Optional, Union

HASH_LENGTH = 40

# header name -> (RevisionRecord field, takes the rest of the line)
METADATA_FIELDS = {
    'author': ('author', True),
    'author-mail': ('author_mail', False),
    'author-time': ('author_time', False),
    'author-tz': ('author_tz', False),
    'committer': ('committer', True),
    'committer-mail': ('committer_mail', False),
    'committer-time': ('committer_time', False),
    'committer-tz': ('committer_tz', False),
    'summary': ('summary', True),
    'filename': ('filename', True),
}


@dataclass(frozen=True)
class RevisionRecord:
    """Metadata of one revision as reported by blame.

    ``parse_blame`` fills ``author_time`` and ``committer_time`` with the raw
    epoch-second strings. ``history.normalize_revision`` returns a copy where
    they are UTC datetimes, or None when the raw value was not a number.
    """
    hash: str
    author: str = ''
    author_mail: str = ''
    author_time: Union[str, datetime, None] = ''
    author_tz: str = ''
    committer: str = ''
    committer_mail: str = ''
    committer_time: Union[str, datetime, None] = ''
    committer_tz: str = ''
    summary: str = ''
    previous_hash: str = ''
    previous_filename: str = ''
    filename: str = ''


@dataclass(frozen=True)
class LineRecord:
    """One line of the blamed file and the revision that last touched it."""
    hash: str
    original_line: int
    final_line: int
    num_lines: int = -1
    code: str = ''


@dataclass(frozen=True)
class BlameResult:
    commit_data: Dict[str, RevisionRecord]
    line_data: Dict[int, LineRecord]


def merge_revision(record: RevisionRecord, patch: Dict[str, str]) -> RevisionRecord:
    """Return a copy of ``record`` with the fields in ``patch`` overwritten."""
    if not patch:
        return record
    return replace(record, **patch)


def parse_metadata_line(line: str) -> Dict[str, str]:
    """Turn a single metadata header into a field patch.

    Unknown headers (``boundary`` and friends) produce an empty patch.
    """
    parts = line.split(' ')
    name = parts[0]

    if name == 'previous':
        return {
            'previous_hash': parts[1] if len(parts) > 1 else '',
            'previous_filename': ' '.join(parts[2:]),
        }

    if name not in METADATA_FIELDS:
        return {}

    field_name, joins_rest = METADATA_FIELDS[name]
    if joins_rest:
        return {field_name: ' '.join(parts[1:])}
    return {field_name: parts[1] if len(parts) > 1 else ''}


def parse_header_line(line: str) -> Optional[LineRecord]:
    """Parse ``<hash> <original_line> <final_line> [<num_lines>]``.

    Returns None when the line does not look like a blame header.
    """
    parts = line.split(' ')
    if len(parts) < 3 or len(parts[0]) != HASH_LENGTH or not parts[0].strip():
        return None

    try:
        original_line = int(parts[1])
        final_line = int(parts[2])
        num_lines = int(parts[3]) if len(parts) > 3 and parts[3] else -1
    except ValueError:
        return None

    return LineRecord(
        hash=parts[0],
        original_line=original_line,
        final_line=final_line,
        num_lines=num_lines,
    )


def parse_blame(raw_text: str) -> BlameResult:
    """Parse porcelain blame text into revision and line records.

    Args:
        raw_text: Output of ``git blame --porcelain``.

    Returns:
        BlameResult with ``commit_data`` keyed by revision hash and
        ``line_data`` keyed by final line number, both in first-seen order.
        Malformed lines are skipped; empty input gives empty mappings.
    """
    commit_data: Dict[str, RevisionRecord] = {}
    line_data: Dict[int, LineRecord] = {}

    awaiting_hash = None
    open_line = None

    for line in raw_text.split('\n'):
        if line.startswith('\t'):
            if open_line is not None:
                line_data[open_line] = replace(line_data[open_line], code=line[1:])
            open_line = None
            awaiting_hash = None
            continue

        header = parse_header_line(line)
        if header is not None:
            line_data[header.final_line] = header
            open_line = header.final_line
            if header.hash in commit_data:
                awaiting_hash = None
            else:
                commit_data[header.hash] = RevisionRecord(hash=header.hash)
                awaiting_hash = header.hash
            continue

        if awaiting_hash is not None:
            commit_data[awaiting_hash] = merge_revision(
                commit_data[awaiting_hash], parse_metadata_line(line)
            )

    return BlameResult(commit_data=commit_data, line_data=line_data)
