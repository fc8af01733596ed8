"""
Helpers for turning markdown posts into template data.
"""

import logging
import re
from datetime import datetime, date, timezone

import mistune
import yaml

logger = logging.getLogger('quill.content')

FRONT_MATTER_RE = re.compile(r'---([\S\s]*?)---')
LEADING_FRONT_MATTER_RE = re.compile(r'^---([\S\s]*?)---\n')


def extract_metadata(content):
    """Parse the first ``---`` delimited YAML block of a post.

    Returns an empty dict when there is no block or it is not a mapping.
    """
    match = FRONT_MATTER_RE.search(content)
    if not match:
        return {}

    try:
        metadata = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML front matter: {e}")
        return {}

    if not isinstance(metadata, dict):
        return {}
    return metadata


def clear_front_matter(content):
    """Strip a leading front matter block, leaving other content untouched."""
    return LEADING_FRONT_MATTER_RE.sub('', content, count=1)


def format_date(value):
    """Format a date as ``YYYY/MM/DD HH:MM`` in UTC."""
    if value is None:
        return ''
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
    elif isinstance(value, date):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    else:
        return str(value)
    return value.strftime('%Y/%m/%d %H:%M')


def create_markdown_parser():
    """Create a Mistune markdown parser with a custom renderer."""
    class CustomRenderer(mistune.HTMLRenderer):
        def __init__(self):
            super().__init__(escape=False)

        def block_code(self, code, info=None):
            escaped_code = mistune.escape(code)
            language = info.split()[0] if info and info.strip() else None
            if language:
                return '<pre><code class="language-{}">{}</code></pre>\n'.format(
                    mistune.escape(language), escaped_code)
            return '<pre><code>{}</code></pre>\n'.format(escaped_code)

    return mistune.create_markdown(
        renderer=CustomRenderer(),
        plugins=['table', 'task_lists', 'strikethrough']
    )
