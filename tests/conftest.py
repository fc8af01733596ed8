"""Test configuration and fixtures for Quill tests."""

import pytest
import logging
import tempfile
import shutil
from pathlib import Path
import yaml

HASH_A = 'a' * 40
HASH_B = 'b' * 40

# Two revisions: A wrote lines 1-2, B wrote lines 3-4.
SAMPLE_BLAME = (
    f"{HASH_A} 1 1 2\n"
    "author Jane Doe\n"
    "author-mail <jane@example.com>\n"
    "author-time 1670000000\n"
    "author-tz +0000\n"
    "committer Jane Doe\n"
    "committer-mail <jane@example.com>\n"
    "committer-time 1670000100\n"
    "committer-tz +0100\n"
    "summary Add first post\n"
    "boundary\n"
    "filename content/blog/first.md\n"
    "\t---\n"
    f"{HASH_A} 2 2\n"
    "\ttitle: First\n"
    f"{HASH_B} 3 3 2\n"
    "author John Smith\n"
    "author-mail <john@example.com>\n"
    "author-time 1680000000\n"
    "author-tz -0500\n"
    "committer John Smith\n"
    "committer-mail <john@example.com>\n"
    "committer-time 1680000050\n"
    "committer-tz -0500\n"
    "summary Finish the first post\n"
    f"previous {HASH_A} content/blog/first.md\n"
    "filename content/blog/first.md\n"
    "\t---\n"
    f"{HASH_B} 4 4\n"
    "\tHello there.\n"
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(autouse=True)
def reset_quill_logger():
    """Drop handlers so every Quill instance opens a log file in its own logs_dir."""
    yield
    logger = logging.getLogger('quill')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def sample_blame():
    return SAMPLE_BLAME


@pytest.fixture
def blame_runner():
    """Fake blame command: sample output for first.md, failure otherwise."""
    from quill_pkg.history import BlameCommandError

    calls = []

    def runner(file_path, timeout=None):
        calls.append(file_path)
        if file_path.endswith('first.md'):
            return SAMPLE_BLAME
        raise BlameCommandError(file_path, 'fatal: no such path in HEAD')

    runner.calls = calls
    return runner


@pytest.fixture
def mock_source_dir(temp_dir):
    """Create a source directory with templates and a static asset."""
    source_dir = Path(temp_dir) / 'src'
    (source_dir / 'css').mkdir(parents=True)

    (source_dir / '_layout.html').write_text("""<html><body>{% block content %}{% endblock %}</body></html>""")

    (source_dir / 'index.html').write_text("""{% extends "_layout.html" %}
{% block content %}
{% for entry in blog_entries %}<a href="blog/{{ entry.slug }}/">{{ entry.title }}</a>
{% endfor %}
{% endblock %}""")

    (source_dir / '_post.html').write_text("""{% extends "_layout.html" %}
{% block content %}<h1>{{ entry.title }}</h1>
<p>by {{ entry.created_by }} on {{ format_date(entry.created) }}</p>
{{ entry.content|safe }}{% endblock %}""")

    (source_dir / 'css' / 'style.css').write_text("body { color: black; }")
    return str(source_dir)


@pytest.fixture
def mock_content_dir(temp_dir):
    """Create a content directory with two posts."""
    blog_dir = Path(temp_dir) / 'content' / 'blog'
    (blog_dir / 'nested').mkdir(parents=True)

    (blog_dir / 'first.md').write_text("""---
title: First
---
Hello there.
""")

    metadata = yaml.dump({'title': 'Second', 'date': '2024-05-01', 'tags': ['python']})
    (blog_dir / 'nested' / 'second.md').write_text(f"""---
{metadata}---
# Second post

Some *emphasis*.
""")
    return str(Path(temp_dir) / 'content')


@pytest.fixture
def mock_output_dir(temp_dir):
    return str(Path(temp_dir) / 'dist')


@pytest.fixture
def logs_dir(temp_dir):
    return str(Path(temp_dir) / 'logs')
