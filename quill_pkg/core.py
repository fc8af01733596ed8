import os
import glob
import shutil
import logging
import time
from dataclasses import dataclass
from datetime import datetime, date, timezone
from jinja2 import Environment, FileSystemLoader, PackageLoader, ChoiceLoader, TemplateNotFound, TemplateSyntaxError

from .content import extract_metadata, clear_front_matter, format_date, create_markdown_parser
from .history import FileHistory, collect_changes, run_blame_command

POST_TEMPLATE = '_post.html'


@dataclass
class BuildReport:
    posts: int = 0
    files_rendered: int = 0
    files_copied: int = 0
    duration: float = 0.0


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total posts generated:",
            "Total files rendered:",
            "Total files copied:",
            "Rebuilding after change",
            "Uploaded ",
            "Successfully purged cache of",
            "Watching ",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class Quill:
    def __init__(self, source_dir='src', content_dir='content', output_dir='dist', blog_dir='blog',
                 blame_workers=None, blame_timeout=None, blame_runner=run_blame_command, logs_dir=None):
        self.source_dir = source_dir
        self.content_dir = content_dir
        self.output_dir = output_dir
        self.blog_dir = blog_dir
        self.blame_workers = blame_workers
        self.blame_timeout = blame_timeout
        self.blame_runner = blame_runner
        self.logs_dir = logs_dir or os.path.join(os.getcwd(), 'logs')

        if not os.path.isdir(self.source_dir):
            raise FileNotFoundError(f"Source directory not found: {self.source_dir}")

        self.setup_logging()

        self.env = Environment(loader=ChoiceLoader([
            FileSystemLoader(self.source_dir),
            PackageLoader('quill_pkg', 'templates'),
        ]))
        self.markdown_parser = create_markdown_parser()
        self.env.filters['format_date'] = format_date
        self.env.filters['markdown'] = self.markdown_filter

    def markdown_filter(self, text):
        """Convert markdown text to HTML."""
        return self.markdown_parser(text or '')

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('quill')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(console_handler)

            # File handler for all logs
            os.makedirs(self.logs_dir, exist_ok=True)
            log_filename = datetime.now().strftime('quill_%Y-%m-%d_%H-%M-%S.log')
            file_handler = logging.FileHandler(os.path.join(self.logs_dir, log_filename))
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
            self.logger.addHandler(file_handler)

    def create_output_dir(self):
        """Empty the output directory, creating it if needed."""
        if os.path.isdir(self.output_dir):
            for item in os.listdir(self.output_dir):
                item_path = os.path.join(self.output_dir, item)
                if os.path.isdir(item_path) and not os.path.islink(item_path):
                    shutil.rmtree(item_path)
                else:
                    os.remove(item_path)
        os.makedirs(self.output_dir, exist_ok=True)

    def get_blog_files(self):
        """All markdown files below the blog content directory, sorted."""
        blog_root = os.path.join(self.content_dir, self.blog_dir)
        return sorted(glob.glob(os.path.join(blog_root, '**', '*.md'), recursive=True))

    def load_entry(self, file_path, history):
        """Build the template data for one post, or None if it can't be read."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                raw = f.read()
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to read markdown file {file_path}: {e}")
            return None

        blog_root = os.path.join(self.content_dir, self.blog_dir)
        entry_id = os.path.relpath(file_path, blog_root).replace(os.sep, '/')
        metadata = extract_metadata(raw)
        body = clear_front_matter(raw)
        last_modified = datetime.fromtimestamp(os.path.getmtime(file_path), tz=timezone.utc)

        created = history.created
        updated = history.last_updated

        entry = {
            'id': entry_id,
            'slug': os.path.splitext(entry_id)[0],
            'raw': body,
            'content': self.markdown_filter(body),
            'last_modified': last_modified,
            'created': created.author_time if created else None,
            'created_by': created.author if created else None,
            'last_updated': updated.author_time if updated and updated.author_time else last_modified,
            'last_updated_by': updated.author if updated else None,
        }
        entry.update(metadata)

        slug = str(entry['slug']).strip()
        if not self.is_safe_slug(slug):
            self.logger.error(f"Invalid slug {slug!r} in {file_path}, skipping post")
            return None
        entry['slug'] = slug
        return entry

    @staticmethod
    def is_safe_slug(slug):
        """A slug must stay below the blog output directory."""
        if not slug or '\\' in slug or os.path.isabs(slug):
            return False
        return all(part not in ('', '.', '..') for part in slug.split('/'))

    def load_blog_entries(self):
        """Read every post and stamp it with its git history, newest first."""
        files = self.get_blog_files()
        if not files:
            self.logger.warning(f"No markdown files found in {os.path.join(self.content_dir, self.blog_dir)}")
            return []

        histories = collect_changes(
            files,
            max_workers=self.blame_workers,
            runner=self.blame_runner,
            timeout=self.blame_timeout,
        )

        entries = []
        for file_path in files:
            entry = self.load_entry(file_path, histories.get(file_path, FileHistory()))
            if entry is not None:
                self.logger.debug(f"Loaded post {entry['id']}")
                entries.append(entry)

        entries.sort(key=self.entry_timestamp, reverse=True)
        return entries

    @staticmethod
    def entry_timestamp(entry):
        """Sort key: front matter date, then first commit, then mtime."""
        value = entry.get('date')
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value)
            except ValueError:
                value = None
        if isinstance(value, date) and not isinstance(value, datetime):
            value = datetime(value.year, value.month, value.day)
        if not isinstance(value, datetime):
            value = entry.get('created') or entry.get('last_modified')
        if not isinstance(value, datetime):
            return datetime.min.replace(tzinfo=timezone.utc)
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def template_scope(self, entries):
        return {
            'blog_entries': entries,
            'format_date': format_date,
            'from_markdown': self.markdown_filter,
        }

    def render_template(self, template_name, **context):
        """Render a Jinja2 template, None on template errors."""
        try:
            template = self.env.get_template(template_name)
            return template.render(**context)
        except (TemplateNotFound, TemplateSyntaxError) as e:
            self.logger.error(f"Template error in {template_name}: {e}")
            return None

    def write_file(self, output_path, text):
        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(text)
            self.logger.debug(f"Generated HTML: {output_path}")
            return True
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to write HTML file {output_path}: {e}")
            return False

    def render_site(self, entries, report):
        """Render every .html file in the source tree and copy the rest.

        Files whose name starts with an underscore are partials and are
        only reachable through includes.
        """
        scope = self.template_scope(entries)

        for root, dirs, files in os.walk(self.source_dir):
            dirs.sort()
            for name in sorted(files):
                if name.startswith('_'):
                    continue
                source_path = os.path.join(root, name)
                rel_path = os.path.relpath(source_path, self.source_dir)
                output_path = os.path.join(self.output_dir, rel_path)

                if name.endswith('.html'):
                    rendered = self.render_template(rel_path.replace(os.sep, '/'), **scope)
                    if rendered is not None and self.write_file(output_path, rendered):
                        report.files_rendered += 1
                else:
                    os.makedirs(os.path.dirname(output_path), exist_ok=True)
                    try:
                        shutil.copy2(source_path, output_path)
                        report.files_copied += 1
                    except (IOError, OSError) as e:
                        self.logger.error(f"Failed to copy {source_path}: {e}")

    def render_posts(self, entries, report):
        """Render one page per post under ``<output>/<blog_dir>/<slug>/``."""
        scope = self.template_scope(entries)

        for entry in entries:
            output_path = os.path.join(self.output_dir, self.blog_dir, entry['slug'], 'index.html')
            rendered = self.render_template(POST_TEMPLATE, entry=entry, **scope)
            if rendered is not None and self.write_file(output_path, rendered):
                report.posts += 1

    def build(self):
        """Build the whole site and return a BuildReport."""
        start_time = time.time()
        report = BuildReport()

        self.create_output_dir()
        entries = self.load_blog_entries()
        self.render_site(entries, report)
        self.render_posts(entries, report)

        report.duration = time.time() - start_time
        self.logger.info(f"Site build completed in {report.duration:.6f} seconds.")
        self.logger.info(f"Total posts generated: {report.posts}")
        self.logger.info(f"Total files rendered: {report.files_rendered}")
        self.logger.info(f"Total files copied: {report.files_copied}")
        return report
