#!/usr/bin/env python3
"""
Command-line interface for Quill - personal blog generator.
"""

import os
import sys
import argparse
import shutil
from typing import List, Optional

from . import __version__
from .core import Quill
from .content import format_date
from .deploy import deploy
from .history import file_history
from .settings import QuillSettings
from .watcher import watch

PACKAGE_TEMPLATES = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')

SAMPLE_POST = """---
title: Hello, world
---

This is the first post on the blog. Commit it and rebuild to see its
creation date appear.
"""


def create_starter_structure(base_dir: Optional[str] = None) -> None:
    """Create src/ with the starter templates and a first blog post."""
    base_dir = base_dir or os.getcwd()

    for directory in ['src', os.path.join('content', 'blog')]:
        dir_path = os.path.join(base_dir, directory)
        if os.path.exists(dir_path):
            print(f"Directory already exists: {directory}")
        else:
            os.makedirs(dir_path, exist_ok=True)
            print(f"Created directory: {directory}")

    for template_file in sorted(os.listdir(PACKAGE_TEMPLATES)):
        if not template_file.endswith('.html'):
            continue
        dest_path = os.path.join(base_dir, 'src', template_file)
        if os.path.exists(dest_path):
            print(f"Template already exists: src/{template_file}")
        else:
            shutil.copy2(os.path.join(PACKAGE_TEMPLATES, template_file), dest_path)
            print(f"Created template: src/{template_file}")

    post_path = os.path.join(base_dir, 'content', 'blog', 'hello-world.md')
    if os.path.exists(post_path):
        print("Sample post already exists: content/blog/hello-world.md")
    else:
        with open(post_path, 'w', encoding='utf-8') as f:
            f.write(SAMPLE_POST)
        print("Created sample post: content/blog/hello-world.md")


def print_history(file_path: str, timeout: Optional[float] = None) -> int:
    """Print the first and last change of one file. Returns an exit code."""
    history = file_history(file_path, timeout=timeout)
    if history.created is None and history.last_updated is None:
        print(f"No history found for {file_path}", file=sys.stderr)
        return 1

    for label, record in (('Created', history.created), ('Last updated', history.last_updated)):
        if record is None:
            print(f"{label}: unknown")
            continue
        print(f"{label}: {format_date(record.author_time)} by {record.author} "
              f"({record.hash[:7]} {record.summary})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Quill - personal blog generator')
    parser.add_argument('--source', type=str,
                        help='Directory of templates and static files to render')
    parser.add_argument('--content', type=str,
                        help='Content directory containing markdown files')
    parser.add_argument('--output', type=str,
                        help='Output directory for generated site')
    parser.add_argument('--blog-dir', dest='blog_dir', type=str,
                        help="Sub-directory of the content directory holding posts")
    parser.add_argument('--workers', dest='blame_workers', type=int,
                        help='Number of concurrent git blame processes')
    parser.add_argument('--timeout', dest='blame_timeout', type=float,
                        help='Seconds to wait for each git blame before giving up')
    parser.add_argument('-w', '--watch', action='store_true', default=None,
                        help='Watch source and content for changes and rebuild')
    parser.add_argument('--deploy', action='store_true',
                        help='Upload the output over FTP after building')
    parser.add_argument('--history', metavar='FILE', type=str,
                        help='Print the first and last change of FILE and exit')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and starter site')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.init:
        settings_loader = QuillSettings()
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")
        print("\nCreating starter project structure...")
        create_starter_structure()
        return

    settings_loader = QuillSettings()
    settings_loader.load_settings()

    args_dict = {k: v for k, v in vars(args).items()
                 if v is not None and k not in ('init', 'history', 'deploy')}
    final_settings = settings_loader.merge_with_args(args_dict)

    if args.history:
        sys.exit(print_history(args.history, timeout=final_settings['blame_timeout']))

    output_dir = os.path.expanduser(final_settings['output'])

    try:
        generator = Quill(
            source_dir=final_settings['source'],
            content_dir=final_settings['content'],
            output_dir=output_dir,
            blog_dir=final_settings['blog_dir'],
            blame_workers=final_settings['blame_workers'],
            blame_timeout=final_settings['blame_timeout'],
        )
        generator.build()

        if args.deploy:
            final_settings['output'] = output_dir
            deploy(final_settings)

        if final_settings['watch']:
            def rebuild():
                generator.logger.info("Rebuilding after change")
                generator.build()

            watch(
                [final_settings['source'], final_settings['content']],
                rebuild,
                delay=final_settings['debounce'],
            )
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
