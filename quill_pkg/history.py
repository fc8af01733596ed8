"""
First and last change lookups built on ``git blame``.

Posts are stamped with the revision that owns their first line (created)
and the revision that owns their last line (last updated).
"""

import enum
import logging
import os
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Optional

from .blame import BlameResult, RevisionRecord, parse_blame

logger = logging.getLogger('quill.history')


class BlameCommandError(RuntimeError):
    """Raised when ``git blame`` cannot produce output for a file."""

    def __init__(self, file_path, message):
        super().__init__(f"Could not git blame {file_path}: {message}")
        self.file_path = file_path


class SelectionPolicy(enum.Enum):
    FIRST_LINE = 'first-line'
    LAST_LINE = 'last-line-by-position'


@dataclass(frozen=True)
class FileHistory:
    """Created and last-updated revisions of one file."""
    created: Optional[RevisionRecord] = None
    last_updated: Optional[RevisionRecord] = None


def run_blame_command(file_path: str, timeout: Optional[float] = None) -> str:
    """Run ``git blame --porcelain`` for a file and return its stdout.

    git runs inside the file's own directory so paths outside the current
    working tree resolve against the right repository.

    Raises:
        BlameCommandError: git is missing, exits non-zero or times out.
    """
    absolute_path = os.path.abspath(file_path)
    directory, filename = os.path.split(absolute_path)
    cmd = ['git', 'blame', '--date=iso', '--porcelain', '--', filename]

    try:
        result = subprocess.run(
            cmd,
            cwd=directory or None,
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        raise BlameCommandError(file_path, f"timed out after {timeout} seconds")
    except (OSError, ValueError) as e:
        raise BlameCommandError(file_path, str(e))

    if result.returncode != 0:
        raise BlameCommandError(file_path, result.stderr.strip() or f"exit status {result.returncode}")

    return result.stdout


def select_revision(result: BlameResult, policy: SelectionPolicy) -> Optional[RevisionRecord]:
    """Pick the revision owning the first or the last line of the file.

    The last line is the highest final line number present, which does not
    depend on the order blame happened to emit its groups in.
    """
    if not result.line_data:
        return None

    if policy is SelectionPolicy.FIRST_LINE:
        line = result.line_data.get(1)
    else:
        line = result.line_data[max(result.line_data)]

    if line is None:
        return None
    return result.commit_data.get(line.hash)


def _epoch_to_datetime(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def normalize_revision(record: RevisionRecord) -> RevisionRecord:
    """Convert the epoch-second time fields into UTC datetimes."""
    return replace(
        record,
        author_time=_epoch_to_datetime(record.author_time),
        committer_time=_epoch_to_datetime(record.committer_time),
    )


def blame_file(file_path: str, runner: Callable[..., str] = run_blame_command,
               timeout: Optional[float] = None) -> Optional[BlameResult]:
    """Run the blame command once and parse its output, None on failure."""
    try:
        output = runner(file_path, timeout=timeout)
    except BlameCommandError as e:
        logger.warning(str(e))
        return None
    return parse_blame(output)


def _pick(result: Optional[BlameResult], policy: SelectionPolicy,
          file_path: str) -> Optional[RevisionRecord]:
    if result is None:
        return None

    record = select_revision(result, policy)
    if record is None:
        logger.debug(f"No blame data for {file_path}")
        return None

    return normalize_revision(record)


def find_change(file_path: str, policy: SelectionPolicy,
                runner: Callable[..., str] = run_blame_command,
                timeout: Optional[float] = None) -> Optional[RevisionRecord]:
    """Blame a file and return the revision selected by ``policy``.

    Every call runs the blame command once; nothing is cached. Returns None
    when the command fails or the output holds no matching revision.
    """
    return _pick(blame_file(file_path, runner, timeout), policy, file_path)


def first_change(file_path: str, runner: Callable[..., str] = run_blame_command,
                 timeout: Optional[float] = None) -> Optional[RevisionRecord]:
    """Revision that owns the first line of the file."""
    return find_change(file_path, SelectionPolicy.FIRST_LINE, runner=runner, timeout=timeout)


def last_change(file_path: str, runner: Callable[..., str] = run_blame_command,
                timeout: Optional[float] = None) -> Optional[RevisionRecord]:
    """Revision that owns the last line of the file."""
    return find_change(file_path, SelectionPolicy.LAST_LINE, runner=runner, timeout=timeout)


def file_history(file_path: str, runner: Callable[..., str] = run_blame_command,
                 timeout: Optional[float] = None) -> FileHistory:
    """First and last change of a file from a single blame run."""
    result = blame_file(file_path, runner, timeout)
    return FileHistory(
        created=_pick(result, SelectionPolicy.FIRST_LINE, file_path),
        last_updated=_pick(result, SelectionPolicy.LAST_LINE, file_path),
    )


def collect_changes(paths: Iterable[str], max_workers: Optional[int] = None,
                    runner: Callable[..., str] = run_blame_command,
                    timeout: Optional[float] = None) -> Dict[str, FileHistory]:
    """Look up the history of many files concurrently and wait for all of them.

    Args:
        paths: Files to blame.
        max_workers: Thread pool size, defaults to the executor's own choice.
        runner: Blame command, replaceable in tests.
        timeout: Per-invocation timeout in seconds, treated as a failure.

    Returns:
        Mapping of path to FileHistory, in the order ``paths`` were given.
    """
    paths = list(paths)
    if not paths:
        return {}

    histories = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(file_history, path, runner, timeout): path
            for path in paths
        }
        for future in as_completed(futures):
            path = futures[future]
            try:
                histories[path] = future.result()
            except Exception as e:
                logger.error(f"Error reading history of {path}: {e}")
                histories[path] = FileHistory()

    return {path: histories[path] for path in paths}
