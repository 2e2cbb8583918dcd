"""Read-only inspection of the session-log cache root."""

import json
import logging
import os
from datetime import datetime
from pathlib import Path

from claudepm import config
from claudepm.projects.models import EPOCH, CacheDirectory, SessionInfo, utc_timestamp

logger = logging.getLogger(__name__)


def _is_session_log(name: str) -> bool:
    return name.endswith(config.SESSION_LOG_SUFFIX)


def list_cache_directories(cache_root: Path) -> list[CacheDirectory]:
    """List the immediate subdirectories of the cache root, sorted by name."""
    directories = []
    try:
        with os.scandir(cache_root) as it:
            for entry in it:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        directories.append(CacheDirectory(dir_name=entry.name, dir_path=Path(entry.path)))
                except OSError as exc:
                    logger.debug("Skipping cache entry %s: %s", entry.path, exc)
    except OSError as exc:
        logger.debug("Cannot list cache root %s: %s", cache_root, exc)
        return []

    return sorted(directories, key=lambda d: d.dir_name)


def _session_log_files(dir_path: Path) -> list[Path]:
    names = []
    try:
        with os.scandir(dir_path) as it:
            for entry in it:
                try:
                    if _is_session_log(entry.name) and entry.is_file():
                        names.append(entry.name)
                except OSError:
                    continue
    except OSError:
        return []
    return [dir_path / name for name in sorted(names)]


def _cwd_from_log(log_path: Path) -> str | None:
    try:
        with open(log_path, encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(record, dict):
                    cwd = record.get("cwd")
                    if isinstance(cwd, str) and cwd:
                        return cwd
    except OSError as exc:
        logger.debug("Cannot read session log %s: %s", log_path, exc)
    return None


def extract_real_path(dir_path: Path) -> str | None:
    """Return the first ``cwd`` recorded in any session log of the directory.

    This is the authoritative real path of a cache directory. Malformed lines
    and unreadable files are skipped.
    """
    for log_path in _session_log_files(dir_path):
        cwd = _cwd_from_log(log_path)
        if cwd:
            return cwd
    return None


def _walk_files(dir_path: Path):
    """Yield ``os.DirEntry`` for every regular file under dir_path.

    Uses an explicit stack; unreadable directories are skipped.
    """
    stack = [dir_path]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as exc:
            logger.debug("Cannot list %s: %s", current, exc)
            continue
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(Path(entry.path))
                elif entry.is_file(follow_symlinks=False):
                    yield entry
            except OSError:
                continue


def directory_size(dir_path: Path) -> int:
    """Total size in bytes of all files under dir_path."""
    total = 0
    for entry in _walk_files(dir_path):
        try:
            total += entry.stat(follow_symlinks=False).st_size
        except OSError:
            continue
    return total


def count_files(dir_path: Path) -> int:
    """Number of files anywhere under dir_path."""
    return sum(1 for _ in _walk_files(dir_path))


def session_count(dir_path: Path) -> int:
    """Number of session logs directly inside dir_path."""
    return len(_session_log_files(dir_path))


def last_modified(dir_path: Path) -> datetime:
    try:
        return utc_timestamp(dir_path.stat().st_mtime)
    except OSError:
        return EPOCH


def list_sessions(dir_path: Path) -> list[SessionInfo]:
    """Session logs of a cache directory, newest first."""
    sessions = []
    for log_path in _session_log_files(dir_path):
        try:
            stat = log_path.stat()
        except OSError as exc:
            logger.debug("Skipping session log %s: %s", log_path, exc)
            continue
        sessions.append(
            SessionInfo(
                session_id=log_path.name[: -len(config.SESSION_LOG_SUFFIX)],
                path=log_path,
                size=stat.st_size,
                modified=utc_timestamp(stat.st_mtime),
            )
        )
    sessions.sort(key=lambda s: s.modified, reverse=True)
    return sessions
