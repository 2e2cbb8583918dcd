"""Filesystem deletions that record per-item failures instead of raising."""

import logging
import os
from pathlib import Path

from claudepm import config
from claudepm.projects.models import Failure

logger = logging.getLogger(__name__)


def _fail(failures: list[Failure], target: Path | str, exc: OSError) -> None:
    logger.warning("Failed to delete %s: %s", target, exc)
    failures.append(Failure(target=str(target), error=str(exc)))


def remove_file(path: Path, failures: list[Failure]) -> bool:
    try:
        path.unlink()
    except OSError as exc:
        _fail(failures, path, exc)
        return False
    return True


def remove_tree(root: Path, failures: list[Failure]) -> bool:
    """Delete a directory tree depth-first without recursion.

    Files are removed as they are found; directories are removed in reverse
    discovery order once their contents are gone. Returns True if the root
    itself was removed.
    """
    if root.is_symlink() or not root.is_dir():
        return remove_file(root, failures)

    dirs = []
    stack = [root]
    while stack:
        current = stack.pop()
        dirs.append(current)
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as exc:
            _fail(failures, current, exc)
            continue
        for entry in entries:
            path = Path(entry.path)
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError as exc:
                _fail(failures, path, exc)
                continue
            if is_dir:
                stack.append(path)
            else:
                remove_file(path, failures)

    removed_root = False
    for directory in reversed(dirs):
        try:
            directory.rmdir()
        except OSError as exc:
            _fail(failures, directory, exc)
            continue
        removed_root = directory == root
    return removed_root


def remove_session_logs(dir_path: Path, failures: list[Failure]) -> int:
    """Delete session logs directly inside dir_path, leaving other files intact."""
    removed = 0
    try:
        with os.scandir(dir_path) as it:
            logs = [Path(e.path) for e in it if e.name.endswith(config.SESSION_LOG_SUFFIX)]
    except OSError as exc:
        _fail(failures, dir_path, exc)
        return 0
    for log in logs:
        if remove_file(log, failures):
            removed += 1
    return removed


def is_empty_dir(path: Path) -> bool:
    try:
        with os.scandir(path) as it:
            return next(it, None) is None
    except OSError:
        return False
