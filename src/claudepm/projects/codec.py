"""Conversion between real project paths and cache directory names.

Claude Code names each cache directory after the project's path, replacing
separators and dots with ``-``:

    D:\\myProject\\top.qianshe\\ClaudePM -> D--myProject-top-qianshe-ClaudePM

The encoding is LOSSY. A ``-`` in a directory name may stand for a separator,
a dot or a literal hyphen, so decoding is only a guess. Prefer the ``cwd``
recorded in session logs (see ``scanner.extract_real_path``) whenever it exists.
"""

import re

from claudepm.projects.models import PathSource, ResolvedPath

FILLER = "-"

_DRIVE_PATH = re.compile(r"^([A-Za-z]):\\")
_DRIVE_DIR_NAME = re.compile(r"^([A-Za-z])--")


def path_to_dir_name(real_path: str) -> str:
    """Encode a drive-rooted path as a cache directory name.

    Paths that are not drive-rooted are returned unchanged.
    """
    if not real_path:
        return ""

    normalized = real_path.replace("/", "\\")
    match = _DRIVE_PATH.match(normalized)
    if not match:
        return real_path

    remainder = re.sub(r"[\\.]", FILLER, normalized[3:])
    return f"{match.group(1)}{FILLER}{FILLER}{remainder}"


def is_cache_dir_name(name: str) -> bool:
    """True when name is a single path component usable under the cache root."""
    if name in ("", ".", ".."):
        return False
    return not any(ch in name for ch in "\\/:")


def dir_name_to_path(dir_name: str) -> ResolvedPath:
    """Best-effort decode of a cache directory name.

    The result is always tagged as guessed: every ``-`` becomes a separator,
    so dots and hyphens from the original path cannot be recovered.
    """
    match = _DRIVE_DIR_NAME.match(dir_name)
    if not match:
        return ResolvedPath(path=dir_name, source=PathSource.GUESSED)

    remainder = dir_name[3:].replace(FILLER, "\\")
    return ResolvedPath(path=f"{match.group(1)}:\\{remainder}", source=PathSource.GUESSED)


def display_name(real_path: str) -> str:
    """Last component of a Windows or POSIX path."""
    stripped = real_path.rstrip("\\/")
    if not stripped:
        return real_path
    return re.split(r"[\\/]", stripped)[-1]
