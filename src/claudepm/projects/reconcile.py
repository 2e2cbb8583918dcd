"""Match configuration entries to cache directories.

Each configuration entry is resolved in order:

1. exact match - the encoded real path names an unclaimed cache directory
2. content match - an unclaimed directory whose session logs record the real path as ``cwd``
3. no match - the project has no cache

A directory is claimed by at most one entry. Directories left unclaimed become
projects of their own, keyed by their ``cwd`` or, failing that, by a guessed
decode of their name. A directory whose derived path is already registered is
discarded; the first registration wins.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from claudepm.projects import scanner
from claudepm.projects.codec import (
    dir_name_to_path,
    display_name,
    is_cache_dir_name,
    path_to_dir_name,
)
from claudepm.projects.models import (
    CacheDirectory,
    MatchKind,
    PathSource,
    Project,
    ResolvedPath,
)

logger = logging.getLogger(__name__)


@dataclass
class Reconciliation:
    """Result of reconciling the configuration against the cache root."""

    projects: dict[str, Project] = field(default_factory=dict)
    directories: list[CacheDirectory] = field(default_factory=list)
    # dir_name -> real path of the configuration entry that claimed it
    claimed: dict[str, str] = field(default_factory=dict)
    discarded: list[CacheDirectory] = field(default_factory=list)
    resolved: dict[str, ResolvedPath] = field(default_factory=dict)


class _ContentPaths:
    """Memoized ``cwd`` lookups for one reconciliation run."""

    def __init__(self):
        self._cache: dict[Path, str | None] = {}

    def get(self, directory: CacheDirectory) -> str | None:
        if directory.dir_path not in self._cache:
            self._cache[directory.dir_path] = scanner.extract_real_path(directory.dir_path)
        return self._cache[directory.dir_path]


def _number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def entry_session_id(entry: dict) -> str | None:
    value = entry.get("lastSessionId")
    return value if isinstance(value, str) and value else None


def _with_cache_stats(project: Project, directory: CacheDirectory) -> Project:
    if not directory.dir_path.is_dir():
        return project
    return project.model_copy(
        update={
            "has_cache": True,
            "last_modified": scanner.last_modified(directory.dir_path),
            "size": scanner.directory_size(directory.dir_path),
            "session_count": scanner.session_count(directory.dir_path),
        }
    )


def _cache_path(cache_root: Path, expected: str, directory: CacheDirectory | None) -> Path | None:
    if directory is not None:
        return directory.dir_path
    # non-drive keys stay as-is and must not resolve outside the cache root
    if not is_cache_dir_name(expected):
        return None
    return cache_root / expected


def _find_by_content(
    real_path: str, unclaimed: dict[str, CacheDirectory], content: _ContentPaths
) -> CacheDirectory | None:
    for directory in unclaimed.values():
        if content.get(directory) == real_path:
            return directory
    return None


def reconcile(entries: dict[str, dict], cache_root: Path) -> Reconciliation:
    """Build the unified project map from configuration entries and the cache root."""
    result = Reconciliation(directories=scanner.list_cache_directories(cache_root))
    unclaimed = {d.dir_name: d for d in result.directories}
    content = _ContentPaths()

    for real_path, entry in entries.items():
        if not real_path:
            logger.debug("Skipping configuration entry with an empty path")
            continue

        expected = path_to_dir_name(real_path)
        directory = unclaimed.get(expected)
        match = MatchKind.EXACT
        if directory is None:
            directory = _find_by_content(real_path, unclaimed, content)
            match = MatchKind.CONTENT
        if directory is None:
            match = MatchKind.NONE

        project = Project(
            name=display_name(real_path),
            dir_name=directory.dir_name if directory else expected,
            cache_path=_cache_path(cache_root, expected, directory),
            real_path=real_path,
            path_source=PathSource.CONFIG,
            match=match,
            in_config=True,
            last_session_id=entry_session_id(entry),
            last_cost=_number(entry.get("lastCost")),
            last_duration=_number(entry.get("lastDuration")),
        )
        if directory is not None:
            del unclaimed[directory.dir_name]
            result.claimed[directory.dir_name] = real_path
            result.resolved[directory.dir_name] = ResolvedPath(path=real_path, source=PathSource.CONFIG)
            project = _with_cache_stats(project, directory)
            logger.debug("Matched %s to %s (%s)", real_path, directory.dir_name, match.value)

        result.projects[real_path] = project

    for directory in unclaimed.values():
        cwd = content.get(directory)
        if cwd:
            resolved = ResolvedPath(path=cwd, source=PathSource.CONTENT)
        else:
            resolved = dir_name_to_path(directory.dir_name)
        result.resolved[directory.dir_name] = resolved

        if resolved.path in result.projects:
            logger.debug("Discarding %s: %s is already registered", directory.dir_name, resolved.path)
            result.discarded.append(directory)
            continue

        project = Project(
            name=display_name(resolved.path),
            dir_name=directory.dir_name,
            cache_path=directory.dir_path,
            real_path=resolved.path,
            path_source=resolved.source,
            match=MatchKind.UNCLAIMED,
        )
        result.projects[resolved.path] = _with_cache_stats(project, directory)

    return result
