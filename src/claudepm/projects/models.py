"""Data models for projects, cache directories and session logs."""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class PathSource(str, Enum):
    """Where a project's real path came from."""

    CONFIG = "config"
    CONTENT = "content"
    GUESSED = "guessed"


class MatchKind(str, Enum):
    """How a project was tied to its cache directory."""

    EXACT = "exact"
    CONTENT = "content"
    UNCLAIMED = "unclaimed"
    NONE = "none"


class ResolvedPath(BaseModel):
    path: str
    source: PathSource

    @property
    def confirmed(self) -> bool:
        return self.source is not PathSource.GUESSED


class CacheDirectory(BaseModel):
    """One subdirectory of the cache root."""

    dir_name: str
    dir_path: Path


class SessionInfo(BaseModel):
    """A single session log file."""

    session_id: str
    path: Path
    size: int
    modified: datetime

    @property
    def size_kb(self) -> float:
        return self.size / 1024


class Project(BaseModel):
    """A configuration entry and/or cache directory sharing one real path."""

    name: str
    dir_name: str
    cache_path: Path | None = None
    real_path: str
    path_source: PathSource
    match: MatchKind
    in_config: bool = False
    has_cache: bool = False
    last_modified: datetime = EPOCH
    size: int = 0
    session_count: int = 0
    last_session_id: str | None = None
    last_cost: float | None = None
    last_duration: float | None = None

    @property
    def path_is_guessed(self) -> bool:
        return self.path_source is PathSource.GUESSED


class Failure(BaseModel):
    """A per-item I/O failure recorded instead of aborting an operation."""

    target: str
    error: str


def format_size(size: float) -> str:
    """Format a byte count for display."""
    units = ["B", "KB", "MB", "GB"]
    unit = 0
    while size >= 1024 and unit < len(units) - 1:
        size /= 1024
        unit += 1
    return f"{size:.2f} {units[unit]}"


def utc_timestamp(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)
