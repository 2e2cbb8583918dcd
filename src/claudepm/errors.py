"""Exceptions raised by claude-pm operations."""

from pathlib import Path


class ClaudePMError(Exception):
    """Base class for claude-pm errors."""


class ProjectNotFoundError(ClaudePMError):
    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Project not found: {identifier}")


class NoCacheError(ClaudePMError):
    def __init__(self, real_path: str):
        self.real_path = real_path
        super().__init__(f"Project has no cached sessions: {real_path}")


class ConfigParseError(ClaudePMError):
    """The Claude configuration file cannot be safely rewritten."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot parse {path}: {reason}")


class NoActiveProjectError(ClaudePMError):
    def __init__(self):
        super().__init__("No active project. Switch to one or name a project explicitly.")
