"""Reading, backing up and rewriting Claude Code's ``.claude.json``."""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from claudepm.errors import ConfigParseError

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "claude.json.backup."


@dataclass
class ClaudeConfig:
    """A parsed configuration file together with its exact original bytes."""

    path: Path
    raw: bytes
    data: dict

    @property
    def projects(self) -> dict:
        projects = self.data.get("projects")
        return projects if isinstance(projects, dict) else {}

    def remove_project(self, real_path: str) -> bool:
        projects = self.data.get("projects")
        if isinstance(projects, dict) and real_path in projects:
            del projects[real_path]
            return True
        return False


def _entries(data: object) -> dict[str, dict]:
    if not isinstance(data, dict):
        return {}
    projects = data.get("projects")
    if not isinstance(projects, dict):
        return {}
    return {path: entry if isinstance(entry, dict) else {} for path, entry in projects.items()}


def load_project_entries(config_path: Path) -> dict[str, dict]:
    """Return the ``projects`` mapping in file order, or ``{}`` if unavailable.

    Used by read-only operations, which degrade instead of failing.
    """
    if not config_path.exists():
        return {}
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
        logger.warning("Failed to read %s: %s", config_path, exc)
        return {}
    return _entries(data)


def read_config(config_path: Path) -> ClaudeConfig:
    """Strictly read the configuration file for a rewrite.

    Raises ConfigParseError if the file is missing or malformed.
    """
    try:
        raw = config_path.read_bytes()
    except OSError as exc:
        raise ConfigParseError(config_path, str(exc)) from exc
    try:
        data = json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigParseError(config_path, str(exc)) from exc
    if not isinstance(data, dict):
        raise ConfigParseError(config_path, "top-level value is not an object")
    return ClaudeConfig(path=config_path, raw=raw, data=data)


def _backup_path(backup_dir: Path) -> Path:
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    candidate = backup_dir / f"{BACKUP_PREFIX}{stamp}"
    counter = 1
    while candidate.exists():
        candidate = backup_dir / f"{BACKUP_PREFIX}{stamp}-{counter}"
        counter += 1
    return candidate


def backup_config(cfg: ClaudeConfig, backup_dir: Path) -> Path:
    """Durably write the original bytes of the configuration file.

    Returns only after the backup has been flushed to disk.
    """
    backup_dir.mkdir(parents=True, exist_ok=True)
    dest = _backup_path(backup_dir)
    # never overwrite an existing backup
    with open(dest, "xb") as f:
        f.write(cfg.raw)
        f.flush()
        os.fsync(f.fileno())
    logger.info("Backed up %s to %s", cfg.path, dest)
    return dest


def write_config(cfg: ClaudeConfig) -> None:
    """Overwrite the configuration file with the (modified) parsed data."""
    cfg.path.write_text(json.dumps(cfg.data, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Rewrote %s", cfg.path)


def list_backups(backup_dir: Path) -> list[Path]:
    """Existing configuration backups, newest first."""
    if not backup_dir.exists():
        return []
    return sorted(backup_dir.glob(f"{BACKUP_PREFIX}*"), reverse=True)
