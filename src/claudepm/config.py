"""Configuration, default paths and the persisted settings store for claude-pm."""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

CLAUDE_DIR = Path.home() / ".claude"
CLAUDEPM_DIR = CLAUDE_DIR / "claude-pm"
SETTINGS_PATH = CLAUDEPM_DIR / "config.json"

# Where Claude Code keeps its own state
DEFAULT_CONFIG_PATH = Path.home() / ".claude.json"
DEFAULT_CACHE_PATH = CLAUDE_DIR / "projects"
BACKUP_DIR = CLAUDE_DIR / "backup"

SESSION_LOG_SUFFIX = ".jsonl"

# History trimming limits
HISTORY_TRIM_THRESHOLD = 30
HISTORY_KEEP = 25

# Sessions smaller than this (in KB) are preselected for pruning
SMALL_SESSION_KB = 2.0


class Settings(BaseModel):
    """User overrides persisted between invocations."""

    model_config = ConfigDict(populate_by_name=True)

    claude_config_path: str | None = Field(default=None, alias="claudeConfigPath")
    claude_cache_path: str | None = Field(default=None, alias="claudeCachePath")
    current_project: str | None = Field(default=None, alias="currentProject")


class AppConfig(BaseModel):
    """Resolved locations handed to every component."""

    model_config = ConfigDict(frozen=True)

    config_path: Path
    cache_path: Path
    backup_dir: Path


def load_settings(path: Path | None = None) -> Settings:
    """Load the settings store, falling back to defaults if missing or corrupt."""
    path = path or SETTINGS_PATH
    if not path.exists():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
        return Settings.model_validate(data)
    except (json.JSONDecodeError, OSError, ValidationError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Persist the settings store."""
    path = path or SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    data = settings.model_dump(by_alias=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def resolve_app_config(settings: Settings) -> AppConfig:
    """Apply settings overrides on top of the default locations."""
    return AppConfig(
        config_path=Path(settings.claude_config_path) if settings.claude_config_path else DEFAULT_CONFIG_PATH,
        cache_path=Path(settings.claude_cache_path) if settings.claude_cache_path else DEFAULT_CACHE_PATH,
        backup_dir=BACKUP_DIR,
    )
