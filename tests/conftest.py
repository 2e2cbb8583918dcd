import json

import pytest

from claudepm.config import AppConfig


@pytest.fixture
def app_config(tmp_path, monkeypatch):
    """Point every claude-pm location into a temp directory."""
    import claudepm.config as config

    cache = tmp_path / "projects"
    cache.mkdir()
    monkeypatch.setattr(config, "CLAUDEPM_DIR", tmp_path / "claude-pm")
    monkeypatch.setattr(config, "SETTINGS_PATH", tmp_path / "claude-pm" / "config.json")
    monkeypatch.setattr(config, "DEFAULT_CONFIG_PATH", tmp_path / ".claude.json")
    monkeypatch.setattr(config, "DEFAULT_CACHE_PATH", cache)
    monkeypatch.setattr(config, "BACKUP_DIR", tmp_path / "backup")
    return AppConfig(
        config_path=tmp_path / ".claude.json",
        cache_path=cache,
        backup_dir=tmp_path / "backup",
    )


@pytest.fixture
def write_config(app_config):
    """Write a .claude.json with the given projects mapping."""

    def _write(projects: dict, **extra) -> dict:
        data = {**extra, "projects": projects}
        app_config.config_path.write_text(json.dumps(data, indent=2))
        return data

    return _write


@pytest.fixture
def make_cache_dir(app_config):
    """Create a cache directory, optionally with session logs.

    ``sessions`` maps session id -> list of lines (dicts are JSON-encoded).
    """

    def _make(dir_name: str, sessions: dict | None = None):
        path = app_config.cache_path / dir_name
        path.mkdir()
        for session_id, lines in (sessions or {}).items():
            text = "\n".join(json.dumps(line) if isinstance(line, dict) else line for line in lines)
            (path / f"{session_id}.jsonl").write_text(text + "\n")
        return path

    return _make
