"""Trim oversized prompt histories in the configuration file."""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from claudepm import config
from claudepm.config import AppConfig
from claudepm.projects.models import Failure
from claudepm.projects.claude_config import backup_config, read_config, write_config

logger = logging.getLogger(__name__)


class HistoryTrim(BaseModel):
    real_path: str
    before: int
    after: int


class TrimReport(BaseModel):
    backup_path: Path | None = None
    trimmed: list[HistoryTrim] = Field(default_factory=list)
    failures: list[Failure] = Field(default_factory=list)


def _display(record: object) -> str:
    if isinstance(record, dict):
        display = record.get("display")
        if isinstance(display, str):
            return display.strip()
    return ""


def trim_history(history: list, keep: int | None = None) -> list:
    """Keep at most ``keep`` records, newest first.

    Blank and repeated prompts are dropped before anything is dropped by
    position. The result is a subsequence of the input in the same order.
    """
    keep = config.HISTORY_KEEP if keep is None else keep
    seen = set()
    kept = []
    for record in history:
        if len(kept) >= keep:
            break
        text = _display(record)
        if not text or text in seen:
            continue
        seen.add(text)
        kept.append(record)
    return kept


def plan_history_trim(
    entries: dict[str, dict],
    threshold: int | None = None,
    keep: int | None = None,
) -> list[HistoryTrim]:
    """Entries whose history is longer than ``threshold`` and what trimming leaves."""
    threshold = config.HISTORY_TRIM_THRESHOLD if threshold is None else threshold
    trims = []
    for real_path, entry in entries.items():
        history = entry.get("history")
        if not isinstance(history, list) or len(history) <= threshold:
            continue
        trims.append(
            HistoryTrim(
                real_path=real_path,
                before=len(history),
                after=len(trim_history(history, keep)),
            )
        )
    return trims


def apply_history_trim(
    app_config: AppConfig,
    trims: list[HistoryTrim],
    keep: int | None = None,
) -> TrimReport:
    """Back up the configuration file, then rewrite it with trimmed histories.

    A failed rewrite is recorded in the report and leaves the backup in place.
    """
    report = TrimReport()
    if not trims:
        return report

    cfg = read_config(app_config.config_path)
    report.backup_path = backup_config(cfg, app_config.backup_dir)

    for trim in trims:
        entry = cfg.projects.get(trim.real_path)
        if not isinstance(entry, dict) or not isinstance(entry.get("history"), list):
            logger.warning("Skipping %s: history changed since planning", trim.real_path)
            continue
        before = len(entry["history"])
        entry["history"] = trim_history(entry["history"], keep)
        report.trimmed.append(HistoryTrim(real_path=trim.real_path, before=before, after=len(entry["history"])))

    try:
        write_config(cfg)
    except OSError as exc:
        logger.error("Failed to rewrite %s, backup at %s: %s", cfg.path, report.backup_path, exc)
        report.failures.append(Failure(target=str(cfg.path), error=str(exc)))
        report.trimmed = []
    return report
