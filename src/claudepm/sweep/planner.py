"""Plan and apply sweeps of stale configuration entries and cache directories.

Planning never mutates anything. Applying a plan backs up the configuration
file before the first deletion, deletes, then rewrites the configuration.
"""

import logging
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from claudepm.config import AppConfig
from claudepm.projects import scanner
from claudepm.projects.claude_config import (
    backup_config,
    load_project_entries,
    read_config,
    write_config,
)
from claudepm.projects.models import Failure, PathSource
from claudepm.projects.reconcile import reconcile
from claudepm.sweep.fsops import is_empty_dir, remove_session_logs, remove_tree

logger = logging.getLogger(__name__)


class SweepReason(str, Enum):
    NOT_IN_CONFIG = "not in configuration"
    EMPTY = "empty"
    NO_SESSION_LOGS = "no session logs"


class ConfigOnlyItem(BaseModel):
    """A configuration entry with no cache directory."""

    real_path: str
    cache_path: Path | None = None
    cache_exists: bool = False
    # False when the path belongs to another project's cache
    cache_cleanable: bool = False


class DirectoryItem(BaseModel):
    """A cache directory scheduled for deletion."""

    dir_name: str
    dir_path: Path
    real_path: str
    path_source: PathSource
    reason: SweepReason
    # the directory is the matched cache of a configuration entry
    in_config: bool = False
    size: int = 0
    file_count: int = 0
    session_count: int = 0


class SweepPlan(BaseModel):
    config_only: list[ConfigOnlyItem] = Field(default_factory=list)
    orphans: list[DirectoryItem] = Field(default_factory=list)
    invalid: list[DirectoryItem] = Field(default_factory=list)
    # orphans left alone because their path is only a guess
    skipped: list[DirectoryItem] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.config_only or self.orphans or self.invalid)

    @property
    def directories(self) -> list[DirectoryItem]:
        return self.invalid + self.orphans

    @property
    def removes_config_entries(self) -> bool:
        return bool(self.config_only) or any(item.in_config for item in self.directories)

    @property
    def total_size(self) -> int:
        return sum(item.size for item in self.directories)


class SweepReport(BaseModel):
    backup_path: Path | None = None
    removed_entries: list[str] = Field(default_factory=list)
    deleted_dirs: list[str] = Field(default_factory=list)
    deleted_files: int = 0
    failures: list[Failure] = Field(default_factory=list)


class SweepPlanner:
    """Finds config-only entries, orphan directories and invalid directories.

    With ``strict=True``, orphans whose real path could only be guessed from
    the directory name are skipped rather than planned for deletion.
    """

    def __init__(self, app_config: AppConfig, strict: bool = False):
        self.app_config = app_config
        self.strict = strict

    def plan(self) -> SweepPlan:
        entries = load_project_entries(self.app_config.config_path)
        rec = reconcile(entries, self.app_config.cache_path)
        plan = SweepPlan()

        claimed_paths = {d.dir_path for d in rec.directories if d.dir_name in rec.claimed}
        for project in rec.projects.values():
            if not project.in_config or project.has_cache:
                continue
            cache_path = project.cache_path
            exists = cache_path is not None and cache_path.exists()
            plan.config_only.append(
                ConfigOnlyItem(
                    real_path=project.real_path,
                    cache_path=project.cache_path,
                    cache_exists=exists,
                    cache_cleanable=(
                        exists
                        and self._in_cache_root(cache_path)
                        and cache_path.is_dir()
                        and cache_path not in claimed_paths
                    ),
                )
            )

        for directory in rec.directories:
            resolved = rec.resolved[directory.dir_name]
            file_count = scanner.count_files(directory.dir_path)
            sessions = scanner.session_count(directory.dir_path)

            if file_count == 0:
                reason = SweepReason.EMPTY
            elif sessions == 0:
                reason = SweepReason.NO_SESSION_LOGS
            elif directory.dir_name in rec.claimed or resolved.path in entries:
                continue
            else:
                reason = SweepReason.NOT_IN_CONFIG

            item = DirectoryItem(
                dir_name=directory.dir_name,
                dir_path=directory.dir_path,
                real_path=resolved.path,
                path_source=resolved.source,
                reason=reason,
                in_config=directory.dir_name in rec.claimed,
                size=scanner.directory_size(directory.dir_path),
                file_count=file_count,
                session_count=sessions,
            )
            if reason is not SweepReason.NOT_IN_CONFIG:
                plan.invalid.append(item)
            elif self.strict and resolved.source is PathSource.GUESSED:
                plan.skipped.append(item)
            else:
                plan.orphans.append(item)

        logger.debug(
            "Sweep plan: %d config-only, %d orphans, %d invalid, %d skipped",
            len(plan.config_only),
            len(plan.orphans),
            len(plan.invalid),
            len(plan.skipped),
        )
        return plan

    def apply(self, plan: SweepPlan) -> SweepReport:
        """Carry out a plan.

        Raises ConfigParseError before touching anything if the plan needs to
        rewrite a configuration file that cannot be parsed. Individual deletion
        failures are collected in the report.
        """
        report = SweepReport()
        cfg = None
        if plan.removes_config_entries:
            cfg = read_config(self.app_config.config_path)
            report.backup_path = backup_config(cfg, self.app_config.backup_dir)

        for item in plan.config_only:
            if cfg.remove_project(item.real_path):
                report.removed_entries.append(item.real_path)
            if item.cache_cleanable and self._in_cache_root(item.cache_path) and item.cache_path.is_dir():
                self._clean_cache(item.cache_path, report)

        for item in plan.directories:
            if not remove_tree(item.dir_path, report.failures):
                continue
            report.deleted_dirs.append(item.dir_name)
            if item.in_config and cfg is not None and cfg.remove_project(item.real_path):
                report.removed_entries.append(item.real_path)

        if cfg is not None:
            try:
                write_config(cfg)
            except OSError as exc:
                logger.error("Failed to rewrite %s, backup at %s: %s", cfg.path, report.backup_path, exc)
                report.failures.append(Failure(target=str(cfg.path), error=str(exc)))

        return report

    def _in_cache_root(self, path: Path | None) -> bool:
        return path is not None and path.parent == self.app_config.cache_path

    def _clean_cache(self, cache_path: Path, report: SweepReport) -> None:
        if is_empty_dir(cache_path):
            try:
                cache_path.rmdir()
            except OSError as exc:
                logger.warning("Failed to delete %s: %s", cache_path, exc)
                report.failures.append(Failure(target=str(cache_path), error=str(exc)))
            else:
                report.deleted_dirs.append(cache_path.name)
        else:
            report.deleted_files += remove_session_logs(cache_path, report.failures)
