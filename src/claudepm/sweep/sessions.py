"""List and prune individual session logs of a project."""

import logging

from pydantic import BaseModel, Field

from claudepm import config
from claudepm.config import Settings
from claudepm.errors import NoActiveProjectError, NoCacheError
from claudepm.projects import scanner
from claudepm.projects.models import Failure, Project, SessionInfo
from claudepm.projects.store import ProjectStore
from claudepm.sweep.fsops import remove_file

logger = logging.getLogger(__name__)


class PruneReport(BaseModel):
    deleted: list[str] = Field(default_factory=list)
    freed: int = 0
    failures: list[Failure] = Field(default_factory=list)


def resolve_target(store: ProjectStore, settings: Settings, identifier: str | None = None) -> Project:
    """The named project, or the active one. It must have cached sessions."""
    if identifier:
        project = store.get(identifier)
    else:
        active = store.active_project(settings)
        if active is None:
            raise NoActiveProjectError()
        project = active.project

    if not project.has_cache:
        raise NoCacheError(project.real_path)
    return project


def project_sessions(project: Project) -> list[SessionInfo]:
    if not project.has_cache:
        return []
    return scanner.list_sessions(project.cache_path)


def select_small_sessions(sessions: list[SessionInfo], threshold_kb: float | None = None) -> list[SessionInfo]:
    """Sessions strictly smaller than ``threshold_kb``."""
    threshold_kb = config.SMALL_SESSION_KB if threshold_kb is None else threshold_kb
    return [s for s in sessions if s.size_kb < threshold_kb]


def delete_sessions(sessions: list[SessionInfo]) -> PruneReport:
    report = PruneReport()
    for session in sessions:
        if remove_file(session.path, report.failures):
            report.deleted.append(session.session_id)
            report.freed += session.size
    logger.info("Deleted %d of %d sessions", len(report.deleted), len(sessions))
    return report
