"""Project listing and lookup over a fresh reconciliation."""

import logging
from dataclasses import dataclass

from claudepm.config import AppConfig, Settings
from claudepm.errors import ProjectNotFoundError
from claudepm.projects.claude_config import load_project_entries
from claudepm.projects.models import Project
from claudepm.projects.reconcile import Reconciliation, entry_session_id, reconcile

logger = logging.getLogger(__name__)


@dataclass
class ActiveProject:
    project: Project
    manual: bool


class ProjectStore:
    """Read-only view of all projects. Every call rescans the disk."""

    def __init__(self, app_config: AppConfig):
        self.app_config = app_config

    def entries(self) -> dict[str, dict]:
        return load_project_entries(self.app_config.config_path)

    def reconcile(self) -> Reconciliation:
        return reconcile(self.entries(), self.app_config.cache_path)

    def list(self) -> list[Project]:
        """All projects, most recently modified first. Projects without cache sort last."""
        projects = list(self.reconcile().projects.values())
        return sorted(projects, key=lambda p: p.last_modified, reverse=True)

    def find(self, identifier: str) -> Project | None:
        """Find a project by display name, directory name or real path.

        Ambiguous names resolve to the first project in listing order; pass the
        full real path to be certain.
        """
        for project in self.list():
            if identifier in (project.name, project.dir_name, project.real_path):
                return project
        return None

    def get(self, identifier: str) -> Project:
        project = self.find(identifier)
        if project is None:
            raise ProjectNotFoundError(identifier)
        return project

    def most_recently_used(self) -> str | None:
        """First configuration entry that has a ``lastSessionId``.

        Relies on the key order of the configuration file, which Claude Code
        does not guarantee to reflect recency.
        """
        for real_path, entry in self.entries().items():
            if entry_session_id(entry):
                return real_path
        return None

    def active_project(self, settings: Settings) -> ActiveProject | None:
        """The manually selected project, else the most recently used one."""
        if settings.current_project:
            project = self.find(settings.current_project)
            if project is not None:
                return ActiveProject(project=project, manual=True)
            logger.info("Active project %s no longer resolves", settings.current_project)

        recent = self.most_recently_used()
        if recent:
            project = self.find(recent)
            if project is not None:
                return ActiveProject(project=project, manual=False)
        return None
