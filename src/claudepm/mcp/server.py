"""MCP server exposing read-only project tools."""

from mcp.server.fastmcp import FastMCP

from claudepm.config import load_settings, resolve_app_config
from claudepm.projects.models import format_size
from claudepm.projects.store import ProjectStore
from claudepm.sweep.planner import SweepPlanner
from claudepm.sweep.sessions import project_sessions

mcp = FastMCP("claude-pm")
app_config = resolve_app_config(load_settings())
store = ProjectStore(app_config)


def _project_dict(project) -> dict:
    data = project.model_dump(mode="json")
    data["size_human"] = format_size(project.size)
    return data


@mcp.tool()
def list_projects(only_cached: bool = False) -> list[dict]:
    """List locally known Claude Code projects, most recently modified first.

    Each project combines an entry of ~/.claude.json and/or a session cache
    directory. ``path_source`` is "guessed" when the real path was decoded from
    the directory name and may be wrong.

    Args:
        only_cached: Only return projects that have cached sessions
    """
    projects = store.list()
    if only_cached:
        projects = [p for p in projects if p.has_cache]
    return [_project_dict(p) for p in projects]


@mcp.tool()
def get_project(identifier: str) -> dict | str:
    """Get one project by name, cache directory name or full real path.

    Args:
        identifier: Project name, directory name or real path
    """
    project = store.find(identifier)
    if project is None:
        return f"Project {identifier} not found"
    return _project_dict(project)


@mcp.tool()
def list_project_sessions(identifier: str, limit: int = 20) -> list[dict] | str:
    """List the session logs of a project, newest first.

    Args:
        identifier: Project name, directory name or real path
        limit: Maximum results to return (default 20)
    """
    project = store.find(identifier)
    if project is None:
        return f"Project {identifier} not found"
    return [
        {
            "session_id": s.session_id,
            "size": s.size,
            "modified": s.modified.isoformat(),
        }
        for s in project_sessions(project)[:limit]
    ]


@mcp.tool()
def preview_sweep(strict: bool = False) -> dict:
    """Preview what ``claude-pm clean`` would delete. Nothing is modified.

    Args:
        strict: Leave orphan directories whose real path is only a guess
    """
    plan = SweepPlanner(app_config, strict=strict).plan()
    return plan.model_dump(mode="json")
