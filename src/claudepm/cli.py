"""claude-pm CLI - manage local Claude Code projects and session caches."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from claudepm import __version__
from claudepm.config import (
    AppConfig,
    Settings,
    load_settings,
    resolve_app_config,
    save_settings,
)
from claudepm.errors import ClaudePMError, ConfigParseError
from claudepm.projects.models import PathSource, Project, format_size

app = typer.Typer(
    name="claude-pm",
    help="Manage locally cached Claude Code projects.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Manage claude-pm settings.")
mcp_app = typer.Typer(help="MCP server.")

app.add_typer(config_app, name="config")
app.add_typer(mcp_app, name="mcp")

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"claude-pm {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Show debug logging")] = False,
) -> None:
    """claude-pm - list, switch and clean up local Claude Code projects."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _load() -> tuple[Settings, AppConfig]:
    settings = load_settings()
    return settings, resolve_app_config(settings)


def _is_manual_active(project: Project, settings: Settings) -> bool:
    current = settings.current_project
    return bool(current) and current in (project.real_path, project.name, project.dir_name)


def _print_project_details(project: Project) -> None:
    console.print(f"  [bold green]{escape(project.name)}[/bold green]")
    console.print(f"  [dim]Real path:[/dim]  [cyan]{escape(project.real_path)}[/cyan]")
    if project.path_is_guessed:
        console.print("  [yellow]  (guessed from the directory name, may be inaccurate)[/yellow]")
    cache = escape(str(project.cache_path)) if project.cache_path else "[dim]none[/dim]"
    console.print(f"  [dim]Cache:[/dim]      {cache}")
    if project.has_cache:
        console.print(f"  [dim]Size:[/dim]       {format_size(project.size)}")
        console.print(f"  [dim]Sessions:[/dim]   {project.session_count}")
        console.print(f"  [dim]Modified:[/dim]   {project.last_modified.astimezone():%Y-%m-%d %H:%M}")
    else:
        console.print("  [red]No cached sessions[/red]")


# ── Project commands ─────────────────────────────────────────────


@app.command("ls", hidden=True)
@app.command("list")
def list_projects() -> None:
    """List all local projects."""
    from claudepm.projects.store import ProjectStore

    settings, app_config = _load()
    store = ProjectStore(app_config)
    try:
        projects = store.list()
        recent = store.most_recently_used()
    except (ClaudePMError, OSError) as exc:
        err_console.print(f"[red]Failed to read projects:[/red] {exc}")
        return

    if not projects:
        console.print("[yellow]No projects found.[/yellow]")
        console.print(f"[dim]Check the cache path: {app_config.cache_path}[/dim]")
        return

    cached = sum(1 for p in projects if p.has_cache)
    table = Table(title=f"Local projects ({len(projects)} total, {cached} cached)")
    table.add_column("", width=1)
    table.add_column("Name", style="green")
    table.add_column("Status")
    table.add_column("Size", justify="right")
    table.add_column("Sessions", justify="right")
    table.add_column("Modified")
    table.add_column("Path", style="cyan")

    for project in projects:
        manual = _is_manual_active(project, settings)
        auto = not settings.current_project and project.real_path == recent
        marker = "[green]●[/green]" if manual or auto else "[dim]○[/dim]"

        badges = []
        if not project.has_cache:
            badges.append("[red]no cache[/red]")
        elif auto:
            badges.append("[yellow]recent[/yellow]")
        if project.path_is_guessed:
            badges.append("[magenta]guessed path[/magenta]")

        table.add_row(
            marker,
            f"[bold]{escape(project.name)}[/bold]" if manual or auto else escape(project.name),
            " ".join(badges),
            format_size(project.size) if project.has_cache else "[dim]-[/dim]",
            str(project.session_count) if project.has_cache else "[dim]-[/dim]",
            f"{project.last_modified.astimezone():%Y-%m-%d}" if project.has_cache else "[dim]unknown[/dim]",
            escape(project.real_path),
        )

    console.print(table)

    if settings.current_project:
        console.print(f"[dim]Active project:[/dim] [green]{escape(settings.current_project)}[/green] [dim](manual)[/dim]")
    elif recent:
        console.print(f"[dim]Most recently used:[/dim] [yellow]{escape(recent)}[/yellow] [dim](auto-detected)[/dim]")
    else:
        console.print("[yellow]No active project. Use: claude-pm switch <project>[/yellow]")

    missing = len(projects) - cached
    if missing:
        console.print(f"[yellow]{missing} project(s) have no cache (see: claude-pm clean --dry-run)[/yellow]")


@app.command("sw", hidden=True)
@app.command("switch")
def switch_project(
    project_name: Annotated[str, typer.Argument(help="Project name, directory name or real path")],
    print_path: Annotated[
        bool, typer.Option("--print-path", help="Only print the real path (for shell functions)")
    ] = False,
) -> None:
    """Switch the active project."""
    from claudepm.projects.store import ProjectStore

    settings, app_config = _load()
    project = ProjectStore(app_config).find(project_name)
    if project is None:
        err_console.print(f"[red]Project not found:[/red] {escape(project_name)}")
        err_console.print("[dim]Run: claude-pm list[/dim]")
        raise typer.Exit(1)

    settings.current_project = project.real_path
    save_settings(settings)

    if print_path:
        typer.echo(project.real_path)
        return

    console.print(f"[green]Switched to:[/green] [bold]{escape(project.name)}[/bold]\n")
    _print_project_details(project)
    console.print("\n[bold yellow]To change directory, run:[/bold yellow]")
    console.print(f'  [bold cyan]cd "{escape(project.real_path)}"[/bold cyan]')


@app.command("c", hidden=True)
@app.command("current")
def current_project() -> None:
    """Show the active project."""
    from claudepm.projects.store import ProjectStore

    settings, app_config = _load()
    if not settings.current_project:
        console.print("[yellow]No active project.[/yellow]")
        console.print("[dim]Use: claude-pm switch <project>[/dim]")
        return

    try:
        project = ProjectStore(app_config).find(settings.current_project)
    except OSError as exc:
        err_console.print(f"[red]Failed to read projects:[/red] {exc}")
        return

    if project is None:
        console.print(f"[yellow]Active project {escape(settings.current_project)} no longer exists.[/yellow]")
        settings.current_project = None
        save_settings(settings)
        console.print("[dim]Cleared the active project.[/dim]")
        return

    console.print("[bold cyan]Active project:[/bold cyan]\n")
    _print_project_details(project)


# ── Cleanup commands ─────────────────────────────────────────────


def _print_failures(failures) -> None:
    for failure in failures:
        err_console.print(f"  [red]✗[/red] {escape(failure.target)}: {escape(failure.error)}")


@app.command("clean")
def clean(
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Preview without deleting")] = False,
    strict: Annotated[
        bool, typer.Option("--strict", help="Keep orphan directories whose path is only a guess")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Remove config entries without cache, orphan and invalid cache directories."""
    from claudepm.sweep.planner import SweepPlanner

    _, app_config = _load()
    planner = SweepPlanner(app_config, strict=strict)
    plan = planner.plan()

    for item in plan.skipped:
        console.print(f"[dim]Keeping {escape(item.dir_name)}: real path is only a guess ({escape(item.real_path)})[/dim]")

    if plan.is_empty:
        console.print("[green]Nothing to clean.[/green]")
        return

    if plan.config_only:
        console.print(f"\n[bold]Config entries without cache ({len(plan.config_only)}):[/bold]")
        for entry in plan.config_only:
            note = " [dim](stale session logs will be removed)[/dim]" if entry.cache_cleanable else ""
            console.print(f"  [cyan]{escape(entry.real_path)}[/cyan]{note}")

    if plan.directories:
        table = Table(title="Cache directories to delete")
        table.add_column("Directory", style="cyan")
        table.add_column("Reason")
        table.add_column("Real path")
        table.add_column("Size", justify="right")
        for item in plan.directories:
            real_path = escape(item.real_path)
            if item.path_source is PathSource.GUESSED:
                real_path += " [magenta](guessed)[/magenta]"
            table.add_row(escape(item.dir_name), item.reason.value, real_path, format_size(item.size))
        console.print(table)
        console.print(f"[dim]Total: {format_size(plan.total_size)}[/dim]")

    if dry_run:
        console.print("\n[yellow]Dry run, nothing was deleted.[/yellow]")
        return

    if not yes and not typer.confirm("Delete the items above?", default=False):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    try:
        report = planner.apply(plan)
    except (ConfigParseError, OSError) as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)

    if report.backup_path:
        console.print(f"[dim]Backed up config to {escape(str(report.backup_path))}[/dim]")
    console.print(
        f"[green]Removed {len(report.removed_entries)} config entries, "
        f"{len(report.deleted_dirs)} directories and {report.deleted_files} session logs.[/green]"
    )
    if report.failures:
        err_console.print(f"[yellow]{len(report.failures)} item(s) could not be deleted:[/yellow]")
        _print_failures(report.failures)
        raise typer.Exit(1)


@app.command("clean-history")
def clean_history(
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Preview without rewriting")] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Trim project histories longer than 30 entries down to the latest 25."""
    from claudepm.projects.claude_config import load_project_entries
    from claudepm.sweep.history import apply_history_trim, plan_history_trim

    _, app_config = _load()
    trims = plan_history_trim(load_project_entries(app_config.config_path))
    if not trims:
        console.print("[green]No history needs trimming.[/green]")
        return

    table = Table(title="History to trim")
    table.add_column("Project", style="cyan")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    for trim in trims:
        table.add_row(escape(trim.real_path), str(trim.before), str(trim.after))
    console.print(table)

    if dry_run:
        console.print("\n[yellow]Dry run, nothing was changed.[/yellow]")
        return

    if not yes and not typer.confirm(f"Trim history of {len(trims)} project(s)?", default=False):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    try:
        report = apply_history_trim(app_config, trims)
    except (ConfigParseError, OSError) as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)

    console.print(f"[dim]Backed up config to {escape(str(report.backup_path))}[/dim]")
    if report.failures:
        _print_failures(report.failures)
        err_console.print("[red]Configuration was not rewritten, the backup above is intact.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Trimmed history of {len(report.trimmed)} project(s).[/green]")


@app.command("sessions")
def sessions(
    project_name: Annotated[
        Optional[str], typer.Argument(help="Project name (defaults to the active project)")
    ] = None,
    size: Annotated[
        float, typer.Option("--size", help="Select sessions smaller than this many KB")
    ] = 2.0,
    session_ids: Annotated[
        Optional[list[str]], typer.Option("--id", help="Select sessions by id or id prefix instead")
    ] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Preview without deleting")] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """List a project's sessions and delete the selected ones."""
    from claudepm.projects.store import ProjectStore
    from claudepm.sweep.sessions import (
        delete_sessions,
        project_sessions,
        resolve_target,
        select_small_sessions,
    )

    settings, app_config = _load()
    try:
        project = resolve_target(ProjectStore(app_config), settings, project_name)
    except ClaudePMError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    all_sessions = project_sessions(project)
    if not all_sessions:
        console.print("[yellow]This project has no sessions.[/yellow]")
        return

    if session_ids:
        selected = [s for s in all_sessions if any(s.session_id.startswith(i) for i in session_ids)]
    else:
        selected = select_small_sessions(all_sessions, size)
    selected_ids = {s.session_id for s in selected}

    table = Table(title=f"Sessions of {escape(project.name)}")
    table.add_column("", width=1)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Session", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    for index, session in enumerate(all_sessions, 1):
        table.add_row(
            "[yellow]✓[/yellow]" if session.session_id in selected_ids else "",
            str(index),
            session.session_id,
            format_size(session.size),
            f"{session.modified.astimezone():%Y-%m-%d %H:%M}",
        )
    console.print(table)

    if not selected:
        console.print("[dim]No sessions selected.[/dim]")
        return

    total = sum(s.size for s in selected)
    if dry_run:
        console.print(f"\n[yellow]Dry run: {len(selected)} session(s) ({format_size(total)}) would be deleted.[/yellow]")
        return

    if not yes and not typer.confirm(
        f"Delete {len(selected)} session(s) ({format_size(total)})?", default=False
    ):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    report = delete_sessions(selected)
    console.print(f"[green]Deleted {len(report.deleted)} session(s), freed {format_size(report.freed)}.[/green]")
    if report.failures:
        _print_failures(report.failures)
        raise typer.Exit(1)


# ── Config commands ──────────────────────────────────────────────


@config_app.command("show")
def config_show() -> None:
    """Show settings and the resolved paths."""
    from claudepm.projects.claude_config import list_backups

    settings, app_config = _load()
    table = Table(title="claude-pm settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Config file", str(app_config.config_path) + ("" if settings.claude_config_path else " [dim](default)[/dim]"))
    table.add_row("Cache directory", str(app_config.cache_path) + ("" if settings.claude_cache_path else " [dim](default)[/dim]"))
    table.add_row("Active project", settings.current_project or "[dim]none[/dim]")

    backups = list_backups(app_config.backup_dir)
    table.add_row("Backups", f"{len(backups)} in {app_config.backup_dir}")
    console.print(table)
    if backups:
        console.print(f"[dim]Latest backup: {backups[0]}[/dim]")


@config_app.command("set-config-path")
def config_set_config_path(
    path: Annotated[Path, typer.Argument(help="Path to .claude.json")],
) -> None:
    """Override the location of Claude Code's configuration file."""
    settings = load_settings()
    path = path.expanduser().resolve()
    if not path.is_file():
        console.print(f"[yellow]Warning:[/yellow] {path} does not exist yet")
    settings.claude_config_path = str(path)
    save_settings(settings)
    console.print(f"[green]Config file:[/green] {path}")


@config_app.command("set-cache-path")
def config_set_cache_path(
    path: Annotated[Path, typer.Argument(help="Directory holding per-project session caches")],
) -> None:
    """Override the location of the session cache directory."""
    settings = load_settings()
    path = path.expanduser().resolve()
    if not path.is_dir():
        console.print(f"[yellow]Warning:[/yellow] {path} is not a directory")
    settings.claude_cache_path = str(path)
    save_settings(settings)
    console.print(f"[green]Cache directory:[/green] {path}")


@config_app.command("reset")
def config_reset() -> None:
    """Forget all overrides and the active project."""
    save_settings(Settings())
    console.print("[green]Settings reset to defaults.[/green]")


# ── MCP commands ─────────────────────────────────────────────────


@mcp_app.command("serve")
def mcp_serve() -> None:
    """Start the MCP server (stdio transport)."""
    from claudepm.mcp.server import mcp

    mcp.run()
