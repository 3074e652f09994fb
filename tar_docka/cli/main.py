#!/usr/bin/env python3
################################################################################
# TAR-DOCKA
#
# @file:        main.py
# @module:      tar_docka.cli.main
# @description: Typer-based CLI entry point for backup, restore and checks.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
Tar-Docka main CLI

Typer-based CLI following the "Werkzeugtisch" (tool bench) pattern:
- Configuration and logging are set up once in the callback
- Commands take the configuration from the context
- The legacy form ``tar-docka -backup <dir>`` / ``-restore <dir>`` still works

Backup and restore of the same application directory must not run at the
same time; archives and live data are not locked.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List, Optional

import click
import typer

from ..cores.archive_manager import ArchiveManager, archive_timestamp
from ..cores.backup_manager import BackupManager
from ..cores.compose_locator import resolve_app_dir
from ..cores.restore_manager import RestoreManager
from ..errors import TarDockaError
from ..helpers.config import TarDockaConfig, load_config
from ..helpers.constants import VERSION
from ..helpers.dependencies import DependencyManager
from ..helpers.logging import get_logger, log_manager
from ..helpers.ui_utils import (
    console,
    create_table,
    print_error,
    print_info,
    print_success,
    print_warning,
    prompt_text,
    show_numbered,
)
from ..types import RunReport

app = typer.Typer(
    name="tar-docka",
    help="Tar-Docka - Backup & Restore for Docker Compose applications.",
    add_completion=False,
)
logger = get_logger(__name__)

LEGACY_FLAGS = {"-backup": "backup", "-restore": "restore"}
LEGACY_USAGE = "Usage: tar-docka -backup|-restore <app_directory>"

STATUS_STYLES = {
    "ok": "green",
    "partial": "yellow",
    "skipped": "dim",
    "failed": "red",
}


# -------------------------
# Application Context
# -------------------------

@app.callback()
def initialize_context(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to configuration file."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)."
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Also write log lines to this file."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Print the run report as JSON."
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Exit with 1 if any volume or mount failed."
    ),
):
    """
    Back up and restore a Docker Compose application directory.

    Initializes logging and loads configuration once before any command runs.
    """
    ctx.ensure_object(dict)

    # Logging erst mit Defaults, damit Config-Fehler sichtbar werden
    try:
        log_manager.configure(level=(log_level or "INFO").upper(), log_file=log_file)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level")

    try:
        cfg = load_config(config_path)
    except TarDockaError as e:
        logger.error(str(e))
        raise typer.Exit(code=1)

    # Kommandozeile schlägt Config
    log_manager.configure(level=(log_level or cfg.log_level).upper(),
                          log_file=log_file or cfg.log_file)

    ctx.obj["config"] = cfg
    ctx.obj["json"] = json_output
    ctx.obj["strict"] = strict


# -------------------------
# Helper Functions
# -------------------------

def get_config(ctx: typer.Context) -> TarDockaConfig:
    """Get config from the tool bench."""
    return ctx.obj.get("config") or TarDockaConfig()


def ensure_requirements():
    """Ensure docker and compose are available or exit."""
    try:
        DependencyManager().check_requirements()
    except TarDockaError as e:
        logger.error(str(e))
        raise typer.Exit(code=1)


def _is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def _prompt_for_archive(archives: List[Path]) -> str:
    """Interactive archive selection, 1 = newest."""
    show_numbered("Multiple backup files found", archives, display_fn=lambda p: p.name)
    return prompt_text("Enter the number of the backup to restore")


def _print_report(ctx: typer.Context, report: RunReport) -> None:
    if ctx.obj.get("json"):
        typer.echo(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return

    if report.items:
        table = create_table(
            f"{report.mode.capitalize()} of {report.app_dir.name}",
            [("Kind", "cyan", 12), ("Name", "white", None),
             ("Status", "white", 9), ("Message", "dim", None)],
        )
        for item in report.items:
            style = STATUS_STYLES.get(item.status, "white")
            table.add_row(item.kind, item.name, f"[{style}]{item.status}[/{style}]", item.message)
        console.print(table)

    for warning in report.warnings:
        print_warning(warning)


def _finish(ctx: typer.Context, report: RunReport) -> None:
    """Print the report and exit according to --strict."""
    _print_report(ctx, report)
    if report.failures and ctx.obj.get("strict"):
        raise typer.Exit(code=1)


def _fail(ctx: typer.Context, error: TarDockaError, report: Optional[RunReport]) -> None:
    logger.error(str(error))
    if ctx.obj.get("json") and report is not None:
        typer.echo(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    raise typer.Exit(code=1)


# -------------------------
# Version & Checks
# -------------------------

@app.command("version")
def cmd_version():
    """Show Tar-Docka version."""
    typer.echo(f"Tar-Docka {VERSION}")


@app.command("check")
def cmd_check():
    """Check that docker and docker compose are available."""
    deps = DependencyManager()
    status = deps.get_status()

    table = create_table("Requirements", [("Dependency", "cyan", 12), ("Status", "white", 10),
                                          ("Description", "dim", None)])
    for name, meta in deps.DEPENDENCIES.items():
        found = status.get(name, False)
        table.add_row(name, "[green]found[/green]" if found else "[red]missing[/red]",
                      meta['description'])
    console.print(table)

    if not all(status.values()):
        print_error("Missing requirements, backup and restore will not work.")
        raise typer.Exit(code=1)
    print_success("All requirements satisfied")


# -------------------------
# Backup & Restore
# -------------------------

@app.command("backup")
def cmd_backup(
    ctx: typer.Context,
    app_dir: Path = typer.Argument(..., help="Application directory with docker-compose.yaml/.yml."),
):
    """Back up compose file, named volumes and bind mounts into one archive."""
    cfg = get_config(ctx)
    ensure_requirements()

    manager = BackupManager(cfg)
    try:
        report = manager.backup(app_dir)
    except TarDockaError as e:
        _fail(ctx, e, manager.last_report)
        return

    _finish(ctx, report)
    if not ctx.obj.get("json"):
        print_success(f"Backup created: {report.archive}")


@app.command("restore")
def cmd_restore(
    ctx: typer.Context,
    app_dir: Path = typer.Argument(..., help="Application directory containing the backup archives."),
    index: Optional[int] = typer.Option(
        None, "--index", "-i", help="Archive to restore, 1 = newest (see 'list')."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    """Restore an application directory from one of its archives."""
    cfg = get_config(ctx)
    interactive = _is_interactive()

    if interactive and not yes:
        typer.confirm(
            f"Restore {app_dir}? Existing volume and bind mount data will be overwritten.",
            abort=True,
        )

    ensure_requirements()

    manager = RestoreManager(cfg, prompt=_prompt_for_archive if interactive else None)
    try:
        report = manager.restore(app_dir, selection=index)
    except TarDockaError as e:
        _fail(ctx, e, manager.last_report)
        return

    _finish(ctx, report)
    if not ctx.obj.get("json"):
        print_success(f"Restore completed from {report.archive.name}")


@app.command("list")
def cmd_list(
    ctx: typer.Context,
    app_dir: Path = typer.Argument(..., help="Application directory containing the backup archives."),
):
    """List backup archives, newest first."""
    try:
        app_dir = resolve_app_dir(app_dir)
    except TarDockaError as e:
        _fail(ctx, e, None)
        return

    archives = ArchiveManager().list_archives(app_dir)

    if ctx.obj.get("json"):
        typer.echo(json.dumps([
            {
                "index": i,
                "name": a.name,
                "size": a.stat().st_size,
                "created": archive_timestamp(a).isoformat(),
            }
            for i, a in enumerate(archives, 1)
        ], indent=2))
        return

    if not archives:
        print_info(f"No backup files found in {app_dir}")
        return

    table = create_table(f"Backups in {app_dir}", [("#", "cyan", 4), ("Name", "white", None),
                                                   ("Size", "green", 10), ("Created", "dim", 20)])
    for i, archive in enumerate(archives, 1):
        table.add_row(str(i), archive.name, _human_size(archive.stat().st_size),
                      archive_timestamp(archive).strftime("%Y-%m-%d %H:%M:%S"))
    console.print(table)


def _human_size(size: float) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


# -------------------------
# Entry Point
# -------------------------

def translate_legacy_args(argv: List[str]) -> List[str]:
    """``-backup <dir>`` -> ``backup <dir>``, ``-restore <dir>`` -> ``restore <dir>``."""
    return [LEGACY_FLAGS.get(arg, arg) for arg in argv]


def cli_main(argv: Optional[List[str]] = None):
    """
    Entry point for CLI

    This function is called by the console script entry point.
    """
    args = translate_legacy_args(list(sys.argv[1:] if argv is None else argv))
    if not args:
        typer.echo(LEGACY_USAGE, err=True)
        typer.echo("Try 'tar-docka --help' for more information.", err=True)
        sys.exit(1)

    command = typer.main.get_command(app)
    try:
        rc = command.main(args=args, prog_name="tar-docka", standalone_mode=False)
    except click.exceptions.UsageError as e:
        e.show()
        sys.exit(1)
    except (click.exceptions.Abort, KeyboardInterrupt):
        typer.echo("\nCancelled by user", err=True)
        sys.exit(1)
    except TarDockaError as e:
        typer.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    sys.exit(rc if isinstance(rc, int) else 0)


if __name__ == "__main__":
    cli_main()
