"""shadowc, client of login distribution service.

Command layer only: flags -> `SyncRequest`, pipeline errors -> exit codes.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from cli import doctor
from cli.ui_components import build_merge_table, configure_logging
from core.config import AppSettings
from core.domain.errors import ShadowcError
from core.services.sync_pipeline import PipelineHooks, SyncRequest, run_sync

__version__ = "1.0"

app = typer.Typer(
    no_args_is_help=True,
    help="shadowc, client of login distribution service.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        _console.print(f"shadowc {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Fetch shadow entries from shadowd hosts and reconcile the local file."""


@app.command()
def sync(
    servers: Optional[List[str]] = typer.Option(
        None,
        "-s",
        "--server",
        help="Login distribution server address (repeatable, tried in order).",
    ),
    users: Optional[List[str]] = typer.Option(
        None,
        "-u",
        "--user",
        help="User which needs shadow entry (repeatable) [default: root].",
    ),
    shadow_file: Optional[Path] = typer.Option(
        None,
        "-f",
        "--file",
        help="Shadow file path [default: /etc/shadow].",
    ),
    certificate: Optional[Path] = typer.Option(
        None,
        "-c",
        "--cert",
        help="Certificate file path [default: /var/shadowd/cert/cert.pem].",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        min=0.001,
        help="Per-host timeout in seconds.",
    ),
    atomic: Optional[bool] = typer.Option(
        None,
        "--atomic/--in-place",
        help="Write through a temporary file + rename instead of rewriting in place.",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Fetch and merge, but do not write."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show progress and a summary."),
) -> None:
    """Fetch shadow entries and write them into the shadow file."""

    settings = AppSettings()
    if timeout is not None:
        settings = settings.model_copy(update={"http_timeout_seconds": timeout})

    configure_logging("INFO" if verbose else settings.log_level, _err_console)

    addresses = list(servers or settings.servers)
    if not addresses:
        raise typer.BadParameter("at least one server address is required", param_hint="'-s' / '--server'")

    request = SyncRequest(
        addresses=addresses,
        identities=list(users or settings.users),
        shadow_file=shadow_file or settings.shadow_file,
        certificate=certificate or settings.certificate,
        atomic=settings.atomic_write if atomic is None else atomic,
        dry_run=dry_run,
    )

    hooks = PipelineHooks()
    if verbose:
        hooks.attempt = lambda address: _err_console.print(f"[dim]-> {escape(address)}[/dim]")

    try:
        result = run_sync(request, settings=settings, hooks=hooks)
    except ShadowcError as exc:
        _err_console.print(f"[red]ERROR:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    if verbose or dry_run:
        _console.print(build_merge_table(result, dry_run=dry_run))


def run() -> None:
    app()
