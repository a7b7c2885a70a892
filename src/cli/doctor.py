"""Doctor command for environment diagnostics."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from adapters.distribution_client import DistributionClient
from adapters.trust_anchor import TrustAnchor, ensure_no_private_key, load_trust_anchor
from core.config import AppSettings, write_env_vars
from core.domain.errors import ShadowcError, TransportError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


def _check_certificate(path: Path) -> tuple[TrustAnchor | None, str]:
    try:
        ensure_no_private_key(path)
        anchor = load_trust_anchor(path)
    except ShadowcError as exc:
        return None, str(exc)
    return anchor, f"{anchor.subject} sha256:{anchor.fingerprint[:16]}"


def _check_shadow_file(path: Path) -> tuple[bool, str]:
    if not path.is_file():
        return False, f"{path} does not exist"
    if not os.access(path, os.R_OK | os.W_OK):
        return False, f"{path} is not readable and writable by this user"
    return True, str(path)


def _check_server(
    client: DistributionClient,
    address: str,
    users: list[str],
    anchor: TrustAnchor,
) -> tuple[bool, str]:
    try:
        credentials = client.fetch(address, users, anchor)
    except TransportError as exc:
        return False, f"{exc.kind.value}: {exc.message}"
    return True, f"{len(credentials)} record(s)"


@app.command()
def run(
    servers: Optional[List[str]] = typer.Option(None, "-s", "--server", help="Server address (repeatable)."),
    users: Optional[List[str]] = typer.Option(None, "-u", "--user", help="User to query (repeatable)."),
    shadow_file: Optional[Path] = typer.Option(None, "-f", "--file", help="Shadow file path."),
    certificate: Optional[Path] = typer.Option(None, "-c", "--cert", help="Certificate file path."),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()
    cert_path = certificate or settings.certificate
    file_path = shadow_file or settings.shadow_file
    addresses = list(servers or settings.servers)
    identities = list(users or settings.users)

    table = Table(title="shadowc Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    failed = False

    anchor, detail_cert = _check_certificate(cert_path)
    table.add_row("Certificate", "OK" if anchor else "FAIL", detail_cert)
    failed |= anchor is None

    ok_file, detail_file = _check_shadow_file(file_path)
    table.add_row("Shadow file", "OK" if ok_file else "FAIL", detail_file)
    failed |= not ok_file

    if not addresses:
        table.add_row("Servers", "FAIL", "No server configured (-s or SHADOWC_SERVERS)")
        failed = True
    elif anchor is None:
        table.add_row("Servers", "SKIPPED", "Certificate must load before contacting servers")
    else:
        client = DistributionClient(settings)
        for address in addresses:
            ok_server, detail_server = _check_server(client, address, identities, anchor)
            table.add_row(f"Server {address}", "OK" if ok_server else "FAIL", detail_server)
            failed |= not ok_server

    _console.print(table)

    if failed:
        raise typer.Exit(code=1)


@app.command(name="setup")
def setup() -> None:
    """Interactive setup (stores defaults in the system shadowc.env).

    Designed for provisioning scripts and operators: no manual .env editing.
    """

    settings = AppSettings()

    servers = typer.prompt(
        "Server addresses (comma separated, in priority order)",
        default=",".join(settings.servers),
        show_default=True,
    ).strip()
    users = typer.prompt("Users", default=",".join(settings.users), show_default=True).strip()
    certificate = typer.prompt("Certificate path", default=str(settings.certificate), show_default=True).strip()

    server_list = [s.strip() for s in servers.split(",") if s.strip()]
    user_list = [u.strip() for u in users.split(",") if u.strip()]
    if not server_list or not user_list:
        raise typer.BadParameter("at least one server and one user are required")

    env_path = write_env_vars(
        {
            # pydantic-settings parses list fields as JSON.
            "SHADOWC_SERVERS": json.dumps(server_list),
            "SHADOWC_USERS": json.dumps(user_list),
            "SHADOWC_CERTIFICATE": certificate,
        }
    )

    _console.print(f"[green]Saved shadowc config to:[/green] {env_path}")
