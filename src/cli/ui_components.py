"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas y la config de logging en `sync` y `doctor`.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from core.services.sync_pipeline import SyncResult


def configure_logging(level: str | int, console: Console) -> None:
    """Envía el logging de la app a `console` (stderr) vía RichHandler.

    Por qué aquí:
    - El Core solo usa `logging.getLogger(__name__)`; decidir formato y destino
      es cosa de la capa de presentación.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    handler = RichHandler(console=console, show_path=False, show_time=False, markup=False)
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


def build_merge_table(result: SyncResult, *, dry_run: bool = False) -> Table:
    """Tabla con lo que se hizo (o se haría) con cada identidad."""

    title = "shadowc (dry run)" if dry_run else "shadowc"
    table = Table(title=title)
    table.add_column("Identity", style="cyan", no_wrap=True)
    table.add_column("Action", style="white")
    table.add_column("Source", style="magenta")

    source = result.credentials.source or "-"
    for identity in result.merge.replaced:
        table.add_row(identity, "replaced", source)
    for identity in result.merge.appended:
        table.add_row(identity, "appended", source)
    if not result.merge.replaced and not result.merge.appended:
        table.add_row("-", "no records", source)
    return table
