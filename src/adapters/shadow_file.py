"""Reconciliación de entradas en el fichero shadow local.

Reglas:
- La primera línea que empieza por `identity:` es la dueña de esa identidad y
  se reemplaza; si no existe, la entrada se añade al final.
- Las demás líneas se conservan byte a byte y en el mismo orden.
- La salida termina siempre con un único salto de línea.

El fichero nunca se crea: debe existir con el dueño y permisos correctos.
"""

from __future__ import annotations

import errno
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from core.domain.errors import FileError, FileErrorKind
from core.domain.models import CredentialRecord

logger = logging.getLogger(__name__)

# Bytes that are not valid UTF-8 survive the round trip untouched.
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


@dataclass
class MergeResult:
    """Resultado de aplicar un conjunto de entradas a las líneas de un fichero."""

    lines: list[str]
    original: str = ""
    replaced: list[str] = field(default_factory=list)
    appended: list[str] = field(default_factory=list)
    written: bool = False

    @property
    def content(self) -> str:
        return render_lines(self.lines)

    @property
    def changed(self) -> bool:
        return self.content != self.original


def split_lines(content: str) -> list[str]:
    """Parte `content` en líneas ignorando los saltos finales.

    Un fichero vacío no tiene líneas, así que lo añadido no queda precedido
    de una línea en blanco.
    """

    trimmed = content.rstrip("\n")
    if not trimmed:
        return []
    return trimmed.split("\n")


def render_lines(lines: Iterable[str]) -> str:
    # Zero lines still renders one newline.
    return "\n".join(lines) + "\n"


def merge_lines(
    lines: list[str],
    records: Iterable[CredentialRecord],
    *,
    original: str = "",
) -> MergeResult:
    """Aplica `records` en orden sobre una copia de `lines`.

    Los reemplazos son visibles para las entradas siguientes porque todas
    mutan la misma secuencia. Si la identidad aparece duplicada en el fichero,
    solo se toca la primera aparición.
    """

    result = MergeResult(lines=list(lines), original=original)
    for record in records:
        serialized = record.to_line()
        for index, line in enumerate(result.lines):
            if line.startswith(record.prefix):
                result.lines[index] = serialized
                result.replaced.append(record.identity)
                break
        else:
            result.lines.append(serialized)
            result.appended.append(record.identity)
    return result


def _open_error(path: Path, exc: OSError) -> FileError:
    if isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM, errno.EROFS):
        kind = FileErrorKind.PERMISSION_DENIED
    else:
        kind = FileErrorKind.NOT_FOUND
    return FileError(kind, str(path), exc.strerror or str(exc))


def merge(
    path: str | Path,
    records: Iterable[CredentialRecord],
    *,
    atomic: bool = False,
    dry_run: bool = False,
) -> MergeResult:
    """Reconcilia `records` en el fichero `path`.

    Por defecto reescribe el mismo descriptor (seek + write + truncate), como
    el agente original. Con `atomic=True` escribe un temporal en el mismo
    directorio y lo renombra encima, conservando modo y dueño.
    """

    path = Path(path)
    try:
        handle = open(path, "r+b")
    except OSError as exc:
        raise _open_error(path, exc) from exc

    with handle:
        try:
            content = handle.read().decode(_ENCODING, _ERRORS)
        except OSError as exc:
            raise _open_error(path, exc) from exc

        result = merge_lines(split_lines(content), records, original=content)
        logger.info(
            "%s: %d replaced, %d appended",
            path,
            len(result.replaced),
            len(result.appended),
        )

        if dry_run or not result.changed:
            return result

        data = result.content.encode(_ENCODING, _ERRORS)
        if atomic:
            _replace_atomically(path, data)
        else:
            _rewrite_in_place(path, handle, data)
        result.written = True
    return result


def _rewrite_in_place(path: Path, handle, data: bytes) -> None:
    try:
        handle.seek(0)
        handle.write(data)
        handle.truncate()
        handle.flush()
        os.fsync(handle.fileno())
    except OSError as exc:
        raise FileError(FileErrorKind.WRITE_FAILED, str(path), exc.strerror or str(exc)) from exc


def _replace_atomically(path: Path, data: bytes) -> None:
    try:
        stat = path.stat()
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    except OSError as exc:
        raise FileError(FileErrorKind.WRITE_FAILED, str(path), exc.strerror or str(exc)) from exc

    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_name, stat.st_mode & 0o7777)
        os.chown(tmp_name, stat.st_uid, stat.st_gid)
        os.replace(tmp_name, path)
    except OSError as exc:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise FileError(FileErrorKind.WRITE_FAILED, str(path), exc.strerror or str(exc)) from exc
