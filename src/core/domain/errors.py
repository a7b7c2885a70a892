"""Errores del dominio.

Cada familia tiene su propio tipo para que un fallo de red nunca se confunda
con un fallo del fichero. `kind` es un `str` Enum para poder mostrarlo y
compararlo en tests sin parsear mensajes.
"""

from __future__ import annotations

from enum import Enum
from typing import Sequence


class ShadowcError(Exception):
    """Base de todos los errores que la CLI reporta como fatales."""


class CertificateErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    INVALID = "invalid"


class CertificateError(ShadowcError):
    """The pinned certificate could not be loaded."""

    def __init__(self, kind: CertificateErrorKind, path: str, detail: str = "") -> None:
        self.kind = kind
        self.path = path
        self.detail = detail
        message = f"certificate {path}: {kind.value}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class PrivateKeyExposedError(ShadowcError):
    """A private key sits next to the client certificate."""

    def __init__(self, key_path: str) -> None:
        self.key_path = key_path
        super().__init__(
            f"key file {key_path} SHOULD NOT be located on the client and "
            "SHOULD NOT leave the shadowd host. Please, generate a new "
            "certificate pair and replace the certificate file on the clients."
        )


class TransportErrorKind(str, Enum):
    NETWORK = "network"
    TLS_HANDSHAKE = "tls_handshake"
    UNTRUSTED_PEER = "untrusted_peer"
    SERVER_REJECTED = "server_rejected"


class TransportError(ShadowcError):
    """One attempt against one server failed.

    Recovered by the failover loop; never surfaced on its own.
    """

    def __init__(
        self,
        kind: TransportErrorKind,
        address: str,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.address = address
        self.message = message
        self.status_code = status_code
        super().__init__(f"{address}: {kind.value}: {message}")


class AllServersFailedError(ShadowcError):
    """No configured server produced a credential set."""

    def __init__(self, failures: Sequence[TransportError]) -> None:
        self.failures = list(failures)
        if not self.failures:
            message = "no shadowd hosts configured"
        else:
            details = "; ".join(f"'{f.address}' {f.kind.value}: {f.message}" for f in self.failures)
            message = f"all shadowd hosts return errors: {details}"
        super().__init__(message)

    @property
    def addresses(self) -> list[str]:
        return [f.address for f in self.failures]


class FileErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    WRITE_FAILED = "write_failed"


class FileError(ShadowcError):
    """The credential file could not be read or written."""

    def __init__(self, kind: FileErrorKind, path: str, detail: str = "") -> None:
        self.kind = kind
        self.path = path
        self.detail = detail
        message = f"shadow file {path}: {kind.value}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
