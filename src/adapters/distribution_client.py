"""Cliente de un servidor de distribución (shadowd).

Un intento, una dirección:
- Abre una conexión TLS validada solo contra el `TrustAnchor`.
- Pide `GET /v1/shadows?user=...` y decodifica la respuesta a `CredentialSet`.
- Traduce cada fallo de httpx/ssl a un `TransportError` con su `kind`.
"""

from __future__ import annotations

import logging
import ssl
from typing import Sequence

import httpx
from pydantic import ValidationError

from adapters.http_client import build_client
from adapters.trust_anchor import TrustAnchor
from core.config import AppSettings
from core.domain.errors import TransportError, TransportErrorKind
from core.domain.models import CredentialSet, ErrorPayload, ShadowsPayload

logger = logging.getLogger(__name__)

SHADOWS_PATH = "/v1/shadows"

# shadowd answers 404 when it has no entry for any requested user.
_EMPTY_STATUSES = (204, 404)


def build_base_url(address: str) -> str:
    """`host:port` -> `https://host:port`.

    Una dirección con esquema se respeta solo si es `https`; cualquier otro
    esquema saltaría el TLS y el certificado fijado, así que es un ValueError.
    """

    address = address.strip().rstrip("/")
    if "://" not in address:
        return f"https://{address}"
    scheme = address.split("://", 1)[0].lower()
    if scheme != "https":
        raise ValueError(f"refusing non-TLS scheme {scheme!r}")
    return address


def _iter_causes(exc: BaseException):
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def classify_transport_failure(exc: Exception) -> TransportErrorKind:
    """Decide qué tipo de fallo de transporte representa `exc`."""

    causes = list(_iter_causes(exc))
    if any(isinstance(c, ssl.SSLCertVerificationError) for c in causes):
        return TransportErrorKind.UNTRUSTED_PEER
    if any(isinstance(c, ssl.SSLError) for c in causes):
        return TransportErrorKind.TLS_HANDSHAKE
    return TransportErrorKind.NETWORK


class DistributionClient:
    """Implementación HTTP(S) de `core.interfaces.repository.ShadowRepository`."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._transport = transport

    def fetch(
        self,
        address: str,
        identities: Sequence[str],
        trust_anchor: TrustAnchor,
    ) -> CredentialSet:
        try:
            url = build_base_url(address) + SHADOWS_PATH
        except ValueError as exc:
            raise TransportError(TransportErrorKind.NETWORK, address, str(exc)) from exc
        params = [("user", identity) for identity in identities]

        logger.debug("querying %s for %s", url, ", ".join(identities))
        try:
            with build_client(trust_anchor, self._settings, transport=self._transport) as client:
                response = client.get(url, params=params)
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            kind = classify_transport_failure(exc)
            raise TransportError(kind, address, str(exc) or type(exc).__name__) from exc

        return self._decode(address, response, identities)

    def _decode(
        self,
        address: str,
        response: httpx.Response,
        identities: Sequence[str],
    ) -> CredentialSet:
        status = response.status_code

        if status in _EMPTY_STATUSES and not response.content.strip():
            return CredentialSet(source=address)

        if status != 200:
            raise TransportError(
                TransportErrorKind.SERVER_REJECTED,
                address,
                _error_message(response),
                status_code=status,
            )

        try:
            payload = ShadowsPayload.model_validate_json(response.content)
        except ValidationError as exc:
            raise TransportError(
                TransportErrorKind.SERVER_REJECTED,
                address,
                f"invalid payload: {exc.error_count()} validation error(s)",
                status_code=status,
            ) from exc

        requested = set(identities)
        records = []
        for record in payload.shadows:
            if record.identity not in requested:
                logger.warning("%s returned unrequested identity %r, ignoring", address, record.identity)
                continue
            records.append(record)
        return CredentialSet(records=records, source=address)


def _error_message(response: httpx.Response) -> str:
    status = f"HTTP {response.status_code}"
    try:
        payload = ErrorPayload.model_validate_json(response.content)
    except ValidationError:
        text = response.text.strip()
        return f"{status}: {text}" if text else status
    return f"{status}: {payload.error}"

