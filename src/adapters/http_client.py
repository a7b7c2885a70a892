"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza timeouts, headers y la política TLS (ancla fijada, sin CAs del
  sistema) para cada intento contra un servidor shadowd.
- Facilita testeo: se puede inyectar un `httpx.MockTransport`.
"""

from __future__ import annotations

import httpx

from adapters.trust_anchor import TrustAnchor
from core.config import AppSettings


def build_client(
    trust_anchor: TrustAnchor,
    settings: AppSettings | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
    extra_headers: dict[str, str] | None = None,
) -> httpx.Client:
    """Crea un `httpx.Client` que solo confía en `trust_anchor`.

    Por qué un builder:
    - Centraliza timeouts/headers para que todos los intentos se comporten igual.
    - `trust_env=False`: ni proxies ni `SSL_CERT_FILE` del entorno pueden
      ampliar la confianza.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.Client(
        verify=trust_anchor.ssl_context(),
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=False,
        trust_env=False,
        headers=headers,
        transport=transport,
    )
