"""Contrato de un repositorio de entradas shadow.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- Permite que el orquestador de failover use el cliente HTTP real o un doble
  de test sin acoplar el Core a httpx.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

from core.domain.models import CredentialSet

if TYPE_CHECKING:
    from adapters.trust_anchor import TrustAnchor


@runtime_checkable
class ShadowRepository(Protocol):
    """Contrato mínimo para consultar un servidor de distribución.

    Reglas de diseño:
    - `fetch` hace exactamente un intento; el failover es cosa del llamante.
    - Los fallos se señalan con `TransportError`, nunca devolviendo None.
    """

    def fetch(
        self,
        address: str,
        identities: Sequence[str],
        trust_anchor: TrustAnchor,
    ) -> CredentialSet:
        """Consulta `address` por `identities` y devuelve el conjunto validado."""

        ...
