"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta y documentación autocontenida (Field) sin acoplar
  el Core a librerías de I/O.
- El mismo modelo valida el payload del servidor y serializa la línea del fichero.

Nota:
- Estos modelos describen *qué* es una entrada de credenciales, no *cómo* se
  obtiene ni *dónde* se escribe.
"""

from __future__ import annotations

from typing import Iterator

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

FIELD_SEPARATOR = ":"


class CredentialRecord(BaseModel):
    """Una entrada reconciliada (una línea del fichero shadow).

    La serialización es byte-estable: `identity` seguido de `fields` unidos por
    `:` en el orden recibido. Otras herramientas parsean ese fichero.
    """

    model_config = ConfigDict(frozen=True)

    identity: str = Field(
        ...,
        min_length=1,
        description="Clave única de la entrada (típicamente el nombre de usuario).",
    )
    fields: tuple[str, ...] = Field(
        default=(),
        description="Campos opacos tras la identidad (hash, aging, etc.), verbatim.",
    )

    @field_validator("identity")
    @classmethod
    def _identity_is_single_field(cls, value: str) -> str:
        if FIELD_SEPARATOR in value or "\n" in value or "\r" in value:
            raise ValueError("identity must not contain ':' or line breaks")
        return value

    @field_validator("fields")
    @classmethod
    def _fields_are_single_line(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for item in value:
            if "\n" in item or "\r" in item:
                raise ValueError("fields must not contain line breaks")
        return value

    @property
    def prefix(self) -> str:
        """Prefijo que identifica la línea dueña de esta identidad."""

        return self.identity + FIELD_SEPARATOR

    def to_line(self) -> str:
        return FIELD_SEPARATOR.join((self.identity, *self.fields))

    @classmethod
    def from_line(cls, line: str) -> "CredentialRecord":
        identity, *fields = line.split(FIELD_SEPARATOR)
        return cls(identity=identity, fields=tuple(fields))

    def __str__(self) -> str:
        return self.to_line()


class CredentialSet(BaseModel):
    """Secuencia ordenada de entradas para las identidades solicitadas.

    Puede estar vacía: un servidor que no tiene datos no es un error.
    """

    records: list[CredentialRecord] = Field(
        default_factory=list,
        description="Entradas en el orden devuelto por el servidor.",
    )
    source: str | None = Field(
        default=None,
        description="Dirección del servidor que produjo el conjunto (si aplica).",
    )

    @property
    def identities(self) -> list[str]:
        return [r.identity for r in self.records]

    def __iter__(self) -> Iterator[CredentialRecord]:  # type: ignore[override]
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


class ShadowsPayload(BaseModel):
    """Cuerpo de una respuesta exitosa de `GET /v1/shadows`."""

    model_config = ConfigDict(extra="ignore")

    shadows: list[CredentialRecord] = Field(default_factory=list)


class ErrorPayload(BaseModel):
    """Cuerpo de error estructurado devuelto por shadowd."""

    model_config = ConfigDict(extra="ignore")

    error: str = Field(..., min_length=1)
