"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP/ficheros) lean config de forma consistente.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SHADOW_FILE = Path("/etc/shadow")
DEFAULT_CERTIFICATE = Path("/var/shadowd/cert/cert.pem")
DEFAULT_USER = "root"


def get_config_dir() -> Path:
    """Directorio de configuración del sistema.

    shadowc corre como root (cron/systemd), así que la config vive en /etc y no
    en el home del usuario. `SHADOWC_CONFIG_DIR` permite moverla (tests, chroots).
    """

    override = (os.environ.get("SHADOWC_CONFIG_DIR") or "").strip()
    if override:
        return Path(override)
    return Path("/etc/shadowc")


def get_env_file() -> Path:
    return get_config_dir() / "shadowc.env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_env_vars(values: dict[str, str]) -> Path:
    """Escribe/actualiza variables en el .env del sistema."""

    env_path = get_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# shadowc config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOWC_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config del sistema.
        env_file=(".env", str(get_env_file())),
        env_file_encoding="utf-8",
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout por intento contra cada servidor shadowd (segundos).",
    )
    user_agent: str = Field(
        default="shadowc/1.0",
        min_length=1,
        description="User-Agent enviado a los servidores de distribución.",
    )

    servers: list[str] = Field(
        default_factory=list,
        description="Direcciones shadowd por defecto, en orden de prioridad.",
    )
    users: list[str] = Field(
        default_factory=lambda: [DEFAULT_USER],
        min_length=1,
        description="Identidades cuyas entradas se solicitan.",
    )
    shadow_file: Path = Field(
        default=DEFAULT_SHADOW_FILE,
        description="Fichero de credenciales a reconciliar.",
    )
    certificate: Path = Field(
        default=DEFAULT_CERTIFICATE,
        description="Certificado PEM usado como única raíz de confianza.",
    )

    atomic_write: bool = Field(
        default=False,
        description="Escribir vía fichero temporal + rename en lugar de reescribir in situ.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging (DEBUG, INFO, WARNING, ERROR).",
    )
