"""Ancla de confianza: un único certificado fijado.

Por qué un valor explícito:
- No hay configuración TLS global; cada cliente recibe el ancla y construye su
  contexto a partir de ella.
- El contexto nunca carga el almacén del sistema, así que un peer firmado por
  una CA pública cualquiera es rechazado igual que uno autofirmado.
"""

from __future__ import annotations

import hashlib
import re
import ssl
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from core.domain.errors import CertificateError, CertificateErrorKind, PrivateKeyExposedError

# Found by hand so "no PEM block" (MALFORMED) stays distinct from "block that
# does not parse as X.509" (INVALID); cryptography reports both as ValueError.
_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----\r?\n(.*?)\r?\n?-----END \1-----",
    re.DOTALL,
)

PRIVATE_KEY_FILENAME = "key.pem"


@dataclass(frozen=True)
class TrustAnchor:
    """Certificado raíz único contra el que se valida cada peer."""

    path: str
    certificate: x509.Certificate
    der: bytes

    @property
    def fingerprint(self) -> str:
        return hashlib.sha256(self.der).hexdigest()

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()

    def ssl_context(self) -> ssl.SSLContext:
        """Build a client context whose only trust root is this certificate."""

        # SSLContext() (not create_default_context) so no system roots get loaded.
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        context.verify_mode = ssl.CERT_REQUIRED
        context.check_hostname = True
        context.load_verify_locations(cadata=self.der)
        # The pin is an anchor even when it is an intermediate or a CA-issued leaf.
        context.verify_flags |= ssl.VERIFY_X509_PARTIAL_CHAIN
        return context


def load_trust_anchor(path: str | Path) -> TrustAnchor:
    """Carga el certificado PEM en `path`.

    Solo se honra el primer bloque PEM, que debe ser un certificado: una clave
    privada u otro bloque en su lugar es un certificado inválido.
    """

    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise CertificateError(CertificateErrorKind.NOT_FOUND, str(path), exc.strerror or str(exc)) from exc

    match = _PEM_BLOCK.search(data)
    if match is None:
        raise CertificateError(CertificateErrorKind.MALFORMED, str(path), "PEM data is not found")

    label = match.group(1).decode("ascii")
    if label != "CERTIFICATE":
        raise CertificateError(
            CertificateErrorKind.INVALID,
            str(path),
            f"expected a CERTIFICATE block, got {label}",
        )

    try:
        certificate = x509.load_pem_x509_certificate(match.group(0))
    except ValueError as exc:
        raise CertificateError(CertificateErrorKind.INVALID, str(path), str(exc)) from exc

    return TrustAnchor(
        path=str(path),
        certificate=certificate,
        der=certificate.public_bytes(serialization.Encoding.DER),
    )


def ensure_no_private_key(certificate_path: str | Path) -> None:
    """Aborta si hay un `key.pem` junto al certificado.

    La clave del servidor nunca debe salir del host shadowd; si aparece en el
    cliente el par está comprometido y hay que regenerarlo.
    """

    key_path = Path(certificate_path).parent / PRIVATE_KEY_FILENAME
    if key_path.exists():
        raise PrivateKeyExposedError(str(key_path))
