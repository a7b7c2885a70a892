"""Shared fixtures: throwaway certificates and shadow files."""

from __future__ import annotations

import datetime
import ipaddress
from dataclasses import dataclass
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from adapters.trust_anchor import TrustAnchor, load_trust_anchor


@dataclass
class CertificatePair:
    certificate: x509.Certificate
    key: ec.EllipticCurvePrivateKey

    @property
    def cert_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    @property
    def key_pem(self) -> bytes:
        return self.key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )

    def write(self, directory: Path) -> tuple[Path, Path]:
        directory.mkdir(parents=True, exist_ok=True)
        cert_path = directory / "cert.pem"
        key_path = directory / "key.pem"
        cert_path.write_bytes(self.cert_pem)
        key_path.write_bytes(self.key_pem)
        return cert_path, key_path


def make_self_signed(common_name: str = "shadowd.test") -> CertificatePair:
    """Self-signed CA certificate valid for localhost and 127.0.0.1."""

    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                ]
            ),
            critical=False,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return CertificatePair(certificate=certificate, key=key)


@dataclass
class CertificateChain:
    """Root -> intermediate -> leaf, the leaf valid for localhost and 127.0.0.1."""

    root: CertificatePair
    intermediate: CertificatePair
    leaf: CertificatePair

    def write_server(self, directory: Path) -> tuple[Path, Path]:
        """Leaf followed by the intermediate, the way a server presents it."""
        directory.mkdir(parents=True, exist_ok=True)
        chain_path = directory / "chain.pem"
        key_path = directory / "key.pem"
        chain_path.write_bytes(self.leaf.cert_pem + self.intermediate.cert_pem)
        key_path.write_bytes(self.leaf.key_pem)
        return chain_path, key_path


def _issue(
    common_name: str,
    issuer: CertificatePair | None,
    *,
    ca: bool,
) -> CertificatePair:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    signing_key = issuer.key if issuer else key
    issuer_name = issuer.certificate.subject if issuer else name
    now = datetime.datetime.now(datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signing_key.public_key()),
            critical=False,
        )
    )
    if ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    else:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                ]
            ),
            critical=False,
        )
    return CertificatePair(certificate=builder.sign(signing_key, hashes.SHA256()), key=key)


def make_chain() -> CertificateChain:
    root = _issue("shadowd.root", None, ca=True)
    intermediate = _issue("shadowd.intermediate", root, ca=True)
    leaf = _issue("127.0.0.1", intermediate, ca=False)
    return CertificateChain(root=root, intermediate=intermediate, leaf=leaf)


@pytest.fixture(scope="session")
def pinned_pair() -> CertificatePair:
    return make_self_signed("shadowd.pinned")


@pytest.fixture(scope="session")
def rogue_pair() -> CertificatePair:
    return make_self_signed("shadowd.rogue")


@pytest.fixture(scope="session")
def chain() -> CertificateChain:
    return make_chain()


@pytest.fixture
def cert_path(tmp_path: Path, pinned_pair: CertificatePair) -> Path:
    """Client-side certificate file (no key next to it)."""

    path = tmp_path / "cert" / "cert.pem"
    path.parent.mkdir()
    path.write_bytes(pinned_pair.cert_pem)
    return path


@pytest.fixture
def trust_anchor(cert_path: Path) -> TrustAnchor:
    return load_trust_anchor(cert_path)


@pytest.fixture
def shadow_path(tmp_path: Path) -> Path:
    path = tmp_path / "shadow"
    path.write_text(
        "root:x:1:2\n"
        "daemon:*:17000:0:99999:7:::\n"
        "alice:$6$salt$hash:18000:0:99999:7:::\n",
        encoding="utf-8",
    )
    return path
