"""
Self-signed certificate issuer built on ``cryptography``.

Generates an ECDSA P-256 key and a self-signed X.509 certificate for
the configured domain. Both operations are no-ops when the target file
already exists, so an operator-supplied certificate is never replaced.
"""

from __future__ import annotations

import datetime
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from stackconverge.adapters.base import CertificateIssuer
from stackconverge.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

_SUBJECT_OIDS = {
    "C": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "CN": NameOID.COMMON_NAME,
    "emailAddress": NameOID.EMAIL_ADDRESS,
}


def build_subject(fields: Mapping[str, str]) -> x509.Name:
    """Build an X.509 name from short field names (C, ST, L, O, OU, CN)."""
    attributes = []
    for key, value in fields.items():
        oid = _SUBJECT_OIDS.get(key)
        if oid is None:
            raise ValueError(f"Unknown subject field: {key}")
        attributes.append(x509.NameAttribute(oid, value))
    return x509.Name(attributes)


def _write_private(path: Path, data: bytes, mode: int) -> None:
    """Create ``path`` with ``mode`` from the start; never world-readable, even briefly."""
    tmp = path.with_name(f".{path.name}.tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp, mode)
        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


class X509CertificateIssuer(CertificateIssuer):
    """ECDSA P-256 keys and self-signed SHA-256 certificates."""

    @property
    def name(self) -> str:
        return "x509"

    def is_available(self) -> bool:
        return True  # pure Python, no external tool

    def ensure_key_pair(self, key_path: str) -> Receipt:
        path = Path(key_path)
        if path.exists():
            return Receipt.success(
                adapter=self.name, operation="key", output=f"{path} already exists"
            )
        try:
            key = ec.generate_private_key(ec.SECP256R1())
            pem = key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            )
            path.parent.mkdir(parents=True, exist_ok=True)
            _write_private(path, pem, 0o600)
        except (OSError, ValueError) as e:
            return Receipt.failure(
                adapter=self.name, operation="key", error=f"Cannot create key {path}: {e}"
            )
        logger.info("Generated ECDSA P-256 key %s", path)
        return Receipt.success(
            adapter=self.name, operation="key", output=f"Generated key {path}"
        )

    def ensure_certificate(
        self,
        key_path: str,
        cert_path: str,
        subject: Mapping[str, str],
        validity_days: int,
    ) -> Receipt:
        path = Path(cert_path)
        if path.exists():
            return Receipt.success(
                adapter=self.name, operation="certificate", output=f"{path} already exists"
            )

        try:
            key = serialization.load_pem_private_key(
                Path(key_path).read_bytes(), password=None
            )
            name = build_subject(subject)
            common_names = name.get_attributes_for_oid(NameOID.COMMON_NAME)
            now = datetime.datetime.now(datetime.UTC)

            builder = (
                x509.CertificateBuilder()
                .subject_name(name)
                .issuer_name(name)
                .public_key(key.public_key())
                .serial_number(x509.random_serial_number())
                .not_valid_before(now - datetime.timedelta(minutes=5))
                .not_valid_after(now + datetime.timedelta(days=validity_days))
                .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            )
            if common_names:
                builder = builder.add_extension(
                    x509.SubjectAlternativeName(
                        [x509.DNSName(str(cn.value)) for cn in common_names]
                    ),
                    critical=False,
                )
            certificate = builder.sign(key, hashes.SHA256())

            path.parent.mkdir(parents=True, exist_ok=True)
            _write_private(path, certificate.public_bytes(serialization.Encoding.PEM), 0o644)
        except (OSError, ValueError, TypeError) as e:
            return Receipt.failure(
                adapter=self.name,
                operation="certificate",
                error=f"Cannot create certificate {path}: {e}",
            )

        logger.info("Issued self-signed certificate %s (%d days)", path, validity_days)
        return Receipt.success(
            adapter=self.name,
            operation="certificate",
            output=f"Issued {path}, valid {validity_days} days",
        )
