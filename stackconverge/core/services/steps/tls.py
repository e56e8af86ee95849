"""
TLS step — private key and self-signed certificate for the domain.
"""

from __future__ import annotations

from stackconverge.adapters.registry import HostAdapters
from stackconverge.core.engine.action import Action
from stackconverge.core.engine.step import Step
from stackconverge.core.models.config import Configuration
from stackconverge.core.models.target import FileExists

ISSUE_CERTIFICATE = "Issue TLS certificate"


def certificate_subject(config: Configuration) -> dict[str, str]:
    """Configured subject fields with CN forced to the domain."""
    return {**config.cert_subject, "CN": config.domain}


def issue_certificate(config: Configuration, adapters: HostAdapters) -> Step:
    issuer = adapters.certificates
    return Step(
        name=ISSUE_CERTIFICATE,
        actions=(
            Action(
                description=f"Create {config.ssl_dir}",
                target=FileExists(path=config.ssl_dir),
                apply=lambda: adapters.files.make_dirs(config.ssl_dir, mode=0o755),
            ),
            Action(
                description=f"Generate private key for {config.domain}",
                target=FileExists(path=config.key_path),
                apply=lambda: issuer.ensure_key_pair(config.key_path),
            ),
            Action(
                description=f"Self-sign certificate for {config.domain}",
                target=FileExists(path=config.cert_path),
                apply=lambda: issuer.ensure_certificate(
                    config.key_path,
                    config.cert_path,
                    certificate_subject(config),
                    config.cert_validity_days,
                ),
            ),
        ),
    )
