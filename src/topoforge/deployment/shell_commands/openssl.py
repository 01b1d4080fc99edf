"""OpenSSL command abstractions.

This module issues self-signed certificates for hosts whose TLS policy
asks for them.
"""

from __future__ import annotations

import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from topoforge.errors import ForgeError

if TYPE_CHECKING:
    from .runner import CommandRunner


def openssl_config(hosts: Sequence[str], key_size: int) -> str:
    """Render a request config with every host as a subjectAltName."""
    common_name = hosts[0] if hosts else "localhost"
    alt_names = "\n".join(
        f"DNS.{index} = {name}" for index, name in enumerate(hosts or [common_name], 1)
    )
    return (
        "[ req ]\n"
        f"default_bits = {key_size}\n"
        "prompt = no\n"
        "default_md = sha256\n"
        "req_extensions = v3_req\n"
        "distinguished_name = dn\n"
        "\n"
        "[ dn ]\n"
        f"CN = {common_name}\n"
        "\n"
        "[ v3_req ]\n"
        "subjectAltName = @alt_names\n"
        "\n"
        "[ alt_names ]\n"
        f"{alt_names}\n"
    )


class OpenSSLCommands:
    """OpenSSL-related shell commands."""

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize OpenSSL commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    def generate_self_signed(
        self,
        hosts: Sequence[str],
        key_size: int = 2048,
        valid_days: int = 365,
    ) -> tuple[str, str]:
        """Issue a self-signed certificate covering ``hosts``.

        Args:
            hosts: DNS names; the first one is also the common name
            key_size: RSA key size in bits
            valid_days: Certificate validity window

        Returns:
            (certificate PEM, private key PEM)

        Raises:
            ForgeError: If openssl fails
        """
        with tempfile.TemporaryDirectory(prefix="topoforge-tls-") as workdir:
            workdir_path = Path(workdir)
            config_path = workdir_path / "openssl.cnf"
            key_path = workdir_path / "tls.key"
            cert_path = workdir_path / "tls.crt"
            config_path.write_text(openssl_config(hosts, key_size), encoding="utf-8")

            result = self._runner.run(
                [
                    "openssl",
                    "req",
                    "-x509",
                    "-nodes",
                    "-days",
                    str(valid_days),
                    "-newkey",
                    f"rsa:{key_size}",
                    "-config",
                    str(config_path),
                    "-extensions",
                    "v3_req",
                    "-keyout",
                    str(key_path),
                    "-out",
                    str(cert_path),
                ],
                cwd=workdir_path,
            )
            if not result.success:
                raise ForgeError(
                    "Failed to generate self-signed certificate",
                    details=result.stderr.strip() or None,
                )
            return cert_path.read_text(), key_path.read_text()
