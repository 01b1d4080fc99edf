"""Self-signed TLS secret issuance.

Public endpoints with the ``self-signed`` TLS policy reference a
``kubernetes.io/tls`` secret that nothing else creates. The TLS manager
issues a certificate with openssl and applies the secret, once: an existing
secret is left untouched so certificates are not rotated on every deploy.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loguru import logger

from topoforge.constants import DEFAULT_CONSTANTS, DeploymentConstants
from topoforge.manifests import build_tls_secret
from topoforge.manifests.utils import base_labels

if TYPE_CHECKING:
    from topoforge.infra.k8s import KubernetesController
    from topoforge.plan import PlanEntry

    from .shell_commands import OpenSSLCommands


class TlsManager:
    """Ensures self-signed TLS secrets exist for plan entries."""

    def __init__(
        self,
        controller: KubernetesController,
        openssl: OpenSSLCommands,
        constants: DeploymentConstants | None = None,
    ) -> None:
        self.controller = controller
        self.openssl = openssl
        self.constants = constants or DEFAULT_CONSTANTS

    async def ensure(self, entry: PlanEntry, *, dry_run: bool = False) -> list[str]:
        """Issue and apply missing self-signed secrets for an entry.

        Args:
            entry: Plan entry whose network plan lists self-signed secrets
            dry_run: Apply with a client-side dry run

        Returns:
            Applied resource ids (existing secrets are skipped)
        """
        applied: list[str] = []
        for tls in entry.network.self_signed:
            if await self.controller.secret_exists(tls.secret_name, entry.namespace):
                logger.debug(
                    f"TLS secret {entry.namespace}/{tls.secret_name} exists, skipping issuance"
                )
                continue

            hosts = list(tls.hosts) or ["localhost"]
            certificate, key = await asyncio.to_thread(
                self.openssl.generate_self_signed,
                hosts,
                self.constants.SELF_SIGNED_KEY_SIZE,
                self.constants.SELF_SIGNED_VALID_DAYS,
            )
            manifest = build_tls_secret(
                tls.secret_name,
                entry.namespace,
                certificate,
                key,
                base_labels(entry.project, entry.service_name),
            )
            applied.append(
                await self.controller.apply(manifest, entry.namespace, dry_run=dry_run)
            )
            logger.info(
                f"Issued self-signed certificate {entry.namespace}/{tls.secret_name} "
                f"for {', '.join(hosts)}"
            )
        return applied
