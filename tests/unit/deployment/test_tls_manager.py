"""Unit tests for self-signed TLS secret issuance."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from topoforge.deployment import TlsManager
from topoforge.plan import NetworkPlan, PlanEntry, TlsEntry

EntryFactory = Callable[..., PlanEntry]


@pytest.fixture
def entry(make_entry: EntryFactory) -> PlanEntry:
    return make_entry(
        network=NetworkPlan(self_signed=(TlsEntry("shop-api-tls", ("api.example.com",)),))
    )


@pytest.fixture
def openssl() -> MagicMock:
    openssl = MagicMock()
    openssl.generate_self_signed.return_value = ("CERT", "KEY")
    return openssl


class TestTlsManager:
    """Tests for TlsManager.ensure()."""

    @pytest.mark.asyncio
    async def test_existing_secret_is_kept(self, entry: PlanEntry, openssl: MagicMock) -> None:
        """Existing TLS secrets are never regenerated."""
        controller = AsyncMock()
        controller.secret_exists.return_value = True

        applied = await TlsManager(controller, openssl).ensure(entry)

        assert applied == []
        openssl.generate_self_signed.assert_not_called()
        controller.apply.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_secret_is_issued(self, entry: PlanEntry, openssl: MagicMock) -> None:
        """A missing secret is generated for the entry's hosts and applied."""
        controller = AsyncMock()
        controller.secret_exists.return_value = False
        controller.apply.return_value = "Secret/shop-api-tls"

        applied = await TlsManager(controller, openssl).ensure(entry, dry_run=True)

        assert applied == ["Secret/shop-api-tls"]
        openssl.generate_self_signed.assert_called_once_with(["api.example.com"], 2048, 365)
        manifest = controller.apply.await_args.args[0]
        assert manifest["type"] == "kubernetes.io/tls"
        assert manifest["metadata"]["name"] == "shop-api-tls"
        assert controller.apply.await_args.args[1] == "prod"
        assert controller.apply.await_args.kwargs == {"dry_run": True}

    @pytest.mark.asyncio
    async def test_nothing_to_issue(self, make_entry: EntryFactory, openssl: MagicMock) -> None:
        """Entries without self-signed hosts do nothing."""
        controller = AsyncMock()
        assert await TlsManager(controller, openssl).ensure(make_entry()) == []
        controller.secret_exists.assert_not_awaited()
