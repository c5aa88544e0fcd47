"""Shared fixtures: fake relay network, settings in a temp dir, signer factory."""

import pytest
import pytest_asyncio
import websockets

from nostr_connect_sdk.config import Settings
from nostr_connect_sdk.signer import RemoteSigner
from nostr_connect_sdk.storage import StateStore

from relay_fakes import RELAY_A, RELAY_B, FakeRelayNetwork


@pytest.fixture
def relay_network(monkeypatch):
    network = FakeRelayNetwork()
    network.add(RELAY_A)
    network.add(RELAY_B)
    monkeypatch.setattr(websockets, "connect", network.connect)
    return network


@pytest.fixture
def settings(tmp_path):
    return Settings(
        relays=[RELAY_A, RELAY_B],
        config_dir=tmp_path / "config",
        handshake_timeout=5.0,
        request_timeout=2.0,
        relay_connect_timeout=1.0,
        publish_timeout=1.0,
    )


@pytest_asyncio.fixture
async def make_signer(relay_network, settings):
    """Factory for RemoteSigner instances sharing one config dir (a "process restart")."""
    created = []

    def factory():
        signer = RemoteSigner(settings, store=StateStore(settings.config_dir))
        created.append(signer)
        return signer

    yield factory

    for signer in created:
        await signer.close()
