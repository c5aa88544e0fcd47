"""Tests for the tool command layer."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from nostr_connect_sdk import tools
from nostr_connect_sdk.crypto.bech32 import npub_encode
from nostr_connect_sdk.errors import RelayConnectionError
from nostr_connect_sdk.events import EventTemplate, finalize_event, verify_event

from relay_fakes import RELAY_A, RELAY_B, SimulatedSigner


async def scan(bunker, invitation):
    bunker.accept(invitation.uri)


class TestConnectTools:
    """Tests for connect / initiate / complete."""

    @pytest.mark.asyncio
    async def test_connect(self, make_signer, relay_network):
        bunker = SimulatedSigner(relay_network, [RELAY_A])
        signer = make_signer()

        message = await tools.connect(signer, on_invitation=lambda inv: scan(bunker, inv))

        assert "Connected successfully!" in message
        assert npub_encode(bunker.user_pubkey) in message
        assert "nostrconnect://" in message
        assert signer.is_connected()

    @pytest.mark.asyncio
    async def test_connect_with_relay_list(self, make_signer, relay_network):
        bunker = SimulatedSigner(relay_network, [RELAY_B])
        signer = make_signer()

        await tools.connect(
            signer,
            relays=f" {RELAY_B} , https://not-a-relay.example",
            on_invitation=lambda inv: scan(bunker, inv),
        )
        assert signer.get_relays() == [RELAY_B]

    @pytest.mark.asyncio
    async def test_connect_already_connected(self, make_signer, relay_network):
        bunker = SimulatedSigner(relay_network, [RELAY_A])
        signer = make_signer()
        await tools.connect(signer, on_invitation=lambda inv: scan(bunker, inv))

        message = await tools.connect(signer)
        assert message.startswith(f"Already connected as {npub_encode(bunker.user_pubkey)}.")

    @pytest.mark.asyncio
    async def test_connect_failure_is_a_message(self, make_signer, relay_network):
        signer = make_signer()
        with patch.object(
            signer, "connect", AsyncMock(side_effect=RelayConnectionError("no relays"))
        ):
            message = await tools.connect(signer)
        assert message == "Connection failed: no relays"

    @pytest.mark.asyncio
    async def test_initiate_and_complete(self, make_signer, relay_network):
        bunker = SimulatedSigner(relay_network, [RELAY_A])
        signer = make_signer()

        message = await tools.initiate(signer)
        assert "run complete" in message
        pending = signer.store.pending.load()
        bunker.accept(pending.nostrconnect_uri)

        message = await tools.complete(signer)
        assert message == (
            f"Connected successfully!\nUser pubkey: {npub_encode(bunker.user_pubkey)}"
        )

    @pytest.mark.asyncio
    async def test_complete_without_pending(self, make_signer):
        message = await tools.complete(make_signer())
        assert message == "No pending connection. Run connect first to generate a QR code."

    @pytest.mark.asyncio
    async def test_complete_timeout_is_a_message(self, make_signer, relay_network):
        signer = make_signer()
        await tools.initiate(signer)
        message = await tools.complete(signer, timeout=0.2)
        assert message.startswith("Connection failed: Timed out")


class TestStateTools:
    """Tests for status / get_pubkey / disconnect."""

    @pytest.mark.asyncio
    async def test_status_not_connected(self, make_signer, settings):
        status = json.loads(await tools.status(make_signer()))
        assert status["connected"] is False
        assert status["configDir"] == str(settings.config_dir)
        assert status["message"] == (
            "Not connected. Use connect to authenticate via NIP-46 remote signing."
        )

    @pytest.mark.asyncio
    async def test_status_and_pubkey_connected(self, make_signer, relay_network):
        bunker = SimulatedSigner(relay_network, [RELAY_A])
        signer = make_signer()
        await tools.connect(signer, on_invitation=lambda inv: scan(bunker, inv))

        status = json.loads(await tools.status(signer))
        assert status["connected"] is True
        assert status["userPubkey"] == bunker.user_pubkey
        assert status["relays"] == [RELAY_A, RELAY_B]
        npub = npub_encode(bunker.user_pubkey)
        assert status["message"] == f"Connected as {npub[:8]}...{npub[-8:]}"

        pubkey = json.loads(await tools.get_pubkey(signer))
        assert pubkey == {
            "connected": True,
            "pubkey": bunker.user_pubkey,
            "npub": npub_encode(bunker.user_pubkey),
        }

    @pytest.mark.asyncio
    async def test_pubkey_not_connected(self, make_signer):
        result = json.loads(await tools.get_pubkey(make_signer()))
        assert result["connected"] is False
        assert "Not connected" in result["error"]

    @pytest.mark.asyncio
    async def test_disconnect(self, make_signer, relay_network):
        bunker = SimulatedSigner(relay_network, [RELAY_A])
        signer = make_signer()
        assert await tools.disconnect(signer) == "Not currently connected. Nothing to disconnect."

        await tools.connect(signer, on_invitation=lambda inv: scan(bunker, inv))
        message = await tools.disconnect(signer)
        assert message.startswith(f"Disconnected from {npub_encode(bunker.user_pubkey)}.")
        assert not signer.is_connected()


class TestSigningTools:
    """Tests for sign_event / publish."""

    @pytest.mark.asyncio
    async def test_sign_event(self, make_signer, relay_network):
        bunker = SimulatedSigner(relay_network, [RELAY_A])
        signer = make_signer()
        await tools.connect(signer, on_invitation=lambda inv: scan(bunker, inv))

        result = json.loads(
            await tools.sign_event(signer, 1, "hello", tags='[["t", "demo"]]', created_at=1700000000)
        )
        assert result["success"] is True
        assert result["event"]["content"] == "hello"
        assert result["event"]["tags"] == [["t", "demo"]]
        assert result["event"]["created_at"] == 1700000000
        assert result["event"]["pubkey"] == bunker.user_pubkey

    @pytest.mark.asyncio
    async def test_sign_event_not_connected(self, make_signer):
        result = json.loads(await tools.sign_event(make_signer(), 1, "hello"))
        assert result == {
            "error": "Not connected. Use connect first to authenticate.",
            "success": False,
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "tags,error",
        [
            ("not json", "Invalid tags JSON format"),
            ('{"p": "x"}', "Tags must be a JSON array"),
        ],
    )
    async def test_sign_event_bad_tags(self, make_signer, relay_network, tags, error):
        bunker = SimulatedSigner(relay_network, [RELAY_A])
        signer = make_signer()
        await tools.connect(signer, on_invitation=lambda inv: scan(bunker, inv))

        result = json.loads(await tools.sign_event(signer, 1, "hello", tags=tags))
        assert result == {"error": error, "success": False}
        assert not any(r["method"] == "sign_event" for r in bunker.requests)

    @pytest.mark.asyncio
    async def test_sign_event_remote_rejection(self, make_signer, relay_network):
        bunker = SimulatedSigner(relay_network, [RELAY_A])
        signer = make_signer()
        await tools.connect(signer, on_invitation=lambda inv: scan(bunker, inv))
        bunker.errors["sign_event"] = "denied"

        result = json.loads(await tools.sign_event(signer, 1, "hello"))
        assert result == {"error": "Signing failed: denied", "success": False}

    @pytest.mark.asyncio
    async def test_sign_event_too_large(self, make_signer, relay_network):
        bunker = SimulatedSigner(relay_network, [RELAY_A])
        signer = make_signer()
        await tools.connect(signer, on_invitation=lambda inv: scan(bunker, inv))

        result = json.loads(await tools.sign_event(signer, 1, "x" * 70000))
        assert result["success"] is False
        assert result["error"].startswith("Signing failed: Request 'sign_event' is too large")
        assert not any(r["method"] == "sign_event" for r in bunker.requests)

    @pytest.mark.asyncio
    async def test_publish(self, make_signer, relay_network):
        relay_network.relays[RELAY_B].reject = True
        event = finalize_event(EventTemplate(kind=1, content="hi"), bytes.fromhex("22" * 32))
        assert verify_event(event)

        result = json.loads(await tools.publish(make_signer(), json.dumps(event.to_dict())))
        assert result == {"success": True, "id": event.id, "accepted": 1, "attempted": 2}

    @pytest.mark.asyncio
    async def test_publish_rejected_everywhere(self, make_signer, relay_network):
        for relay in relay_network.relays.values():
            relay.reject = True
        event = finalize_event(EventTemplate(kind=1, content="hi"), bytes.fromhex("22" * 32))

        result = json.loads(await tools.publish(make_signer(), json.dumps(event.to_dict())))
        assert result["success"] is False
        assert "0/2" in result["error"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", ["{", "[]", '{"id": "x"}'])
    async def test_publish_invalid_event(self, make_signer, payload):
        result = json.loads(await tools.publish(make_signer(), payload))
        assert result["success"] is False
        assert result["error"].startswith("Invalid event")
