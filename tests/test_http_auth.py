"""Tests for NIP-98 HTTP authentication."""

import base64
import hashlib
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from nostr_connect_sdk.crypto.keys import generate_secret_key
from nostr_connect_sdk.errors import NotConnectedError
from nostr_connect_sdk.events import HTTP_AUTH_KIND, finalize_event
from nostr_connect_sdk.http_auth import (
    NostrAuthHttpClient,
    build_http_auth_template,
    get_authorization_header,
)


@pytest.fixture
def user_key():
    return generate_secret_key()


@pytest.fixture
def signer(user_key):
    """Connected signer whose remote side signs with user_key."""
    mock = MagicMock()
    mock.is_connected.return_value = True
    mock.sign_event = AsyncMock(side_effect=lambda template: finalize_event(template, user_key))
    return mock


def decode_header(header):
    scheme, token = header.split(" ", 1)
    assert scheme == "Nostr"
    return json.loads(base64.b64decode(token))


class TestHttpAuthTemplate:
    """Tests for the auth event template."""

    def test_tags_without_payload(self):
        template = build_http_auth_template("https://api.example/deploy", "post")
        assert template.kind == HTTP_AUTH_KIND == 27235
        assert template.content == ""
        assert template.tags == [["u", "https://api.example/deploy"], ["method", "POST"]]

    def test_payload_hash(self):
        body = {"name": "site", "files": 3}
        template = build_http_auth_template("https://api.example/deploy", "POST", body)
        expected = hashlib.sha256(json.dumps(body).encode()).hexdigest()
        assert template.tags[-1] == ["payload", expected]


class TestAuthorizationHeader:
    """Tests for header construction."""

    @pytest.mark.asyncio
    async def test_header_carries_signed_event(self, signer):
        header = await get_authorization_header(signer, "https://api.example/x", "GET")
        event = decode_header(header)

        assert event["kind"] == 27235
        assert ["u", "https://api.example/x"] in event["tags"]
        assert ["method", "GET"] in event["tags"]
        assert len(event["sig"]) == 128
        signer.sign_event.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fails_closed_when_not_connected(self, signer):
        signer.is_connected.return_value = False
        with pytest.raises(NotConnectedError):
            await get_authorization_header(signer, "https://api.example/x", "GET")
        signer.sign_event.assert_not_awaited()


class TestNostrAuthHttpClient:
    """Tests for the authenticated HTTP client."""

    @pytest.mark.asyncio
    async def test_post_sends_signed_body(self, signer):
        client = NostrAuthHttpClient("https://api.example/", signer, timeout=5)
        response = MagicMock(status_code=200)
        with patch.object(client._session, "request", return_value=response) as request:
            result = await client.post("/deploy", json={"site": "demo"})

        assert result is response
        args, kwargs = request.call_args
        assert args == ("POST", "https://api.example/deploy")
        assert kwargs["data"] == json.dumps({"site": "demo"})
        assert kwargs["timeout"] == 5
        assert kwargs["headers"]["Content-Type"] == "application/json"

        event = decode_header(kwargs["headers"]["Authorization"])
        assert ["u", "https://api.example/deploy"] in event["tags"]
        payload_hash = hashlib.sha256(kwargs["data"].encode()).hexdigest()
        assert ["payload", payload_hash] in event["tags"]
        client.close()

    @pytest.mark.asyncio
    async def test_get_has_no_body(self, signer):
        client = NostrAuthHttpClient("https://api.example", signer)
        with patch.object(client._session, "request", return_value=MagicMock()) as request:
            await client.get("/status")

        args, kwargs = request.call_args
        assert args == ("GET", "https://api.example/status")
        assert kwargs["data"] is None
        assert "Content-Type" not in kwargs["headers"]
        client.close()

    @pytest.mark.asyncio
    async def test_not_connected_sends_nothing(self, signer):
        signer.is_connected.return_value = False
        client = NostrAuthHttpClient("https://api.example", signer)
        with patch.object(client._session, "request") as request:
            with pytest.raises(NotConnectedError):
                await client.get("/status")
        request.assert_not_called()
        client.close()
