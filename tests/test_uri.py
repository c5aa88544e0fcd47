"""Tests for nostrconnect:// invitation URIs."""

from urllib.parse import urlsplit

import pytest

from nostr_connect_sdk.connect.uri import (
    build_nostrconnect_uri,
    generate_secret,
    parse_nostrconnect_uri,
)
from nostr_connect_sdk.crypto.keys import generate_secret_key, get_public_key


@pytest.fixture
def client_pubkey():
    return get_public_key(generate_secret_key())


class TestInvitationURI:
    """Tests for building and parsing invitations."""

    def test_roundtrip(self, client_pubkey):
        relays = ["wss://relay.a.example", "wss://relay.b.example/path?x=1"]
        secret = generate_secret()
        uri = build_nostrconnect_uri(
            client_pubkey, relays, secret, name="My App & Co", perms=["sign_event", "nip44_encrypt"]
        )

        parsed = parse_nostrconnect_uri(uri)
        assert parsed.client_pubkey == client_pubkey
        assert parsed.relays == relays
        assert parsed.secret == secret
        assert parsed.name == "My App & Co"
        assert parsed.perms == ["sign_event", "nip44_encrypt"]

    def test_query_is_percent_encoded(self, client_pubkey):
        uri = build_nostrconnect_uri(client_pubkey, ["wss://relay.a.example"], "s3cr3t")
        parts = urlsplit(uri)
        assert parts.scheme == "nostrconnect"
        assert parts.netloc == client_pubkey
        assert "relay=wss%3A%2F%2Frelay.a.example" in parts.query
        assert "name=" not in parts.query
        assert "perms=" not in parts.query

    def test_secret_is_random_hex(self):
        secrets = {generate_secret() for _ in range(5)}
        assert len(secrets) == 5
        assert all(len(s) == 32 and int(s, 16) >= 0 for s in secrets)

    @pytest.mark.parametrize(
        "uri",
        [
            "bunker://{pk}?relay=wss%3A%2F%2Fr.example&secret=abc",
            "nostrconnect://not-a-key?relay=wss%3A%2F%2Fr.example&secret=abc",
            "nostrconnect://{pk}?secret=abc",
            "nostrconnect://{pk}?relay=wss%3A%2F%2Fr.example",
            "nostrconnect://{pk}?relay=wss%3A%2F%2Fr.example&secret=",
        ],
    )
    def test_invalid_invitations(self, client_pubkey, uri):
        with pytest.raises(ValueError):
            parse_nostrconnect_uri(uri.format(pk=client_pubkey))
