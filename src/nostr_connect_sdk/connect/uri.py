"""nostrconnect:// invitation URIs (client-initiated NIP-46 pairing)."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlencode, urlsplit

from ..crypto.keys import is_valid_public_key

SCHEME = "nostrconnect"


def generate_secret() -> str:
    """Random invitation nonce proving an acknowledgment answers this invitation."""
    return secrets.token_hex(16)


@dataclass
class NostrConnectURI:
    client_pubkey: str
    relays: list[str]
    secret: str
    name: str | None = None
    perms: list[str] = field(default_factory=list)


def build_nostrconnect_uri(
    client_pubkey: str,
    relays: list[str],
    secret: str,
    name: str | None = None,
    perms: list[str] | None = None,
) -> str:
    """Build the URI a signer app scans or pastes."""
    params: list[tuple[str, str]] = [("relay", relay) for relay in relays]
    params.append(("secret", secret))
    if name:
        params.append(("name", name))
    if perms:
        params.append(("perms", ",".join(perms)))
    return f"{SCHEME}://{client_pubkey}?{urlencode(params)}"


def parse_nostrconnect_uri(uri: str) -> NostrConnectURI:
    """Parse an invitation URI. Raises ValueError when it is not a valid invitation."""
    parts = urlsplit(uri)
    if parts.scheme != SCHEME:
        raise ValueError(f"expected {SCHEME}:// URI, got {parts.scheme or 'no'} scheme")
    client_pubkey = parts.netloc
    if not is_valid_public_key(client_pubkey):
        raise ValueError("invalid client public key in URI")

    query = parse_qs(parts.query, keep_blank_values=True)
    relays = query.get("relay", [])
    if not relays:
        raise ValueError("URI has no relay parameter")
    secret = query.get("secret", [""])[0]
    if not secret:
        raise ValueError("URI has no secret parameter")
    perms_raw = query.get("perms", [""])[0]

    return NostrConnectURI(
        client_pubkey=client_pubkey,
        relays=relays,
        secret=secret,
        name=query.get("name", [None])[0],
        perms=[p for p in perms_raw.split(",") if p],
    )
