"""Type definitions for the Nostr Connect SDK."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from .crypto.bech32 import npub_encode, nsec_decode, nsec_encode
from .crypto.keys import get_public_key, is_valid_public_key


def _require_str_list(value: Any, name: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{name} must be a list of strings")
    return value


@dataclass
class Session:
    """Durable state of an established remote signing channel."""

    client_secret_key: bytes  # relay-channel key, never the user's identity key
    remote_signer_pubkey: str
    user_pubkey: str
    relays: list[str]
    established_at: int = field(default_factory=lambda: int(time.time()))
    permissions: list[str] = field(default_factory=lambda: ["sign_event"])

    @property
    def client_pubkey(self) -> str:
        return get_public_key(self.client_secret_key)

    @property
    def npub(self) -> str | None:
        """NIP-19 form of the user key, or None when the signer returned a non-hex key."""
        try:
            return npub_encode(self.user_pubkey)
        except ValueError:
            return None

    @property
    def identity(self) -> str:
        return self.npub or self.user_pubkey

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON persistence; the secret key is stored as nsec."""
        return {
            "client_secret_key": nsec_encode(self.client_secret_key),
            "client_pubkey": self.client_pubkey,
            "remote_signer_pubkey": self.remote_signer_pubkey,
            "user_pubkey": self.user_pubkey,
            "relays": list(self.relays),
            "established_at": self.established_at,
            "permissions": list(self.permissions),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        """Create from a persisted dictionary. Raises ValueError/KeyError/TypeError if incomplete."""
        secret_key = nsec_decode(data["client_secret_key"])
        if data.get("client_pubkey") not in (None, get_public_key(secret_key)):
            raise ValueError("client_pubkey does not match client_secret_key")
        if not is_valid_public_key(data["remote_signer_pubkey"]):
            raise ValueError("remote_signer_pubkey is not a valid public key")
        if not isinstance(data["user_pubkey"], str) or not data["user_pubkey"]:
            raise ValueError("user_pubkey must be a non-empty string")
        relays = _require_str_list(data["relays"], "relays")
        if not relays:
            raise ValueError("relays must not be empty")
        established_at = data["established_at"]
        if not isinstance(established_at, int):
            raise ValueError("established_at must be an integer")
        return cls(
            client_secret_key=secret_key,
            remote_signer_pubkey=data["remote_signer_pubkey"],
            user_pubkey=data["user_pubkey"],
            relays=relays,
            established_at=established_at,
            permissions=_require_str_list(data.get("permissions", []), "permissions"),
        )


@dataclass
class PendingHandshake:
    """Invitation issued but not yet acknowledged by a remote signer."""

    client_secret_key: bytes  # candidate, confirmed only by the handshake
    secret: str
    nostrconnect_uri: str
    relays: list[str]
    created_at: int = field(default_factory=lambda: int(time.time()))

    @property
    def client_pubkey(self) -> str:
        return get_public_key(self.client_secret_key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON persistence."""
        return {
            "client_secret_key": nsec_encode(self.client_secret_key),
            "client_pubkey": self.client_pubkey,
            "secret": self.secret,
            "nostrconnect_uri": self.nostrconnect_uri,
            "relays": list(self.relays),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingHandshake:
        """Create from a persisted dictionary."""
        secret_key = nsec_decode(data["client_secret_key"])
        if data.get("client_pubkey") not in (None, get_public_key(secret_key)):
            raise ValueError("client_pubkey does not match client_secret_key")
        secret = data["secret"]
        uri = data["nostrconnect_uri"]
        if not isinstance(secret, str) or not secret:
            raise ValueError("secret must be a non-empty string")
        if not isinstance(uri, str) or not uri.startswith("nostrconnect://"):
            raise ValueError("nostrconnect_uri is invalid")
        created_at = data.get("created_at", 0)
        if not isinstance(created_at, int):
            raise ValueError("created_at must be an integer")
        return cls(
            client_secret_key=secret_key,
            secret=secret,
            nostrconnect_uri=uri,
            relays=_require_str_list(data["relays"], "relays"),
            created_at=created_at,
        )


@dataclass
class Invitation:
    """What a user needs to pair a remote signer: URI, QR text and instructions."""

    uri: str
    qr: str
    instructions: str
    client_pubkey: str
    relays: list[str]


@dataclass
class SignerStatus:
    connected: bool
    user_pubkey: str | None
    npub: str | None
    relays: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "userPubkey": self.user_pubkey,
            "npub": self.npub,
            "relays": self.relays,
        }


@dataclass
class PublishResult:
    """Relays that accepted a publish versus relays attempted."""

    accepted: int
    attempted: int

    @property
    def ok(self) -> bool:
        return self.accepted > 0

    def __add__(self, other: PublishResult) -> PublishResult:
        return PublishResult(self.accepted + other.accepted, self.attempted + other.attempted)

    def to_dict(self) -> dict[str, int]:
        return {"success": self.accepted, "total": self.attempted}
