"""NIP-01 events: templates, canonical ids, signing, verification and filters."""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass, field
from typing import Any

from .crypto.keys import get_public_key, is_valid_public_key, sign_schnorr, verify_schnorr

# NIP-46 request/response envelope
NOSTR_CONNECT_KIND = 24133
# NIP-98 HTTP auth event
HTTP_AUTH_KIND = 27235


def now() -> int:
    return int(time.time())


@dataclass
class EventTemplate:
    """Unsigned event content, as handed to a signer."""

    kind: int
    content: str = ""
    tags: list[list[str]] = field(default_factory=list)
    created_at: int = field(default_factory=now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind,
            "content": self.content,
            "tags": self.tags,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventTemplate:
        """Create from dictionary, defaulting tags and created_at."""
        kind = data["kind"]
        if not isinstance(kind, int) or isinstance(kind, bool):
            raise ValueError("kind must be an integer")
        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(
            isinstance(t, list) and all(isinstance(v, str) for v in t) for t in tags
        ):
            raise ValueError("tags must be a list of string lists")
        content = data.get("content", "")
        if not isinstance(content, str):
            raise ValueError("content must be a string")
        created_at = data.get("created_at")
        return cls(
            kind=kind,
            content=content,
            tags=tags,
            created_at=created_at if isinstance(created_at, int) else now(),
        )


@dataclass
class Event:
    """A signed event."""

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: list[list[str]]
    content: str
    sig: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": self.tags,
            "content": self.content,
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Event:
        """Create from a wire dictionary. Raises ValueError on any shape mismatch."""
        if not isinstance(data, dict):
            raise ValueError("event must be an object")
        try:
            event = cls(
                id=data["id"],
                pubkey=data["pubkey"],
                created_at=data["created_at"],
                kind=data["kind"],
                tags=data["tags"],
                content=data["content"],
                sig=data["sig"],
            )
        except KeyError as e:
            raise ValueError(f"event missing field {e}") from None
        if not all(isinstance(v, str) for v in (event.id, event.pubkey, event.content, event.sig)):
            raise ValueError("event id, pubkey, content and sig must be strings")
        if not isinstance(event.created_at, int) or not isinstance(event.kind, int):
            raise ValueError("event created_at and kind must be integers")
        if not isinstance(event.tags, list) or not all(
            isinstance(t, list) and all(isinstance(v, str) for v in t) for t in event.tags
        ):
            raise ValueError("event tags must be a list of string lists")
        return event

    def tag_values(self, name: str) -> list[str]:
        """Values of every tag with the given name (first element after the name)."""
        return [t[1] for t in self.tags if len(t) >= 2 and t[0] == name]


def serialize_event(pubkey: str, created_at: int, kind: int, tags: list, content: str) -> bytes:
    """Canonical NIP-01 serialization used for the event id."""
    return json.dumps(
        [0, pubkey, created_at, kind, tags, content],
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def compute_event_id(pubkey: str, created_at: int, kind: int, tags: list, content: str) -> str:
    return hashlib.sha256(serialize_event(pubkey, created_at, kind, tags, content)).hexdigest()


def finalize_event(template: EventTemplate, secret_key: bytes) -> Event:
    """Sign a template with a local key (used only for the client keypair)."""
    pubkey = get_public_key(secret_key)
    event_id = compute_event_id(
        pubkey, template.created_at, template.kind, template.tags, template.content
    )
    sig = sign_schnorr(secret_key, bytes.fromhex(event_id))
    return Event(
        id=event_id,
        pubkey=pubkey,
        created_at=template.created_at,
        kind=template.kind,
        tags=template.tags,
        content=template.content,
        sig=sig.hex(),
    )


def verify_event(event: Event) -> bool:
    """Check the id hash and the Schnorr signature."""
    if not is_valid_public_key(event.pubkey):
        return False
    expected_id = compute_event_id(
        event.pubkey, event.created_at, event.kind, event.tags, event.content
    )
    if expected_id != event.id:
        return False
    try:
        sig = bytes.fromhex(event.sig)
    except ValueError:
        return False
    return len(sig) == 64 and verify_schnorr(event.pubkey, bytes.fromhex(event.id), sig)


@dataclass
class Filter:
    """Subscription filter (subset of NIP-01 used by the signing protocol)."""

    kinds: list[int] | None = None
    authors: list[str] | None = None
    p_tags: list[str] | None = None
    since: int | None = None
    limit: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the relay wire format."""
        data: dict[str, Any] = {}
        if self.kinds is not None:
            data["kinds"] = self.kinds
        if self.authors is not None:
            data["authors"] = self.authors
        if self.p_tags is not None:
            data["#p"] = self.p_tags
        if self.since is not None:
            data["since"] = self.since
        if self.limit is not None:
            data["limit"] = self.limit
        return data

    def matches(self, event: Event) -> bool:
        """Relays are not trusted to filter; re-check locally."""
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.p_tags is not None and not set(self.p_tags) & set(event.tag_values("p")):
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        return True
