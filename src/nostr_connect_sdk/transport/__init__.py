"""Relay transport for the Nostr Connect channel."""

from .pool import RelayPool, Subscription, normalize_relay_url, unique_relays
from .relay import RelayConnection

__all__ = [
    "RelayConnection",
    "RelayPool",
    "Subscription",
    "normalize_relay_url",
    "unique_relays",
]
