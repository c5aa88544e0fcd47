"""Waiting for a remote signer to acknowledge a nostrconnect:// invitation."""

from __future__ import annotations

import asyncio
import logging

from ..crypto.keys import get_public_key
from ..crypto.nip44 import ConversationSession
from ..errors import DecryptionError, HandshakeTimeoutError, RelayConnectionError
from ..events import Event
from ..rpc import SignerResponse, response_filter
from ..transport.pool import RelayPool, Subscription

logger = logging.getLogger(__name__)


def _acknowledges(event: Event, client_secret_key: bytes, secret: str) -> bool:
    """Whether an inbound event is an acknowledgment carrying our invitation secret."""
    try:
        payload = ConversationSession(client_secret_key, event.pubkey).decrypt(event.content)
    except DecryptionError as e:
        logger.debug(f"Skipping undecryptable event {event.id[:8]} during handshake: {e}")
        return False
    response = SignerResponse.parse(payload)
    return response is not None and response.result == secret


async def _listen(subscription: Subscription, client_secret_key: bytes, secret: str) -> str:
    async for event in subscription:
        if _acknowledges(event, client_secret_key, secret):
            return event.pubkey
    raise RelayConnectionError("All relays closed the subscription before the signer connected")


async def open_handshake_subscription(
    pool: RelayPool, client_secret_key: bytes, relays: list[str]
) -> Subscription:
    """Start listening for acknowledgments addressed to the client key.

    Acknowledgments are ephemeral events that relays do not store, so this
    must run before the invitation is shown to the user.
    """
    client_pubkey = get_public_key(client_secret_key)
    return await pool.subscribe(relays, [response_filter(None, client_pubkey, limit=None)])


async def wait_for_handshake(
    pool: RelayPool,
    client_secret_key: bytes,
    relays: list[str],
    secret: str,
    timeout: float,
    subscription: Subscription | None = None,
) -> str:
    """Block until a remote signer acknowledges the invitation.

    The acknowledging signer is unknown in advance, so every kind-24133 event
    addressed to the client key is tried with the conversation key of its
    author. Pass a subscription from open_handshake_subscription to keep
    acknowledgments that arrived before this call; it is closed on return.

    Returns:
        The remote signer's public key (the acknowledging event's author).
    """
    if subscription is None:
        subscription = await open_handshake_subscription(pool, client_secret_key, relays)
    logger.info(f"Waiting up to {timeout:g}s for a remote signer on {len(subscription.relay_urls)} relays")
    try:
        return await asyncio.wait_for(
            _listen(subscription, client_secret_key, secret), timeout=timeout
        )
    except asyncio.TimeoutError:
        raise HandshakeTimeoutError(timeout) from None
    finally:
        await subscription.close()
