"""NIP-46 requests to a remote signer, correlated with their responses by request id.

Requests and responses travel as NIP-44 encrypted kind-24133 events. The
response channel is shared with unrelated (and possibly hostile) traffic, so
anything that does not decrypt, parse, and carry the outstanding request id
is skipped rather than treated as an error.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from dataclasses import dataclass
from typing import Any

from .crypto.keys import get_public_key
from .crypto.nip44 import MAX_PLAINTEXT_SIZE, ConversationSession
from .errors import (
    DecryptionError,
    RelayConnectionError,
    RemoteSignerError,
    RequestTimeoutError,
    RequestTooLargeError,
)
from .events import NOSTR_CONNECT_KIND, Event, EventTemplate, Filter, finalize_event, verify_event
from .transport.pool import RelayPool, Subscription

logger = logging.getLogger(__name__)

METHOD_GET_PUBLIC_KEY = "get_public_key"
METHOD_SIGN_EVENT = "sign_event"
METHOD_PING = "ping"

AUTH_URL_RESULT = "auth_url"


@dataclass
class SignerResponse:
    """Decrypted response payload: ``{"id", "result"?, "error"?}``."""

    id: str
    result: str | None = None
    error: str | None = None

    @classmethod
    def parse(cls, payload: Any) -> SignerResponse | None:
        """Strict shape check. Anything that does not fit is not a response (None)."""
        if not isinstance(payload, dict):
            return None
        response_id = payload.get("id")
        result = payload.get("result")
        error = payload.get("error") or None
        if not isinstance(response_id, str) or not response_id:
            return None
        if result is not None and not isinstance(result, str):
            return None
        if error is not None and not isinstance(error, str):
            return None
        if result is None and error is None:
            return None
        return cls(id=response_id, result=result, error=error)

    @property
    def is_auth_challenge(self) -> bool:
        return self.result == AUTH_URL_RESULT and self.error is not None


def response_filter(remote_pubkey: str | None, client_pubkey: str, limit: int | None = 0) -> Filter:
    """Kind-24133 events addressed to the client, optionally from one author only."""
    return Filter(
        kinds=[NOSTR_CONNECT_KIND],
        authors=[remote_pubkey] if remote_pubkey else None,
        p_tags=[client_pubkey],
        limit=limit,
    )


class RemoteSignerClient:
    """Live channel to one remote signer over a set of relays."""

    def __init__(
        self,
        pool: RelayPool,
        client_secret_key: bytes,
        remote_signer_pubkey: str,
        relays: list[str],
        request_timeout: float = 30.0,
    ):
        self.pool = pool
        self.remote_signer_pubkey = remote_signer_pubkey
        self.relays = list(relays)
        self.request_timeout = request_timeout
        self.client_pubkey = get_public_key(client_secret_key)
        self._secret_key = client_secret_key
        self._channel = ConversationSession(client_secret_key, remote_signer_pubkey)

    def _build_request(self, request_id: str, method: str, params: list[str]) -> Event:
        try:
            content = self._channel.encrypt({"id": request_id, "method": method, "params": params})
        except ValueError as e:
            raise RequestTooLargeError(method, MAX_PLAINTEXT_SIZE) from e
        template = EventTemplate(
            kind=NOSTR_CONNECT_KIND,
            content=content,
            tags=[["p", self.remote_signer_pubkey]],
        )
        return finalize_event(template, self._secret_key)

    def _decode(self, event: Event) -> SignerResponse | None:
        try:
            payload = self._channel.decrypt(event.content)
        except DecryptionError as e:
            logger.debug(f"Skipping undecryptable event {event.id[:8]}: {e}")
            return None
        return SignerResponse.parse(payload)

    async def send_request(
        self, method: str, params: list[str] | None = None, timeout: float | None = None
    ) -> str:
        """Send a request and wait for its response.

        Args:
            method: NIP-46 method name
            params: positional string parameters
            timeout: seconds to wait (defaults to request_timeout)

        Returns:
            The ``result`` string of the matching response.
        """
        if timeout is None:
            timeout = self.request_timeout
        request_id = secrets.token_hex(16)
        request = self._build_request(request_id, method, params or [])

        # Subscribe before publishing so a fast response cannot be missed
        subscription = await self.pool.subscribe(
            self.relays, [response_filter(self.remote_signer_pubkey, self.client_pubkey)]
        )
        try:
            return await asyncio.wait_for(
                self._exchange(subscription, request, request_id, method), timeout=timeout
            )
        except asyncio.TimeoutError:
            raise RequestTimeoutError(method, timeout) from None
        finally:
            await subscription.close()

    async def _exchange(
        self, subscription: Subscription, request: Event, request_id: str, method: str
    ) -> str:
        published = await self.pool.publish(self.relays, request)
        if not published.ok:
            raise RelayConnectionError(f"No relay accepted the '{method}' request")
        logger.debug(
            f"Sent {method} request {request_id[:8]} "
            f"({published.accepted}/{published.attempted} relays)"
        )

        async for event in subscription:
            response = self._decode(event)
            if response is None or response.id != request_id:
                continue
            if response.is_auth_challenge:
                logger.warning(f"Remote signer requires approval, open: {response.error}")
                continue
            if response.error is not None:
                raise RemoteSignerError(response.error)
            return response.result

        raise RelayConnectionError(f"All relays closed the subscription before '{method}' was answered")

    async def get_public_key(self, timeout: float | None = None) -> str:
        """Ask the signer which public key it signs for."""
        result = await self.send_request(METHOD_GET_PUBLIC_KEY, [], timeout)
        if not result:
            raise RemoteSignerError("Remote signer returned an empty public key")
        return result

    async def sign_event(self, template: EventTemplate, timeout: float | None = None) -> Event:
        """Have the signer sign a template; the returned event is verified."""
        result = await self.send_request(
            METHOD_SIGN_EVENT, [json.dumps(template.to_dict())], timeout
        )
        try:
            event = Event.from_dict(json.loads(result))
        except (TypeError, ValueError) as e:
            raise RemoteSignerError(f"Remote signer returned an invalid event: {e}") from e
        if not verify_event(event):
            raise RemoteSignerError("Event returned from remote signer is improperly signed")
        return event

    async def ping(self, timeout: float | None = None) -> str:
        return await self.send_request(METHOD_PING, [], timeout)
