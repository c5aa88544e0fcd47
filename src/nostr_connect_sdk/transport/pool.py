"""Relay pool: cached connections, fan-out publish and merged subscriptions."""

from __future__ import annotations

import asyncio
import logging
import secrets
from urllib.parse import urlsplit, urlunsplit

from ..errors import RelayConnectionError
from ..events import Event, Filter, verify_event
from ..types import PublishResult
from .relay import RELAY_GONE, RelayConnection

logger = logging.getLogger(__name__)


def normalize_relay_url(url: str) -> str:
    """Canonical relay identity: lower-case scheme and host, no trailing slash."""
    parts = urlsplit(url.strip())
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def unique_relays(urls: list[str]) -> list[str]:
    """Normalize and deduplicate relay URLs, keeping order."""
    seen: dict[str, None] = {}
    for url in urls:
        seen.setdefault(normalize_relay_url(url), None)
    return list(seen)


class Subscription:
    """Lazy, unbounded stream of verified events merged across relays.

    Iterate with ``async for``; the stream ends only once every contributing
    relay has closed or dropped it. Always ``close()`` (or use ``async with``)
    to release the per-relay subscriptions.
    """

    def __init__(self, sub_id: str, filters: list[Filter]):
        self.id = sub_id
        self.filters = filters
        self._queue: asyncio.Queue = asyncio.Queue()
        self._relays: list[RelayConnection] = []
        self._live = 0
        self._seen: set[str] = set()
        self._closed = False

    @property
    def relay_urls(self) -> list[str]:
        return [r.url for r in self._relays]

    async def start(self, relays: list[RelayConnection]) -> None:
        for relay in relays:
            try:
                await relay.subscribe(self.id, self.filters, self._queue)
            except RelayConnectionError as e:
                logger.warning(f"Subscription {self.id} skipped relay {relay.url}: {e}")
                continue
            self._relays.append(relay)
        self._live = len(self._relays)
        if not self._relays:
            raise RelayConnectionError("No relay accepted the subscription")

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Event:
        while True:
            if self._closed or self._live == 0:
                raise StopAsyncIteration
            url, raw = await self._queue.get()
            if self._closed:
                raise StopAsyncIteration
            if raw is RELAY_GONE:
                self._live -= 1
                continue
            try:
                event = Event.from_dict(raw)
            except ValueError as e:
                logger.debug(f"Dropping malformed event from {url}: {e}")
                continue
            if event.id in self._seen:
                continue
            if not any(f.matches(event) for f in self.filters):
                continue
            if not verify_event(event):
                logger.debug(f"Dropping event {event.id[:8]} with bad id/signature from {url}")
                continue
            self._seen.add(event.id)
            return event

    async def close(self) -> None:
        """Close the subscription on every relay. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        relays, self._relays = self._relays, []
        for relay in relays:
            await relay.unsubscribe(self.id)
        # wake any task still waiting on the queue
        self._queue.put_nowait(("", RELAY_GONE))

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class RelayPool:
    """Connections to a set of relays, reused across calls within a process."""

    def __init__(self, connect_timeout: float = 10.0, publish_timeout: float = 10.0):
        self.connect_timeout = connect_timeout
        self.publish_timeout = publish_timeout
        self._relays: dict[str, RelayConnection] = {}

    @property
    def relays(self) -> dict[str, RelayConnection]:
        return dict(self._relays)

    def _create_relay(self, url: str) -> RelayConnection:
        return RelayConnection(
            url, connect_timeout=self.connect_timeout, publish_timeout=self.publish_timeout
        )

    async def ensure_relay(self, url: str) -> RelayConnection:
        """Get a live connection for a relay, (re)connecting lazily."""
        key = normalize_relay_url(url)
        relay = self._relays.get(key)
        if relay is None:
            relay = self._create_relay(key)
            self._relays[key] = relay
        if not relay.connected:
            await relay.connect()
        return relay

    async def connect(self, urls: list[str]) -> list[RelayConnection]:
        """Connect to every relay that answers. Fails only when none do."""
        keys = unique_relays(urls)
        results = await asyncio.gather(
            *(self.ensure_relay(url) for url in keys), return_exceptions=True
        )
        connected = []
        for url, result in zip(keys, results):
            if isinstance(result, Exception):
                logger.warning(f"Relay {url} unavailable: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                connected.append(result)
        if not connected:
            raise RelayConnectionError(f"Could not connect to any relay: {', '.join(keys)}")
        return connected

    async def _publish_one(self, url: str, event: Event) -> bool:
        relay = await self.ensure_relay(url)
        return await relay.publish(event)

    async def publish(self, urls: list[str], event: Event) -> PublishResult:
        """Publish to every relay; report how many accepted out of how many tried."""
        keys = unique_relays(urls)
        results = await asyncio.gather(
            *(self._publish_one(url, event) for url in keys), return_exceptions=True
        )
        accepted = 0
        for url, result in zip(keys, results):
            if result is True:
                accepted += 1
            elif isinstance(result, Exception):
                logger.debug(f"Publish to {url} failed: {result}")
            elif isinstance(result, BaseException):
                raise result

        if accepted == 0:
            logger.warning(f"No relay accepted event {event.id[:8]} ({len(keys)} attempted)")
        return PublishResult(accepted=accepted, attempted=len(keys))

    async def subscribe(self, urls: list[str], filters: list[Filter]) -> Subscription:
        """Open one subscription across every reachable relay."""
        relays = await self.connect(urls)
        subscription = Subscription(secrets.token_hex(8), filters)
        await subscription.start(relays)
        return subscription

    async def close(self) -> None:
        """Close every cached connection."""
        relays, self._relays = list(self._relays.values()), {}
        results = await asyncio.gather(*(r.close() for r in relays), return_exceptions=True)
        for relay, result in zip(relays, results):
            if isinstance(result, Exception):
                logger.debug(f"Error closing relay {relay.url}: {result}")
