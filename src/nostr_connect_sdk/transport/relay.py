"""WebSocket connection to a single Nostr relay."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..errors import RelayConnectionError
from ..events import Event, Filter

logger = logging.getLogger(__name__)

# Queue item pushed when a relay stops feeding a subscription
RELAY_GONE = None


class RelayConnection:
    """One relay socket with a background reader dispatching NIP-01 frames.

    ``EVENT`` frames go to the queue registered for their subscription id,
    ``OK`` frames resolve the publish future keyed by event id.
    """

    def __init__(self, url: str, connect_timeout: float = 10.0, publish_timeout: float = 10.0):
        self.url = url
        self.connect_timeout = connect_timeout
        self.publish_timeout = publish_timeout
        self._ws: Any = None
        self._reader_task: asyncio.Task | None = None
        self._subscriptions: dict[str, asyncio.Queue] = {}
        self._pending_oks: dict[str, asyncio.Future] = {}
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Open the socket unless already open."""
        async with self._lock:
            if self._connected:
                return
            try:
                self._ws = await websockets.connect(self.url, open_timeout=self.connect_timeout)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                raise RelayConnectionError(f"Could not connect to {self.url}: {e}") from e

            self._connected = True
            self._reader_task = asyncio.create_task(self._read_loop())
            logger.debug(f"Connected to relay {self.url}")

    async def _read_loop(self) -> None:
        """Background task to dispatch incoming relay frames."""
        try:
            while self._connected and self._ws:
                raw = await self._ws.recv()
                self._dispatch(raw)
        except ConnectionClosed as e:
            logger.debug(f"Relay {self.url} closed the connection: {e}")
        except asyncio.CancelledError:
            pass
        finally:
            self._mark_disconnected()

    def _mark_disconnected(self) -> None:
        self._connected = False
        for future in self._pending_oks.values():
            if not future.done():
                future.set_exception(RelayConnectionError(f"Relay {self.url} disconnected"))
        self._pending_oks.clear()
        for queue in self._subscriptions.values():
            queue.put_nowait((self.url, RELAY_GONE))
        self._subscriptions.clear()

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-JSON frame from {self.url}")
            return
        if not isinstance(msg, list) or len(msg) < 2 or not isinstance(msg[0], str):
            logger.debug(f"Ignoring malformed frame from {self.url}")
            return

        msg_type = msg[0]
        if msg_type == "EVENT" and len(msg) >= 3 and isinstance(msg[1], str):
            queue = self._subscriptions.get(msg[1])
            if queue is not None:
                queue.put_nowait((self.url, msg[2]))
        elif msg_type == "OK" and len(msg) >= 3 and isinstance(msg[1], str):
            future = self._pending_oks.pop(msg[1], None)
            if future and not future.done():
                future.set_result((msg[2] is True, str(msg[3]) if len(msg) > 3 else ""))
        elif msg_type == "CLOSED" and isinstance(msg[1], str):
            queue = self._subscriptions.pop(msg[1], None)
            reason = msg[2] if len(msg) > 2 else ""
            logger.debug(f"Relay {self.url} closed subscription {msg[1]}: {reason}")
            if queue is not None:
                queue.put_nowait((self.url, RELAY_GONE))
        elif msg_type == "EOSE":
            logger.debug(f"Relay {self.url} finished stored events for {msg[1]}")
        elif msg_type == "NOTICE":
            logger.debug(f"Relay {self.url} notice: {msg[1]}")
        else:
            logger.debug(f"Ignoring {msg_type} frame from {self.url}")

    async def _send(self, message: list) -> None:
        if not self._connected or not self._ws:
            raise RelayConnectionError(f"Relay {self.url} is not connected")
        try:
            await self._ws.send(json.dumps(message))
        except ConnectionClosed as e:
            self._mark_disconnected()
            raise RelayConnectionError(f"Relay {self.url} disconnected: {e}") from e

    async def publish(self, event: Event) -> bool:
        """Send an event and wait for the relay's OK. Returns whether it was accepted."""
        future = asyncio.get_running_loop().create_future()
        self._pending_oks[event.id] = future
        try:
            await self._send(["EVENT", event.to_dict()])
            accepted, message = await asyncio.wait_for(future, timeout=self.publish_timeout)
        except asyncio.TimeoutError:
            raise RelayConnectionError(
                f"Relay {self.url} did not acknowledge event within {self.publish_timeout:g}s"
            ) from None
        finally:
            self._pending_oks.pop(event.id, None)

        if not accepted:
            logger.debug(f"Relay {self.url} rejected event {event.id[:8]}: {message}")
        return accepted

    async def subscribe(self, sub_id: str, filters: list[Filter], queue: asyncio.Queue) -> None:
        """Register a queue for a subscription and send the REQ."""
        self._subscriptions[sub_id] = queue
        try:
            await self._send(["REQ", sub_id, *[f.to_dict() for f in filters]])
        except RelayConnectionError:
            self._subscriptions.pop(sub_id, None)
            raise

    async def unsubscribe(self, sub_id: str) -> None:
        """Drop a subscription locally and, if still connected, tell the relay."""
        if self._subscriptions.pop(sub_id, None) is None or not self._connected:
            return
        try:
            await self._send(["CLOSE", sub_id])
        except RelayConnectionError as e:
            logger.debug(f"Could not close subscription {sub_id} on {self.url}: {e}")

    async def close(self) -> None:
        """Close the socket and stop the reader."""
        self._connected = False
        if self._reader_task:
            self._reader_task.cancel()
            self._reader_task = None
        if self._ws:
            ws, self._ws = self._ws, None
            await ws.close()
        self._mark_disconnected()
