"""
NIP-46 remote signer facade.

Pairs with a remote signer (bunker) through a nostrconnect:// invitation,
persists the resulting session, and signs/publishes events through it. The
user's private key never reaches this process: only a throwaway client key
used to talk to the signer over relays is generated and stored.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .config import Settings
from .connect.handshake import open_handshake_subscription, wait_for_handshake
from .connect.uri import build_nostrconnect_uri, generate_secret
from .crypto.keys import generate_secret_key, get_public_key
from .display import format_connection_instructions, render_qr
from .errors import (
    AlreadyConnectedError,
    NoPendingHandshakeError,
    NostrConnectError,
    NotConnectedError,
)
from .events import Event, EventTemplate
from .rpc import RemoteSignerClient
from .storage import StateStore
from .transport.pool import RelayPool, Subscription, unique_relays
from .types import Invitation, PendingHandshake, PublishResult, Session, SignerStatus

logger = logging.getLogger(__name__)

InvitationCallback = Callable[[Invitation], Awaitable[None] | None]


class RemoteSigner:
    """Signs events through a paired remote signer.

    One instance owns the in-memory view of the session; the persisted
    records are the source of truth and are re-read whenever connection state
    matters, so a session cleared by another process is noticed.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        store: StateStore | None = None,
        pool: RelayPool | None = None,
    ):
        self.settings = settings or Settings()
        self.store = store or StateStore.from_settings(self.settings)
        self.pool = pool or RelayPool(
            connect_timeout=self.settings.relay_connect_timeout,
            publish_timeout=self.settings.publish_timeout,
        )
        self._relays: list[str] = list(self.settings.relays)
        self._session: Session | None = None
        self._client: RemoteSignerClient | None = None
        self._pending: PendingHandshake | None = None
        self._pending_subscription: Subscription | None = None

        # Try to restore from saved state
        self._refresh_session()

    def _refresh_session(self) -> Session | None:
        """Sync the cached session with the store."""
        session = self.store.sessions.load()
        if session is None:
            if self._session is not None:
                logger.info("Persisted session is gone, dropping cached session")
            self._session = None
            self._client = None
            return None
        if session != self._session:
            self._session = session
            self._client = None
            self._relays = list(session.relays)
        return session

    def _require_session(self) -> Session:
        session = self._refresh_session()
        if session is None:
            raise NotConnectedError()
        return session

    def _ensure_client(self, session: Session) -> RemoteSignerClient:
        """Rebuild the live channel from the session lazily (e.g. after a restart)."""
        if self._client is None:
            self._client = RemoteSignerClient(
                self.pool,
                session.client_secret_key,
                session.remote_signer_pubkey,
                unique_relays(session.relays),
                request_timeout=self.settings.request_timeout,
            )
        return self._client

    def is_connected(self) -> bool:
        """Whether a complete session exists. Never touches the network."""
        return self._refresh_session() is not None

    def get_user_pubkey(self) -> str | None:
        session = self._refresh_session()
        return session.user_pubkey if session else None

    def get_user_npub(self) -> str | None:
        session = self._refresh_session()
        return session.npub if session else None

    def get_relays(self) -> list[str]:
        return list(self._relays)

    def set_relays(self, relays: list[str]) -> None:
        """Set relays for the next connection; an empty list restores the defaults."""
        self._relays = list(relays) if relays else list(self.settings.relays)

    def status(self) -> SignerStatus:
        session = self._refresh_session()
        return SignerStatus(
            connected=session is not None,
            user_pubkey=session.user_pubkey if session else None,
            npub=session.npub if session else None,
            relays=self.get_relays(),
        )

    def _new_pending(self, relays: list[str] | None) -> PendingHandshake:
        if relays:
            self._relays = list(relays)
        relays = unique_relays(self._relays)
        client_secret_key = generate_secret_key()
        secret = generate_secret()
        uri = build_nostrconnect_uri(
            client_pubkey=get_public_key(client_secret_key),
            relays=relays,
            secret=secret,
            name=self.settings.app_name,
            perms=self.settings.permissions,
        )
        return PendingHandshake(
            client_secret_key=client_secret_key,
            secret=secret,
            nostrconnect_uri=uri,
            relays=relays,
        )

    def _invitation(self, pending: PendingHandshake, timeout: float) -> Invitation:
        qr = render_qr(pending.nostrconnect_uri)
        return Invitation(
            uri=pending.nostrconnect_uri,
            qr=qr,
            instructions=format_connection_instructions(pending.nostrconnect_uri, qr, timeout),
            client_pubkey=pending.client_pubkey,
            relays=list(pending.relays),
        )

    def _check_not_connected(self) -> None:
        session = self._refresh_session()
        if session is not None:
            raise AlreadyConnectedError(session.identity)

    async def _establish(
        self,
        pending: PendingHandshake,
        timeout: float,
        subscription: Subscription | None = None,
    ) -> Session:
        """Wait for the acknowledgment, resolve the user key and persist the session."""
        remote_signer_pubkey = await wait_for_handshake(
            self.pool,
            pending.client_secret_key,
            pending.relays,
            pending.secret,
            timeout,
            subscription=subscription,
        )
        logger.info(f"Remote signer {remote_signer_pubkey[:8]}... acknowledged the invitation")

        client = RemoteSignerClient(
            self.pool,
            pending.client_secret_key,
            remote_signer_pubkey,
            pending.relays,
            request_timeout=self.settings.request_timeout,
        )
        try:
            user_pubkey = await client.get_public_key()
        except NostrConnectError as e:
            logger.warning(
                f"get_public_key failed ({e}); using the remote signer key as the user key"
            )
            user_pubkey = remote_signer_pubkey

        session = Session(
            client_secret_key=pending.client_secret_key,
            remote_signer_pubkey=remote_signer_pubkey,
            user_pubkey=user_pubkey,
            relays=list(pending.relays),
            permissions=list(self.settings.permissions),
        )
        self.store.sessions.save(session)
        self._session = session
        self._client = client
        self._relays = list(session.relays)
        logger.info(f"Connected as {session.identity}")
        return session

    async def connect(
        self,
        relays: list[str] | None = None,
        timeout: float | None = None,
        on_invitation: InvitationCallback | None = None,
    ) -> Session:
        """Pair with a remote signer in one blocking call.

        Args:
            relays: relays for the invitation (defaults to the configured set)
            timeout: seconds to wait for the signer (defaults to handshake_timeout)
            on_invitation: called with the invitation before waiting, to show the QR code
        """
        self._check_not_connected()
        timeout = timeout if timeout is not None else self.settings.handshake_timeout

        pending = self._new_pending(relays)
        # Relays don't store acknowledgments: listen before the QR code is shown
        subscription = await open_handshake_subscription(
            self.pool, pending.client_secret_key, pending.relays
        )
        try:
            invitation = self._invitation(pending, timeout)
            if on_invitation is not None:
                result = on_invitation(invitation)
                if inspect.isawaitable(result):
                    await result

            # The candidate key lives only in this frame; a failure discards it
            return await self._establish(pending, timeout, subscription)
        finally:
            await subscription.close()

    async def initiate_connection(self, relays: list[str] | None = None) -> Invitation:
        """Step 1 of the two-step flow: create and persist the invitation, don't wait.

        Acknowledgments are collected from here on, so one that arrives before
        complete_connection() is called in this process is not lost.
        """
        self._check_not_connected()
        if self._pending is not None or self.store.pending.exists():
            logger.info("Replacing the previous pending connection")

        pending = self._new_pending(relays)
        subscription = await open_handshake_subscription(
            self.pool, pending.client_secret_key, pending.relays
        )
        await self._close_pending_subscription()
        self._pending = pending
        self._pending_subscription = subscription
        # Persist so the handshake can complete after a process restart
        self.store.pending.save(pending)
        return self._invitation(pending, self.settings.handshake_timeout)

    def has_pending_connection(self) -> bool:
        if self._pending is not None:
            return True
        return self.store.pending.load() is not None

    async def _close_pending_subscription(self) -> None:
        subscription, self._pending_subscription = self._pending_subscription, None
        if subscription is not None:
            await subscription.close()

    async def _clear_pending(self) -> None:
        await self._close_pending_subscription()
        self._pending = None
        self.store.pending.clear()

    async def complete_connection(self, timeout: float | None = None) -> Session:
        """Step 2 of the two-step flow: wait for the signer to acknowledge.

        After a restart only acknowledgments sent from now on are seen.
        """
        self._check_not_connected()
        pending = self._pending or self.store.pending.load()
        if pending is None:
            raise NoPendingHandshakeError()

        subscription = None
        if pending is self._pending:
            subscription, self._pending_subscription = self._pending_subscription, None
        timeout = timeout if timeout is not None else self.settings.handshake_timeout
        try:
            return await self._establish(pending, timeout, subscription)
        finally:
            await self._clear_pending()

    async def sign_event(self, template: EventTemplate | dict[str, Any]) -> Event:
        """Sign an event template with the user's key via the remote signer."""
        session = self._require_session()
        if isinstance(template, dict):
            template = EventTemplate.from_dict(template)
        client = self._ensure_client(session)
        return await client.sign_event(template)

    async def disconnect(self) -> str | None:
        """Forget the session and any pending handshake.

        Returns:
            The npub that was connected, if any.
        """
        npub = self.get_user_npub()
        await self._close_pending_subscription()
        try:
            await self.pool.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing relays: {e}")

        self._client = None
        self._session = None
        self.store.sessions.clear()
        await self._clear_pending()
        if npub:
            logger.info(f"Disconnected from {npub}")
        return npub

    def _publish_relays(self) -> list[str]:
        session = self._refresh_session()
        return list(session.relays) if session else list(self._relays)

    async def publish_event(self, event: Event) -> PublishResult:
        """Publish a signed event to every relay; reports accepted/attempted."""
        return await self.pool.publish(self._publish_relays(), event)

    async def publish_events(self, events: list[Event]) -> PublishResult:
        """Publish several events; counts aggregate over events x relays."""
        relays = self._publish_relays()
        total = PublishResult(accepted=0, attempted=0)
        for event in events:
            total = total + await self.pool.publish(relays, event)
        return total

    async def close(self) -> None:
        """Release relay connections without touching persisted state."""
        self._client = None
        await self._close_pending_subscription()
        await self.pool.close()

    async def __aenter__(self) -> RemoteSigner:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
