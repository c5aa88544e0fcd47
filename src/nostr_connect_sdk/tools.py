"""
Tool commands over a RemoteSigner.

Each command returns a string (a plain message or JSON) and never raises, so
it can be handed directly to a tool-calling host. Package errors are turned
into user-facing messages here and nowhere else.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any

from .config import parse_relay_list
from .display import format_status_message
from .errors import NostrConnectError
from .events import Event, EventTemplate, now
from .signer import InvitationCallback, RemoteSigner
from .types import Invitation

logger = logging.getLogger(__name__)

NOT_CONNECTED = "Not connected. Use connect first to authenticate."


def _failure(error: str) -> str:
    return json.dumps({"error": error, "success": False})


def _identity(signer: RemoteSigner) -> str | None:
    return signer.get_user_npub() or signer.get_user_pubkey()


def _log_invitation(invitation: Invitation) -> None:
    logger.info("\n" + invitation.instructions)


def _parse_relays(relays: str | None) -> list[str] | None:
    if not relays:
        return None
    return parse_relay_list(relays) or None


async def connect(
    signer: RemoteSigner,
    relays: str | None = None,
    on_invitation: InvitationCallback | None = None,
) -> str:
    """Pair with a remote signer, blocking until the QR code is scanned and approved.

    Args:
        signer: the facade to connect
        relays: comma-separated relay URLs (defaults to the configured relays)
        on_invitation: shows the invitation while waiting (logged by default)
    """
    if signer.is_connected():
        return (
            f"Already connected as {_identity(signer)}. "
            "Use disconnect first if you want to reconnect with a different identity."
        )

    shown: list[Invitation] = []

    async def show(invitation: Invitation) -> None:
        shown.append(invitation)
        result = (on_invitation or _log_invitation)(invitation)
        if inspect.isawaitable(result):
            await result

    try:
        await signer.connect(relays=_parse_relays(relays), on_invitation=show)
    except NostrConnectError as e:
        return f"Connection failed: {e}"

    message = f"Connected successfully!\nUser pubkey: {_identity(signer)}"
    if shown:
        return f"{shown[0].instructions}\n\n{message}"
    return message


async def initiate(signer: RemoteSigner, relays: str | None = None) -> str:
    """Create an invitation without waiting; finish with complete()."""
    try:
        invitation = await signer.initiate_connection(relays=_parse_relays(relays))
    except NostrConnectError as e:
        return f"Connection failed: {e}"
    return (
        f"{invitation.instructions}\n\n"
        "After scanning and approving, run complete to finish connecting."
    )


async def complete(signer: RemoteSigner, timeout: float | None = None) -> str:
    """Wait for the remote signer to acknowledge a pending invitation."""
    if signer.is_connected():
        return f"Already connected as {_identity(signer)}."
    if not signer.has_pending_connection():
        return "No pending connection. Run connect first to generate a QR code."

    try:
        await signer.complete_connection(timeout=timeout)
    except NostrConnectError as e:
        return f"Connection failed: {e}"
    return f"Connected successfully!\nUser pubkey: {_identity(signer)}"


async def status(signer: RemoteSigner) -> str:
    current = signer.status()
    config_dir = str(signer.settings.config_dir)
    message = format_status_message(current.connected, current.npub or current.user_pubkey)
    if current.connected:
        return json.dumps(
            {**current.to_dict(), "message": message, "configDir": config_dir}, indent=2
        )
    return json.dumps(
        {"connected": False, "message": message, "configDir": config_dir}, indent=2
    )


async def disconnect(signer: RemoteSigner) -> str:
    if not signer.is_connected():
        return "Not currently connected. Nothing to disconnect."
    who = _identity(signer)
    await signer.disconnect()
    return f"Disconnected from {who}. Credentials cleared. Use connect to authenticate again."


async def sign_event(
    signer: RemoteSigner,
    kind: int,
    content: str,
    tags: str | None = None,
    created_at: int | None = None,
) -> str:
    """Sign an event with the user's key held by the remote signer.

    Args:
        kind: event kind number
        content: event content
        tags: JSON array of tags, e.g. ``[["p", "<pubkey>"], ["e", "<event id>"]]``
        created_at: unix timestamp (defaults to now)
    """
    if not signer.is_connected():
        return _failure(NOT_CONNECTED)

    parsed_tags: Any = []
    if tags:
        try:
            parsed_tags = json.loads(tags)
        except ValueError:
            return _failure("Invalid tags JSON format")
        if not isinstance(parsed_tags, list):
            return _failure("Tags must be a JSON array")

    try:
        template = EventTemplate.from_dict(
            {
                "kind": kind,
                "content": content,
                "tags": parsed_tags,
                "created_at": created_at if created_at is not None else now(),
            }
        )
    except (TypeError, ValueError) as e:
        return _failure(f"Invalid event: {e}")

    try:
        event = await signer.sign_event(template)
    except NostrConnectError as e:
        return _failure(f"Signing failed: {e}")
    return json.dumps({"success": True, "event": event.to_dict()}, indent=2)


async def get_pubkey(signer: RemoteSigner) -> str:
    if not signer.is_connected():
        return json.dumps({"error": NOT_CONNECTED, "connected": False})
    current = signer.status()
    return json.dumps(
        {"connected": True, "pubkey": current.user_pubkey, "npub": current.npub}, indent=2
    )


async def publish(signer: RemoteSigner, event: str) -> str:
    """Publish a signed event (JSON) to every relay; succeeds if any relay accepts it."""
    try:
        parsed = Event.from_dict(json.loads(event))
    except (TypeError, ValueError) as e:
        return _failure(f"Invalid event: {e}")

    try:
        result = await signer.publish_event(parsed)
    except NostrConnectError as e:
        return _failure(f"Publishing failed: {e}")
    if not result.ok:
        return _failure(f"No relay accepted the event (0/{result.attempted})")
    return json.dumps(
        {"success": True, "id": parsed.id, "accepted": result.accepted, "attempted": result.attempted},
        indent=2,
    )
