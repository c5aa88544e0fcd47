"""Configuration settings for the Nostr Connect SDK."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Default relays for NIP-46 communication
DEFAULT_RELAYS = [
    "wss://relay.ditto.pub",
    "wss://relay.primal.net",
]

DEFAULT_APP_NAME = "Nostr Connect SDK"
DEFAULT_PERMISSIONS = ["sign_event"]

HANDSHAKE_TIMEOUT = 5 * 60.0
REQUEST_TIMEOUT = 30.0
RELAY_CONNECT_TIMEOUT = 10.0
PUBLISH_TIMEOUT = 10.0

SESSION_FILE = "auth.json"
PENDING_FILE = "pending.json"


def default_config_dir() -> Path:
    """Return the config directory, honouring NOSTR_CONNECT_CONFIG_DIR and XDG_CONFIG_HOME."""
    override = os.getenv("NOSTR_CONNECT_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    base = Path(xdg_config).expanduser() if xdg_config else Path.home() / ".config"
    return base / "nostr-connect"


def parse_relay_list(value: str | None) -> list[str]:
    """Split a comma-separated relay list, keeping only websocket URLs."""
    if not value:
        return []
    relays = [r.strip() for r in value.split(",")]
    return [r for r in relays if r.startswith(("wss://", "ws://"))]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={raw!r}, using {default}")
        return default
    return value


@dataclass
class Settings:
    """Settings for the remote signer, relay transport and persistence.

    Build from the environment with ``Settings.from_env()``; every field has a
    usable default so ``Settings()`` works out of the box.
    """

    relays: list[str] = field(default_factory=lambda: list(DEFAULT_RELAYS))
    config_dir: Path = field(default_factory=default_config_dir)
    app_name: str = DEFAULT_APP_NAME
    permissions: list[str] = field(default_factory=lambda: list(DEFAULT_PERMISSIONS))
    handshake_timeout: float = HANDSHAKE_TIMEOUT
    request_timeout: float = REQUEST_TIMEOUT
    relay_connect_timeout: float = RELAY_CONNECT_TIMEOUT
    publish_timeout: float = PUBLISH_TIMEOUT
    log_level: str = "INFO"
    transport_log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> Settings:
        """Initialize from NOSTR_CONNECT_* environment variables."""
        relays = parse_relay_list(os.getenv("NOSTR_CONNECT_RELAYS")) or list(DEFAULT_RELAYS)
        perms = [
            p.strip() for p in os.getenv("NOSTR_CONNECT_PERMS", "").split(",") if p.strip()
        ] or list(DEFAULT_PERMISSIONS)

        return cls(
            relays=relays,
            config_dir=default_config_dir(),
            app_name=os.getenv("NOSTR_CONNECT_APP_NAME", DEFAULT_APP_NAME),
            permissions=perms,
            handshake_timeout=_env_float("NOSTR_CONNECT_HANDSHAKE_TIMEOUT", HANDSHAKE_TIMEOUT),
            request_timeout=_env_float("NOSTR_CONNECT_REQUEST_TIMEOUT", REQUEST_TIMEOUT),
            relay_connect_timeout=_env_float("NOSTR_CONNECT_RELAY_TIMEOUT", RELAY_CONNECT_TIMEOUT),
            publish_timeout=_env_float("NOSTR_CONNECT_PUBLISH_TIMEOUT", PUBLISH_TIMEOUT),
            log_level=os.getenv("NOSTR_CONNECT_LOG_LEVEL", "INFO").upper(),
            transport_log_level=os.getenv("NOSTR_CONNECT_TRANSPORT_LOG_LEVEL", "WARNING").upper(),
        )

    @property
    def session_path(self) -> Path:
        return Path(self.config_dir) / SESSION_FILE

    @property
    def pending_path(self) -> Path:
        return Path(self.config_dir) / PENDING_FILE


def configure_logging(settings: Settings) -> None:
    """Apply log levels to the SDK and to the websockets library.

    Relays are chatty (NOTICE frames, ping timeouts, disconnects); those are
    routed through the ``websockets`` logger and the transport's DEBUG logs
    rather than printed.
    """
    logging.getLogger("nostr_connect_sdk").setLevel(settings.log_level)
    logging.getLogger("websockets").setLevel(settings.transport_log_level)
