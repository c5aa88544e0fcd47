# Re-export from local modules
from .config import Settings, configure_logging
from .errors import (
    AlreadyConnectedError,
    DecryptionError,
    HandshakeTimeoutError,
    NoPendingHandshakeError,
    NostrConnectError,
    NotConnectedError,
    RelayConnectionError,
    RemoteSignerError,
    RequestTimeoutError,
    RequestTooLargeError,
    SignerTimeoutError,
)
from .events import Event, EventTemplate, Filter
from .http_auth import NostrAuthHttpClient, get_authorization_header
from .rpc import RemoteSignerClient
from .signer import RemoteSigner
from .storage import StateStore
from .transport import RelayPool
from .types import Invitation, PendingHandshake, PublishResult, Session, SignerStatus

__all__ = [
    "AlreadyConnectedError",
    "DecryptionError",
    "Event",
    "EventTemplate",
    "Filter",
    "HandshakeTimeoutError",
    "Invitation",
    "NoPendingHandshakeError",
    "NostrAuthHttpClient",
    "NostrConnectError",
    "NotConnectedError",
    "PendingHandshake",
    "PublishResult",
    "RelayConnectionError",
    "RelayPool",
    "RemoteSigner",
    "RemoteSignerClient",
    "RemoteSignerError",
    "RequestTimeoutError",
    "RequestTooLargeError",
    "Session",
    "Settings",
    "SignerStatus",
    "SignerTimeoutError",
    "StateStore",
    "configure_logging",
    "get_authorization_header",
]
