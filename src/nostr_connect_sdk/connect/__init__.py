from .handshake import open_handshake_subscription, wait_for_handshake
from .uri import NostrConnectURI, build_nostrconnect_uri, generate_secret, parse_nostrconnect_uri

__all__ = [
    "NostrConnectURI",
    "build_nostrconnect_uri",
    "generate_secret",
    "open_handshake_subscription",
    "parse_nostrconnect_uri",
    "wait_for_handshake",
]
