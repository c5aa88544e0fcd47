"""
Remote signing exceptions.

Every failure the SDK reports is a NostrConnectError subclass carrying an
actionable message, so tool layers can format it without special cases.
"""


class NostrConnectError(Exception):
    """Base class for all SDK errors."""

    pass


class RelayConnectionError(NostrConnectError):
    """
    Raised when no relay could be used for an operation.

    Examples:
        - every relay in the set is unreachable
        - no relay accepted a published request
        - every relay closed a subscription before it resolved
    """

    pass


class DecryptionError(NostrConnectError):
    """Raised when a NIP-44 payload cannot be authenticated or decoded."""

    pass


class SignerTimeoutError(NostrConnectError):
    """Raised when a bounded wait on the remote signer expires."""

    pass


class HandshakeTimeoutError(SignerTimeoutError):
    """Raised when no pairing acknowledgment arrived in time."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:g}s waiting for the remote signer to connect")


class RequestTimeoutError(SignerTimeoutError):
    """Raised when a remote signer request got no matching response in time."""

    def __init__(self, method: str, timeout: float):
        self.method = method
        self.timeout = timeout
        super().__init__(f"Request '{method}' timed out after {timeout:g}s")


class RemoteSignerError(NostrConnectError):
    """Raised when the remote signer declined or failed a request."""

    pass


class RequestTooLargeError(NostrConnectError):
    """Raised when a request does not fit in one NIP-44 payload."""

    def __init__(self, method: str, max_size: int):
        self.method = method
        super().__init__(f"Request '{method}' is too large to encrypt (max {max_size} bytes)")


class NotConnectedError(NostrConnectError):
    """Raised when an operation needs a session and none exists."""

    def __init__(self, message: str = "Not connected. Use connect first to authenticate."):
        super().__init__(message)


class AlreadyConnectedError(NostrConnectError):
    """Raised when connecting while a session already exists."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(
            f"Already connected as {identity}. "
            "Use disconnect first if you want to reconnect with a different identity."
        )


class NoPendingHandshakeError(NostrConnectError):
    """Raised when completing a two-step connection that was never initiated."""

    def __init__(self):
        super().__init__("No pending connection. Run connect first to generate a QR code.")
