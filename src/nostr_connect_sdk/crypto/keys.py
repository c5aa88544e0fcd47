"""secp256k1 keys and BIP-340 Schnorr signatures for relay-channel authentication.

Only the per-connection client keypair ever passes through here; the user's
identity key stays on the remote signer.
"""

from __future__ import annotations

import secrets

from coincurve import PrivateKey, PublicKey, PublicKeyXOnly


def generate_secret_key() -> bytes:
    """Generate a fresh 32-byte secp256k1 secret key."""
    while True:
        candidate = secrets.token_bytes(32)
        try:
            PrivateKey(candidate)
        except ValueError:
            # Out of curve order range, astronomically rare
            continue
        return candidate


def get_public_key(secret_key: bytes) -> str:
    """Return the x-only public key (hex) for a secret key."""
    return PublicKeyXOnly.from_secret(secret_key).format().hex()


def is_valid_public_key(pubkey_hex: object) -> bool:
    """Check that a value is a 64-char hex x-only public key on the curve."""
    if not isinstance(pubkey_hex, str) or len(pubkey_hex) != 64:
        return False
    try:
        PublicKeyXOnly(bytes.fromhex(pubkey_hex))
    except ValueError:
        return False
    return True


def sign_schnorr(secret_key: bytes, message: bytes) -> bytes:
    """Sign a 32-byte message hash with BIP-340 Schnorr."""
    if len(message) != 32:
        raise ValueError("message must be 32 bytes")
    return PrivateKey(secret_key).sign_schnorr(message)


def verify_schnorr(pubkey_hex: str, message: bytes, signature: bytes) -> bool:
    """Verify a BIP-340 signature; malformed inputs verify as False."""
    try:
        return PublicKeyXOnly(bytes.fromhex(pubkey_hex)).verify(signature, message)
    except ValueError:
        return False


def shared_x(secret_key: bytes, pubkey_hex: str) -> bytes:
    """ECDH: the unhashed 32-byte x coordinate of secret_key * lift_x(pubkey)."""
    point = PublicKey(b"\x02" + bytes.fromhex(pubkey_hex))
    return point.multiply(secret_key).format(compressed=True)[1:]
