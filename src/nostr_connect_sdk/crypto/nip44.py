"""NIP-44 v2 payload encryption (secp256k1 ECDH, HKDF-SHA256, ChaCha20, HMAC-SHA256)."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import secrets
from typing import Any

from Crypto.Cipher import ChaCha20
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDFExpand

from ..errors import DecryptionError
from .keys import shared_x

VERSION = 2
SALT = b"nip44-v2"

MIN_PLAINTEXT_SIZE = 1
MAX_PLAINTEXT_SIZE = 65535


def get_conversation_key(secret_key: bytes, pubkey_hex: str) -> bytes:
    """Derive the conversation key shared by secret_key's owner and pubkey's owner.

    HKDF-extract of the ECDH x coordinate, salted with ``nip44-v2``.
    """
    try:
        shared = shared_x(secret_key, pubkey_hex)
    except ValueError as e:
        raise DecryptionError(f"invalid public key for key agreement: {e}") from e
    return hmac.new(SALT, shared, hashlib.sha256).digest()


def _message_keys(conversation_key: bytes, nonce: bytes) -> tuple[bytes, bytes, bytes]:
    keys = HKDFExpand(algorithm=hashes.SHA256(), length=76, info=nonce).derive(conversation_key)
    return keys[0:32], keys[32:44], keys[44:76]


def calc_padded_len(unpadded_len: int) -> int:
    """Padded plaintext length: power-of-two buckets, 32-byte minimum."""
    if unpadded_len <= 32:
        return 32
    next_power = 1 << (unpadded_len - 1).bit_length()
    chunk = 32 if next_power <= 256 else next_power // 8
    return chunk * ((unpadded_len - 1) // chunk + 1)


def _pad(plaintext: str) -> bytes:
    unpadded = plaintext.encode("utf-8")
    length = len(unpadded)
    if not MIN_PLAINTEXT_SIZE <= length <= MAX_PLAINTEXT_SIZE:
        raise ValueError(f"plaintext length {length} outside 1..{MAX_PLAINTEXT_SIZE}")
    return length.to_bytes(2, "big") + unpadded + b"\x00" * (calc_padded_len(length) - length)


def _unpad(padded: bytes) -> str:
    length = int.from_bytes(padded[0:2], "big")
    unpadded = padded[2 : 2 + length]
    if (
        length == 0
        or len(unpadded) != length
        or len(padded) != 2 + calc_padded_len(length)
    ):
        raise DecryptionError("invalid padding")
    try:
        return unpadded.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("plaintext is not valid UTF-8") from e


def encrypt(plaintext: str, conversation_key: bytes, nonce: bytes | None = None) -> str:
    """Encrypt a string into a base64 NIP-44 v2 payload."""
    if nonce is None:
        nonce = secrets.token_bytes(32)
    if len(nonce) != 32:
        raise ValueError("nonce must be 32 bytes")
    chacha_key, chacha_nonce, hmac_key = _message_keys(conversation_key, nonce)
    ciphertext = ChaCha20.new(key=chacha_key, nonce=chacha_nonce).encrypt(_pad(plaintext))
    mac = hmac.new(hmac_key, nonce + ciphertext, hashlib.sha256).digest()
    return base64.b64encode(bytes([VERSION]) + nonce + ciphertext + mac).decode("ascii")


def decrypt(payload: str, conversation_key: bytes) -> str:
    """Decrypt a NIP-44 v2 payload. Any failure raises DecryptionError."""
    if not isinstance(payload, str) or not payload:
        raise DecryptionError("empty payload")
    if payload[0] == "#":
        raise DecryptionError("unsupported encryption version")
    if not 132 <= len(payload) <= 87472:
        raise DecryptionError(f"invalid payload length: {len(payload)}")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError("invalid base64") from e
    if not 99 <= len(data) <= 65603:
        raise DecryptionError(f"invalid data length: {len(data)}")
    if data[0] != VERSION:
        raise DecryptionError(f"unknown encryption version {data[0]}")

    nonce, ciphertext, mac = data[1:33], data[33:-32], data[-32:]
    chacha_key, chacha_nonce, hmac_key = _message_keys(conversation_key, nonce)
    expected = hmac.new(hmac_key, nonce + ciphertext, hashlib.sha256).digest()
    if not hmac.compare_digest(expected, mac):
        raise DecryptionError("invalid MAC")
    padded = ChaCha20.new(key=chacha_key, nonce=chacha_nonce).decrypt(ciphertext)
    return _unpad(padded)


class ConversationSession:
    """NIP-44 session for encrypting/decrypting JSON messages with one peer."""

    def __init__(self, secret_key: bytes, peer_pubkey: str):
        self.peer_pubkey = peer_pubkey
        self._key = get_conversation_key(secret_key, peer_pubkey)

    def encrypt(self, obj: Any) -> str:
        """Encrypt a JSON-serializable object."""
        return encrypt(json.dumps(obj), self._key)

    def decrypt(self, payload: str) -> Any:
        """Decrypt a payload and parse it as JSON."""
        plaintext = decrypt(payload, self._key)
        try:
            return json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise DecryptionError("decrypted payload is not JSON") from e
