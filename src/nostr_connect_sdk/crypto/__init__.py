"""Cryptographic primitives: client keys, NIP-19 encoding and NIP-44 encryption."""

from .bech32 import npub_decode, npub_encode, nsec_decode, nsec_encode
from .keys import generate_secret_key, get_public_key, is_valid_public_key
from .nip44 import ConversationSession, decrypt, encrypt, get_conversation_key

__all__ = [
    "ConversationSession",
    "decrypt",
    "encrypt",
    "generate_secret_key",
    "get_conversation_key",
    "get_public_key",
    "is_valid_public_key",
    "npub_decode",
    "npub_encode",
    "nsec_decode",
    "nsec_encode",
]
