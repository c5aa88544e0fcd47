"""Tests for client keys, Schnorr signatures and NIP-19 encoding."""

import hashlib

import pytest

from nostr_connect_sdk.crypto.bech32 import (
    bech32_decode,
    bech32_encode,
    npub_decode,
    npub_encode,
    nsec_decode,
    nsec_encode,
)
from nostr_connect_sdk.crypto.keys import (
    generate_secret_key,
    get_public_key,
    is_valid_public_key,
    sign_schnorr,
    verify_schnorr,
)

NIP19_PUBKEY = "7e7e9c42a91bfef19fa929e5fda1b72e0ebc1a4c1141673e2794234d86addf4e"
NIP19_NPUB = "npub10elfcs4fr0l0r8af98jlmgdh9c8tcxjvz9qkw038js35mp4dma8qzvjptg"


class TestKeys:
    """Tests for secp256k1 key helpers."""

    def test_generator_point(self):
        """Secret key 1 maps to the x coordinate of G."""
        sk = bytes.fromhex("00" * 31 + "01")
        assert (
            get_public_key(sk)
            == "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
        )

    def test_generated_keys_are_distinct(self):
        keys = {generate_secret_key() for _ in range(5)}
        assert len(keys) == 5
        assert all(len(k) == 32 for k in keys)

    @pytest.mark.parametrize(
        "value,valid",
        [
            ("79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798", True),
            ("abc123", False),
            ("zz" * 32, False),
            ("ff" * 32, False),
            (None, False),
            (42, False),
        ],
    )
    def test_is_valid_public_key(self, value, valid):
        assert is_valid_public_key(value) is valid

    def test_schnorr_sign_verify(self):
        sk = generate_secret_key()
        message = hashlib.sha256(b"hello").digest()
        signature = sign_schnorr(sk, message)

        assert len(signature) == 64
        assert verify_schnorr(get_public_key(sk), message, signature)

    def test_schnorr_rejects_other_message(self):
        sk = generate_secret_key()
        signature = sign_schnorr(sk, hashlib.sha256(b"hello").digest())
        assert not verify_schnorr(get_public_key(sk), hashlib.sha256(b"bye").digest(), signature)

    def test_schnorr_rejects_other_key(self):
        message = hashlib.sha256(b"hello").digest()
        signature = sign_schnorr(generate_secret_key(), message)
        assert not verify_schnorr(get_public_key(generate_secret_key()), message, signature)

    def test_sign_requires_32_byte_message(self):
        with pytest.raises(ValueError):
            sign_schnorr(generate_secret_key(), b"short")


class TestBech32:
    """Tests for npub/nsec encoding."""

    def test_npub_known_vector(self):
        assert npub_encode(NIP19_PUBKEY) == NIP19_NPUB
        assert npub_decode(NIP19_NPUB) == NIP19_PUBKEY

    def test_nsec_roundtrip(self):
        sk = generate_secret_key()
        nsec = nsec_encode(sk)
        assert nsec.startswith("nsec1")
        assert nsec_decode(nsec) == sk

    def test_uppercase_accepted(self):
        assert npub_decode(NIP19_NPUB.upper()) == NIP19_PUBKEY

    def test_wrong_prefix_rejected(self):
        with pytest.raises(ValueError):
            nsec_decode(NIP19_NPUB)

    def test_bad_checksum_rejected(self):
        corrupted = NIP19_NPUB[:-1] + ("q" if NIP19_NPUB[-1] != "q" else "p")
        with pytest.raises(ValueError):
            npub_decode(corrupted)

    @pytest.mark.parametrize("value", ["", "npub", "Npub1abc", "npub1" + "b" * 58, None, 123])
    def test_malformed_rejected(self, value):
        with pytest.raises(ValueError):
            nsec_decode(value)

    def test_only_32_byte_keys_encode(self):
        with pytest.raises(ValueError):
            npub_encode("abc123")
        with pytest.raises(ValueError):
            nsec_encode(b"\x01" * 16)

    def test_generic_roundtrip(self):
        encoded = bech32_encode("note", b"\x00\x01\x02\xff")
        assert bech32_decode(encoded) == ("note", b"\x00\x01\x02\xff")
