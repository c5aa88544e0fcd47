"""NIP-19 bech32 entities (npub / nsec) for keys shown to humans or stored at rest."""

from __future__ import annotations

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)

NPUB = "npub"
NSEC = "nsec"


def _polymod(values: list[int]) -> int:
    chk = 1
    for v in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ v
        for i, g in enumerate(_GENERATOR):
            if (top >> i) & 1:
                chk ^= g
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_bits(data: bytes | list[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    out: list[int] = []
    maxv = (1 << to_bits) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            raise ValueError("invalid data for bit conversion")
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & maxv)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or ((acc << (to_bits - bits)) & maxv):
        raise ValueError("invalid padding")
    return out


def bech32_encode(hrp: str, data: bytes) -> str:
    """Encode raw bytes under a human readable prefix."""
    words = _convert_bits(data, 8, 5, True)
    polymod = _polymod(_hrp_expand(hrp) + words + [0] * 6) ^ 1
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(_CHARSET[w] for w in words + checksum)


def bech32_decode(value: str) -> tuple[str, bytes]:
    """Decode a bech32 string into (hrp, raw bytes). Raises ValueError when invalid."""
    if not isinstance(value, str):
        raise ValueError("bech32 value must be a string")
    if value.lower() != value and value.upper() != value:
        raise ValueError("mixed case bech32 string")
    value = value.lower()
    pos = value.rfind("1")
    if pos < 1 or pos + 7 > len(value):
        raise ValueError("invalid bech32 separator position")
    hrp = value[:pos]
    try:
        words = [_CHARSET.index(c) for c in value[pos + 1 :]]
    except ValueError:
        raise ValueError("invalid bech32 character") from None
    if _polymod(_hrp_expand(hrp) + words) != 1:
        raise ValueError("invalid bech32 checksum")
    return hrp, bytes(_convert_bits(words[:-6], 5, 8, False))


def _decode_key(value: str, expected_hrp: str) -> bytes:
    hrp, data = bech32_decode(value)
    if hrp != expected_hrp:
        raise ValueError(f"expected {expected_hrp}, got {hrp}")
    return _check_key(data, expected_hrp)


def _check_key(data: bytes, hrp: str) -> bytes:
    if len(data) != 32:
        raise ValueError(f"{hrp} must encode 32 bytes")
    return data


def npub_encode(pubkey_hex: str) -> str:
    return bech32_encode(NPUB, _check_key(bytes.fromhex(pubkey_hex), NPUB))


def npub_decode(npub: str) -> str:
    return _decode_key(npub, NPUB).hex()


def nsec_encode(secret_key: bytes) -> str:
    return bech32_encode(NSEC, _check_key(secret_key, NSEC))


def nsec_decode(nsec: str) -> bytes:
    return _decode_key(nsec, NSEC)
