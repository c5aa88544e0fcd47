"""Terminal rendering of pairing QR codes and status messages."""

from __future__ import annotations

import io

import qrcode


def render_qr(data: str, small: bool = False) -> str:
    """Render data as a terminal QR code.

    Args:
        data: The data to encode (typically a nostrconnect:// URI)
        small: Use half-height block characters (harder to scan on some terminals)
    """
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)

    if small:
        out = io.StringIO()
        qr.print_ascii(out=out, invert=True)
        return out.getvalue().rstrip("\n")

    # Dark modules as spaces, light as full blocks: scans on dark terminals
    return "\n".join(
        "".join("  " if module else "██" for module in row) for row in qr.get_matrix()
    )


def format_connection_instructions(uri: str, qr_text: str, timeout: float = 300.0) -> str:
    """Frame the QR code with scanning instructions."""
    border = "─" * 60
    shown_uri = uri if len(uri) <= 55 else uri[:55] + "..."
    minutes = timeout / 60
    wait = f"{minutes:g} minutes" if timeout >= 60 else f"{timeout:g} seconds"
    qr_lines = "\n".join(f"│  {line}" for line in qr_text.split("\n"))
    return "\n".join(
        [
            f"┌{border}┐",
            "│  Nostr Remote Signing",
            f"├{border}┤",
            "│",
            "│  Scan this QR code with your Nostr signer app:",
            "│  Amber (Android) or Primal (Android/iOS)",
            "│",
            qr_lines,
            "│",
            "│  Or paste this URI into your bunker:",
            f"│  {shown_uri}",
            "│",
            f"│  Waiting for connection... (timeout in {wait})",
            f"└{border}┘",
        ]
    )


def format_status_message(connected: bool, pubkey: str | None = None) -> str:
    if connected and pubkey:
        short = f"{pubkey[:8]}...{pubkey[-8:]}" if len(pubkey) > 16 else pubkey
        return f"Connected as {short}"
    return "Not connected. Use connect to authenticate via NIP-46 remote signing."
