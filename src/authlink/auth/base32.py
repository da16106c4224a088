"""RFC 4648 Base32 for shared secrets.

Encoding drops the ``=`` padding since authenticator apps neither need nor
expect it. Decoding is lenient the way authenticator apps are: it is
case-insensitive and ignores padding, spaces, dashes and anything else
outside ``A-Z2-7``. Trailing bits that do not fill a whole byte are dropped.
"""

from __future__ import annotations

import base64

from authlink.errors import InvalidSecretFormat

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_VALUES = {ch: i for i, ch in enumerate(ALPHABET)}


def encode(data: bytes) -> str:
    """Encode bytes as unpadded uppercase Base32."""
    return base64.b32encode(data).decode("ascii").rstrip("=")


def clean(text: str) -> str:
    """Uppercase ``text`` and keep only Base32 alphabet characters."""
    return "".join(ch for ch in text.upper() if ch in _VALUES)


def decode(text: str) -> bytes:
    """Decode Base32 text to bytes.

    Raises:
        InvalidSecretFormat: if nothing decodable remains after cleaning.
    """
    cleaned = clean(text)
    if not cleaned:
        raise InvalidSecretFormat("Secret contains no Base32 characters")

    out = bytearray()
    buffer = 0
    bits = 0
    for ch in cleaned:
        buffer = (buffer << 5) | _VALUES[ch]
        bits += 5
        if bits >= 8:
            bits -= 8
            out.append((buffer >> bits) & 0xFF)
    if not out:
        raise InvalidSecretFormat("Secret is too short to hold a single byte")
    return bytes(out)
