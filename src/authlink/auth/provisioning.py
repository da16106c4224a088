"""Shared-secret generation and otpauth:// provisioning URIs."""

from __future__ import annotations

import secrets
from urllib.parse import quote

from authlink.auth import base32
from authlink.auth.totp import DIGITS, STEP_SECONDS

DEFAULT_SECRET_BYTES = 20  # 160 bits, what authenticator apps expect for SHA1


def generate_secret(byte_length: int = DEFAULT_SECRET_BYTES) -> bytes:
    """Generate a shared secret from the OS CSPRNG."""
    if byte_length <= 0:
        raise ValueError("byte_length must be positive")
    return secrets.token_bytes(byte_length)


def build_provisioning_uri(issuer: str, account_label: str, secret: bytes) -> str:
    """Build the otpauth:// URI an authenticator app scans to enroll."""
    issuer_q = quote(issuer, safe="")
    label_q = quote(account_label, safe="")
    return (
        f"otpauth://totp/{issuer_q}:{label_q}"
        f"?secret={base32.encode(secret)}&issuer={issuer_q}"
        f"&digits={DIGITS}&period={STEP_SECONDS}"
    )
