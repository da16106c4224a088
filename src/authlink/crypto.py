"""AES-256-GCM encryption for TOTP shared secrets stored at rest."""

from __future__ import annotations

import base64
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from authlink.config import settings

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM


def _get_key() -> bytes:
    raw = settings.authlink_master_key
    if not raw:
        raise RuntimeError("AUTHLINK_MASTER_KEY not set")
    key = base64.b64decode(raw)
    if len(key) != 32:
        raise ValueError("AUTHLINK_MASTER_KEY must be 32 bytes (base64-encoded)")
    return key


def encrypt(plaintext: bytes, associated_data: bytes | None = None) -> bytes:
    """Encrypt bytes. Returns nonce + ciphertext."""
    key = _get_key()
    nonce = os.urandom(_NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, associated_data)


def decrypt(token: bytes, associated_data: bytes | None = None) -> bytes:
    """Decrypt a nonce + ciphertext token back to plaintext bytes."""
    key = _get_key()
    nonce, ct = token[:_NONCE_SIZE], token[_NONCE_SIZE:]
    return AESGCM(key).decrypt(nonce, ct, associated_data)
