"""
SESSION ENCRYPTION
==================
Authenticated encryption for session payloads with key rotation.

FLOW:
- encrypt_bytes() seals plaintext under the current key.
- decrypt_bytes() opens a box with the first key that authenticates.
- encode_token()/decode_token() move boxes in and out of cookie-safe text.

WHY:
- Session data must be unreadable and tamper-evident on the client and in stores.

HOW:
- XSalsa20-Poly1305 (NaCl secretbox) with a random 24-byte nonce per call.
- Box layout is nonce || ciphertext+MAC.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from typing import Iterable

import nacl.utils
from nacl.exceptions import CryptoError
from nacl.secret import SecretBox

from Sessions.session_errors import SessionAuthError, SessionDecodeError


KEY_SIZE = SecretBox.KEY_SIZE
NONCE_SIZE = SecretBox.NONCE_SIZE
MAC_SIZE = SecretBox.MACBYTES


def derive_key(secret: str | bytes) -> bytes:
    """Return a 32-byte key; raw 32-byte keys pass through, anything else is hashed."""
    if isinstance(secret, bytes) and len(secret) == KEY_SIZE:
        return secret
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if not secret:
        raise ValueError("session secret must not be empty")
    return hashlib.sha256(secret).digest()


def encrypt_bytes(plaintext: bytes, key: bytes) -> bytes:
    """Seal plaintext with a fresh nonce. Returns nonce || box."""
    if len(key) != KEY_SIZE:
        raise ValueError("session key must be 32 bytes")
    nonce = nacl.utils.random(NONCE_SIZE)
    return bytes(SecretBox(key).encrypt(plaintext, nonce))


def decrypt_bytes(box: bytes, keys: Iterable[bytes]) -> bytes:
    """Open nonce || box with the first key that authenticates it."""
    if len(box) < NONCE_SIZE + MAC_SIZE:
        raise SessionDecodeError("session payload is truncated")

    for key in keys:
        try:
            return SecretBox(key).decrypt(box)
        except CryptoError:
            continue

    raise SessionAuthError("failed decrypting session data")


def encode_token(box: bytes) -> str:
    return base64.urlsafe_b64encode(box).rstrip(b"=").decode("ascii")


def decode_token(token: str | bytes) -> bytes:
    if isinstance(token, str):
        token = token.encode("ascii", errors="replace")
    padded = token + b"=" * (-len(token) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SessionDecodeError("failed decoding session data") from exc
