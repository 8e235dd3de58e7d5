"""Symmetric encryption for provider API keys stored at rest.

Values are encrypted with AES-256-CBC under a fresh random IV and serialised as
``"<iv hex>:<ciphertext hex>"``. The key is the first 32 characters of the
``ENCRYPTION_KEY`` setting. Empty strings pass through untouched so that an
absent credential never turns into ciphertext.
"""

from __future__ import annotations

import os
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from flask import current_app

KEY_LENGTH = 32
IV_LENGTH = 16


class SecretCodecError(RuntimeError):
    """Raised when a secret cannot be encrypted or decrypted."""


class MissingEncryptionKeyError(SecretCodecError):
    """Raised when ENCRYPTION_KEY is absent or shorter than the AES-256 key size."""


def _resolve_key(key: Optional[str]) -> bytes:
    raw = key if key is not None else current_app.config.get("ENCRYPTION_KEY", "")
    if not raw or len(raw) < KEY_LENGTH:
        raise MissingEncryptionKeyError(f"ENCRYPTION_KEY must be at least {KEY_LENGTH} characters long")
    return raw[:KEY_LENGTH].encode("utf-8")[:KEY_LENGTH]


def encrypt(plaintext: str, key: Optional[str] = None) -> str:
    if not plaintext:
        return ""
    secret = _resolve_key(key)
    iv = os.urandom(IV_LENGTH)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(secret), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt(ciphertext: str, key: Optional[str] = None) -> str:
    if not ciphertext:
        return ""
    iv_hex, separator, body_hex = ciphertext.partition(":")
    if not separator or not iv_hex:
        raise SecretCodecError("Encrypted value is malformed (missing IV separator).")

    secret = _resolve_key(key)
    try:
        iv = bytes.fromhex(iv_hex)
        body = bytes.fromhex(body_hex)
        decryptor = Cipher(algorithms.AES(secret), modes.CBC(iv)).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except ValueError as exc:
        raise SecretCodecError(f"Unable to decrypt value: {exc}") from exc
