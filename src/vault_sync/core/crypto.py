"""Password-based encryption of file names and contents.

Uses the OpenSSL ``enc`` envelope so that remote objects can be decrypted
with stock tooling::

    b"Salted__" + salt(8) + AES-256-CBC(PKCS#7(plaintext))

Key and IV are derived from the password with PBKDF2-HMAC-SHA256.

Names are encoded as unpadded base64url (current scheme) or unpadded
base32 (legacy scheme, decrypt only).  Because every envelope starts with
``Salted__`` each encoding has a fixed prefix that identifies the scheme.
"""

from __future__ import annotations

import base64
import binascii
import os
import unicodedata

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

MAGIC_HEADER = b"Salted__"
MAGIC_ENCRYPTED_PREFIX_BASE32 = "KNQWY5DFMRPV"
MAGIC_ENCRYPTED_PREFIX_BASE64URL = "U2FsdGVkX1"

PBKDF2_ITERATIONS = 20000
_SALT_LEN = 8
_KEY_LEN = 32
_IV_LEN = 16
_BLOCK_BITS = 128


class DecryptionError(ValueError):
    """Ciphertext is malformed or the password is wrong."""


def _derive_key_iv(password: str, salt: bytes) -> tuple[bytes, bytes]:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=_KEY_LEN + _IV_LEN,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    derived = kdf.derive(password.encode("utf-8"))
    return derived[:_KEY_LEN], derived[_KEY_LEN:]


def encrypt_bytes(data: bytes, password: str, salt: bytes | None = None) -> bytes:
    """Encrypt *data* into an OpenSSL ``Salted__`` envelope."""
    if salt is None:
        salt = os.urandom(_SALT_LEN)
    key, iv = _derive_key_iv(password, salt)
    padder = padding.PKCS7(_BLOCK_BITS).padder()
    padded = padder.update(data) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return MAGIC_HEADER + salt + encryptor.update(padded) + encryptor.finalize()


def decrypt_bytes(data: bytes, password: str) -> bytes:
    """Decrypt an OpenSSL ``Salted__`` envelope.

    Raises:
        DecryptionError: If the envelope is malformed or padding is wrong.
            A wrong password can still pass the padding check by chance,
            so callers decrypting text should also run ``is_valid_text``.
    """
    header_len = len(MAGIC_HEADER) + _SALT_LEN
    body = data[header_len:]
    if (
        not data.startswith(MAGIC_HEADER)
        or not body
        or len(body) % (_BLOCK_BITS // 8) != 0
    ):
        raise DecryptionError("not an encrypted payload")
    salt = data[len(MAGIC_HEADER) : header_len]
    key, iv = _derive_key_iv(password, salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()
    unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise DecryptionError("bad padding, wrong password?") from exc


# ---------------------------------------------------------------------------
# Name encodings
# ---------------------------------------------------------------------------


def encrypt_string_to_base64url(text: str, password: str) -> str:
    raw = encrypt_bytes(text.encode("utf-8"), password)
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def encrypt_string_to_base32(text: str, password: str) -> str:
    """Legacy name encoding, kept for tests and migrations."""
    raw = encrypt_bytes(text.encode("utf-8"), password)
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def decrypt_base64url_to_string(text: str, password: str) -> str:
    try:
        raw = base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError(f"invalid base64url: {text}") from exc
    return decrypt_bytes(raw, password).decode("utf-8", errors="replace")


def decrypt_base32_to_string(text: str, password: str) -> str:
    try:
        raw = base64.b32decode(text + "=" * (-len(text) % 8))
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError(f"invalid base32: {text}") from exc
    return decrypt_bytes(raw, password).decode("utf-8", errors="replace")


def is_encrypted_name(text: str) -> bool:
    return text.startswith(
        (MAGIC_ENCRYPTED_PREFIX_BASE32, MAGIC_ENCRYPTED_PREFIX_BASE64URL)
    )


def decrypt_name(text: str, password: str) -> str:
    """Decrypt an at-rest name, choosing the scheme from its prefix.

    Raises:
        DecryptionError: If *text* is not an encrypted name or cannot be
            decrypted with *password*.
    """
    if text.startswith(MAGIC_ENCRYPTED_PREFIX_BASE32):
        return decrypt_base32_to_string(text, password)
    if text.startswith(MAGIC_ENCRYPTED_PREFIX_BASE64URL):
        return decrypt_base64url_to_string(text, password)
    raise DecryptionError(f"unexpected key to decrypt: {text}")


def get_size_from_orig_to_enc(size: int) -> int:
    """At-rest size of a *size*-byte payload after encryption."""
    if size < 0:
        raise ValueError(f"size must be non-negative, got {size}")
    block = _BLOCK_BITS // 8
    return len(MAGIC_HEADER) + _SALT_LEN + (size // block + 1) * block


def is_valid_text(text: str) -> bool:
    """Return ``True`` if *text* looks like a real path.

    Rejects the replacement character and control characters other than
    tab, LF and CR; wrong-password decryptions almost always contain one.
    """
    if not text:
        return False
    for ch in text:
        if ch == "\ufffd":
            return False
        if ch in "\t\n\r":
            continue
        if unicodedata.category(ch) == "Cc":
            return False
    return True
