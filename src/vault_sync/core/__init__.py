"""Primitives shared by the sync pipeline: async helpers and encryption."""

from .async_utils import gather_bounded, run_sync
from .crypto import DecryptionError, decrypt_bytes, encrypt_bytes

__all__ = [
    "DecryptionError",
    "decrypt_bytes",
    "encrypt_bytes",
    "gather_bounded",
    "run_sync",
]
