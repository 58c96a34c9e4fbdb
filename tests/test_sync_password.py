"""Tests for the password check against the remote listing."""

from __future__ import annotations

import base64

from conftest import make_entity

from vault_sync.core.crypto import (
    encrypt_bytes,
    encrypt_string_to_base32,
    encrypt_string_to_base64url,
)
from vault_sync.sync.models import PasswordCheckReason
from vault_sync.sync.password import check_password

PASSWORD = "hunter2"


def _encrypted(key: str, encoder=encrypt_string_to_base64url):
    return make_entity(encoder(key, PASSWORD), 32, 1)


class TestCheckPassword:
    """Tests for check_password()."""

    def test_empty_remote(self):
        result = check_password([], "anything")
        assert result.ok
        assert result.reason is PasswordCheckReason.EMPTY_REMOTE

    def test_no_password_both_sides(self):
        result = check_password([make_entity("a.md", 1, 1)], "")
        assert result.ok
        assert result.reason is PasswordCheckReason.NO_PASSWORD_BOTH_SIDES

    def test_remote_plain_local_password(self):
        result = check_password([make_entity("a.md", 1, 1)], PASSWORD)
        assert not result.ok
        assert (
            result.reason
            is PasswordCheckReason.REMOTE_NOT_ENCRYPTED_LOCAL_HAS_PASSWORD
        )

    def test_remote_encrypted_no_password(self):
        result = check_password([_encrypted("a.md")], "")
        assert not result.ok
        assert (
            result.reason
            is PasswordCheckReason.REMOTE_ENCRYPTED_LOCAL_NO_PASSWORD
        )

    def test_password_matched(self):
        result = check_password([_encrypted("a.md")], PASSWORD)
        assert result.ok
        assert result.reason is PasswordCheckReason.PASSWORD_MATCHED

    def test_password_matched_base32(self):
        remote = [_encrypted("a.md", encoder=encrypt_string_to_base32)]
        assert check_password(remote, PASSWORD).ok

    def test_password_not_matched(self):
        result = check_password([_encrypted("a.md")], "wrong")
        assert not result.ok
        assert result.reason in (
            PasswordCheckReason.PASSWORD_NOT_MATCHED,
            PasswordCheckReason.INVALID_TEXT_AFTER_DECRYPTION,
        )

    def test_invalid_text_after_decryption(self):
        """Decrypts cleanly but the plaintext is not a path."""
        raw = encrypt_bytes(b"\x00\x01\x02", PASSWORD)
        key_enc = base64.urlsafe_b64encode(raw).decode().rstrip("=")
        result = check_password([make_entity(key_enc, 32, 1)], PASSWORD)
        assert not result.ok
        assert (
            result.reason is PasswordCheckReason.INVALID_TEXT_AFTER_DECRYPTION
        )

    def test_only_first_entry_sampled(self):
        remote = [_encrypted("a.md"), make_entity("plain.md", 1, 1)]
        assert check_password(remote, PASSWORD).ok
