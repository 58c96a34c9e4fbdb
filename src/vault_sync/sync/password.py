"""Check a password against the remote listing before syncing."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from vault_sync.core.crypto import (
    MAGIC_ENCRYPTED_PREFIX_BASE32,
    MAGIC_ENCRYPTED_PREFIX_BASE64URL,
    DecryptionError,
    decrypt_name,
    is_valid_text,
)
from vault_sync.sync.models import Entity, PasswordCheck, PasswordCheckReason

logger = logging.getLogger(__name__)


def check_password(remote: Sequence[Entity], password: str = "") -> PasswordCheck:
    """Classify *password* against the first remote object.

    Decryption primitives on some platforms "succeed" with a wrong key and
    return garbage, so a successful decryption is only trusted if the text
    also passes ``is_valid_text``.
    """
    if not remote:
        return PasswordCheck(ok=True, reason=PasswordCheckReason.EMPTY_REMOTE)

    sample = remote[0].key_enc
    if not sample.startswith(
        (MAGIC_ENCRYPTED_PREFIX_BASE32, MAGIC_ENCRYPTED_PREFIX_BASE64URL)
    ):
        if password:
            return PasswordCheck(
                ok=False,
                reason=PasswordCheckReason.REMOTE_NOT_ENCRYPTED_LOCAL_HAS_PASSWORD,
            )
        return PasswordCheck(
            ok=True, reason=PasswordCheckReason.NO_PASSWORD_BOTH_SIDES
        )

    if not password:
        return PasswordCheck(
            ok=False,
            reason=PasswordCheckReason.REMOTE_ENCRYPTED_LOCAL_NO_PASSWORD,
        )

    try:
        text = decrypt_name(sample, password)
    except DecryptionError as exc:
        logger.debug("Password check failed on %s: %s", sample, exc)
        return PasswordCheck(
            ok=False, reason=PasswordCheckReason.PASSWORD_NOT_MATCHED
        )

    if not is_valid_text(text):
        return PasswordCheck(
            ok=False, reason=PasswordCheckReason.INVALID_TEXT_AFTER_DECRYPTION
        )
    return PasswordCheck(ok=True, reason=PasswordCheckReason.PASSWORD_MATCHED)
