"""Merge local, previous-sync and remote listings into one mapping.

The three sides are processed in a fixed order:

1. **Remote** -- keys are decrypted, validated and filtered.
2. **Previous sync** -- keys are encrypted, reusing the remote at-rest key
   for the same logical path when one exists.
3. **Local** -- keys are encrypted, reusing whichever at-rest key steps 1
   and 2 already discovered.

Reusing discovered at-rest keys keeps the encrypted name of a logical path
identical across runs, which only works if the already-encrypted sides are
seen first.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from vault_sync.core.crypto import (
    DecryptionError,
    decrypt_name,
    encrypt_string_to_base64url,
    get_size_from_orig_to_enc,
    is_valid_text,
)
from vault_sync.sync.errors import AmbiguousDecryptError, MissingMtimeError
from vault_sync.sync.models import Entity, MixedEntity
from vault_sync.sync.paths import compile_ignore_patterns, is_skip_item_by_name

logger = logging.getLogger(__name__)

SyncMapping = dict[str, MixedEntity]


def copy_entity_and_fix_time(entity: Entity) -> Entity:
    """Return a copy of *entity* with ``0`` timestamps turned into ``None``."""
    return entity.model_copy(
        update={
            "mtime_cli": entity.mtime_cli or None,
            "mtime_svr": entity.mtime_svr or None,
        }
    )


def decrypt_remote_entity(remote: Entity, password: str) -> Entity:
    """Fill the logical key of a remote entity from its at-rest key.

    Raises:
        AmbiguousDecryptError: If the at-rest key is not an encrypted name,
            fails to decrypt, or decrypts to implausible text.
    """
    if not password:
        return remote.model_copy(
            update={"key": remote.key_enc, "size": remote.size_enc}
        )

    try:
        key = decrypt_name(remote.key_enc, password)
    except DecryptionError as exc:
        raise AmbiguousDecryptError(
            f"cannot decrypt remote key {remote.key_enc}: {exc}"
        ) from exc
    if not is_valid_text(key):
        raise AmbiguousDecryptError(
            f"remote key {remote.key_enc} decrypts to invalid text, "
            "is the password right?"
        )
    # The logical size of encrypted content is unknown until download.
    return remote.model_copy(update={"key": key})


def ensure_mtime_valid(remote: Entity) -> Entity:
    """Reject a remote file that has no modification time at all.

    Only checkable after decryption, since the at-rest key does not tell
    files and folders apart.
    """
    if (
        not remote.is_folder
        and remote.mtime_cli is None
        and remote.mtime_svr is None
    ):
        if remote.key == remote.key_enc:
            raise MissingMtimeError(
                f"remote file {remote.key} has last modified time 0, "
                "cannot reconcile it"
            )
        raise MissingMtimeError(
            f"remote file {remote.key} (encrypted as {remote.key_enc}) "
            "has last modified time 0, cannot reconcile it"
        )
    return remote


def encrypt_entity(
    entity: Entity, password: str, known_key_enc: str | None
) -> Entity:
    """Fill the at-rest key and size of a local or history entity.

    An entity whose at-rest key already differs from its logical key is
    left alone.  Otherwise *known_key_enc* is reused when available, and a
    fresh encrypted name is derived as a last resort.
    """
    if not password or entity.key != entity.key_enc:
        return entity

    if known_key_enc and known_key_enc != entity.key:
        key_enc = known_key_enc
    else:
        key_enc = encrypt_string_to_base64url(entity.key, password)
    return entity.model_copy(
        update={
            "key_enc": key_enc,
            "size_enc": get_size_from_orig_to_enc(entity.size),
        }
    )


def _known_key_enc(mixed: MixedEntity | None) -> str | None:
    if mixed is None:
        return None
    for side in (mixed.remote, mixed.prev_sync):
        if side is not None and side.key_enc != side.key:
            return side.key_enc
    return None


def ensemble_mixed_entities(
    local_entities: Iterable[Entity],
    prev_sync_entities: Iterable[Entity],
    remote_entities: Iterable[Entity],
    *,
    sync_config_dir: bool = False,
    config_dir: str = ".obsidian",
    sync_underscore_items: bool = False,
    ignore_paths: Iterable[str] = (),
    password: str = "",
) -> SyncMapping:
    """Build the logical-path mapping from the three listings.

    Args:
        local_entities: Current local tree.
        prev_sync_entities: History records of the last sync.
        remote_entities: Current remote listing (at-rest keys).
        sync_config_dir: Keep paths inside *config_dir* regardless of
            the other exclusion rules.
        config_dir: Host-config directory name.
        sync_underscore_items: Keep ``_``-prefixed paths.
        ignore_paths: Regular expressions matched against the whole key.
        password: Encryption password, empty when unencrypted.

    Returns:
        Mapping from logical key to ``MixedEntity``.

    Raises:
        AmbiguousDecryptError: If a remote key cannot be decrypted.
        MissingMtimeError: If a remote file carries no timestamp.
    """
    patterns: list[re.Pattern[str]] = compile_ignore_patterns(ignore_paths)

    def _skip(key: str) -> bool:
        return is_skip_item_by_name(
            key,
            sync_config_dir=sync_config_dir,
            config_dir=config_dir,
            sync_underscore_items=sync_underscore_items,
            ignore_patterns=patterns,
        )

    mapping: SyncMapping = {}

    # Remote first: it is the only side whose at-rest keys are authoritative.
    for remote in remote_entities:
        decrypted = ensure_mtime_valid(
            decrypt_remote_entity(copy_entity_and_fix_time(remote), password)
        )
        key = decrypted.key
        if _skip(key):
            continue
        if key in mapping:
            logger.warning(
                "Remote objects %s and %s share logical key %s, keeping the latter",
                mapping[key].remote.key_enc if mapping[key].remote else None,
                decrypted.key_enc,
                key,
            )
        mapping[key] = MixedEntity(key=key, remote=decrypted)

    for prev_sync in prev_sync_entities:
        key = prev_sync.key
        if _skip(key):
            continue
        existing = mapping.get(key)
        copied = encrypt_entity(
            copy_entity_and_fix_time(prev_sync),
            password,
            existing.remote.key_enc if existing and existing.remote else None,
        )
        if existing is None:
            mapping[key] = MixedEntity(key=key, prev_sync=copied)
        else:
            mapping[key] = existing.model_copy(update={"prev_sync": copied})

    # Local last, so it can reuse at-rest keys found on the other sides.
    for local in local_entities:
        key = local.key
        if _skip(key):
            continue
        existing = mapping.get(key)
        copied = encrypt_entity(
            copy_entity_and_fix_time(local),
            password,
            _known_key_enc(existing),
        )
        if existing is None:
            mapping[key] = MixedEntity(key=key, local=copied)
        else:
            mapping[key] = existing.model_copy(update={"local": copied})

    logger.debug("Ensembled %d logical paths", len(mapping))
    return mapping
