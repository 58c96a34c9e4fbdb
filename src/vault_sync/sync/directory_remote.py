"""Remote backend that stores objects in a directory.

Useful for syncing against a mounted share, and as the reference backend
in tests.  Layout:

* Unencrypted: every object lives at its own key below the root, folders
  are real directories.
* Encrypted: every object lives directly in the root under its at-rest
  name (base64url never contains ``/``); folders are encrypted empty
  payloads whose decrypted name ends with ``/``.

Object modification times carry the client mtime of the uploaded file, so
listed entities have ``mtime_cli == mtime_svr``.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path, PurePosixPath

from vault_sync.core.crypto import (
    decrypt_bytes,
    encrypt_bytes,
    encrypt_string_to_base64url,
)
from vault_sync.sync.interfaces import LocalTree
from vault_sync.sync.models import Entity

logger = logging.getLogger(__name__)


def _ns_to_ms(ns: int) -> int:
    return ns // 1_000_000


class DirectoryRemoteClient:
    """``RemoteClient`` implementation over a directory.

    Args:
        root: Directory holding the objects.  Created if missing.
        service_type: Backend name reported to the execution driver.
    """

    def __init__(self, root: Path, service_type: str = "directory") -> None:
        self.root = Path(root)
        self.service_type = service_type

    def _object_path(self, key_enc: str) -> Path:
        rel = PurePosixPath(key_enc.rstrip("/"))
        if rel.is_absolute() or ".." in rel.parts or not rel.parts:
            raise ValueError(f"invalid object key: {key_enc}")
        return self.root.joinpath(*rel.parts)

    @staticmethod
    def _at_rest_key(key: str, password: str, key_enc: str | None) -> str:
        if not password:
            return key
        if key_enc and key_enc != key:
            return key_enc
        return encrypt_string_to_base64url(key, password)

    def _describe(self, key: str, key_enc: str, size: int) -> Entity:
        stat = self._object_path(key_enc).stat()
        mtime = _ns_to_ms(stat.st_mtime_ns)
        return Entity(
            key=key,
            key_enc=key_enc,
            size=size,
            size_enc=stat.st_size,
            mtime_cli=mtime,
            mtime_svr=mtime,
        )

    # ------------------------------------------------------------------
    # RemoteClient protocol
    # ------------------------------------------------------------------

    def list_remote_entities(self) -> list[Entity]:
        if not self.root.is_dir():
            return []

        entities: list[Entity] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            rel_dir = Path(dirpath).relative_to(self.root).as_posix()
            prefix = "" if rel_dir == "." else f"{rel_dir}/"
            for name in dirnames:
                key = f"{prefix}{name}/"
                entities.append(Entity(key=key, key_enc=key))
            for name in sorted(filenames):
                key = f"{prefix}{name}"
                stat = (Path(dirpath) / name).stat()
                mtime = _ns_to_ms(stat.st_mtime_ns)
                entities.append(
                    Entity(
                        key=key,
                        key_enc=key,
                        size=stat.st_size,
                        size_enc=stat.st_size,
                        mtime_cli=mtime,
                        mtime_svr=mtime,
                    )
                )
        logger.debug("Listed %d remote objects in %s", len(entities), self.root)
        return entities

    def upload_to_remote(
        self,
        key: str,
        tree: LocalTree,
        is_folder: bool = False,
        password: str = "",
        key_enc: str | None = None,
    ) -> Entity:
        at_rest = self._at_rest_key(key, password, key_enc)
        path = self._object_path(at_rest)

        if is_folder or key.endswith("/"):
            if password:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(encrypt_bytes(b"", password))
                return self._describe(key, at_rest, 0)
            path.mkdir(parents=True, exist_ok=True)
            return Entity(key=key, key_enc=at_rest)

        local = tree.stat_entity(key)
        data = tree.read_file(key)
        payload = encrypt_bytes(data, password) if password else data

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".uploading")
        tmp.write_bytes(payload)
        os.replace(tmp, path)
        if local.mtime_cli:
            ns = local.mtime_cli * 1_000_000
            os.utime(path, ns=(ns, ns))

        logger.debug("Uploaded %s as %s (%d bytes)", key, at_rest, len(payload))
        return self._describe(key, at_rest, len(data))

    def download_from_remote(
        self,
        key: str,
        tree: LocalTree,
        mtime: int | None,
        password: str = "",
        key_enc: str | None = None,
    ) -> None:
        if key.endswith("/"):
            tree.ensure_directory(key)
            return

        path = self._object_path(key_enc or key)
        payload = path.read_bytes()
        data = decrypt_bytes(payload, password) if password else payload
        tree.write_file(key, data, mtime)
        logger.debug("Downloaded %s (%d bytes)", key, len(data))

    def delete_from_remote(
        self, key: str, password: str = "", key_enc: str | None = None
    ) -> None:
        path = self._object_path(key_enc or key)
        if path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()
        else:
            logger.debug("Remote object %s already gone", key_enc or key)
