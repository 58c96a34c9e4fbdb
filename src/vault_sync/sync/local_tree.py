"""Local file tree rooted at a directory."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path, PurePosixPath

from vault_sync.sync.models import Entity

logger = logging.getLogger(__name__)


def _ns_to_ms(ns: int) -> int:
    return ns // 1_000_000


class FilesystemTree:
    """``LocalTree`` implementation over a real directory.

    Keys are POSIX paths relative to *root*; folders end with ``/``.
    Modification times are epoch milliseconds.

    Args:
        root: Sync root directory.  Created on first write if missing.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _abs(self, key: str) -> Path:
        rel = PurePosixPath(key.rstrip("/"))
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"path escapes the sync root: {key}")
        return self.root.joinpath(*rel.parts)

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def list_local_entities(self) -> list[Entity]:
        """Walk the tree and return one entity per file and folder.

        Folders carry no size or timestamp; the decision table only
        checks their existence.
        """
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
                entities.append(
                    Entity(
                        key=key,
                        key_enc=key,
                        size=stat.st_size,
                        size_enc=stat.st_size,
                        mtime_cli=_ns_to_ms(stat.st_mtime_ns),
                    )
                )
        return entities

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def ensure_directory(self, key: str) -> None:
        self._abs(key).mkdir(parents=True, exist_ok=True)

    def delete_entry(self, key: str) -> None:
        """Delete a file, or a folder with everything below it."""
        path = self._abs(key)
        if path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()
        else:
            logger.debug("Nothing to delete at %s", path)

    def read_file(self, key: str) -> bytes:
        return self._abs(key).read_bytes()

    def write_file(self, key: str, data: bytes, mtime: int | None = None) -> None:
        """Write *data* and stamp the file with *mtime* (epoch ms)."""
        path = self._abs(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        if mtime:
            ns = mtime * 1_000_000
            os.utime(path, ns=(ns, ns))

    def stat_entity(self, key: str) -> Entity:
        """Describe a single path the way ``list_local_entities`` would."""
        path = self._abs(key)
        if key.endswith("/"):
            return Entity(key=key, key_enc=key)
        stat = path.stat()
        return Entity(
            key=key,
            key_enc=key,
            size=stat.st_size,
            size_enc=stat.st_size,
            mtime_cli=_ns_to_ms(stat.st_mtime_ns),
        )
