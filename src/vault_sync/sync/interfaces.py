"""Contracts of the collaborators the sync core drives.

The core never walks directories, talks to a storage backend or persists
history itself.  It calls objects satisfying these protocols; default
implementations live in ``local_tree``, ``directory_remote`` and ``state``.
"""

from __future__ import annotations

from typing import Protocol

from vault_sync.sync.models import Decision, Entity


class LocalTree(Protocol):
    """The local file tree."""

    def list_local_entities(self) -> list[Entity]:
        """Enumerate every file and folder below the sync root."""
        ...  # pragma: no cover

    def ensure_directory(self, key: str) -> None:
        """Create folder *key* and its parents if missing."""
        ...  # pragma: no cover

    def delete_entry(self, key: str) -> None:
        """Delete the file or folder *key*; missing paths are a no-op."""
        ...  # pragma: no cover

    def stat_entity(self, key: str) -> Entity:
        """Describe a single path the way ``list_local_entities`` would."""
        ...  # pragma: no cover

    def read_file(self, key: str) -> bytes:
        ...  # pragma: no cover

    def write_file(self, key: str, data: bytes, mtime: int | None = None) -> None:
        """Write *data* to *key*, stamping it with *mtime* (epoch ms)."""
        ...  # pragma: no cover


class RemoteClient(Protocol):
    """One storage backend.

    ``service_type`` names the backend; the driver consults it for
    backend-specific quirks.
    """

    service_type: str

    def list_remote_entities(self) -> list[Entity]:
        """List every object with at-rest keys and sizes.

        Returned entities carry ``key == key_enc``; decryption happens in
        the ensembler.
        """
        ...  # pragma: no cover

    def upload_to_remote(
        self,
        key: str,
        tree: LocalTree,
        is_folder: bool = False,
        password: str = "",
        key_enc: str | None = None,
    ) -> Entity:
        """Upload *key* from *tree* and return the resulting remote metadata."""
        ...  # pragma: no cover

    def download_from_remote(
        self,
        key: str,
        tree: LocalTree,
        mtime: int | None,
        password: str = "",
        key_enc: str | None = None,
    ) -> None:
        ...  # pragma: no cover

    def delete_from_remote(
        self, key: str, password: str = "", key_enc: str | None = None
    ) -> None:
        ...  # pragma: no cover


class HistoryStore(Protocol):
    """Per-path records of the last successful synchronization."""

    def list_prev_sync_entities(self) -> list[Entity]:
        ...  # pragma: no cover

    def upsert_record(self, entity: Entity) -> None:
        ...  # pragma: no cover

    def clear_record(self, key: str) -> None:
        ...  # pragma: no cover


class ProgressCallback(Protocol):
    """Called once per dispatched entry, before its side effect runs."""

    def __call__(
        self, completed: int, total: int, key: str, decision: Decision
    ) -> None:
        ...  # pragma: no cover
