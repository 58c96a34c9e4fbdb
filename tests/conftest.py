"""Shared pytest fixtures for vault-sync tests.

Provides in-memory fakes of the collaborator protocols (local tree,
remote client, history store) and small entity builders.
"""

from __future__ import annotations

import threading

import pytest
from dotenv import load_dotenv

from vault_sync.config_schema import SyncProfileConfig
from vault_sync.sync.models import Decision, Entity, MixedEntity

load_dotenv()


# ---------------------------------------------------------------------------
# Entity builders
# ---------------------------------------------------------------------------


def make_entity(
    key: str,
    size: int = 0,
    mtime: int | None = None,
    *,
    mtime_svr: int | None = None,
    key_enc: str | None = None,
    size_enc: int | None = None,
) -> Entity:
    """Build an unencrypted-looking entity in one line."""
    return Entity(
        key=key,
        key_enc=key_enc or key,
        size=size,
        size_enc=size if size_enc is None else size_enc,
        mtime_cli=mtime,
        mtime_svr=mtime_svr,
    )


def make_mixed(
    key: str,
    *,
    local: Entity | None = None,
    prev_sync: Entity | None = None,
    remote: Entity | None = None,
    decision: Decision | None = None,
) -> MixedEntity:
    return MixedEntity(
        key=key,
        local=local,
        prev_sync=prev_sync,
        remote=remote,
        decision=decision,
    )


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeLocalTree:
    """In-memory ``LocalTree``."""

    def __init__(self, entities: list[Entity] | None = None) -> None:
        self.entities: dict[str, Entity] = {e.key: e for e in entities or []}
        self.data: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def list_local_entities(self) -> list[Entity]:
        return list(self.entities.values())

    def ensure_directory(self, key: str) -> None:
        with self._lock:
            self.calls.append(("ensure_directory", key))
            self.entities.setdefault(key, Entity(key=key, key_enc=key))

    def delete_entry(self, key: str) -> None:
        with self._lock:
            self.calls.append(("delete_entry", key))
            for existing in list(self.entities):
                if existing == key or (
                    key.endswith("/") and existing.startswith(key)
                ):
                    del self.entities[existing]

    def stat_entity(self, key: str) -> Entity:
        return self.entities[key]

    def read_file(self, key: str) -> bytes:
        return self.data.get(key, b"x" * self.entities[key].size)

    def write_file(self, key: str, data: bytes, mtime: int | None = None) -> None:
        with self._lock:
            self.calls.append(("write_file", key))
            self.data[key] = data
            self.entities[key] = Entity(
                key=key,
                key_enc=key,
                size=len(data),
                size_enc=len(data),
                mtime_cli=mtime,
            )


class FakeRemoteClient:
    """In-memory ``RemoteClient``.

    Keys listed in *fail_on* raise ``OSError`` on any mutating call.
    """

    def __init__(
        self,
        entities: list[Entity] | None = None,
        service_type: str = "fake",
        fail_on: set[str] | None = None,
    ) -> None:
        self.service_type = service_type
        self.objects: dict[str, Entity] = {e.key_enc: e for e in entities or []}
        self.fail_on = fail_on or set()
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def _maybe_fail(self, key: str) -> None:
        if key in self.fail_on:
            raise OSError(f"remote refused {key}")

    def list_remote_entities(self) -> list[Entity]:
        return list(self.objects.values())

    def upload_to_remote(
        self,
        key: str,
        tree,
        is_folder: bool = False,
        password: str = "",
        key_enc: str | None = None,
    ) -> Entity:
        with self._lock:
            self.calls.append(("upload", key))
        self._maybe_fail(key)
        if is_folder:
            entity = Entity(key=key, key_enc=key_enc or key)
        else:
            local = tree.stat_entity(key)
            entity = local.model_copy(
                update={
                    "key_enc": key_enc or key,
                    "mtime_svr": local.mtime_cli,
                }
            )
        with self._lock:
            self.objects[entity.key_enc] = entity
        return entity

    def download_from_remote(
        self,
        key: str,
        tree,
        mtime: int | None,
        password: str = "",
        key_enc: str | None = None,
    ) -> None:
        with self._lock:
            self.calls.append(("download", key))
        self._maybe_fail(key)
        if key.endswith("/"):
            tree.ensure_directory(key)
            return
        remote = self.objects[key_enc or key]
        tree.write_file(key, b"r" * remote.size, mtime)

    def delete_from_remote(
        self, key: str, password: str = "", key_enc: str | None = None
    ) -> None:
        with self._lock:
            self.calls.append(("delete", key))
        self._maybe_fail(key)
        with self._lock:
            self.objects.pop(key_enc or key, None)


class FakeHistoryStore:
    """In-memory ``HistoryStore``."""

    def __init__(self, entities: list[Entity] | None = None) -> None:
        self.records: dict[str, Entity] = {e.key: e for e in entities or []}
        self._lock = threading.Lock()

    def list_prev_sync_entities(self) -> list[Entity]:
        return list(self.records.values())

    def upsert_record(self, entity: Entity) -> None:
        with self._lock:
            self.records[entity.key] = entity

    def clear_record(self, key: str) -> None:
        with self._lock:
            self.records.pop(key, None)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def local_tree():
    return FakeLocalTree()


@pytest.fixture
def remote_client():
    return FakeRemoteClient()


@pytest.fixture
def history_store():
    return FakeHistoryStore()


@pytest.fixture
def profile(tmp_path):
    """A profile rooted in per-test directories."""
    return SyncProfileConfig(
        local_root=str(tmp_path / "local"),
        remote_root=str(tmp_path / "remote"),
        state_dir=str(tmp_path / "state"),
    )
