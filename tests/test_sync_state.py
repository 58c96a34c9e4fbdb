"""Tests for the JSON history store.

Covers:
- Load returns empty state when file doesn't exist
- Save creates the state directory and file atomically
- Records round-trip as Entity objects
- upsert_record normalises the server timestamp
- clear_record
- Concurrent upserts from threads
"""

from __future__ import annotations

import json
import threading
from pathlib import Path

from conftest import make_entity

from vault_sync.sync.models import Entity
from vault_sync.sync.state import JsonHistoryStore

# ---------------------------------------------------------------------------
# Load / Save
# ---------------------------------------------------------------------------


class TestJsonHistoryStoreLoad:
    """Tests for JsonHistoryStore.load()."""

    def test_load_returns_empty_state_when_file_missing(self, tmp_path: Path):
        """load() returns a well-formed empty state when no file exists."""
        store = JsonHistoryStore(tmp_path / "nonexistent", "myprofile")
        assert store.load() == {
            "version": 1,
            "last_sync": None,
            "profile": "myprofile",
            "entries": {},
        }

    def test_path_uses_profile_name(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "notes")
        assert store.path == tmp_path / "sync_notes.json"

    def test_list_empty(self, tmp_path: Path):
        assert JsonHistoryStore(tmp_path, "p").list_prev_sync_entities() == []


class TestJsonHistoryStoreSave:
    """Tests for JsonHistoryStore.save()."""

    def test_save_creates_state_dir_if_needed(self, tmp_path: Path):
        state_dir = tmp_path / "nested" / "deep" / ".vault_sync"
        store = JsonHistoryStore(state_dir, "x")
        store.save(store.load())
        assert (state_dir / "sync_x.json").is_file()

    def test_save_sets_last_sync_timestamp(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "ts")
        state = store.load()
        store.save(state)
        assert state["last_sync"] is not None
        assert "T" in state["last_sync"]

    def test_save_leaves_no_temp_files(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "clean")
        store.upsert_record(make_entity("a.md", 1, 1))
        assert [p.name for p in tmp_path.iterdir()] == ["sync_clean.json"]


# ---------------------------------------------------------------------------
# HistoryStore protocol
# ---------------------------------------------------------------------------


class TestRecords:
    """Tests for upsert/list/clear."""

    def test_upsert_then_list(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "p")
        store.upsert_record(make_entity("a.md", 3, 100, mtime_svr=100))
        store.upsert_record(make_entity("d/"))
        entities = {e.key: e for e in store.list_prev_sync_entities()}
        assert set(entities) == {"a.md", "d/"}
        assert isinstance(entities["a.md"], Entity)
        assert entities["a.md"].size == 3

    def test_upsert_normalises_server_time_to_client_time(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "p")
        store.upsert_record(make_entity("a.md", 3, 100, mtime_svr=150))
        (record,) = store.list_prev_sync_entities()
        assert record.mtime_svr == 100
        assert record.mtime_cli == 100

    def test_upsert_keeps_server_time_without_client_time(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "p")
        store.upsert_record(make_entity("a.md", 3, None, mtime_svr=150))
        (record,) = store.list_prev_sync_entities()
        assert record.mtime_svr == 150

    def test_upsert_replaces(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "p")
        store.upsert_record(make_entity("a.md", 3, 100))
        store.upsert_record(make_entity("a.md", 4, 200))
        (record,) = store.list_prev_sync_entities()
        assert record.size == 4

    def test_encrypted_fields_persist(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "p")
        store.upsert_record(
            make_entity("a.md", 3, 100, key_enc="U2FsdGVkX1abc", size_enc=32)
        )
        (record,) = JsonHistoryStore(tmp_path, "p").list_prev_sync_entities()
        assert record.key_enc == "U2FsdGVkX1abc"
        assert record.size_enc == 32

    def test_file_is_json_keyed_by_path(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "p")
        store.upsert_record(make_entity("a.md", 3, 100))
        data = json.loads(store.path.read_text())
        assert data["profile"] == "p"
        assert data["entries"]["a.md"]["key"] == "a.md"

    def test_clear_record(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "p")
        store.upsert_record(make_entity("a.md", 3, 100))
        store.upsert_record(make_entity("b.md", 3, 100))
        store.clear_record("a.md")
        assert [e.key for e in store.list_prev_sync_entities()] == ["b.md"]

    def test_clear_missing_record_is_noop(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "p")
        store.clear_record("ghost.md")
        assert not store.path.exists()

    def test_profiles_are_isolated(self, tmp_path: Path):
        JsonHistoryStore(tmp_path, "one").upsert_record(make_entity("a.md", 1, 1))
        assert JsonHistoryStore(tmp_path, "two").list_prev_sync_entities() == []

    def test_concurrent_upserts(self, tmp_path: Path):
        store = JsonHistoryStore(tmp_path, "p")
        threads = [
            threading.Thread(
                target=store.upsert_record,
                args=(make_entity(f"f{i}.md", i, i + 1),),
            )
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store.list_prev_sync_entities()) == 20
