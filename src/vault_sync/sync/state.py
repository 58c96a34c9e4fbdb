"""Sync history persistence layer.

Keeps the record of the last successful synchronization of every path in
one JSON file per profile (``sync_{profile_name}.json``) inside the state
directory (typically ``.vault_sync/``).

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Per-record persistence** -- every upsert/clear is written immediately,
  so a crash mid-run leaves history matching what actually happened.
* **Thread safety** -- the execution driver calls the store from worker
  threads; a lock serialises read-modify-write cycles.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path

from vault_sync.sync.models import Entity

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class JsonHistoryStore:
    """History store backed by a JSON state file.

    Args:
        state_dir: Directory where state files are stored.
        profile_name: Sync profile name (used in the filename).
    """

    def __init__(self, state_dir: Path, profile_name: str) -> None:
        self._state_dir = Path(state_dir)
        self._profile_name = profile_name
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Path to the state file of this profile."""
        return self._state_dir / f"sync_{self._profile_name}.json"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load the state dict from disk.

        Returns:
            The state dict.  If the file does not exist an empty state
            with the current ``version`` is returned.
        """
        if not self.path.exists():
            return {
                "version": STATE_VERSION,
                "last_sync": None,
                "profile": self._profile_name,
                "entries": {},
            }
        with open(self.path, encoding="utf-8") as fh:
            return json.load(fh)

    def save(self, state: dict) -> None:
        """Persist *state* to disk atomically.

        The ``last_sync`` field is set to the current UTC ISO 8601 timestamp
        before writing.  Creates the state directory if needed.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["last_sync"] = datetime.now(timezone.utc).isoformat()

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # ------------------------------------------------------------------
    # HistoryStore protocol
    # ------------------------------------------------------------------

    def list_prev_sync_entities(self) -> list[Entity]:
        """Return every history record as an ``Entity``."""
        with self._lock:
            state = self.load()
        entities = [
            Entity.model_validate(entry)
            for entry in state.get("entries", {}).values()
        ]
        logger.debug(
            "Loaded %d history records from %s", len(entities), self.path
        )
        return entities

    def upsert_record(self, entity: Entity) -> None:
        """Record *entity* as the last synced state of its path.

        The stored server timestamp is the timestamp the local copy
        carries after the sync (client time, else server time), which is
        what the decision table compares local files against.
        """
        record = entity.model_copy(
            update={"mtime_svr": entity.mtime_cli or entity.mtime_svr}
        )
        with self._lock:
            state = self.load()
            state.setdefault("entries", {})[entity.key] = record.model_dump()
            self.save(state)

    def clear_record(self, key: str) -> None:
        """Remove the record of *key*.  No-op if not present."""
        with self._lock:
            state = self.load()
            if state.get("entries", {}).pop(key, None) is not None:
                self.save(state)
