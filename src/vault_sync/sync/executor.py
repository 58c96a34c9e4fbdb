"""Execution driver: turn a ``SyncPlan`` into side effects.

Phases run in order (folder creation, deletion, transfer).  Levels within
a phase run strictly one after another; entries within a level run
concurrently, bounded by ``concurrency``.  Each entry only touches its own
path, so entries of one level never contend with each other.

Error handling is per entry: a failure is captured and the level keeps
draining.  After ``MAX_ERRORS_PER_LEVEL`` failures no new entry of that
level starts, and the level is reported as one ``LevelExecutionError``.
"""

from __future__ import annotations

import functools
import logging

from vault_sync.core.async_utils import gather_bounded, run_sync
from vault_sync.sync.errors import (
    DecisionNotImplementedError,
    EntryExecutionError,
    LevelExecutionError,
    SyncExecutionError,
    SyncInvariantError,
)
from vault_sync.sync.interfaces import (
    HistoryStore,
    LocalTree,
    ProgressCallback,
    RemoteClient,
)
from vault_sync.sync.models import Decision, MixedEntity, SyncPlan, SyncResult
from vault_sync.sync.paths import get_parent_folder

logger = logging.getLogger(__name__)

MAX_ERRORS_PER_LEVEL = 3

# Backends that reject zero-byte uploads; such files are left local-only.
SKIP_EMPTY_UPLOAD_SERVICES = frozenset({"onedrive"})


class SyncExecutor:
    """Execute decided entries against the collaborators.

    Args:
        local_tree: Local file tree.
        remote_client: Storage backend.
        history_store: History of the last successful sync.
        password: Encryption password, empty when unencrypted.
        concurrency: Maximum entries in flight within one level.
        progress_callback: Optional callback, see ``ProgressCallback``.
        stop_on_failure: Stop at the first failed level (default) instead
            of running the remaining levels.
    """

    def __init__(
        self,
        local_tree: LocalTree,
        remote_client: RemoteClient,
        history_store: HistoryStore,
        password: str = "",
        concurrency: int = 5,
        progress_callback: ProgressCallback | None = None,
        stop_on_failure: bool = True,
    ) -> None:
        self.local_tree = local_tree
        self.remote = remote_client
        self.history = history_store
        self.password = password
        self.concurrency = concurrency
        self.progress_callback = progress_callback
        self.stop_on_failure = stop_on_failure

        self._results: list[SyncResult] = []
        self._completed = 0
        self._total = 0

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def execute(self, plan: SyncPlan) -> list[SyncResult]:
        """Execute every entry of *plan* once.

        Returns:
            One ``SyncResult`` per dispatched entry.

        Raises:
            SyncExecutionError: If any level failed.  Carries the level
                errors and the results gathered so far.
        """
        self._results = []
        self._completed = 0
        self._total = plan.total_count

        phases = [
            (
                "create folders from shallowest to deepest",
                plan.folder_creation,
            ),
            (
                "delete files and folders from deepest to shallowest",
                plan.deletion,
            ),
            (
                f"transfer files with concurrency={self.concurrency}",
                [plan.transfer] if plan.transfer else [],
            ),
        ]

        failures: list[LevelExecutionError] = []
        for step, (description, levels) in enumerate(phases, start=1):
            logger.info("%d. %s (%d levels)", step, description, len(levels))
            for index, entries in enumerate(levels, start=1):
                name = f"step {step} level {index}/{len(levels)}"
                try:
                    await self._run_level(name, entries)
                except LevelExecutionError as exc:
                    logger.error("%s failed: %s", name, exc)
                    failures.append(exc)
                    if self.stop_on_failure:
                        raise SyncExecutionError(
                            failures, self._results
                        ) from exc

        if failures:
            raise SyncExecutionError(failures, self._results)
        return list(self._results)

    # ------------------------------------------------------------------
    # Levels and entries
    # ------------------------------------------------------------------

    async def _run_level(self, name: str, entries: list[MixedEntity]) -> None:
        logger.debug("Running %s with %d entries", name, len(entries))
        outcome = await gather_bounded(
            [functools.partial(self._run_entry, entry) for entry in entries],
            max_parallel=self.concurrency,
            max_errors=MAX_ERRORS_PER_LEVEL,
        )
        if outcome.errors:
            raise LevelExecutionError(
                outcome.errors, level=name, too_many_errors=outcome.stopped
            )

    async def _run_entry(self, entry: MixedEntity) -> SyncResult:
        if entry.decision is None:
            raise SyncInvariantError(f"entry has no decision: {entry.key}")
        logger.debug(
            "Start syncing %s with decision %s", entry.key, entry.decision.value
        )
        if self.progress_callback is not None:
            self.progress_callback(
                self._completed, self._total, entry.key, entry.decision
            )
            self._completed += 1

        try:
            await self.dispatch(entry)
        except Exception as exc:
            self._results.append(
                SyncResult(
                    key=entry.key,
                    decision=entry.decision,
                    decision_branch=entry.decision_branch,
                    success=False,
                    error=str(exc),
                )
            )
            raise EntryExecutionError(entry.key, exc) from exc

        result = SyncResult(
            key=entry.key,
            decision=entry.decision,
            decision_branch=entry.decision_branch,
            success=True,
        )
        self._results.append(result)
        logger.debug("Finished %s", entry.key)
        return result

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, entry: MixedEntity) -> None:
        """Perform the side effect of one decided entry.

        Raises:
            DecisionNotImplementedError: For ``conflict_*_keep_both``.
            SyncInvariantError: If the entry has no decision or lacks the
                side its decision acts on.
        """
        key = entry.key
        match entry.decision:
            case Decision.ONLY_HISTORY:
                await run_sync(self.history.clear_record, key)

            case (
                Decision.EQUAL
                | Decision.FOLDER_TO_SKIP
                | Decision.FOLDER_EXISTED_BOTH
            ):
                pass

            case (
                Decision.MODIFIED_LOCAL
                | Decision.CREATED_LOCAL
                | Decision.FOLDER_EXISTED_LOCAL
                | Decision.CONFLICT_CREATED_KEEP_LOCAL
                | Decision.CONFLICT_MODIFIED_KEEP_LOCAL
            ):
                await self._upload(entry)

            case (
                Decision.MODIFIED_REMOTE
                | Decision.CREATED_REMOTE
                | Decision.FOLDER_EXISTED_REMOTE
                | Decision.CONFLICT_CREATED_KEEP_REMOTE
                | Decision.CONFLICT_MODIFIED_KEEP_REMOTE
            ):
                await self._download(entry)

            case Decision.DELETED_LOCAL:
                # Removed locally since the last sync: remove the remote copy.
                remote = self._require(entry, "remote")
                await run_sync(
                    self.remote.delete_from_remote,
                    key,
                    self.password,
                    remote.key_enc,
                )
                await run_sync(self.history.clear_record, key)

            case Decision.DELETED_REMOTE:
                # Removed remotely since the last sync: remove the local copy.
                await run_sync(self.local_tree.delete_entry, key)
                await run_sync(self.history.clear_record, key)

            case (
                Decision.CONFLICT_CREATED_KEEP_BOTH
                | Decision.CONFLICT_MODIFIED_KEEP_BOTH
            ):
                raise DecisionNotImplementedError(
                    f"{entry.decision.value} not implemented yet: {key}"
                )

            case Decision.FOLDER_TO_BE_CREATED:
                await run_sync(self.local_tree.ensure_directory, key)
                meta = await run_sync(
                    self.remote.upload_to_remote,
                    key,
                    self.local_tree,
                    True,
                    self.password,
                    _known_key_enc(entry),
                )
                await run_sync(self.history.upsert_record, meta)

            case Decision.FOLDER_TO_BE_DELETED:
                if entry.local is not None:
                    await run_sync(self.local_tree.delete_entry, key)
                if entry.remote is not None:
                    await run_sync(
                        self.remote.delete_from_remote,
                        key,
                        self.password,
                        entry.remote.key_enc,
                    )
                await run_sync(self.history.clear_record, key)

            case _:
                raise SyncInvariantError(
                    f"don't know how to dispatch decision: {entry.model_dump_json()}"
                )

    async def _upload(self, entry: MixedEntity) -> None:
        local = self._require(entry, "local")
        if (
            self.remote.service_type in SKIP_EMPTY_UPLOAD_SERVICES
            and not entry.is_folder
            and local.size == 0
            and not self.password
        ):
            logger.debug(
                "Skipping empty file %s for %s",
                entry.key,
                self.remote.service_type,
            )
            return
        meta = await run_sync(
            self.remote.upload_to_remote,
            entry.key,
            self.local_tree,
            entry.is_folder,
            self.password,
            local.key_enc,
        )
        await run_sync(self.history.upsert_record, meta)

    async def _download(self, entry: MixedEntity) -> None:
        remote = self._require(entry, "remote")
        folder = entry.key if entry.is_folder else get_parent_folder(entry.key)
        if folder != "/":
            await run_sync(self.local_tree.ensure_directory, folder)
        await run_sync(
            self.remote.download_from_remote,
            entry.key,
            self.local_tree,
            remote.mtime_cli or remote.mtime_svr,
            self.password,
            remote.key_enc,
        )
        record = remote
        if not entry.is_folder:
            # Listed sizes of encrypted objects are at-rest sizes.
            written = await run_sync(self.local_tree.stat_entity, entry.key)
            record = remote.model_copy(update={"size": written.size})
        await run_sync(self.history.upsert_record, record)

    @staticmethod
    def _require(entry: MixedEntity, side: str):
        value = getattr(entry, side)
        if value is None:
            raise SyncInvariantError(
                f"decision {entry.decision.value} for {entry.key} needs a {side} entity"
            )
        return value


def _known_key_enc(entry: MixedEntity) -> str | None:
    """First at-rest key known for *entry*, or ``None`` to derive one."""
    for side in (entry.local, entry.prev_sync, entry.remote):
        if side is not None:
            return side.key_enc
    return None
