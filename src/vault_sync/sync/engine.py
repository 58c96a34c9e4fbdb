"""Sync engine that orchestrates a full three-way sync cycle.

The ``SyncEngine`` ties together the collaborators, the ensembler, the
decision engine, the plan splitter and the execution driver.  It:

1. Lists the remote store and checks the password against it.
2. Lists the local tree and loads the previous-sync history.
3. Ensembles the three listings into one mapping by logical path.
4. Decides every path and splits the decisions into ordered phases.
5. Executes the plan (unless dry-running).
6. Builds and returns a ``SyncReport``.

Fatal and policy errors propagate before any side effect.  Execution
failures are captured into the report.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from vault_sync.core.async_utils import run_sync
from vault_sync.sync.decider import get_sync_plan
from vault_sync.sync.directory_remote import DirectoryRemoteClient
from vault_sync.sync.ensembler import ensemble_mixed_entities
from vault_sync.sync.errors import PasswordCheckError, SyncExecutionError
from vault_sync.sync.executor import SyncExecutor
from vault_sync.sync.interfaces import (
    HistoryStore,
    LocalTree,
    ProgressCallback,
    RemoteClient,
)
from vault_sync.sync.local_tree import FilesystemTree
from vault_sync.sync.models import SyncPlan, SyncReport, SyncResult, SyncStatus
from vault_sync.sync.password import check_password
from vault_sync.sync.planner import split_three_steps
from vault_sync.sync.state import JsonHistoryStore

if TYPE_CHECKING:
    from vault_sync.config_schema import SyncProfileConfig

logger = logging.getLogger(__name__)

StatusCallback = Callable[[SyncStatus], None]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncEngine:
    """Orchestrate a full sync cycle for one profile.

    Args:
        profile: The sync profile configuration.
        profile_name: Name of the sync profile (used in reports).
        local_tree: Local file tree.
        remote_client: Storage backend.
        history_store: History of the last successful sync.
        password: Encryption password, empty when unencrypted.
        status_callback: Optional callable receiving each ``SyncStatus``.
        progress_callback: Optional per-entry progress callback.
    """

    def __init__(
        self,
        profile: SyncProfileConfig,
        profile_name: str,
        local_tree: LocalTree,
        remote_client: RemoteClient,
        history_store: HistoryStore,
        password: str = "",
        status_callback: StatusCallback | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.profile = profile
        self.profile_name = profile_name
        self.local_tree = local_tree
        self.remote = remote_client
        self.history = history_store
        self.password = password
        self.status_callback = status_callback
        self.progress_callback = progress_callback
        self.status = SyncStatus.IDLE

    def _set_status(self, status: SyncStatus) -> None:
        self.status = status
        logger.debug("Sync status: %s", status.value)
        if self.status_callback is not None:
            self.status_callback(status)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def plan(self) -> SyncPlan:
        """Gather the three listings and compute the execution plan.

        Raises:
            PasswordCheckError: If the password does not fit the remote.
            SyncInvariantError: On an impossible or ambiguous state.
            SizeLimitExceededError: If a transfer exceeds the ceiling.
        """
        self._set_status(SyncStatus.PREPARING)

        self._set_status(SyncStatus.GETTING_REMOTE_FILES_LIST)
        remote_entities = await run_sync(self.remote.list_remote_entities)

        self._set_status(SyncStatus.CHECKING_PASSWORD)
        check = check_password(remote_entities, self.password)
        if not check.ok:
            raise PasswordCheckError(
                f"password check failed: {check.reason.value}"
            )

        self._set_status(SyncStatus.GETTING_LOCAL_META)
        local_entities = await run_sync(self.local_tree.list_local_entities)

        self._set_status(SyncStatus.GETTING_LOCAL_PREV_SYNC)
        prev_sync_entities = await run_sync(self.history.list_prev_sync_entities)

        logger.info(
            "Listed %d remote, %d local and %d history entries",
            len(remote_entities),
            len(local_entities),
            len(prev_sync_entities),
        )

        self._set_status(SyncStatus.GENERATING_PLAN)
        mapping = ensemble_mixed_entities(
            local_entities,
            prev_sync_entities,
            remote_entities,
            sync_config_dir=self.profile.sync_config_dir,
            config_dir=self.profile.config_dir,
            sync_underscore_items=self.profile.sync_underscore_items,
            ignore_paths=self.profile.ignore_paths,
            password=self.password,
        )
        decided = get_sync_plan(
            mapping,
            empty_folder=self.profile.empty_folder,
            skip_size_larger_than=self.profile.skip_size_larger_than,
            conflict_action=self.profile.conflict_action,
        )
        plan = split_three_steps(decided)
        logger.info(
            "Plan: %d folder levels, %d deletion levels, %d transfers",
            len(plan.folder_creation),
            len(plan.deletion),
            len(plan.transfer),
        )
        return plan

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(self, dry_run: bool = False) -> SyncReport:
        """Execute a full sync cycle.

        Args:
            dry_run: If ``True``, compute decisions but do not execute them.

        Returns:
            A ``SyncReport`` summarising what was (or would be) done.
        """
        started_at = _now()
        plan = await self.plan()

        error: str | None = None
        if dry_run:
            results = _preview_results(plan)
        else:
            self._set_status(SyncStatus.SYNCING)
            executor = SyncExecutor(
                self.local_tree,
                self.remote,
                self.history,
                password=self.password,
                concurrency=self.profile.concurrency,
                progress_callback=self.progress_callback,
            )
            try:
                results = await executor.execute(plan)
            except SyncExecutionError as exc:
                logger.error("Sync of profile '%s' failed: %s", self.profile_name, exc)
                results = exc.results
                error = str(exc)

        self._set_status(SyncStatus.FINISH)
        report = SyncReport(
            profile_name=self.profile_name,
            dry_run=dry_run,
            results=results,
            started_at=started_at,
            completed_at=_now(),
            error=error,
        )
        logger.info(
            "Sync of profile '%s' finished: %d entries, %d errors",
            self.profile_name,
            len(report.results),
            len(report.errors),
        )
        return report


def _preview_results(plan: SyncPlan) -> list[SyncResult]:
    entries = [entry for level in plan.folder_creation for entry in level]
    entries += [entry for level in plan.deletion for entry in level]
    entries += plan.transfer
    return [
        SyncResult(
            key=entry.key,
            decision=entry.decision,
            decision_branch=entry.decision_branch,
            success=True,
        )
        for entry in entries
    ]


def build_remote_client(profile: SyncProfileConfig) -> DirectoryRemoteClient:
    """Create the remote backend of *profile*, expanding ``~`` in its root."""
    return DirectoryRemoteClient(
        Path(profile.remote_root).expanduser(),
        service_type=profile.service_type,
    )


def build_engine(
    profile: SyncProfileConfig,
    profile_name: str,
    password: str = "",
    status_callback: StatusCallback | None = None,
    progress_callback: ProgressCallback | None = None,
) -> SyncEngine:
    """Create a ``SyncEngine`` wired to the default collaborators.

    Uses ``FilesystemTree`` for ``local_root``, ``DirectoryRemoteClient``
    for ``remote_root`` and ``JsonHistoryStore`` in ``state_dir``.
    """
    return SyncEngine(
        profile=profile,
        profile_name=profile_name,
        local_tree=FilesystemTree(Path(profile.local_root).expanduser()),
        remote_client=build_remote_client(profile),
        history_store=JsonHistoryStore(
            Path(profile.state_dir).expanduser(), profile_name
        ),
        password=password,
        status_callback=status_callback,
        progress_callback=progress_callback,
    )
