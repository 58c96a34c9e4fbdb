"""Three-way decision table.

Assigns exactly one ``Decision`` to every entry of an ensembled mapping,
comparing each side against the history record of the last sync to tell
which side changed.

Entries are visited deepest first.  Every file decision that keeps a file
marks its parent folder as *retained*; a folder then decides whether it
must exist on both sides by checking that mark, and passes the mark on to
its own parent.  Branch numbers identify the rule that fired:

====== =====================================================
Branch Rule
====== =====================================================
1      file only in history
2      both sides equal
3-5    remote only (created / deleted locally / modified)
6-8    local only (created / deleted remotely / modified)
9-10   both present, one side changed since history
11-15  both present, no history (creation conflict)
16-20  both present, both changed (modification conflict)
101-04 folder with a retained child
105-06 folder without a retained child
====== =====================================================
"""

from __future__ import annotations

import logging

from vault_sync.sync.errors import SizeLimitExceededError, SyncInvariantError
from vault_sync.sync.models import (
    ConflictAction,
    Decision,
    EmptyFolderAction,
    Entity,
    MixedEntity,
)
from vault_sync.sync.paths import at_which_level, get_parent_folder

logger = logging.getLogger(__name__)

SyncMapping = dict[str, MixedEntity]

_ROOTS = ("/", "")


def _within_ceiling(size: int, ceiling: int) -> bool:
    return ceiling <= 0 or size <= ceiling


def _newest_mtime(entity: Entity) -> int:
    return entity.mtime_cli or entity.mtime_svr or 0


def _local_equals_prev(local: Entity, prev: Entity | None) -> bool:
    return (
        prev is not None
        and prev.mtime_svr == local.mtime_cli
        and prev.size_enc == local.size_enc
    )


def _remote_equals_prev(remote: Entity, prev: Entity | None) -> bool:
    return (
        prev is not None
        and prev.mtime_svr in (remote.mtime_cli, remote.mtime_svr)
        and prev.size_enc == remote.size_enc
    )


class _Decider:
    """Single pass over a mapping; holds the retained-folder set."""

    def __init__(
        self,
        empty_folder: EmptyFolderAction,
        skip_size_larger_than: int,
        conflict_action: ConflictAction,
    ) -> None:
        self.empty_folder = empty_folder
        self.ceiling = skip_size_larger_than
        self.conflict_action = conflict_action
        self.kept_folders: set[str] = set()

    def _keep_parent(self, key: str) -> None:
        self.kept_folders.add(get_parent_folder(key))

    def _check_size(
        self, entry: MixedEntity, side: Entity, what: str, branch: int
    ) -> None:
        if not _within_ceiling(side.size_enc, self.ceiling):
            raise SizeLimitExceededError(
                f"{what} (branch {branch}) but size {side.size_enc} is larger "
                f"than {self.ceiling}: {entry.key}"
            )

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def decide_folder(self, entry: MixedEntity) -> tuple[Decision, int]:
        key = entry.key
        if key in self.kept_folders:
            self.kept_folders.discard(key)
            self._keep_parent(key)
            if entry.local is not None and entry.remote is not None:
                return Decision.FOLDER_EXISTED_BOTH, 101
            if entry.local is not None:
                return Decision.FOLDER_EXISTED_LOCAL, 102
            if entry.remote is not None:
                return Decision.FOLDER_EXISTED_REMOTE, 103
            return Decision.FOLDER_TO_BE_CREATED, 104

        if self.empty_folder is EmptyFolderAction.SKIP:
            return Decision.FOLDER_TO_SKIP, 105
        return Decision.FOLDER_TO_BE_DELETED, 106

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def decide_file(self, entry: MixedEntity) -> tuple[Decision, int]:
        local, prev, remote = entry.local, entry.prev_sync, entry.remote

        if local is None and remote is None:
            return Decision.ONLY_HISTORY, 1

        if local is not None and remote is not None:
            decision, branch = self._decide_both(entry, local, prev, remote)
        elif remote is not None:
            decision, branch = self._decide_remote_only(entry, prev, remote)
        elif local is not None:
            decision, branch = self._decide_local_only(entry, local, prev)
        else:
            raise SyncInvariantError(f"no side to decide from: {entry.key}")

        if decision not in (Decision.DELETED_LOCAL, Decision.DELETED_REMOTE):
            self._keep_parent(entry.key)
        return decision, branch

    def _decide_both(
        self,
        entry: MixedEntity,
        local: Entity,
        prev: Entity | None,
        remote: Entity,
    ) -> tuple[Decision, int]:
        if (
            local.mtime_cli in (remote.mtime_cli, remote.mtime_svr)
            and local.size_enc == remote.size_enc
        ):
            return Decision.EQUAL, 2

        local_equal_prev = _local_equals_prev(local, prev)
        remote_equal_prev = _remote_equals_prev(remote, prev)

        if local_equal_prev and not remote_equal_prev:
            self._check_size(entry, remote, "remote is modified", 9)
            return Decision.MODIFIED_REMOTE, 9
        if remote_equal_prev and not local_equal_prev:
            self._check_size(entry, local, "local is modified", 10)
            return Decision.MODIFIED_LOCAL, 10
        if local_equal_prev and remote_equal_prev:
            raise SyncInvariantError(
                "both sides equal the history record but differ from "
                f"each other: {entry.model_dump_json()}"
            )
        return self._resolve_conflict(local, prev, remote)

    def _resolve_conflict(
        self, local: Entity, prev: Entity | None, remote: Entity
    ) -> tuple[Decision, int]:
        created = prev is None
        base = 11 if created else 16
        keep_local, keep_remote, keep_both = (
            (
                Decision.CONFLICT_CREATED_KEEP_LOCAL,
                Decision.CONFLICT_CREATED_KEEP_REMOTE,
                Decision.CONFLICT_CREATED_KEEP_BOTH,
            )
            if created
            else (
                Decision.CONFLICT_MODIFIED_KEEP_LOCAL,
                Decision.CONFLICT_MODIFIED_KEEP_REMOTE,
                Decision.CONFLICT_MODIFIED_KEEP_BOTH,
            )
        )

        match self.conflict_action:
            case ConflictAction.KEEP_NEWER:
                if _newest_mtime(local) >= _newest_mtime(remote):
                    return keep_local, base
                return keep_remote, base + 1
            case ConflictAction.KEEP_LARGER:
                if local.size_enc >= remote.size_enc:
                    return keep_local, base + 2
                return keep_remote, base + 3
            case ConflictAction.KEEP_BOTH:
                return keep_both, base + 4

    def _decide_remote_only(
        self, entry: MixedEntity, prev: Entity | None, remote: Entity
    ) -> tuple[Decision, int]:
        if prev is None:
            self._check_size(entry, remote, "remote is created", 3)
            return Decision.CREATED_REMOTE, 3
        if _remote_equals_prev(remote, prev):
            return Decision.DELETED_LOCAL, 4
        self._check_size(entry, remote, "remote is modified", 5)
        return Decision.MODIFIED_REMOTE, 5

    def _decide_local_only(
        self, entry: MixedEntity, local: Entity, prev: Entity | None
    ) -> tuple[Decision, int]:
        if prev is None:
            self._check_size(entry, local, "local is created", 6)
            return Decision.CREATED_LOCAL, 6
        if _local_equals_prev(local, prev):
            return Decision.DELETED_REMOTE, 7
        self._check_size(entry, local, "local is modified", 8)
        return Decision.MODIFIED_LOCAL, 8


def get_sync_plan(
    mapping: SyncMapping,
    *,
    empty_folder: EmptyFolderAction | str = EmptyFolderAction.SKIP,
    skip_size_larger_than: int = -1,
    conflict_action: ConflictAction | str = ConflictAction.KEEP_NEWER,
) -> SyncMapping:
    """Decide every entry of *mapping*.

    Args:
        mapping: Output of ``ensemble_mixed_entities``.
        empty_folder: What to do with folders that keep no child.
        skip_size_larger_than: Size ceiling in at-rest bytes for creations
            and modifications; ``<= 0`` disables it.
        conflict_action: How to resolve paths changed on both sides.

    Returns:
        A new mapping, same keys, every entry carrying a decision.

    Raises:
        SizeLimitExceededError: If a transfer exceeds the ceiling.
        SyncInvariantError: If the decision table reaches an impossible
            state.
        ValueError: If a policy value is not recognised.
    """
    decider = _Decider(
        EmptyFolderAction(empty_folder),
        skip_size_larger_than,
        ConflictAction(conflict_action),
    )

    decided: dict[str, MixedEntity] = {}
    for key in sorted(mapping, key=lambda k: (-at_which_level(k), k)):
        entry = mapping[key]
        if entry.is_folder:
            decision, branch = decider.decide_folder(entry)
        else:
            decision, branch = decider.decide_file(entry)
        logger.debug("%s -> %s (branch %d)", key, decision.value, branch)
        decided[key] = entry.model_copy(
            update={"decision": decision, "decision_branch": branch}
        )

    leftover = decider.kept_folders.difference(_ROOTS)
    if leftover:
        raise SyncInvariantError(
            f"retained folders without a decision: {sorted(leftover)}"
        )

    undecided = [k for k, v in decided.items() if v.decision is None]
    if undecided:
        raise SyncInvariantError(f"entries without a decision: {undecided}")

    return {key: decided[key] for key in mapping}
