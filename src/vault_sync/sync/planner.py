"""Split a decided mapping into ordered execution phases.

1. Folder creation, one batch per level, shallowest first.
2. Deletion, one batch per level, deepest first.
3. Transfer, a single unordered batch.

No-op decisions appear in no batch.
"""

from __future__ import annotations

from collections import defaultdict

from vault_sync.sync.errors import SyncInvariantError
from vault_sync.sync.models import DecisionCategory, MixedEntity, SyncPlan
from vault_sync.sync.paths import at_which_level


def _levels(by_level: dict[int, list[MixedEntity]]) -> list[list[MixedEntity]]:
    return [by_level[level] for level in sorted(by_level)]


def split_three_steps(mapping: dict[str, MixedEntity]) -> SyncPlan:
    """Partition *mapping* into a ``SyncPlan``.

    Raises:
        SyncInvariantError: If an entry carries no decision.
    """
    folder_creation: dict[int, list[MixedEntity]] = defaultdict(list)
    deletion: dict[int, list[MixedEntity]] = defaultdict(list)
    transfer: list[MixedEntity] = []

    for key in sorted(mapping):
        entry = mapping[key]
        if entry.decision is None:
            raise SyncInvariantError(f"unknown decision None for {key}")

        match entry.decision.category:
            case DecisionCategory.NO_OP:
                continue
            case DecisionCategory.FOLDER_CREATION:
                folder_creation[at_which_level(key)].append(entry)
            case DecisionCategory.DELETION:
                deletion[at_which_level(key)].append(entry)
            case DecisionCategory.TRANSFER:
                transfer.append(entry)

    deletion_levels = _levels(deletion)
    deletion_levels.reverse()

    return SyncPlan(
        folder_creation=_levels(folder_creation),
        deletion=deletion_levels,
        transfer=transfer,
        total_count=sum(len(v) for v in folder_creation.values())
        + sum(len(v) for v in deletion.values())
        + len(transfer),
    )
