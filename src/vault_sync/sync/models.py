"""Pydantic models for the three-way sync engine.

Defines the core data contracts used across all sync modules:

- ``Entity``: One side's observation of one logical path.
- ``MixedEntity``: The merged local / previous-sync / remote view of a path
  plus the decision taken for it.
- ``Decision``: Closed set of decision tags.
- ``SyncPlan``: Decided entries split into ordered execution phases.
- ``SyncResult``: Outcome of executing one entry.
- ``SyncReport``: Aggregate results for a full sync run.

All models are frozen (immutable); pipeline stages return updated copies.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class Decision(str, Enum):
    """What to do with one logical path."""

    ONLY_HISTORY = "only_history"
    EQUAL = "equal"
    CREATED_LOCAL = "created_local"
    CREATED_REMOTE = "created_remote"
    DELETED_LOCAL = "deleted_local"
    DELETED_REMOTE = "deleted_remote"
    MODIFIED_LOCAL = "modified_local"
    MODIFIED_REMOTE = "modified_remote"
    CONFLICT_CREATED_KEEP_LOCAL = "conflict_created_keep_local"
    CONFLICT_CREATED_KEEP_REMOTE = "conflict_created_keep_remote"
    CONFLICT_CREATED_KEEP_BOTH = "conflict_created_keep_both"
    CONFLICT_MODIFIED_KEEP_LOCAL = "conflict_modified_keep_local"
    CONFLICT_MODIFIED_KEEP_REMOTE = "conflict_modified_keep_remote"
    CONFLICT_MODIFIED_KEEP_BOTH = "conflict_modified_keep_both"
    FOLDER_EXISTED_BOTH = "folder_existed_both"
    FOLDER_EXISTED_LOCAL = "folder_existed_local"
    FOLDER_EXISTED_REMOTE = "folder_existed_remote"
    FOLDER_TO_BE_CREATED = "folder_to_be_created"
    FOLDER_TO_SKIP = "folder_to_skip"
    FOLDER_TO_BE_DELETED = "folder_to_be_deleted"

    @property
    def category(self) -> DecisionCategory:
        """Execution phase this decision belongs to."""
        return _CATEGORIES[self]

    @property
    def is_no_op(self) -> bool:
        return self.category is DecisionCategory.NO_OP


class DecisionCategory(str, Enum):
    """Execution phase of a decision."""

    NO_OP = "no_op"
    FOLDER_CREATION = "folder_creation"
    DELETION = "deletion"
    TRANSFER = "transfer"


_CATEGORIES: dict[Decision, DecisionCategory] = {
    Decision.EQUAL: DecisionCategory.NO_OP,
    Decision.FOLDER_TO_SKIP: DecisionCategory.NO_OP,
    Decision.FOLDER_EXISTED_BOTH: DecisionCategory.NO_OP,
    Decision.FOLDER_EXISTED_LOCAL: DecisionCategory.FOLDER_CREATION,
    Decision.FOLDER_EXISTED_REMOTE: DecisionCategory.FOLDER_CREATION,
    Decision.FOLDER_TO_BE_CREATED: DecisionCategory.FOLDER_CREATION,
    Decision.ONLY_HISTORY: DecisionCategory.DELETION,
    Decision.DELETED_LOCAL: DecisionCategory.DELETION,
    Decision.DELETED_REMOTE: DecisionCategory.DELETION,
    Decision.FOLDER_TO_BE_DELETED: DecisionCategory.DELETION,
    Decision.MODIFIED_LOCAL: DecisionCategory.TRANSFER,
    Decision.MODIFIED_REMOTE: DecisionCategory.TRANSFER,
    Decision.CREATED_LOCAL: DecisionCategory.TRANSFER,
    Decision.CREATED_REMOTE: DecisionCategory.TRANSFER,
    Decision.CONFLICT_CREATED_KEEP_LOCAL: DecisionCategory.TRANSFER,
    Decision.CONFLICT_CREATED_KEEP_REMOTE: DecisionCategory.TRANSFER,
    Decision.CONFLICT_CREATED_KEEP_BOTH: DecisionCategory.TRANSFER,
    Decision.CONFLICT_MODIFIED_KEEP_LOCAL: DecisionCategory.TRANSFER,
    Decision.CONFLICT_MODIFIED_KEEP_REMOTE: DecisionCategory.TRANSFER,
    Decision.CONFLICT_MODIFIED_KEEP_BOTH: DecisionCategory.TRANSFER,
}


class ConflictAction(str, Enum):
    """How to resolve a path changed on both sides."""

    KEEP_NEWER = "keep_newer"
    KEEP_LARGER = "keep_larger"
    KEEP_BOTH = "keep_both"


class EmptyFolderAction(str, Enum):
    """What to do with a folder that has no retained child."""

    SKIP = "skip"
    CLEAN_BOTH = "clean_both"


class SyncStatus(str, Enum):
    """Stages reported by ``SyncEngine`` through its status callback."""

    IDLE = "idle"
    PREPARING = "preparing"
    GETTING_REMOTE_FILES_LIST = "getting_remote_files_list"
    GETTING_LOCAL_META = "getting_local_meta"
    GETTING_LOCAL_PREV_SYNC = "getting_local_prev_sync"
    CHECKING_PASSWORD = "checking_password"
    GENERATING_PLAN = "generating_plan"
    SYNCING = "syncing"
    CLEANING = "cleaning"
    FINISH = "finish"


class PasswordCheckReason(str, Enum):
    """Classification of a password against the remote listing."""

    EMPTY_REMOTE = "empty_remote"
    REMOTE_ENCRYPTED_LOCAL_NO_PASSWORD = "remote_encrypted_local_no_password"
    PASSWORD_MATCHED = "password_matched"
    PASSWORD_NOT_MATCHED = "password_not_matched"
    INVALID_TEXT_AFTER_DECRYPTION = "invalid_text_after_decryption"
    REMOTE_NOT_ENCRYPTED_LOCAL_HAS_PASSWORD = (
        "remote_not_encrypted_local_has_password"
    )
    NO_PASSWORD_BOTH_SIDES = "no_password_both_sides"


class PasswordCheck(BaseModel):
    """Result of ``check_password``."""

    ok: bool
    reason: PasswordCheckReason

    model_config = {"frozen": True}


class Entity(BaseModel):
    """One side's metadata snapshot of a logical path.

    Attributes:
        key: Logical (decrypted) path.  Folders end with ``/``.
        key_enc: Path as stored at rest; equals ``key`` when unencrypted.
        size: Logical size in bytes.
        size_enc: At-rest size in bytes; equals ``size`` when unencrypted.
        mtime_cli: Client-observed modification time (epoch ms).
        mtime_svr: Server-observed modification time (epoch ms).
    """

    key: str
    key_enc: str
    size: int = 0
    size_enc: int = 0
    mtime_cli: int | None = None
    mtime_svr: int | None = None

    model_config = {"frozen": True}

    @property
    def is_folder(self) -> bool:
        return self.key.endswith("/")


class MixedEntity(BaseModel):
    """Three-sided view of one logical path plus its decision.

    ``decision_branch`` names the rule that produced ``decision`` and is
    only used for debugging and test assertions.
    """

    key: str
    local: Entity | None = None
    prev_sync: Entity | None = None
    remote: Entity | None = None
    decision: Decision | None = None
    decision_branch: int | None = None

    model_config = {"frozen": True}

    @property
    def is_folder(self) -> bool:
        return self.key.endswith("/")


class SyncPlan(BaseModel):
    """Decided entries split into the three execution phases.

    Attributes:
        folder_creation: Folder levels, shallowest first.
        deletion: Deletion levels, deepest first.
        transfer: Uploads and downloads, unordered.
        total_count: Number of entries that are not no-ops.
    """

    folder_creation: list[list[MixedEntity]] = []
    deletion: list[list[MixedEntity]] = []
    transfer: list[MixedEntity] = []
    total_count: int = 0

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of executing one entry.

    Attributes:
        key: Logical path.
        decision: Decision that was executed.
        decision_branch: Rule that produced the decision.
        success: Whether the side effect completed.
        error: Error message if the side effect failed.
    """

    key: str
    decision: Decision
    decision_branch: int | None = None
    success: bool
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        profile_name: Name of the sync profile used.
        dry_run: Whether this was a dry run (no changes applied).
        results: Individual results, one per non-no-op entry.
        started_at: ISO 8601 timestamp when sync started.
        completed_at: ISO 8601 timestamp when sync completed.
        error: Aggregate failure message when execution stopped early.
    """

    profile_name: str
    dry_run: bool = False
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None
    error: str | None = None

    model_config = {"frozen": True}

    def _with(self, *decisions: Decision) -> list[SyncResult]:
        return [r for r in self.results if r.decision in decisions]

    @property
    def uploaded(self) -> list[SyncResult]:
        """Results that pushed local content to the remote."""
        return self._with(
            Decision.CREATED_LOCAL,
            Decision.MODIFIED_LOCAL,
            Decision.CONFLICT_CREATED_KEEP_LOCAL,
            Decision.CONFLICT_MODIFIED_KEEP_LOCAL,
        )

    @property
    def downloaded(self) -> list[SyncResult]:
        """Results that pulled remote content to the local tree."""
        return self._with(
            Decision.CREATED_REMOTE,
            Decision.MODIFIED_REMOTE,
            Decision.CONFLICT_CREATED_KEEP_REMOTE,
            Decision.CONFLICT_MODIFIED_KEEP_REMOTE,
        )

    @property
    def folders(self) -> list[SyncResult]:
        return [
            r
            for r in self.results
            if r.decision.category is DecisionCategory.FOLDER_CREATION
        ]

    @property
    def deleted(self) -> list[SyncResult]:
        return [
            r
            for r in self.results
            if r.decision.category is DecisionCategory.DELETION
        ]

    @property
    def conflicts(self) -> list[SyncResult]:
        return [
            r for r in self.results if r.decision.value.startswith("conflict_")
        ]

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def success(self) -> bool:
        return self.error is None and not self.errors

    def summary(self) -> str:
        """Format a short human-readable summary of the sync run."""
        lines = [
            f"Sync report for profile '{self.profile_name}'"
            + (" (dry run)" if self.dry_run else ""),
            f"  Uploaded:   {len(self.uploaded)}",
            f"  Downloaded: {len(self.downloaded)}",
            f"  Folders:    {len(self.folders)}",
            f"  Deleted:    {len(self.deleted)}",
            f"  Conflicts:  {len(self.conflicts)}",
            f"  Errors:     {len(self.errors)}",
            f"  Total:      {len(self.results)}",
        ]
        return "\n".join(lines)
