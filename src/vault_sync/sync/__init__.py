"""Three-way file sync engine.

Public API for reconciling a local file tree with a remote object store,
using the record of the last successful sync as the common ancestor.

Architecture
------------
Each logical path is observed up to three times: in the local tree, in
the sync history and in the remote store.  The three observations are
merged into one ``MixedEntity`` per path, every path gets exactly one
``Decision``, and the decisions are executed in three phases (create
folders shallowest first, delete deepest first, then transfer files).

Modules:

- ``models``      -- ``Entity``, ``MixedEntity``, ``Decision``, ``SyncPlan``,
  ``SyncResult``, ``SyncReport``: core data contracts.
- ``ensembler``   -- merge the three listings by logical path.
- ``decider``     -- the decision table for files and folders.
- ``planner``     -- split decisions into ordered execution phases.
- ``executor``    -- ``SyncExecutor``: run a plan with bounded concurrency.
- ``engine``      -- ``SyncEngine``: orchestrate a full sync cycle.
- ``password``    -- check a password against the remote listing.
- ``state``       -- ``JsonHistoryStore``: history records on disk.
- ``local_tree``  -- ``FilesystemTree``: the local side.
- ``directory_remote`` -- ``DirectoryRemoteClient``: a directory backend.
- ``reporter``    -- Human-readable and JSON report formatting.

Usage example
-------------
::

    import asyncio
    from vault_sync.config_schema import SyncProfileConfig
    from vault_sync.sync import build_engine, format_sync_report

    profile = SyncProfileConfig(
        local_root="~/Notes",
        remote_root="/mnt/share/notes",
    )
    engine = build_engine(profile, "notes", password="")

    # Dry-run first to preview changes
    preview = asyncio.run(engine.run(dry_run=True))
    print(format_sync_report(preview))

    report = asyncio.run(engine.run())
    print(format_sync_report(report))
"""

from .decider import get_sync_plan
from .engine import SyncEngine, build_engine, build_remote_client
from .ensembler import ensemble_mixed_entities
from .errors import (
    LevelExecutionError,
    SyncError,
    SyncExecutionError,
    SyncInvariantError,
)
from .executor import SyncExecutor
from .models import (
    Decision,
    Entity,
    MixedEntity,
    SyncPlan,
    SyncReport,
    SyncResult,
)
from .password import check_password
from .planner import split_three_steps
from .reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)
from .state import JsonHistoryStore

__all__ = [
    "Decision",
    "Entity",
    "JsonHistoryStore",
    "LevelExecutionError",
    "MixedEntity",
    "SyncEngine",
    "SyncError",
    "SyncExecutionError",
    "SyncExecutor",
    "SyncInvariantError",
    "SyncPlan",
    "SyncReport",
    "SyncResult",
    "build_engine",
    "build_remote_client",
    "check_password",
    "ensemble_mixed_entities",
    "format_dry_run_preview",
    "format_sync_report",
    "get_sync_plan",
    "report_to_json",
    "split_three_steps",
]
