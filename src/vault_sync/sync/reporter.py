"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_report`` -- full post-sync summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by decision.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from .models import Decision

if TYPE_CHECKING:
    from .models import SyncReport, SyncResult


def _section(lines: list[str], title: str, results: list[SyncResult]) -> None:
    if not results:
        return
    lines.append(f"{title}:")
    for r in results:
        lines.append(f"  {r.key} ({r.decision.value})")
    lines.append("")


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report for '{report.profile_name}'"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Synced {len(report.results)} entries: "
        f"{len(report.uploaded)} uploaded, "
        f"{len(report.downloaded)} downloaded, "
        f"{len(report.folders)} folders, "
        f"{len(report.deleted)} deleted, "
        f"{len(report.conflicts)} conflicts, "
        f"{len(report.errors)} errors"
    )
    lines.append("")

    succeeded = [r for r in report.results if r.success]
    _section(lines, "Uploaded", [r for r in report.uploaded if r.success])
    _section(lines, "Downloaded", [r for r in report.downloaded if r.success])
    _section(lines, "Folders", [r for r in report.folders if r.success])
    _section(lines, "Deleted", [r for r in report.deleted if r.success])

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.key}: {r.error}")
        lines.append("")

    if report.error:
        lines.append(f"Sync stopped: {report.error}")
        lines.append("")
    elif not succeeded and not report.errors:
        lines.append("Nothing to sync.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by decision.

    Each proposed entry is shown as ``[DECISION]`` followed by its keys,
    in the order the decisions are declared.

    Args:
        report: A dry-run sync report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Profile: {report.profile_name}")
    lines.append("")

    groups: dict[Decision, list[str]] = defaultdict(list)
    for r in report.results:
        groups[r.decision].append(r.key)

    for decision in Decision:
        if decision not in groups:
            continue
        label = decision.value.upper().replace("_", " ")
        lines.append(f"[{label}]")
        for key in groups[decision]:
            lines.append(f"  {key}")
        lines.append("")

    if not groups:
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with profile info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "key": r.key,
            "decision": r.decision.value,
            "decision_branch": r.decision_branch,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    data: dict = {
        "profile_name": report.profile_name,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "success": report.success,
        "counts": {
            "total": len(report.results),
            "uploaded": len(report.uploaded),
            "downloaded": len(report.downloaded),
            "folders": len(report.folders),
            "deleted": len(report.deleted),
            "conflicts": len(report.conflicts),
            "errors": len(report.errors),
        },
        "results": results_list,
    }
    if report.error:
        data["error"] = report.error
    return data
