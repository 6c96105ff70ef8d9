"""Reconcile report formatting functions.

Provides human-readable and machine-readable output for reconcile cycles:

- ``format_reconcile_report`` -- full post-reconcile summary.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ReconcileReport

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_reconcile_report(report: ReconcileReport) -> str:
    """Format a reconcile report as human-readable text.

    Sections are only included when they contain at least one path.

    Args:
        report: The completed reconcile report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    lines.append("Reconcile report")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"{len(report.updated)} updated, {len(report.deleted)} deleted, "
        f"{len(report.pushed)} pushed, {len(report.errors)} errors"
    )
    lines.append("")

    sections = (
        ("Updated locally:", report.updated),
        ("Deleted locally:", report.deleted),
        ("Pushed to server:", report.pushed),
        ("Errors:", report.errors),
    )
    for title, items in sections:
        if not items:
            continue
        lines.append(title)
        for item in items:
            lines.append(f"  {item}")
        lines.append("")

    if report.skipped > 0:
        lines.append(f"Skipped: {report.skipped} malformed records")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: ReconcileReport) -> dict:
    """Convert a reconcile report to a structured dict.

    Suitable for MCP ``structuredContent`` output.
    """
    return {
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "success": report.success,
        "counts": {
            "updated": len(report.updated),
            "deleted": len(report.deleted),
            "pushed": len(report.pushed),
            "skipped": report.skipped,
            "errors": len(report.errors),
        },
        "updated": list(report.updated),
        "deleted": list(report.deleted),
        "pushed": list(report.pushed),
        "errors": list(report.errors),
    }
