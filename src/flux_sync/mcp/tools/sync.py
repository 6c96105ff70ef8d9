"""MCP tool handlers for the Flux sync engine.

Defines four tools:

- ``flux_pull`` -- reconcile the vault with the server now.
- ``flux_push`` -- push every eligible note in one batch.
- ``flux_sync`` -- reconcile, then push every eligible note.
- ``flux_status`` -- engine state and the last reconcile summary.

Notifications produced while a tool runs are appended to its output.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...sync.reporter import format_reconcile_report, report_to_json
from .errors import build_error_response
from .registry import ToolSpec

if TYPE_CHECKING:
    from ...sync.engine import SyncEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

_NO_ARGS = {"type": "object", "properties": {}, "required": []}

SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="flux_pull",
        description=(
            "Fetch the Flux server's state and apply it to the vault: "
            "server deletions and updates are written locally, notes the "
            "server has never seen are pushed."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="flux_push",
        description=(
            "Push every synced Markdown note in the vault to the Flux "
            "server in a single batch."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="flux_sync",
        description=(
            "Full sync: pull server state into the vault, then push every "
            "synced note."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="flux_status",
        description=(
            "Show sync engine state -- endpoint, folder, pending pushes "
            "and the result of the last reconcile."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema=_NO_ARGS,
    ),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _drain_notifications(engine: SyncEngine) -> list[str]:
    drain = getattr(engine.notifier, "drain", None)
    return drain() if callable(drain) else []


def _with_notifications(text: str, messages: list[str]) -> str:
    if not messages:
        return text
    return text + "\n\nNotifications:\n" + "\n".join(
        f"  {m}" for m in messages
    )


def _inactive_response(engine: SyncEngine) -> types.CallToolResult:
    if not engine.settings.configured:
        return build_error_response(
            "not_configured",
            "Flux endpoint not configured",
            "Set FLUX_ENDPOINT (or flux.endpoint in the config file) "
            "and restart the server.",
        )
    return build_error_response(
        "sync_disabled",
        "Sync is disabled",
        "Set FLUX_ENABLED=true (or flux.enabled in the config file) "
        "and restart the server.",
    )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_pull(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``flux_pull`` tool."""
    if not engine.settings.active:
        return _inactive_response(engine)

    report = await engine.reconcile()
    messages = _drain_notifications(engine)
    if report is None:
        return build_error_response(
            "superseded",
            "Reconcile was superseded by a newer one",
            "Call flux_status to see the latest result.",
        )

    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=_with_notifications(
                    format_reconcile_report(report), messages
                ),
            )
        ],
        structuredContent={
            **report_to_json(report),
            "notifications": messages,
        },
        isError=not report.success,
    )


async def _handle_push(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``flux_push`` tool."""
    paths = await engine.eligible_paths()
    pushed = await engine.coalescer.push_all_now(paths)
    messages = _drain_notifications(engine)
    text = f"Pushed {pushed} of {len(paths)} files"
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=_with_notifications(text, messages)
            )
        ],
        structuredContent={
            "pushed": pushed,
            "eligible": len(paths),
            "notifications": messages,
        },
    )


async def _handle_sync(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``flux_sync`` tool."""
    if not engine.settings.active:
        return _inactive_response(engine)

    report = await engine.sync_now()
    # Wait for the debounced pushes so their outcome is reported
    await engine.coalescer.join()
    messages = _drain_notifications(engine)

    if report is None:
        text = "Reconcile was superseded; all files scheduled for push"
        structured: dict[str, Any] = {"reconcile": None}
    else:
        text = format_reconcile_report(report)
        structured = {"reconcile": report_to_json(report)}
    structured["notifications"] = messages

    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=_with_notifications(text, messages)
            )
        ],
        structuredContent=structured,
    )


async def _handle_status(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``flux_status`` tool."""
    status = engine.status()
    last = engine.reconciler.last_report

    lines = [
        "Flux sync status",
        f"  Endpoint:  {status['endpoint'] or '(not configured)'}",
        f"  Enabled:   {status['enabled']}",
        f"  Running:   {status['running']}",
        f"  Folder:    {status['folder'] or '(whole vault)'}",
        f"  Interval:  {status['sync_interval_seconds']}s",
        f"  Pending pushes: {len(status['pending_pushes'])}",
    ]
    if last is not None:
        lines.append(f"  Last reconcile: {last.completed_at}")
        lines.append(f"    {last.summary()}")
        if last.errors:
            lines.append(f"    {len(last.errors)} errors")
    else:
        lines.append("  Last reconcile: never")

    messages = _drain_notifications(engine)
    if last is not None:
        status["last_reconcile"] = report_to_json(last)
    status["notifications"] = messages

    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=_with_notifications("\n".join(lines), messages),
            )
        ],
        structuredContent=status,
    )


# ToolSpec list for registry-based dispatch
SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=SYNC_TOOLS[0], mutating=True, handler=_handle_pull),
    ToolSpec(tool=SYNC_TOOLS[1], mutating=True, handler=_handle_push),
    ToolSpec(tool=SYNC_TOOLS[2], mutating=True, handler=_handle_sync),
    ToolSpec(tool=SYNC_TOOLS[3], mutating=False, handler=_handle_status),
]
