"""Tool table for the MCP server.

Each tool is a ToolSpec: its MCP definition, a flag saying whether it
changes the vault or the server, and an ``(engine, args)`` coroutine.
ToolRegistry drops the mutating specs in read-only mode and turns handler
exceptions into error results.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import mcp.types as types

from ...core.errors import FluxError

if TYPE_CHECKING:
    from ...sync.engine import SyncEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """One tool: definition, side-effect flag and handler.

    Attributes:
        tool: Definition advertised by list_tools.
        mutating: True if the tool writes to the vault or the server.
        handler: Async handler with signature (engine, args) -> CallToolResult.
    """

    tool: types.Tool
    mutating: bool
    handler: Callable[[SyncEngine, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs, optionally restricted to read-only tools."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if read_only and spec.mutating:
                continue
            self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Definitions of the tools this registry serves."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        """Number of tools left after read-only filtering."""
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        engine: SyncEngine,
    ) -> types.CallToolResult:
        """Run the handler registered under *name*.

        Flux errors, bad arguments and unexpected exceptions come back as
        error results with a suggested action instead of propagating.

        Args:
            name: Tool to run.
            arguments: Raw arguments from the client, None for none.
            engine: The running SyncEngine.

        Returns:
            The handler's result, or an error result.

        Raises:
            ValueError: No such tool, or it was filtered out by read-only mode.
        """
        from .errors import build_error_response, translate_flux_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(engine, args)
        except FluxError as e:
            logger.warning("Flux error in %s: %s", name, e)
            return translate_flux_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry.",
            )
