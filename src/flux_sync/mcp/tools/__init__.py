"""MCP tool handlers for the Flux sync engine.

This package contains MCP tool implementations that wrap the running
SyncEngine with async handlers and structured error responses.
"""

from .errors import build_error_response, translate_flux_error
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = list(SYNC_SPECS)

__all__ = [
    "build_error_response",
    "translate_flux_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # Spec lists
    "ALL_SPECS",
    "SYNC_SPECS",
    "SYNC_TOOLS",
]
