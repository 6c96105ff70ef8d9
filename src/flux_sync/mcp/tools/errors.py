"""Error response builders for MCP tool handlers.

This module provides structured error responses with corrective actions
to help AI agents recover from errors without human intervention.
"""

import mcp.types as types

from ...core.errors import (
    FluxError,
    MalformedResponse,
    NotConfigured,
    TransportError,
)

_CHECK_SETTINGS = "Check FLUX_ENDPOINT, FLUX_USERNAME, FLUX_PASSWORD."


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_configured, permission_denied,
            connection_error, server_error, validation_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_configured", "Flux endpoint not configured", "Set FLUX_ENDPOINT.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_flux_error(error: FluxError) -> types.CallToolResult:
    """Translate a transport failure to a structured error response."""
    match error:
        case NotConfigured():
            return build_error_response(
                "not_configured",
                str(error),
                "Set FLUX_ENDPOINT (or flux.endpoint in the config file) "
                "and restart the server.",
            )
        case MalformedResponse():
            return build_error_response(
                "server_error",
                str(error),
                "Verify FLUX_ENDPOINT points at a Flux server.",
            )
        case TransportError(status=401 | 403):
            return build_error_response(
                "permission_denied",
                str(error),
                "Check FLUX_USERNAME and FLUX_PASSWORD.",
            )
        case TransportError(status=None):
            return build_error_response(
                "connection_error",
                str(error),
                f"Verify the server is reachable. {_CHECK_SETTINGS}",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Retry later or check the Flux server logs.",
            )
