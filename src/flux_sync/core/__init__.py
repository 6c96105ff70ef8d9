"""Core transport functionality shared between the CLI and the MCP server.

``FluxClient`` lives in ``flux_sync.core.client``; it is not re-exported
here because the client depends on ``flux_sync.sync.models``, which in
turn uses the errors defined in this package.
"""

from .async_utils import run_sync
from .errors import (
    FluxError,
    MalformedResponse,
    NotConfigured,
    TransportError,
)

__all__ = [
    "FluxError",
    "MalformedResponse",
    "NotConfigured",
    "TransportError",
    "run_sync",
]
