"""Exception hierarchy for the Flux transport and sync engine.

A superseded reconcile is cancelled with plain ``asyncio.CancelledError``,
which is never reported as a failure.
"""


class FluxError(Exception):
    """Base class for every failure the engine reports to the user."""


class NotConfigured(FluxError):
    """No endpoint is configured; raised before any network I/O."""

    def __init__(self, message: str = "Flux endpoint not configured"):
        super().__init__(message)


class TransportError(FluxError):
    """The server answered with a non-2xx status or could not be reached.

    Attributes:
        status: HTTP status code, or ``None`` for network-level failures.
        message: Server-provided ``error`` field or a generic description.
    """

    def __init__(self, status: int | None, message: str):
        self.status = status
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (HTTP {self.status})"


class MalformedResponse(TransportError):
    """The payload could not be decoded or lacks its required fields."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(status, message)
