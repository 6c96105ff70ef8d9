import logging
import threading
from typing import Any

import requests

from ..config import SyncSettings, resolve_base_url
from ..sync.models import PullSnapshot, PushBatch
from .errors import MalformedResponse, NotConfigured, TransportError

logger = logging.getLogger(__name__)

# (connect, read) seconds
REQUEST_TIMEOUT = (10, 60)


class FluxClient:
    """Blocking client for the Flux store's ``/pull`` and ``/push`` endpoints.

    Methods block on the network; the engine calls them through
    ``run_sync`` so they never stall the event loop. Each worker thread
    gets its own ``requests.Session``.
    """

    def __init__(self, settings: SyncSettings):
        self.settings = settings
        self._thread_local = threading.local()
        self._generation = 0

    def update_settings(self, settings: SyncSettings) -> None:
        """Swap settings; sessions built with old credentials are dropped."""
        self.settings = settings
        self._generation += 1

    @property
    def base_url(self) -> str:
        return resolve_base_url(self.settings.endpoint)

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        local = self._thread_local
        if getattr(local, "generation", None) != self._generation:
            old = getattr(local, "session", None)
            if old is not None:
                old.close()
            local.session = self._create_session()
            local.generation = self._generation
        return local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Content-Type"] = "application/json"
        username, password = self.settings.username, self.settings.password
        if username or password:
            session.auth = (username, password)
        return session

    def _request(
        self, method: str, path: str, **kwargs: Any
    ) -> requests.Response:
        """Send one request and map every failure to a ``FluxError``.

        Raises:
            NotConfigured: No endpoint configured (no I/O attempted).
            TransportError: Network failure or non-2xx status.
        """
        base = self.base_url
        if not base:
            raise NotConfigured()

        try:
            response = self._get_session().request(
                method, base + path, timeout=REQUEST_TIMEOUT, **kwargs
            )
        except requests.RequestException as exc:
            raise TransportError(None, str(exc)) from exc

        if not response.ok:
            raise TransportError(
                response.status_code, _error_message(response)
            )
        return response

    def fetch_state(self) -> PullSnapshot:
        """Fetch the server's full state.

        Returns:
            Decoded ``PullSnapshot`` (malformed records skipped).

        Raises:
            NotConfigured: No endpoint configured.
            TransportError: Network failure or non-2xx status.
            MalformedResponse: Body is not JSON or lacks the expected lists.
        """
        response = self._request("GET", "/pull")
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponse(
                "Pull response is not valid JSON", response.status_code
            ) from exc
        snapshot = PullSnapshot.from_wire(payload)
        logger.debug(
            "Fetched %d files, %d tombstones (%d skipped)",
            len(snapshot.files),
            len(snapshot.deleted),
            snapshot.skipped,
        )
        return snapshot

    def submit(self, batch: PushBatch) -> None:
        """Submit one batch of writes and tombstones.

        Raises:
            NotConfigured: No endpoint configured.
            TransportError: Network failure or non-2xx status.
        """
        self._request("POST", "/push", json=batch.to_wire())
        logger.debug(
            "Pushed %d files, %d tombstones",
            len(batch.files),
            len(batch.deleted),
        )

    def validate_connection(self) -> str:
        """Check the server's ``/health`` endpoint and return its body."""
        return self._request("GET", "/health").text.strip()


def _error_message(response: requests.Response) -> str:
    """Prefer the server's ``{"error": ...}`` field, else a generic message."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return f"Request failed: {response.status_code}"
