"""Re-entrancy guard that hides the engine's own writes from its handlers."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class FeedbackSuppressor:
    """A flag raised while server state is applied to the workspace.

    Event-triggered handlers check ``active`` and do nothing while it is
    set, so files written by a reconcile are not pushed straight back.
    """

    def __init__(self) -> None:
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @contextmanager
    def suppressing(self) -> Iterator[None]:
        """Raise the flag for the duration of the ``with`` block.

        The flag is lowered on exit even if the block raises or is
        cancelled.
        """
        self._active = True
        logger.debug("Feedback suppression on")
        try:
            yield
        finally:
            self._active = False
            logger.debug("Feedback suppression off")
