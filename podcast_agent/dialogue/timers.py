"""Cancellable one-shot timers on the asyncio event loop."""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Timer:
    """
    Single re-armable timer.

    At most one scheduled callback exists per Timer. ``arm()`` always cancels
    the previous schedule before creating a new one, so a stale callback can
    never fire after a re-arm or cancel.
    """

    def __init__(self, delay: float, callback: Callable[[], None], name: str = "timer"):
        self.delay = delay
        self.name = name
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self, delay: Optional[float] = None) -> None:
        """Cancel any previous schedule and start counting down again."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(
            self.delay if delay is None else delay, self._fire
        )

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self._callback()
        except Exception as e:
            logger.error("Timer '%s' callback failed: %s", self.name, e, exc_info=True)
