"""Debounce stage: collapse bursts of snapshots into one delayed emission."""

import asyncio
import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DELAY = 0.75  # seconds


class Debouncer(Generic[T]):
    """Emit the latest pushed value once no new value arrived for ``delay``.

    Holds a single pending value and a single timer on the running event
    loop. Each push replaces the pending value and re-arms the timer, so
    intermediate values are never emitted.

    Example:
        debouncer = Debouncer(pipeline.submit, delay=0.75)
        debouncer.push(("a",))
        debouncer.push(("ab",))
        debouncer.push(("abc",))
        # 750 ms later: pipeline.submit(("abc",)) is called once
    """

    def __init__(self, callback: Callable[[T], None], delay: float = DEFAULT_DELAY):
        """Initialize debouncer.

        Args:
            callback: Called with the latest value when the quiet period ends
            delay: Quiet period in seconds

        Raises:
            ValueError: If delay is negative
        """
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")

        self.callback = callback
        self.delay = delay
        self._value: T | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        """True while a value is waiting for the quiet period to end."""
        return self._timer is not None

    def push(self, value: T) -> None:
        """Replace the pending value and restart the quiet period.

        Must be called from within a running event loop.
        """
        if self._timer is not None:
            self._timer.cancel()

        self._value = value
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)

    def flush(self) -> None:
        """Emit the pending value now, if there is one."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._fire()

    def cancel(self) -> None:
        """Drop the pending value without emitting it."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._value = None

    def _fire(self) -> None:
        value = self._value
        self._timer = None
        self._value = None
        logger.debug(f"Debounce quiet period elapsed, emitting {value!r}")
        self.callback(value)  # type: ignore[arg-type]
