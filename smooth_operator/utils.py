# smooth_operator/utils.py

"""Timing helpers shared by the server lifecycle phases."""

from functools import wraps
from typing import Any, Callable, Optional, Protocol
import threading
import time

from loguru import logger


class Clock(Protocol):
    """Time source used by polling loops; tests substitute a fake."""

    def monotonic(self) -> float: ...
    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Clock backed by the real monotonic timer."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class Deadline:
    """A time budget measured against a Clock.

    One Deadline is shared by consecutive phases, so time spent in one phase
    is no longer available to the next. ``cancel()`` drops the remaining
    budget to zero, which is how an external abort reaches a waiting phase.
    """

    def __init__(self, budget_ms: int, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self.budget_ms = budget_ms
        self._started = self.clock.monotonic()
        self._cancelled = threading.Event()

    @property
    def elapsed_ms(self) -> float:
        return (self.clock.monotonic() - self._started) * 1000

    @property
    def remaining_ms(self) -> float:
        if self._cancelled.is_set():
            return 0.0
        return max(0.0, self.budget_ms - self.elapsed_ms)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def expired(self) -> bool:
        return self.remaining_ms <= 0

    def cancel(self) -> None:
        self._cancelled.set()


def wait_until(
    condition: Callable[[], bool],
    deadline: Deadline,
    interval_ms: int = 100,
) -> bool:
    """
    Poll ``condition`` until it returns True or ``deadline`` runs out.

    The condition is always checked at least once. Between attempts the
    deadline's clock sleeps for ``interval_ms`` (or less, if the budget left
    is smaller).

    Returns:
        True if the condition was met, False if the deadline expired first.
    """
    while True:
        if condition():
            return True
        remaining = deadline.remaining_ms
        if remaining <= 0:
            return False
        deadline.clock.sleep(min(interval_ms, remaining) / 1000)


def log_duration(phase: str) -> Callable[[Callable], Callable]:
    """Decorator logging how long a lifecycle phase took, or that it failed."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            logger.debug(f"{phase} started")
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = (time.monotonic() - start) * 1000
                logger.error(f"{phase} failed after {duration:.0f}ms: {e}")
                raise
            duration = (time.monotonic() - start) * 1000
            logger.debug(f"{phase} completed in {duration:.0f}ms")
            return result

        return wrapper

    return decorator
