# smooth_operator/server/readiness.py

"""Liveness polling for a server that has reported its port."""

import json

from loguru import logger

from smooth_operator.errors import HttpError, ReadinessTimeoutError, TransportError
from smooth_operator.transport import HttpFacade
from smooth_operator.utils import Deadline, wait_until

PING_PATH = "/tools-api/ping"
PONG = "pong"


def is_pong(body: str) -> bool:
    """True if ``body`` is the literal pong, bare or as a JSON string."""
    if body == PONG:
        return True
    try:
        return json.loads(body) == PONG
    except ValueError:
        return False


class ReadinessProber:
    """Pings the server until it answers ``pong`` or the deadline runs out."""

    def __init__(
        self,
        transport: HttpFacade,
        interval_ms: int = 100,
        request_timeout: float = 5.0,
    ):
        self.transport = transport
        self.interval_ms = interval_ms
        self.request_timeout = request_timeout
        self.attempts = 0

    def _ping(self, deadline: Deadline) -> bool:
        self.attempts += 1
        timeout = min(self.request_timeout, max(deadline.remaining_ms / 1000, 0.05))
        try:
            body = self.transport.get_text(PING_PATH, timeout=timeout)
        except (TransportError, HttpError) as e:
            # Expected until the server has bound its socket
            logger.debug(f"Ping {self.attempts} not answered yet: {e}")
            return False
        if is_pong(body):
            return True
        logger.debug(f"Ping {self.attempts} answered with {body[:50]!r}, not ready.")
        return False

    def await_ready(self, deadline: Deadline) -> None:
        if not wait_until(lambda: self._ping(deadline), deadline, self.interval_ms):
            raise ReadinessTimeoutError(
                f"Server at {self.transport.base_url} failed to become responsive "
                f"within {deadline.budget_ms}ms ({self.attempts} pings)."
            )
        logger.debug(
            f"Server answered ping after {self.attempts} attempt(s), "
            f"{deadline.elapsed_ms:.0f}ms into startup."
        )
