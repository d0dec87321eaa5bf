# smooth_operator/client.py

"""
SmoothOperatorClient: typed access to the Agent Tools server, plus managed
startup of a local server instance.

A client either attaches to a server that is already running (``base_url``)
or starts its own with ``start_server()``:

    with SmoothOperatorClient() as client:   # installs, spawns, waits for ready
        client.mouse.click(100, 200)
    # server process is stopped here

Startup walks through Installing -> Spawning -> AwaitingPort -> Probing ->
Ready. Any failure leaves the session Failed; a stopped or failed client cannot
be restarted, create a new one instead.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional, Set, Type, TypeVar
import atexit
import threading
import time

from loguru import logger
import requests

from smooth_operator.api import (
    AutomationApi,
    ChromeApi,
    CodeApi,
    KeyboardApi,
    MouseApi,
    ScreenshotApi,
    SystemApi,
)
from smooth_operator.config import config
from smooth_operator.errors import InvalidStateError
from smooth_operator.server.handshake import PortHandshake
from smooth_operator.server.installer import (
    InstallationManager,
    get_installation_manager,
)
from smooth_operator.server.process import ProcessSupervisor, ServerProcessHandle
from smooth_operator.server.readiness import ReadinessProber
from smooth_operator.transport import HttpFacade
from smooth_operator.utils import Clock, Deadline

T = TypeVar("T")


class SessionState(str, Enum):
    UNCONFIGURED = "unconfigured"
    INSTALLING = "installing"
    SPAWNING = "spawning"
    AWAITING_PORT = "awaiting_port"
    PROBING = "probing"
    READY = "ready"
    STOPPED = "stopped"
    FAILED = "failed"


TERMINAL_STATES = (SessionState.STOPPED, SessionState.FAILED)

# Clients that may own a server process, stopped at interpreter exit.
# Held strongly so a client dropped without stop() still gets cleaned up.
_live_clients: "Set[SmoothOperatorClient]" = set()


def _stop_live_clients() -> None:
    for client in list(_live_clients):
        client.stop()


atexit.register(_stop_live_clients)


class SmoothOperatorClient:
    """Client session for one Agent Tools server."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        installer: Optional[InstallationManager] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        http_session: Optional[requests.Session] = None,
        startup_timeout_ms: Optional[int] = None,
        poll_interval_ms: Optional[int] = None,
        request_timeout: Optional[float] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            api_key: Screengrasp.com API key. Only the AI-backed endpoints
                need it.
            base_url: URL of an already running server. When given, the
                client is ready immediately and never starts a process.
            installer: Installer to use instead of the process-wide one.
            supervisor: Launches and stops the server process.
            http_session: requests.Session to send requests with.
            startup_timeout_ms: Budget shared by the port handshake and the
                readiness probe.
            poll_interval_ms: Sleep between handshake and readiness polls.
            request_timeout: Per-request timeout in seconds.
            clock: Time source for startup polling.
        """
        self.api_key = api_key or config.SCREENGRASP_API_KEY
        base_url = base_url or config.SERVER_URL
        self.startup_timeout_ms = (
            startup_timeout_ms if startup_timeout_ms is not None else config.STARTUP_TIMEOUT_MS
        )
        self.poll_interval_ms = (
            poll_interval_ms if poll_interval_ms is not None else config.POLL_INTERVAL_MS
        )
        self._installer = installer
        self._supervisor = supervisor or ProcessSupervisor()
        self._transport = HttpFacade(
            api_key=self.api_key,
            base_url=base_url,
            session=http_session,
            timeout=request_timeout,
        )
        self._clock = clock
        self._lock = threading.RLock()
        self._state = SessionState.READY if base_url else SessionState.UNCONFIGURED
        self._process: Optional[ServerProcessHandle] = None
        self._deadline: Optional[Deadline] = None
        self.error: Optional[BaseException] = None

        self.screenshot = ScreenshotApi(self)
        self.system = SystemApi(self)
        self.mouse = MouseApi(self)
        self.keyboard = KeyboardApi(self)
        self.chrome = ChromeApi(self)
        self.automation = AutomationApi(self)
        self.code = CodeApi(self)

    # --- Session properties ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def base_url(self) -> Optional[str]:
        return self._transport.base_url

    @property
    def process(self) -> Optional[ServerProcessHandle]:
        """The server process this client spawned, if it is still held."""
        return self._process

    @property
    def installer(self) -> InstallationManager:
        if self._installer is None:
            self._installer = get_installation_manager()
        return self._installer

    def __repr__(self) -> str:
        return f"SmoothOperatorClient(state={self._state.value}, base_url={self.base_url})"

    # --- Lifecycle ---

    def ensure_installed(self) -> Path:
        """
        Wait until the server bundle is installed and return its directory.

        Optional: start_server() does this itself. Installation can take a
        while, so an application may want to trigger it early, e.g. from its
        own installer.
        """
        return self.installer.ensure_installed()

    def start_server(self) -> None:
        """
        Install (if needed), launch and wait for a local server.

        Raises:
            InvalidStateError: a base URL is already set, or the session is
                not fresh.
            InstallError, ProcessLaunchError, HandshakeTimeoutError,
            ReadinessTimeoutError, ProtocolError: startup failed; the
                session is Failed and any spawned process was stopped.
        """
        with self._lock:
            if self._transport.base_url is not None:
                raise InvalidStateError(
                    "Cannot start server when base URL has been already set."
                )
            if self._state != SessionState.UNCONFIGURED:
                raise InvalidStateError(
                    f"Cannot start server in state {self._state.value}; "
                    "create a new client instead."
                )
            self._state = SessionState.INSTALLING
            _live_clients.add(self)

        start = time.monotonic()
        logger.info("Starting Smooth Operator server...")
        try:
            install_dir = self.installer.ensure_installed()
            logger.debug(f"Installation ready after {(time.monotonic() - start) * 1000:.0f}ms.")

            self._advance(SessionState.SPAWNING)
            handshake = PortHandshake(install_dir)
            handshake.clear_stale()
            process = self._supervisor.spawn(install_dir, handshake.file_name, self.api_key)
            with self._lock:
                self._process = process
                self._deadline = Deadline(self.startup_timeout_ms, self._clock)
                deadline = self._deadline
            self._advance(SessionState.AWAITING_PORT)

            port = handshake.await_port(deadline, self.poll_interval_ms)
            self._transport.set_base_url(f"http://localhost:{port}")
            self._advance(SessionState.PROBING)

            prober = ReadinessProber(self._transport, self.poll_interval_ms)
            prober.await_ready(deadline)
            self._advance(SessionState.READY)
        except BaseException as e:
            self._fail(e)
            if not isinstance(e, Exception):
                raise
            if self._state == SessionState.STOPPED and not isinstance(e, InvalidStateError):
                raise InvalidStateError("Server startup was aborted by stop().") from e
            raise

        logger.success(
            f"Server is running at {self.base_url} "
            f"(started in {(time.monotonic() - start) * 1000:.0f}ms)."
        )

    def _advance(self, new_state: SessionState) -> None:
        with self._lock:
            if self._state == SessionState.STOPPED:
                raise InvalidStateError("Server startup was aborted by stop().")
            logger.debug(f"Session state {self._state.value} -> {new_state.value}")
            self._state = new_state

    def _fail(self, error: BaseException) -> None:
        with self._lock:
            process, self._process = self._process, None
            if self._state not in TERMINAL_STATES:
                self._state = SessionState.FAILED
                self.error = error
        logger.error(f"Server startup failed: {error}")
        if process is not None:
            self._supervisor.terminate(process)
        self._transport.close()
        _live_clients.discard(self)

    def stop(self) -> None:
        """
        Stop the server process this client started and release resources.

        Idempotent. Does nothing to a server the client merely attached to.
        Calling it while start_server() runs in another thread aborts the
        startup.
        """
        with self._lock:
            if self._state not in TERMINAL_STATES:
                self._state = SessionState.STOPPED
            if self._deadline is not None:
                self._deadline.cancel()
            process, self._process = self._process, None
        if process is not None:
            self._supervisor.terminate(process)
        self._transport.close()
        _live_clients.discard(self)

    def __enter__(self) -> "SmoothOperatorClient":
        if self._state == SessionState.UNCONFIGURED:
            self.start_server()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # --- Requests ---

    def _require_ready(self) -> None:
        if self._state != SessionState.READY:
            raise InvalidStateError(
                f"Client is {self._state.value}, not ready. Call start_server() "
                "first, or provide a base_url when creating the client."
            )

    def get(self, path: str, response_type: Optional[Type[T]] = None) -> T:
        """GET an endpoint path (e.g. "/tools-api/screenshot")."""
        self._require_ready()
        return self._transport.get(path, response_type)

    def post(
        self, path: str, body: Any = None, response_type: Optional[Type[T]] = None
    ) -> T:
        """POST a JSON body to an endpoint path."""
        self._require_ready()
        return self._transport.post(path, body, response_type)
