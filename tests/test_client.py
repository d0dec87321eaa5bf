# tests/test_client.py

"""
Session lifecycle tests: start/stop state machine and end-to-end startup
against stub server processes.
"""

import gc
import threading
import time
from unittest.mock import MagicMock

import pytest

from smooth_operator.client import SessionState, SmoothOperatorClient, _stop_live_clients
from smooth_operator.errors import (
    HandshakeTimeoutError,
    HttpError,
    InstallError,
    InvalidStateError,
    ReadinessTimeoutError,
)
from smooth_operator.server.installer import MARKER_FILE_NAME, InstallationManager
from smooth_operator.server.process import ProcessSupervisor
from smooth_operator.server.readiness import PING_PATH
from smooth_operator.testing_utils import (
    HTTP_STUB,
    SILENT_STUB,
    FakeClock,
    FakeHttpSession,
    make_bundle,
)
from smooth_operator.types import ActionResponse


def pong_session(extra_routes=None):
    routes = {("GET", PING_PATH): lambda kw: (200, '"pong"')}
    routes.update(extra_routes or {})
    return FakeHttpSession(routes)


def make_client(installer, supervisor, **kwargs):
    kwargs.setdefault("startup_timeout_ms", 10000)
    kwargs.setdefault("poll_interval_ms", 20)
    return SmoothOperatorClient(installer=installer, supervisor=supervisor, **kwargs)


# --- Preconditions and stop() ---


def test_attached_client_is_ready_and_owns_no_process():
    client = SmoothOperatorClient(base_url="http://localhost:9999", http_session=pong_session())
    assert client.state == SessionState.READY
    assert client.base_url == "http://localhost:9999"
    assert client.process is None


def test_start_with_configured_base_url_fails_and_spawns_nothing():
    supervisor = MagicMock(spec=ProcessSupervisor)
    installer = MagicMock(spec=InstallationManager)
    client = SmoothOperatorClient(
        base_url="http://localhost:9999",
        installer=installer,
        supervisor=supervisor,
        http_session=pong_session(),
    )

    with pytest.raises(InvalidStateError, match="already been set"):
        client.start_server()

    supervisor.spawn.assert_not_called()
    installer.ensure_installed.assert_not_called()
    assert client.state == SessionState.READY


def test_stop_without_process_is_noop():
    client = SmoothOperatorClient(http_session=FakeHttpSession())
    client.stop()
    client.stop()
    assert client.state == SessionState.STOPPED


def test_calls_before_ready_are_invalid_state():
    client = SmoothOperatorClient(http_session=FakeHttpSession())
    with pytest.raises(InvalidStateError, match="not ready"):
        client.mouse.click(1, 2)


def test_calls_after_stop_are_invalid_state():
    client = SmoothOperatorClient(base_url="http://localhost:9999", http_session=pong_session())
    client.stop()
    with pytest.raises(InvalidStateError):
        client.get(PING_PATH)
    # Base URL stays as it was
    assert client.base_url == "http://localhost:9999"


def test_install_failure_fails_session(install_dir, tmp_path, supervisor):
    empty_bundle = tmp_path / "empty"
    empty_bundle.mkdir()
    installer = InstallationManager(install_dir=install_dir, bundle_dir=empty_bundle)
    client = make_client(installer, supervisor, http_session=pong_session())

    with pytest.raises(InstallError):
        client.start_server()

    assert client.state == SessionState.FAILED
    assert isinstance(client.error, InstallError)
    assert supervisor.spawned == []


def test_failed_session_cannot_restart(install_dir, tmp_path, supervisor):
    empty_bundle = tmp_path / "empty"
    empty_bundle.mkdir()
    installer = InstallationManager(install_dir=install_dir, bundle_dir=empty_bundle)
    client = make_client(installer, supervisor, http_session=pong_session())
    with pytest.raises(InstallError):
        client.start_server()

    with pytest.raises(InvalidStateError, match="create a new client"):
        client.start_server()
    client.stop()
    assert client.state == SessionState.FAILED


# --- End-to-end startup with stub servers ---


@pytest.mark.e2e
def test_fresh_install_start_reaches_ready(installer, install_dir, supervisor):
    session = pong_session()
    client = make_client(installer, supervisor, http_session=session)
    assert not (install_dir / MARKER_FILE_NAME).exists()

    started = time.monotonic()
    client.start_server()

    assert time.monotonic() - started < 10
    assert client.state == SessionState.READY
    assert client.base_url == "http://localhost:54321"
    assert installer.extraction_count == 1
    assert client.process is supervisor.spawned[0]
    assert client.process.is_alive
    # Handshake file was consumed
    assert list(install_dir.glob("portnr_*.txt")) == []
    assert session.calls[-1][1] == "http://localhost:54321" + PING_PATH

    client.stop()
    assert client.state == SessionState.STOPPED
    assert not supervisor.spawned[0].is_alive
    assert supervisor.spawned[0].process.poll() is not None
    assert session.closed


@pytest.mark.e2e
def test_matching_marker_skips_extraction(install_dir, bundle_dir, supervisor):
    InstallationManager(install_dir=install_dir, bundle_dir=bundle_dir).ensure_installed()
    installer = InstallationManager(install_dir=install_dir, bundle_dir=bundle_dir)

    with make_client(installer, supervisor, http_session=pong_session()) as client:
        assert client.state == SessionState.READY

    assert installer.extraction_count == 0
    assert installer.state.extracted is False
    assert len(supervisor.spawned) == 1
    assert client.state == SessionState.STOPPED


@pytest.mark.e2e
def test_handshake_timeout_stops_process(install_dir, tmp_path, supervisor):
    bundle_dir = make_bundle(tmp_path / "silent", SILENT_STUB)
    installer = InstallationManager(install_dir=install_dir, bundle_dir=bundle_dir)
    client = make_client(
        installer, supervisor, startup_timeout_ms=500, http_session=pong_session()
    )

    with pytest.raises(HandshakeTimeoutError):
        client.start_server()

    assert client.state == SessionState.FAILED
    assert client.base_url is None
    handle = supervisor.spawned[0]
    assert handle.released
    assert handle.process.poll() is not None


@pytest.mark.e2e
def test_non_pong_liveness_times_out_and_stops_process(installer, supervisor):
    session = FakeHttpSession({("GET", PING_PATH): lambda kw: (200, '"starting"')})
    client = make_client(installer, supervisor, startup_timeout_ms=2000, http_session=session)

    with pytest.raises(ReadinessTimeoutError):
        client.start_server()

    assert client.state == SessionState.FAILED
    assert client.base_url == "http://localhost:54321"
    assert len(session.calls) > 1
    assert supervisor.spawned[0].process.poll() is not None


@pytest.mark.e2e
def test_api_key_is_passed_to_server_and_header(installer, supervisor):
    session = pong_session()
    with make_client(installer, supervisor, api_key="sk-test", http_session=session):
        args = supervisor.spawned[0].process.args
    assert "/apikey=sk-test" in args
    assert session.headers["Authorization"] == "Bearer sk-test"


@pytest.mark.e2e
def test_typed_calls_after_startup(installer, supervisor):
    session = pong_session(
        {
            ("POST", "/tools-api/mouse/click"): lambda kw: (
                200,
                {"success": True, "message": f"clicked {kw['json']['x']},{kw['json']['y']}"},
            ),
            ("POST", "/tools-api/keyboard/press"): lambda kw: (400, "unknown key"),
        }
    )
    with make_client(installer, supervisor, http_session=session) as client:
        result = client.mouse.click(3, 4)
        assert isinstance(result, ActionResponse)
        assert result.message == "clicked 3,4"

        with pytest.raises(HttpError) as err:
            client.keyboard.press("Hyper+Q")
        assert err.value.status_code == 400
        assert err.value.body == "unknown key"


@pytest.mark.e2e
@pytest.mark.slow
def test_real_http_server_end_to_end(install_dir, tmp_path, supervisor):
    bundle_dir = make_bundle(tmp_path / "http", HTTP_STUB)
    installer = InstallationManager(install_dir=install_dir, bundle_dir=bundle_dir)

    with make_client(installer, supervisor) as client:
        assert client.state == SessionState.READY
        assert client.base_url.startswith("http://localhost:")
        result = client.mouse.click(7, 8)
        assert result.success is True
        assert result.message == "clicked at 7,8"
        handle = client.process

    assert handle.process.poll() is not None


@pytest.mark.e2e
def test_stop_during_startup_aborts(install_dir, tmp_path, supervisor):
    bundle_dir = make_bundle(tmp_path / "silent", SILENT_STUB)
    installer = InstallationManager(install_dir=install_dir, bundle_dir=bundle_dir)
    client = make_client(
        installer, supervisor, startup_timeout_ms=20000, http_session=pong_session()
    )
    errors = []

    def start():
        try:
            client.start_server()
        except Exception as e:
            errors.append(e)

    starter = threading.Thread(target=start)
    started = time.monotonic()
    starter.start()
    for _ in range(200):
        if client.state == SessionState.AWAITING_PORT:
            break
        time.sleep(0.02)
    client.stop()
    starter.join(timeout=10)

    assert time.monotonic() - started < 10
    assert len(errors) == 1
    assert isinstance(errors[0], InvalidStateError)
    assert isinstance(errors[0].__cause__, HandshakeTimeoutError)
    assert client.state == SessionState.STOPPED
    assert supervisor.spawned[0].process.poll() is not None


@pytest.mark.e2e
def test_sessions_get_their_own_process(installer, supervisor):
    first = make_client(installer, supervisor, http_session=pong_session())
    second = make_client(installer, supervisor, http_session=pong_session())
    try:
        first.start_server()
        second.start_server()
        assert first.process is not second.process
        assert first.process.pid != second.process.pid
        assert installer.extraction_count == 1

        first.stop()
        assert second.process.is_alive
    finally:
        first.stop()
        second.stop()


class InterruptingClock(FakeClock):
    """Raises KeyboardInterrupt on the nth sleep, like Ctrl-C mid-wait."""

    def __init__(self, interrupt_on: int = 3):
        super().__init__()
        self.interrupt_on = interrupt_on
        self.sleep_count = 0

    def sleep(self, seconds: float) -> None:
        self.sleep_count += 1
        if self.sleep_count == self.interrupt_on:
            raise KeyboardInterrupt
        super().sleep(seconds)


@pytest.mark.e2e
def test_interrupt_while_awaiting_port_stops_process(install_dir, tmp_path, supervisor):
    bundle_dir = make_bundle(tmp_path / "silent", SILENT_STUB)
    installer = InstallationManager(install_dir=install_dir, bundle_dir=bundle_dir)
    client = make_client(
        installer, supervisor, clock=InterruptingClock(), http_session=pong_session()
    )

    with pytest.raises(KeyboardInterrupt):
        client.start_server()

    assert client.state == SessionState.FAILED
    assert client.process is None
    handle = supervisor.spawned[0]
    assert handle.released
    assert handle.process.poll() is not None


@pytest.mark.e2e
def test_interrupt_inside_with_block_startup_stops_process(install_dir, tmp_path, supervisor):
    bundle_dir = make_bundle(tmp_path / "silent", SILENT_STUB)
    installer = InstallationManager(install_dir=install_dir, bundle_dir=bundle_dir)

    with pytest.raises(KeyboardInterrupt):
        with make_client(
            installer, supervisor, clock=InterruptingClock(), http_session=pong_session()
        ):
            pass

    assert supervisor.spawned[0].process.poll() is not None


@pytest.mark.e2e
def test_exit_hook_stops_server_of_dropped_client(installer, supervisor):
    client = make_client(installer, supervisor, http_session=pong_session())
    client.start_server()
    handle = supervisor.spawned[0]

    del client
    gc.collect()
    assert handle.is_alive

    _stop_live_clients()

    assert handle.released
    assert handle.process.poll() is not None
