# tests/test_readiness.py

import pytest
import requests

from smooth_operator.errors import ReadinessTimeoutError
from smooth_operator.server.readiness import PING_PATH, ReadinessProber, is_pong
from smooth_operator.testing_utils import FakeHttpSession
from smooth_operator.transport import HttpFacade
from smooth_operator.utils import Deadline


def _prober(routes):
    session = FakeHttpSession(routes)
    transport = HttpFacade(base_url="http://localhost:54321", session=session)
    return ReadinessProber(transport, interval_ms=100), session


def test_is_pong_accepts_bare_and_json_string():
    assert is_pong("pong")
    assert is_pong('"pong"')
    assert not is_pong("Pong")
    assert not is_pong('{"message": "pong"}')
    assert not is_pong("")


def test_ready_after_refused_connection_and_wrong_answers(fake_clock):
    answers = iter(["refused", (200, "starting"), (503, "busy"), (200, '"pong"')])

    def ping(_kwargs):
        answer = next(answers)
        if answer == "refused":
            raise requests.exceptions.ConnectionError("Connection refused")
        return answer

    prober, session = _prober({("GET", PING_PATH): ping})
    prober.await_ready(Deadline(30000, fake_clock))

    assert prober.attempts == 4
    assert fake_clock.sleeps == pytest.approx([0.1, 0.1, 0.1])
    assert {url for _, url, _ in session.calls} == {"http://localhost:54321" + PING_PATH}


def test_non_pong_body_until_deadline(fake_clock):
    prober, _ = _prober({("GET", PING_PATH): lambda _: (200, '"ping"')})

    with pytest.raises(ReadinessTimeoutError, match="failed to become responsive"):
        prober.await_ready(Deadline(1000, fake_clock))

    assert prober.attempts >= 10
    assert sum(fake_clock.sleeps) == pytest.approx(1.0)


def test_server_never_listening_times_out(fake_clock):
    prober, _ = _prober({})

    with pytest.raises(ReadinessTimeoutError):
        prober.await_ready(Deadline(500, fake_clock))


def test_request_timeout_is_capped_by_remaining_budget(fake_clock):
    prober, session = _prober({("GET", PING_PATH): lambda _: (200, "pong")})
    deadline = Deadline(30000, fake_clock)
    fake_clock.advance(29.0)

    prober.await_ready(deadline)

    assert session.calls[0][2]["timeout"] == pytest.approx(1.0)


def test_shares_budget_with_earlier_phase(fake_clock):
    prober, _ = _prober({})
    deadline = Deadline(30000, fake_clock)
    fake_clock.advance(29.8)  # handshake used most of it

    with pytest.raises(ReadinessTimeoutError):
        prober.await_ready(deadline)

    assert prober.attempts <= 4
