"""Tests for idlogin.listener -- the one-shot loopback callback listener.

These tests use real sockets on 127.0.0.1.
"""

from __future__ import annotations

import socket
import threading
from typing import Iterator

import pytest

from conftest import http_get
from idlogin.exceptions import (
    LoginCancelled,
    LoginTimeout,
    MissingCode,
    PortBindError,
    ProviderRejected,
    StateMismatch,
)
from idlogin.listener import SUCCESS_MESSAGE, CallbackListener, ListenerState

STATE = "expected-state-value"


@pytest.fixture
def listener() -> Iterator[CallbackListener]:
    cb = CallbackListener(STATE, port=0, poll_interval=0.05)
    cb.start()
    yield cb
    cb.close()


class TestSuccess:
    def test_valid_callback_returns_code(self, listener: CallbackListener) -> None:
        status, body = http_get(listener.port, f"/callback?code=ABC123&state={STATE}")
        assert status == 200
        assert SUCCESS_MESSAGE in body
        assert listener.wait(timeout=5) == "ABC123"

    def test_state_transitions(self, listener: CallbackListener) -> None:
        assert listener.state is ListenerState.LISTENING
        http_get(listener.port, f"/callback?code=ABC123&state={STATE}")
        listener.wait(timeout=5)
        assert listener.state is ListenerState.TERMINATED
        assert listener.done

    def test_context_manager(self) -> None:
        with CallbackListener(STATE, port=0, poll_interval=0.05) as cb:
            assert cb.state is ListenerState.LISTENING
            http_get(cb.port, f"/callback?code=XYZ&state={STATE}")
            assert cb.wait(timeout=5) == "XYZ"
        assert cb.state is ListenerState.TERMINATED


class TestValidation:
    def test_provider_error_reported(self, listener: CallbackListener) -> None:
        status, body = http_get(
            listener.port,
            f"/callback?error=access_denied&error_description=User+denied&state={STATE}",
        )
        assert status == 400
        assert "access_denied" in body
        with pytest.raises(ProviderRejected) as exc_info:
            listener.wait(timeout=5)
        assert exc_info.value.error == "access_denied"
        assert exc_info.value.description == "User denied"

    def test_error_checked_before_state(self, listener: CallbackListener) -> None:
        http_get(listener.port, "/callback?error=access_denied&state=wrong")
        with pytest.raises(ProviderRejected):
            listener.wait(timeout=5)

    def test_state_mismatch(self, listener: CallbackListener) -> None:
        status, _ = http_get(listener.port, "/callback?code=ABC123&state=wrong")
        assert status == 400
        with pytest.raises(StateMismatch):
            listener.wait(timeout=5)

    def test_missing_state(self, listener: CallbackListener) -> None:
        http_get(listener.port, "/callback?code=ABC123")
        with pytest.raises(StateMismatch):
            listener.wait(timeout=5)

    def test_state_checked_before_code(self, listener: CallbackListener) -> None:
        http_get(listener.port, "/callback?state=wrong")
        with pytest.raises(StateMismatch):
            listener.wait(timeout=5)

    def test_missing_code(self, listener: CallbackListener) -> None:
        status, _ = http_get(listener.port, f"/callback?state={STATE}")
        assert status == 400
        with pytest.raises(MissingCode):
            listener.wait(timeout=5)

    def test_empty_error_is_not_a_provider_error(self, listener: CallbackListener) -> None:
        http_get(listener.port, f"/callback?error=&code=ABC123&state={STATE}")
        assert listener.wait(timeout=5) == "ABC123"

    def test_provider_text_is_escaped(self, listener: CallbackListener) -> None:
        _, body = http_get(listener.port, "/callback?error=%3Cscript%3E")
        assert "<script>" not in body
        assert "&lt;script&gt;" in body


class TestOtherRequests:
    def test_other_path_is_404_and_keeps_listening(self, listener: CallbackListener) -> None:
        status, _ = http_get(listener.port, "/favicon.ico")
        assert status == 404
        assert listener.state is ListenerState.LISTENING
        assert not listener.done

        http_get(listener.port, f"/callback?code=ABC123&state={STATE}")
        assert listener.wait(timeout=5) == "ABC123"

    def test_late_callback_changes_nothing(self, listener: CallbackListener) -> None:
        http_get(listener.port, f"/callback?code=FIRST&state={STATE}")
        status, _ = listener.handle_callback(f"code=SECOND&state={STATE}")
        assert status == 410
        assert listener.wait(timeout=5) == "FIRST"


class TestTermination:
    def test_timeout(self, listener: CallbackListener) -> None:
        with pytest.raises(LoginTimeout):
            listener.wait(timeout=0.2)
        assert listener.state is ListenerState.TERMINATED

    def test_callback_after_timeout_is_refused(self, listener: CallbackListener) -> None:
        with pytest.raises(LoginTimeout):
            listener.wait(timeout=0.2)
        status, _ = listener.handle_callback(f"code=ABC123&state={STATE}")
        assert status == 410

    def test_cancel_from_another_thread(self, listener: CallbackListener) -> None:
        timer = threading.Timer(0.1, listener.cancel)
        timer.start()
        try:
            with pytest.raises(LoginCancelled):
                listener.wait(timeout=5)
        finally:
            timer.cancel()

    def test_cancel_after_completion_returns_false(self, listener: CallbackListener) -> None:
        http_get(listener.port, f"/callback?code=ABC123&state={STATE}")
        listener.wait(timeout=5)
        assert listener.cancel() is False

    def test_close_is_idempotent(self, listener: CallbackListener) -> None:
        listener.close()
        listener.close()
        assert listener.state is ListenerState.TERMINATED
        with pytest.raises(LoginCancelled):
            listener.wait(timeout=1)

    def test_close_before_start(self) -> None:
        cb = CallbackListener(STATE, port=0)
        cb.close()
        assert cb.state is ListenerState.TERMINATED

    def test_cannot_start_twice(self, listener: CallbackListener) -> None:
        with pytest.raises(RuntimeError):
            listener.start()


class TestPortHandling:
    def test_port_released_after_success(self, listener: CallbackListener) -> None:
        port = listener.port
        http_get(port, f"/callback?code=ABC123&state={STATE}")
        listener.wait(timeout=5)

        again = CallbackListener(STATE, port=port, poll_interval=0.05)
        again.start()
        try:
            assert again.port == port
        finally:
            again.close()

    def test_port_released_after_timeout(self, listener: CallbackListener) -> None:
        port = listener.port
        with pytest.raises(LoginTimeout):
            listener.wait(timeout=0.1)

        again = CallbackListener(STATE, port=port, poll_interval=0.05)
        again.start()
        again.close()

    def test_busy_port_raises_port_bind_error(self) -> None:
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            busy = blocker.getsockname()[1]

            cb = CallbackListener(STATE, port=busy)
            with pytest.raises(PortBindError) as exc_info:
                cb.start()
            assert exc_info.value.port == busy
            assert cb.state is ListenerState.TERMINATED
        finally:
            blocker.close()

    def test_binds_loopback_only(self, listener: CallbackListener) -> None:
        assert listener._server is not None
        assert listener._server.server_address[0] == "127.0.0.1"
