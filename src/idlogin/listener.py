"""One-shot local HTTP listener for the OAuth2 redirect.

:class:`CallbackListener` binds a loopback-only port, serves requests on a
background thread, and accepts exactly one meaningful ``GET`` on the
callback path. The first such request resolves a single-fire
:class:`~concurrent.futures.Future` with a
:class:`~idlogin.models.CallbackResult`; every later request is refused.

Lifecycle::

    IDLE --start()--> LISTENING --callback / timeout / cancel / close()--> TERMINATED

The callback is evaluated in a fixed order: provider ``error`` first, then
``state`` (before the ``code`` is looked at), then presence of ``code``.
The port is released on every exit path, and :meth:`CallbackListener.close`
may be called any number of times.
"""

from __future__ import annotations

import enum
import html
import secrets
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from idlogin.exceptions import (
    LoginCancelled,
    LoginTimeout,
    MissingCode,
    PortBindError,
    ProviderRejected,
    StateMismatch,
)
from idlogin.models import DEFAULT_CALLBACK_PORT, CallbackResult
from idlogin.output import debug

LOOPBACK_HOST = "127.0.0.1"

SUCCESS_MESSAGE = "Login successful! You may close this browser window."


class ListenerState(str, enum.Enum):
    """Lifecycle states of a :class:`CallbackListener`."""

    IDLE = "idle"
    LISTENING = "listening"
    TERMINATED = "terminated"


class _CallbackHandler(BaseHTTPRequestHandler):
    """Routes requests to the owning :class:`CallbackListener`."""

    server: "_CallbackServer"
    # Bound the time a silent connection (e.g. a browser preconnect) can hold
    # the single-threaded server.
    timeout = 5

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        listener = self.server.listener
        if parsed.path != listener.callback_path:
            self._respond(404, "Not found.")
            return
        status, message = listener.handle_callback(parsed.query)
        self._respond(status, message)

    def _respond(self, status: int, message: str) -> None:
        body = (
            "<html><head><title>Login</title></head>"
            f"<body><h2>{html.escape(message)}</h2></body></html>"
        ).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(body)

    def log_request(self, code: Any = "-", size: Any = "-") -> None:
        # The query string carries the code and state; log the path only.
        debug(f"Callback listener: {self.command} {urlparse(self.path).path} -> {code}")

    def log_message(self, format: str, *args: Any) -> None:
        pass


class _CallbackServer(HTTPServer):
    # A second process must not be able to share the callback port.
    allow_reuse_port = False

    def __init__(self, address: tuple[str, int], listener: "CallbackListener") -> None:
        self.listener = listener
        super().__init__(address, _CallbackHandler)

    def handle_error(self, request: Any, client_address: Any) -> None:
        # e.g. the browser dropped the connection before reading the page
        debug(f"Callback listener: error while handling request from {client_address[0]}")


class CallbackListener:
    """Receive the authorization code for one login attempt.

    Args:
        expected_state: The ``state`` value issued in the authorization URL.
        port: Local TCP port to bind on ``127.0.0.1``. ``0`` picks a free
            port (see :attr:`port` after :meth:`start`).
        callback_path: The only path that is treated as the redirect.
        poll_interval: Seconds between checks for termination while idle.

    Example::

        with CallbackListener(pkce.state, port=8088) as listener:
            launcher.open(auth_url)
            code = listener.wait(timeout=300)
    """

    def __init__(
        self,
        expected_state: str,
        port: int = DEFAULT_CALLBACK_PORT,
        callback_path: str = "/callback",
        poll_interval: float = 0.2,
    ) -> None:
        self._expected_state = expected_state
        self._port = port
        self.callback_path = callback_path
        self._poll_interval = poll_interval
        self._state = ListenerState.IDLE
        self._lock = threading.Lock()
        self._result: Future[CallbackResult] = Future()
        self._server: Optional[_CallbackServer] = None
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    @property
    def state(self) -> ListenerState:
        """Current lifecycle state."""
        return self._state

    @property
    def port(self) -> int:
        """The bound port (the requested one until :meth:`start` succeeds)."""
        return self._port

    @property
    def done(self) -> bool:
        """Whether the completion signal has fired."""
        return self._result.done()

    def __enter__(self) -> "CallbackListener":
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def start(self) -> "CallbackListener":
        """Bind the port and begin serving on a background thread.

        Raises:
            PortBindError: If the port cannot be bound (e.g. already in use).
            RuntimeError: If the listener was already started.
        """
        with self._lock:
            if self._state is not ListenerState.IDLE:
                raise RuntimeError(f"Callback listener is already {self._state.value}")
            try:
                server = _CallbackServer((LOOPBACK_HOST, self._port), self)
            except OSError as exc:
                self._state = ListenerState.TERMINATED
                raise PortBindError(self._port, exc.strerror or str(exc)) from exc
            server.timeout = self._poll_interval
            self._server = server
            self._port = server.server_address[1]
            self._state = ListenerState.LISTENING

        self._thread = threading.Thread(
            target=self._serve,
            name=f"idlogin-callback-{self._port}",
            daemon=True,
        )
        self._thread.start()
        debug(f"Callback listener started on {LOOPBACK_HOST}:{self._port}")
        return self

    def _serve(self) -> None:
        server = self._server
        assert server is not None
        try:
            while self._state is ListenerState.LISTENING:
                server.handle_request()
        finally:
            server.server_close()

    def handle_callback(self, query: str) -> tuple[int, str]:
        """Evaluate the query string of a request to the callback path.

        Resolves the completion signal on the first call while
        :attr:`state` is ``LISTENING``; later calls change nothing.

        Args:
            query: The raw URL query string.

        Returns:
            The HTTP status and the human-readable message to render.
        """
        params = parse_qs(query, keep_blank_values=True)

        def first(name: str) -> Optional[str]:
            values = params.get(name)
            return values[0] if values else None

        error = first("error")
        received_state = first("state")
        code = first("code")

        if error:
            description = first("error_description")
            result = CallbackResult(error=ProviderRejected(error, description))
            status, message = 400, f"Login failed: {error}"
            if description:
                message += f" - {description}"
        elif received_state is None or not secrets.compare_digest(
            received_state.encode("utf-8"), self._expected_state.encode("utf-8")
        ):
            result = CallbackResult(error=StateMismatch())
            status, message = 400, "Login failed: invalid state."
        elif not code:
            result = CallbackResult(error=MissingCode())
            status, message = 400, "Login failed: missing authorization code."
        else:
            result = CallbackResult(code=code)
            status, message = 200, SUCCESS_MESSAGE

        if not self._finish(result):
            return 410, "This login attempt has already completed."
        return status, message

    def _finish(self, result: CallbackResult) -> bool:
        """Move to TERMINATED and fire the completion signal, once."""
        with self._lock:
            if self._state is not ListenerState.LISTENING or self._result.done():
                return False
            self._state = ListenerState.TERMINATED
            self._result.set_result(result)
            return True

    def wait(self, timeout: Optional[float] = None) -> str:
        """Block until the callback arrives and return the authorization code.

        The listener is closed before this method returns or raises.

        Args:
            timeout: Seconds to wait. ``None`` waits until :meth:`cancel`
                or :meth:`close` is called from another thread.

        Raises:
            ProviderRejected, StateMismatch, MissingCode: From the callback.
            LoginTimeout: If nothing arrived within *timeout* seconds.
            LoginCancelled: If the attempt was aborted.
        """
        try:
            try:
                result = self._result.result(timeout=timeout)
            except FutureTimeout:
                self._finish(
                    CallbackResult(
                        error=LoginTimeout(
                            f"No login callback received within {timeout:g} seconds"
                        )
                    )
                )
                result = self._result.result()
        finally:
            self.close()
        return result.unwrap()

    def cancel(self) -> bool:
        """Abort a pending attempt; :meth:`wait` raises ``LoginCancelled``.

        Returns:
            ``True`` if the attempt was still pending.
        """
        return self._finish(CallbackResult(error=LoginCancelled("Login cancelled")))

    def close(self) -> None:
        """Stop serving and release the port. Safe to call repeatedly."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if not self._result.done():
                self._result.set_result(
                    CallbackResult(error=LoginCancelled("Login cancelled"))
                )
            self._state = ListenerState.TERMINATED

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        if self._server is not None:
            self._server.server_close()
        debug(f"Callback listener on port {self._port} closed")
