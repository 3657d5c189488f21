"""Shared test fixtures for idlogin.

Provides isolated config environments, output state management, fake
collaborators for the login flow, and a CLI runner. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import socket
from http.client import HTTPConnection
from pathlib import Path
from typing import Any, Optional

import pytest

from idlogin.browser import BrowserLauncher
from idlogin.models import TokenRecord
from idlogin.output import OutputManager, reset_output, set_output
from idlogin.provider import IdentityProvider


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file"). Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Forces the XDG layout, points XDG_CONFIG_HOME and XDG_DATA_HOME at
    subdirectories of tmp_path, and clears all IDLOGIN_* environment
    variables so that tests never touch real user config.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("idlogin.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "IDLOGIN_TENANT_ID",
        "IDLOGIN_BASE_URL",
        "IDLOGIN_CALLBACK_PORT",
        "IDLOGIN_TIMEOUT",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless output manager for the test."""
    output = OutputManager(no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Network helpers
# ---------------------------------------------------------------------------


def free_port() -> int:
    """Return a loopback port that is currently free."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def http_get(port: int, path: str) -> tuple[int, str]:
    """Send a GET to the local listener and return (status, body)."""
    conn = HTTPConnection("127.0.0.1", port, timeout=5)
    try:
        conn.request("GET", path)
        response = conn.getresponse()
        return response.status, response.read().decode("utf-8")
    finally:
        conn.close()


@pytest.fixture
def port() -> int:
    """A free loopback port for a callback listener."""
    return free_port()


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeProvider(IdentityProvider):
    """In-memory identity provider.

    Accepts exactly the session tokens in ``valid_tokens`` and returns
    ``refreshed`` from :meth:`refresh_session`.
    """

    def __init__(
        self,
        valid_tokens: Optional[set[str]] = None,
        refreshed: Optional[TokenRecord] = None,
    ) -> None:
        self.valid_tokens = valid_tokens or set()
        self.refreshed = refreshed
        self.validated: list[str] = []
        self.refreshed_with: list[str] = []

    def validate_session(self, session_token: str) -> dict[str, Any]:
        from idlogin.exceptions import SessionError

        self.validated.append(session_token)
        if session_token not in self.valid_tokens:
            raise SessionError("Session rejected with status 401")
        return {"sub": "U123", "email": "user@example.com"}

    def refresh_session(self, refresh_token: str) -> TokenRecord:
        from idlogin.exceptions import SessionError

        self.refreshed_with.append(refresh_token)
        if self.refreshed is None:
            raise SessionError("Session refresh failed")
        return self.refreshed


class RecordingLauncher(BrowserLauncher):
    """Launcher that records URLs and optionally runs a hook instead of a browser."""

    def __init__(self, on_launch: Any = None, succeed: bool = True) -> None:
        self.urls: list[str] = []
        self._on_launch = on_launch
        self._succeed = succeed

    @property
    def name(self) -> str:
        return "recording"

    def launch(self, url: str) -> None:
        self.urls.append(url)
        if not self._succeed:
            raise OSError("no browser available")
        if self._on_launch is not None:
            self._on_launch(url)


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
