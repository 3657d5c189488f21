"""Open a URL in the user's default browser.

The flow only needs one capability -- "show this URL to the user" -- so it
talks to a :class:`BrowserLauncher`. :func:`select_launcher` picks the
implementation for the running platform once, at startup:

* macOS -- ``open <url>``
* Windows -- ``os.startfile(<url>)`` (the shell "start" association)
* Linux / BSD -- ``xdg-open <url>``
* anything else -- :func:`webbrowser.open`

Launch failures are never fatal: :meth:`BrowserLauncher.open` reports them
with a warning and returns ``False`` so the user can copy the URL by hand.
"""

from __future__ import annotations

import os
import platform
import subprocess
import webbrowser
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from idlogin.output import debug, warning


class BrowserLauncher(ABC):
    """Capability for showing a URL to the user."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in diagnostics."""
        ...

    @abstractmethod
    def launch(self, url: str) -> None:
        """Open *url*; raise ``OSError`` or ``subprocess.SubprocessError`` on failure."""
        ...

    def open(self, url: str) -> bool:
        """Open *url*, converting failures into a warning.

        Returns:
            ``True`` if the browser was launched.
        """
        try:
            self.launch(url)
        except (OSError, subprocess.SubprocessError, webbrowser.Error) as exc:
            warning(f"Could not open a browser ({self.name}): {exc}")
            return False
        debug(f"Browser launched with {self.name}")
        return True


class CommandLauncher(BrowserLauncher):
    """Launch the browser through a platform command.

    The URL is passed as a separate argument (no shell), so characters
    such as ``&`` in the query string need no quoting.

    Args:
        command: Argument vector preceding the URL, e.g. ``["xdg-open"]``.
    """

    def __init__(self, command: Sequence[str]) -> None:
        self._command = list(command)

    @property
    def name(self) -> str:
        return self._command[0]

    def launch(self, url: str) -> None:
        subprocess.Popen(
            [*self._command, url],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )


class StartfileLauncher(BrowserLauncher):
    """Launch the default browser on Windows through the shell association."""

    @property
    def name(self) -> str:
        return "start"

    def launch(self, url: str) -> None:
        os.startfile(url)  # type: ignore[attr-defined]


class WebbrowserLauncher(BrowserLauncher):
    """Launch the browser with the standard :mod:`webbrowser` module."""

    @property
    def name(self) -> str:
        return "webbrowser"

    def launch(self, url: str) -> None:
        if not webbrowser.open(url):
            raise webbrowser.Error("no runnable browser found")


def select_launcher(system: Optional[str] = None) -> BrowserLauncher:
    """Return the launcher for *system* (default: the running platform)."""
    system = system or platform.system()
    if system == "Darwin":
        return CommandLauncher(["open"])
    if system == "Windows":
        return StartfileLauncher()
    if system == "Linux" or system.endswith("BSD"):
        return CommandLauncher(["xdg-open"])
    return WebbrowserLauncher()
