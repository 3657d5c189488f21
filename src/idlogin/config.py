"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for idlogin:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.idlogin/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`. The token cache lives in :func:`get_tokens_dir`.
* **Global config** -- A single :class:`~idlogin.models.GlobalConfig`
  JSON file storing defaults (tenant, base URL, callback port, timeout).
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  environment variables, and the global config into the
  :class:`~idlogin.models.LoginSettings` of one login attempt.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so that a reader never observes a partial file.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from idlogin.exceptions import ConfigurationError
from idlogin.models import GlobalConfig, LoginSettings

_APP_NAME = "idlogin"
_CONFIG_FILENAME = "config.json"

ENV_TENANT_ID = "IDLOGIN_TENANT_ID"
ENV_BASE_URL = "IDLOGIN_BASE_URL"
ENV_CALLBACK_PORT = "IDLOGIN_CALLBACK_PORT"
ENV_TIMEOUT = "IDLOGIN_TIMEOUT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform uses XDG base directories (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/idlogin/`` (default ``~/.config/idlogin/``).
    On macOS/Windows: ``~/.idlogin/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/idlogin/`` (default ``~/.local/share/idlogin/``).
    On macOS/Windows: ``~/.idlogin/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_tokens_dir() -> Path:
    """Return the token cache directory (``<config_dir>/tokens/``).

    The directory is *not* created here; :class:`~idlogin.token_cache.TokenCache`
    creates it on first write so that a read-only lookup has no side effects.
    """
    return get_config_dir() / "tokens"


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed and the original exception propagates.

    Args:
        path: Destination file.
        data: Text content to write.
        mode: Optional permission bits applied to the temp file before any
            content is written (e.g. ``0o600`` for secrets).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~idlogin.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigurationError: If the file exists but contains invalid JSON or
            fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        return GlobalConfig.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    path = _global_config_path()
    data = config.model_dump(mode="json")
    try:
        atomic_write(path, json.dumps(data, indent=2) + "\n")
    except OSError as exc:
        raise ConfigurationError(f"Cannot write config {path}: {exc}") from exc


# --- Precedence resolution ---


def _env_number(name: str, cast: type) -> Optional[float]:
    """Read a numeric environment variable, raising ConfigurationError if malformed."""
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(
            f"Environment variable {name} must be a number, got: {raw!r}"
        ) from None


def resolve_settings(
    cli_tenant_id: Optional[str] = None,
    cli_base_url: Optional[str] = None,
    cli_callback_port: Optional[int] = None,
    cli_timeout: Optional[float] = None,
) -> LoginSettings:
    """Resolve the settings for one login with full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``IDLOGIN_TENANT_ID``, ``IDLOGIN_BASE_URL``,
           ``IDLOGIN_CALLBACK_PORT``, ``IDLOGIN_TIMEOUT``)
        3. User config (``~/.config/idlogin/config.json``)
        4. Defaults

    Returns:
        The resolved :class:`~idlogin.models.LoginSettings`.

    Raises:
        ConfigurationError: If no tenant identifier is configured anywhere,
            or a value is malformed.
    """
    global_cfg = load_global_config()

    tenant_id = global_cfg.tenant_id
    base_url = global_cfg.base_url
    port: float = global_cfg.callback_port
    timeout: float = global_cfg.timeout

    tenant_id = os.environ.get(ENV_TENANT_ID) or tenant_id
    base_url = os.environ.get(ENV_BASE_URL) or base_url
    env_port = _env_number(ENV_CALLBACK_PORT, int)
    if env_port is not None:
        port = env_port
    env_timeout = _env_number(ENV_TIMEOUT, float)
    if env_timeout is not None:
        timeout = env_timeout

    if cli_tenant_id:
        tenant_id = cli_tenant_id
    if cli_base_url:
        base_url = cli_base_url
    if cli_callback_port is not None:
        port = cli_callback_port
    if cli_timeout is not None:
        timeout = cli_timeout

    if not tenant_id:
        raise ConfigurationError(
            "A tenant identifier is required: pass --tenant, set "
            f"{ENV_TENANT_ID}, or run 'idlogin config set tenant_id <id>'"
        )

    try:
        return LoginSettings(
            tenant_id=tenant_id,
            base_url=base_url,
            callback_port=int(port),
            timeout=timeout,
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid login settings: {exc}") from exc
