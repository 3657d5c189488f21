"""Persistent token cache scoped per tenant.

Stores one :class:`~idlogin.models.TokenRecord` per tenant identifier in
``~/.config/idlogin/tokens/<tenant>.json`` (XDG) or the platform-equivalent
directory. Files are written atomically via
:func:`~idlogin.config.atomic_write` with ``0o600`` permissions so that
tokens are never world-readable, even momentarily, and a concurrent reader
never sees a partially written file.

Reads fail soft: a missing, unreadable or corrupt file is a cache miss.
Writes fail hard with :class:`~idlogin.exceptions.CacheWriteError`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from idlogin.config import atomic_write, get_tokens_dir
from idlogin.exceptions import CacheReadError, CacheWriteError, ConfigurationError
from idlogin.models import TokenRecord, validate_tenant_id
from idlogin.output import debug

_SUFFIX = ".json"


class TokenCache:
    """Read/write token records keyed by tenant identifier.

    Args:
        directory: Storage directory. Defaults to
            :func:`~idlogin.config.get_tokens_dir`.

    Example::

        cache = TokenCache()
        cache.save("proj_123", TokenRecord(session_token="s", refresh_token="r"))
        assert cache.load("proj_123").session_token == "s"
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        """The directory holding the cache files."""
        if self._directory is None:
            self._directory = get_tokens_dir()
        return self._directory

    def path_for(self, tenant_id: str) -> Path:
        """Return the cache file path for *tenant_id*.

        Raises:
            ConfigurationError: If the identifier is empty, hidden, or would
                escape the cache directory.
        """
        try:
            validate_tenant_id(tenant_id)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return self.directory / f"{tenant_id}{_SUFFIX}"

    def load(self, tenant_id: str) -> Optional[TokenRecord]:
        """Load the cached record for *tenant_id*.

        Returns:
            The :class:`~idlogin.models.TokenRecord`, or ``None`` if there is
            no usable record. Never raises.
        """
        try:
            return self._read(self.path_for(tenant_id))
        except (CacheReadError, ConfigurationError, OSError) as exc:
            debug(f"Token cache miss for {tenant_id!r}: {exc}")
            return None

    def _read(self, path: Path) -> Optional[TokenRecord]:
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return TokenRecord.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise CacheReadError(f"Unreadable token cache file {path}: {exc}") from exc

    def save(self, tenant_id: str, record: TokenRecord) -> TokenRecord:
        """Persist *record* for *tenant_id*, replacing any previous record.

        Returns:
            The saved record.

        Raises:
            CacheWriteError: If the directory cannot be created or the file
                cannot be written.
        """
        text = json.dumps(record.to_json_dict(), indent=2) + "\n"
        try:
            path = self.path_for(tenant_id)
            atomic_write(path, text, mode=0o600)
        except OSError as exc:
            raise CacheWriteError(
                f"Cannot write token cache for {tenant_id!r}: {exc}"
            ) from exc
        debug(f"Saved token record for {tenant_id!r} to {path}")
        return record

    def clear(self, tenant_id: str) -> bool:
        """Delete the record for *tenant_id*.

        Returns:
            ``True`` if a record existed and was removed.

        Raises:
            CacheWriteError: If the file exists but cannot be removed.
        """
        path = self.path_for(tenant_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise CacheWriteError(f"Cannot remove {path}: {exc}") from exc
        return True

    def list_tenants(self) -> list[str]:
        """Return the tenant identifiers that have a cache file, sorted."""
        if not self.directory.is_dir():
            return []
        return sorted(
            p.name[: -len(_SUFFIX)]
            for p in self.directory.glob(f"*{_SUFFIX}")
            # In-flight atomic_write temp files are dot-prefixed; tenant ids never are.
            if p.is_file() and not p.name.startswith(".")
        )

    def clear_all(self) -> int:
        """Delete every cached record.

        Returns:
            The number of records removed.
        """
        removed = 0
        for tenant_id in self.list_tenants():
            if self.clear(tenant_id):
                removed += 1
        return removed
