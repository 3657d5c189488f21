"""Pydantic models shared across all idlogin modules.

This is the single source of truth for data shapes in the project:

**Persisted models** -- serialised as JSON under the user's config directory:
    :class:`TokenRecord` (one file per tenant in the token cache) and
    :class:`GlobalConfig` (user-wide defaults).

**Per-attempt models** -- created for one login attempt and then discarded:
    :class:`PkceParams`, :class:`CallbackResult`, and :class:`LoginSettings`.

Persisted models ignore unknown keys so that files written by a newer
version remain readable.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from idlogin.exceptions import LoginError

DEFAULT_BASE_URL = "https://api.descope.com"
DEFAULT_CALLBACK_PORT = 8088
DEFAULT_TIMEOUT = 300.0
DEFAULT_SCOPES = ["openid", "profile", "email"]

TokenOutput = Literal["session", "refresh", "json"]


# --- Token cache ---


class TokenError(BaseModel):
    """Structured error attached to a :class:`TokenRecord`."""

    model_config = ConfigDict(extra="ignore")

    error: str
    description: Optional[str] = None


class TokenRecord(BaseModel):
    """Credentials obtained for one tenant.

    Serialised with camelCase keys (``sessionToken``, ``refreshToken``);
    both the camelCase aliases and the snake_case attribute names are
    accepted on input.

    Example::

        record = TokenRecord(ok=True, code=200, session_token="s", refresh_token="r")
        record.model_dump(by_alias=True)
        # {"ok": True, "code": 200, "sessionToken": "s", "refreshToken": "r", "error": None}
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    ok: bool = True
    code: int = 200
    session_token: str = Field(default="", alias="sessionToken")
    refresh_token: str = Field(default="", alias="refreshToken")
    error: Optional[TokenError] = None

    def to_json_dict(self) -> dict:
        """Return the on-disk / ``--output json`` representation."""
        return self.model_dump(mode="json", by_alias=True)


# --- PKCE ---


class PkceParams(BaseModel):
    """Per-attempt PKCE values (:rfc:`7636`).

    Frozen so the values cannot change once the authorization URL has been
    built. The values are excluded from ``repr`` so they never end up in
    diagnostics or tracebacks.
    """

    model_config = ConfigDict(frozen=True)

    state: str = Field(repr=False)
    code_verifier: str = Field(repr=False, min_length=43, max_length=128)
    code_challenge: str = Field(repr=False)


# --- Callback ---


class CallbackResult(BaseModel):
    """Outcome of the single meaningful callback request.

    Exactly one of :attr:`code` and :attr:`error` is set.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    code: Optional[str] = Field(default=None, repr=False)
    error: Optional[LoginError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.code)

    def unwrap(self) -> str:
        """Return the authorization code, or raise the recorded error."""
        if self.error is not None:
            raise self.error
        assert self.code is not None
        return self.code


# --- Configuration ---


class OutputConfig(BaseModel):
    """Default output preferences stored in :class:`GlobalConfig`."""

    token: TokenOutput = Field(
        default="session",
        description="What `login` prints to stdout: session, refresh, json",
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/idlogin/config.json``.

    Fields here have the lowest precedence and can be overridden by
    environment variables or CLI flags. See
    :func:`~idlogin.config.resolve_settings` for the full precedence chain.
    """

    model_config = ConfigDict(extra="ignore")

    tenant_id: Optional[str] = Field(
        default=None, description="Default tenant / project identifier"
    )
    base_url: str = Field(
        default=DEFAULT_BASE_URL, description="Identity provider base URL"
    )
    callback_port: int = Field(
        default=DEFAULT_CALLBACK_PORT, ge=1, le=65535,
        description="Local port for the OAuth2 redirect",
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT, gt=0, description="Seconds to wait for the callback"
    )
    output: OutputConfig = Field(default_factory=OutputConfig)


def validate_tenant_id(tenant_id: str) -> str:
    """Check that *tenant_id* can name a cache file and return it.

    Raises:
        ValueError: If the identifier is empty, hidden (leading ``.``), or
            contains a path separator or NUL.
    """
    if (
        not tenant_id
        or tenant_id.startswith(".")
        or "/" in tenant_id
        or "\\" in tenant_id
        or "\x00" in tenant_id
    ):
        raise ValueError(f"Invalid tenant identifier: {tenant_id!r}")
    return tenant_id


class LoginSettings(BaseModel):
    """Fully resolved settings for one login attempt."""

    tenant_id: str = Field(min_length=1)
    base_url: str = DEFAULT_BASE_URL
    callback_port: int = Field(default=DEFAULT_CALLBACK_PORT, ge=1, le=65535)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    callback_path: str = "/callback"

    @field_validator("tenant_id")
    @classmethod
    def _check_tenant_id(cls, value: str) -> str:
        return validate_tenant_id(value)

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.callback_port}{self.callback_path}"

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/oauth2/v1/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/oauth2/v1/token"

    @property
    def userinfo_endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/oauth2/v1/userinfo"
