"""PKCE parameter generation (:rfc:`7636`).

:func:`generate` returns a fresh :class:`~idlogin.models.PkceParams` for
every login attempt: a random ``state`` for CSRF protection and a random
``code_verifier`` with its S256 ``code_challenge``.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from idlogin.models import PkceParams

STATE_BYTES = 16
VERIFIER_BYTES = 64


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def compute_challenge(code_verifier: str) -> str:
    """Return ``base64url_nopad(SHA256(code_verifier))``."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return _b64url(digest)


def generate() -> PkceParams:
    """Generate the state, code verifier and code challenge for one attempt.

    Uses :mod:`secrets`; there is no fallback source of randomness. The
    verifier encodes 64 random bytes, giving 86 characters from the
    unreserved set.
    """
    state = _b64url(secrets.token_bytes(STATE_BYTES))
    code_verifier = _b64url(secrets.token_bytes(VERIFIER_BYTES))
    return PkceParams(
        state=state,
        code_verifier=code_verifier,
        code_challenge=compute_challenge(code_verifier),
    )
