"""Opaque refresh token generation and keyed hashing."""

from __future__ import annotations

import hashlib
import hmac
import secrets

from portal_auth.application.ports.token_codec_port import OpaqueTokenPort
from portal_auth.config.policy import require_secret

_TOKEN_BYTES = 48


class OpaqueTokenService(OpaqueTokenPort):
    """Issue random refresh tokens and derive the digest stored for them."""

    def __init__(self, *, secret: str) -> None:
        self._key = require_secret(name="refresh token secret", value=secret).encode("utf-8")

    def issue_token(self) -> str:
        return secrets.token_urlsafe(_TOKEN_BYTES)

    def hash_token(self, token: str) -> str:
        return hmac.new(self._key, token.encode("utf-8"), hashlib.sha256).hexdigest()
