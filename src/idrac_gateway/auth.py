from __future__ import annotations

import hmac
import time
from collections.abc import Callable
from typing import Any, Final

from fastapi import Request, Response
from itsdangerous import BadData, URLSafeSerializer

from idrac_gateway.config import SESSION_MAX_AGE_S, SessionConfig

PRIVILEGED_PREFIX: Final[str] = "/api/power/"
_SESSION_SALT: Final[str] = "idrac-gateway.session"


def is_privileged_path(path: str) -> bool:
    return path.startswith(PRIVILEGED_PREFIX)


class SessionAuthority:
    """Issues and validates signed, client-held session tokens.

    The token carries the user id plus issue and expiry times. Nothing is
    stored server-side, so `revoke` can only ask the client to drop its cookie;
    a copied token stays valid until it expires.
    """

    def __init__(
        self,
        secret_key: str,
        *,
        max_age_s: int = SESSION_MAX_AGE_S,
        cookie_name: str = "idrac_session",
        cookie_secure: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._serializer = URLSafeSerializer(secret_key, salt=_SESSION_SALT)
        self.max_age_s = max_age_s
        self.cookie_name = cookie_name
        self.cookie_secure = cookie_secure
        self._clock = clock

    @classmethod
    def from_config(cls, config: SessionConfig) -> SessionAuthority:
        return cls(
            config.secret_key,
            max_age_s=config.max_age_s,
            cookie_name=config.cookie_name,
            cookie_secure=config.cookie_secure,
        )

    def issue(self, user_id: int) -> str:
        now = int(self._clock())
        return self._serializer.dumps({"uid": user_id, "iat": now, "exp": now + self.max_age_s})

    def validate(self, token: str | None) -> int | None:
        """Return the user id for a good token, or None for anything else."""

        if not token:
            return None
        try:
            payload: Any = self._serializer.loads(token)
        except BadData:
            return None
        # Base64 decoding ignores the spare low bits of the last character, so only
        # the canonical encoding of a verified payload is accepted.
        if not hmac.compare_digest(self._serializer.dumps(payload).encode(), token.encode()):
            return None

        if not isinstance(payload, dict):
            return None
        user_id = payload.get("uid")
        expires_at = payload.get("exp")
        if type(user_id) is not int or type(expires_at) is not int:
            return None
        if self._clock() >= expires_at:
            return None
        return user_id

    def attach(self, response: Response, user_id: int) -> str:
        token = self.issue(user_id)
        response.set_cookie(
            self.cookie_name,
            token,
            max_age=self.max_age_s,
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
        )
        return token

    def revoke(self, response: Response) -> None:
        response.delete_cookie(
            self.cookie_name,
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
        )

    def user_id_from_request(self, request: Request) -> int | None:
        return self.validate(extract_token_from_request(request, self.cookie_name))


def extract_token_from_request(request: Request, cookie_name: str) -> str | None:
    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        return cookie_token
    return None
