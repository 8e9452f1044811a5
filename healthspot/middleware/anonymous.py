"""Cookie-based anonymous visitor identity."""

import re
import secrets

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from healthspot.core.config import settings

_ANONYMOUS_ID_RE = re.compile(r"^[0-9a-f]{32}$")


class AnonymousIdMiddleware(BaseHTTPMiddleware):
    """
    Ensure every request carries an anonymous id.

    A well-formed ``anonymousId`` cookie is reused. Otherwise a random
    32-character hex id is generated, exposed on
    ``request.state.anonymous_id`` and set as an httpOnly, SameSite=strict
    cookie.
    """

    def __init__(
        self,
        app: ASGIApp,
        cookie_name: str | None = None,
        max_age: int | None = None,
        secure: bool | None = None,
    ) -> None:
        super().__init__(app)
        self.cookie_name = cookie_name or settings.ANONYMOUS_ID_COOKIE
        self.max_age = max_age or settings.ANONYMOUS_ID_MAX_AGE_SECONDS
        self.secure = settings.COOKIE_SECURE if secure is None else secure

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        existing = request.cookies.get(self.cookie_name)
        if existing and _ANONYMOUS_ID_RE.match(existing):
            request.state.anonymous_id = existing
            return await call_next(request)

        anonymous_id = secrets.token_hex(16)
        request.state.anonymous_id = anonymous_id
        response = await call_next(request)
        response.set_cookie(
            self.cookie_name,
            anonymous_id,
            max_age=self.max_age,
            httponly=True,
            samesite="strict",
            secure=self.secure,
        )
        return response
