"""
Session middleware.

Runs on every request:
- reads the ``auth_token`` cookie and verifies it with the app's TokenService
- on success stores SessionClaims on ``request.state.user``; signed-in users
  asking for /login or /register are sent to /
- with no usable session on a protected path: JSON clients get a 401 error
  body, browsers are redirected to the login page with ``returnUrl``
- an expired or invalid cookie is cleared on whatever response goes out

Public paths are a static allow-list. Nothing is kept between requests.
"""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from errors import AuthenticationError, InvalidTokenError, TokenExpiredError
from services.token_service import (
    COOKIE_NAME,
    SessionClaims,
    TokenService,
    clear_session_cookie,
)
from shared.logging import get_logger

log = get_logger(__name__)

PUBLIC_PATHS = frozenset(
    {
        "/",
        "/login",
        "/register",
        "/forgot-password",
        "/reset-password",
        "/health",
        "/auth/register",
        "/auth/login",
        "/auth/logout",
        "/auth/forgot-password",
        "/auth/reset-password",
        "/auth/reset-password/validate",
        "/docs",
        "/openapi.json",
    }
)
PUBLIC_PREFIXES = ("/static/", "/docs/")
AUTH_PAGES = frozenset({"/login", "/register"})


def _is_public(path: str, public_paths: Iterable[str]) -> bool:
    return path in public_paths or path.startswith(PUBLIC_PREFIXES)


def _wants_json(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "text/html" not in accept or request.url.path.startswith("/auth/")


def _safe_return_url(request: Request) -> Optional[str]:
    """Same-site absolute path to come back to after login, if any."""
    path = request.url.path
    if not path.startswith("/") or path.startswith("//") or path == "/":
        return None
    if request.url.query:
        return f"{path}?{request.url.query}"
    return path


class SessionMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        login_path: str = "/login",
        cookie_secure: bool = True,
        public_paths: Iterable[str] = PUBLIC_PATHS,
    ) -> None:
        super().__init__(app)
        self.login_path = login_path
        self.cookie_secure = cookie_secure
        self.public_paths = frozenset(public_paths)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.user = None
        token = request.cookies.get(COOKIE_NAME)
        failure: Optional[AuthenticationError] = None

        if token:
            token_service: TokenService = request.app.state.token_service
            try:
                request.state.user = token_service.verify(token)
            except (TokenExpiredError, InvalidTokenError) as e:
                failure = e
                log.info(
                    "session_cookie_rejected",
                    path=request.url.path,
                    reason=e.error_code,
                )

        claims: Optional[SessionClaims] = request.state.user
        path = request.url.path

        if claims is not None and path in AUTH_PAGES:
            return RedirectResponse("/", status_code=307)

        if claims is None and not _is_public(path, self.public_paths):
            response = self._unauthenticated(request, failure)
        else:
            response = await call_next(request)

        if failure is not None:
            clear_session_cookie(response, secure=self.cookie_secure)
        return response

    def _unauthenticated(
        self, request: Request, failure: Optional[AuthenticationError]
    ) -> Response:
        if _wants_json(request):
            error = failure or AuthenticationError("Not authenticated")
            return JSONResponse(status_code=401, content=error.to_dict())

        target = self.login_path
        return_url = _safe_return_url(request)
        if return_url:
            target = f"{target}?{urlencode({'returnUrl': return_url})}"
        return RedirectResponse(target, status_code=307)
