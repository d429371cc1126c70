"""Route protection backed by the external identity provider.

Every request first has its session token (Authorization bearer header, or the
provider's session cookie) resolved to a clerk_id, which is stored on
request.state for the dependencies to pick up. Requests to routes outside the
public allow-list are then rejected without a valid session: JSON API
requests get 401, page requests are redirected to the sign-in URL.

Ignored routes (e.g. the provider's own webhook) skip session handling
entirely.

Route patterns: "/tags/:id" matches exactly one path segment for ":id", a
trailing "/*" matches any suffix, and a trailing slash on the request path is
ignored.
"""

import re
from typing import Iterable, Optional
from urllib.parse import quote, urlsplit

import structlog
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from overflow.exceptions import InvalidSessionError
from overflow.services.identity import IdentityProvider

log = structlog.get_logger()


def _segments(pattern: str) -> str:
    parts = []
    for segment in pattern.strip("/").split("/"):
        if not segment:
            continue
        parts.append("[^/]+" if segment.startswith(":") else re.escape(segment))
    return "/" + "/".join(parts)


def compile_route(pattern: str) -> re.Pattern:
    if pattern.endswith("/*"):
        return re.compile(f"^{_segments(pattern[:-2])}(/.*)?$")
    return re.compile(f"^{_segments(pattern)}/?$")


class RouteMatcher:
    def __init__(self, patterns: Iterable[str]) -> None:
        self._patterns = [compile_route(p) for p in patterns]

    def matches(self, path: str) -> bool:
        return any(p.match(path) for p in self._patterns)


def session_token(request: Request, cookie_name: str) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.cookies.get(cookie_name)


class IdentityMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        provider: IdentityProvider,
        public_routes: Iterable[str],
        ignored_routes: Iterable[str] = (),
        session_cookie: str = "__session",
        sign_in_url: str = "/sign-in",
    ) -> None:
        super().__init__(app)
        self.provider = provider
        public_routes = list(public_routes)
        # A local sign-in page must stay reachable or every redirect loops
        sign_in = urlsplit(sign_in_url)
        if not sign_in.netloc and sign_in.path:
            public_routes.append(sign_in.path)
        self.public = RouteMatcher(public_routes)
        self.ignored = RouteMatcher(ignored_routes)
        self.session_cookie = session_cookie
        self.sign_in_url = sign_in_url

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        request.state.clerk_id = None

        if self.ignored.matches(path):
            return await call_next(request)

        token = session_token(request, self.session_cookie)
        if token:
            try:
                # JWKS lookups may hit the network; keep them off the event loop
                session = await run_in_threadpool(self.provider.verify, token)
            except InvalidSessionError as exc:
                log.info("session_rejected", reason=str(exc))
            else:
                request.state.clerk_id = session.clerk_id
                structlog.contextvars.bind_contextvars(clerk_id=session.clerk_id)

        if request.state.clerk_id is None and not self.public.matches(path):
            if path.startswith("/api/"):
                return JSONResponse({"detail": "Authentication required"}, status_code=401)
            return RedirectResponse(
                f"{self.sign_in_url}?redirect_url={quote(path)}", status_code=307
            )

        return await call_next(request)
