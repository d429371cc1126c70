"""Tests for route matching, session token extraction and session verification."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from starlette.requests import Request

from overflow.config import settings
from overflow.exceptions import InvalidSessionError
from overflow.middleware.identity import (
    IdentityMiddleware,
    RouteMatcher,
    compile_route,
    session_token,
)
from overflow.services.identity import IdentityProvider

SECRET = "identity-test-secret-0123456789abcdef"


def _request(headers: dict[str, str]) -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        }
    )


def _token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def _expires_in(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


class TestRouteMatcher:
    def test_root_matches_only_root(self):
        matcher = RouteMatcher(["/"])
        assert matcher.matches("/")
        assert not matcher.matches("/ask-question")

    def test_param_segment_matches_one_segment(self):
        pattern = compile_route("/question/:id")
        assert pattern.match("/question/42")
        assert pattern.match("/question/42/")
        assert not pattern.match("/question/42/edit")
        assert not pattern.match("/question")

    def test_wildcard_suffix(self):
        matcher = RouteMatcher(["/static/*"])
        assert matcher.matches("/static")
        assert matcher.matches("/static/css/app.css")
        assert not matcher.matches("/statics")

    def test_default_public_routes(self):
        matcher = RouteMatcher(settings.public_routes)
        for path in ["/", "/community", "/tags/abc", "/profile/user_1", "/api/webhook"]:
            assert matcher.matches(path), path
        for path in ["/ask-question", "/collection", "/profile/edit/extra"]:
            assert not matcher.matches(path), path


class TestSessionToken:
    def test_bearer_header(self):
        assert session_token(_request({"Authorization": "Bearer abc.def"}), "__session") == "abc.def"

    def test_session_cookie(self):
        assert session_token(_request({"Cookie": "__session=tok123"}), "__session") == "tok123"

    def test_header_wins_over_cookie(self):
        request = _request({"Authorization": "Bearer from-header", "Cookie": "__session=from-cookie"})
        assert session_token(request, "__session") == "from-header"

    def test_no_credentials(self):
        assert session_token(_request({}), "__session") is None


class TestIdentityProvider:
    def test_valid_token_yields_clerk_id(self):
        provider = IdentityProvider(shared_secret=SECRET)
        session = provider.verify(_token({"sub": "user_abc", "sid": "sess_1", "exp": _expires_in(5)}))
        assert session.clerk_id == "user_abc"
        assert session.session_id == "sess_1"

    def test_expired_token_rejected(self):
        provider = IdentityProvider(shared_secret=SECRET)
        with pytest.raises(InvalidSessionError):
            provider.verify(_token({"sub": "user_abc", "exp": _expires_in(-10)}))

    def test_wrong_secret_rejected(self):
        provider = IdentityProvider(shared_secret=SECRET)
        token = _token({"sub": "user_abc", "exp": _expires_in(5)}, secret="another-secret-0123456789abcdef!")
        with pytest.raises(InvalidSessionError):
            provider.verify(token)

    def test_missing_subject_rejected(self):
        provider = IdentityProvider(shared_secret=SECRET)
        with pytest.raises(InvalidSessionError):
            provider.verify(_token({"exp": _expires_in(5)}))

    def test_issuer_checked_when_configured(self):
        provider = IdentityProvider(shared_secret=SECRET, issuer="https://clerk.example.com")
        with pytest.raises(InvalidSessionError):
            provider.verify(
                _token({"sub": "user_abc", "exp": _expires_in(5), "iss": "https://evil.example.com"})
            )

    def test_unconfigured_provider_rejects_everything(self):
        provider = IdentityProvider()
        with pytest.raises(InvalidSessionError):
            provider.verify(_token({"sub": "user_abc", "exp": _expires_in(5)}))


class TestSignInRoute:
    def _middleware(self, sign_in_url: str) -> IdentityMiddleware:
        return IdentityMiddleware(
            app=None,
            provider=IdentityProvider(shared_secret=SECRET),
            public_routes=["/"],
            sign_in_url=sign_in_url,
        )

    def test_local_sign_in_page_is_public(self):
        assert self._middleware("/sign-in").public.matches("/sign-in")

    def test_external_sign_in_url_adds_no_local_route(self):
        middleware = self._middleware("https://accounts.example.com/sign-in")
        assert not middleware.public.matches("/sign-in")
