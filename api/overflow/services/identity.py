"""Session verification against the external identity provider.

The identity provider issues short-lived session JWTs whose "sub" claim is the
user's stable external id (clerk_id). In production the token is RS256-signed
and verified against the provider's JWKS endpoint; for local development a
shared HS256 secret can be configured instead.
"""

from dataclasses import dataclass
from typing import Optional

import jwt
import structlog

from overflow.config import Settings
from overflow.exceptions import InvalidSessionError

log = structlog.get_logger(__name__)

# Clock skew tolerated between us and the identity provider
LEEWAY_SECONDS = 5


@dataclass(frozen=True)
class IdentitySession:
    clerk_id: str
    session_id: Optional[str] = None


class IdentityProvider:
    def __init__(
        self,
        jwks_url: str = "",
        issuer: str = "",
        shared_secret: str = "",
    ) -> None:
        self._issuer = issuer or None
        self._secret = shared_secret
        self._jwks_client: Optional[jwt.PyJWKClient] = None
        if jwks_url:
            self._jwks_client = jwt.PyJWKClient(jwks_url, cache_keys=True)
        elif not shared_secret:
            log.warning(
                "identity_provider_unconfigured",
                message="No JWKS URL or shared secret set; every session will be rejected.",
            )

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "IdentityProvider":
        return cls(
            jwks_url=app_settings.identity_jwks_url,
            issuer=app_settings.identity_issuer,
            shared_secret=app_settings.identity_jwt_secret,
        )

    def verify(self, token: str) -> IdentitySession:
        """Verify a session token and return the session it represents.

        Raises:
            InvalidSessionError: bad signature, expired, wrong issuer, missing
                claims, or no verification key configured.
        """
        try:
            if self._jwks_client is not None:
                key = self._jwks_client.get_signing_key_from_jwt(token).key
                algorithms = ["RS256"]
            elif self._secret:
                key = self._secret
                algorithms = ["HS256"]
            else:
                raise InvalidSessionError("Identity provider not configured")

            claims = jwt.decode(
                token,
                key,
                algorithms=algorithms,
                issuer=self._issuer,
                leeway=LEEWAY_SECONDS,
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidSessionError(str(exc)) from exc

        return IdentitySession(clerk_id=claims["sub"], session_id=claims.get("sid"))
