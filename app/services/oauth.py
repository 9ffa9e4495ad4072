"""
Google and Apple identity-token verification.

Both providers publish their signing keys as a JWKS document. A verifier
fetches the document with httpx, keeps it for OAUTH_JWKS_CACHE_SECONDS and
checks signature, audience, issuer and expiry with python-jose. Verifiers are
built once at start-up (see app.main) and handed to request handlers through
get_oauth_verifiers.
"""
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from fastapi import Request
from jose import jwt
from jose.exceptions import JOSEError

from app.core.config import Settings
from app.error_handlers import UnauthorizedError
from app.logging_config import get_logger
from app.schemas.user import AppleUserInfo

logger = get_logger("oauth")

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")
APPLE_ISSUER = "https://appleid.apple.com"


@dataclass(frozen=True)
class VerifiedIdentity:
    """What a provider vouches for after a successful token check."""
    provider: str
    provider_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    profile_picture: Optional[str] = None
    # False when the email came from unsigned client data
    email_verified: bool = True


def _name_from_email(email: Optional[str]) -> str:
    if email:
        return email.split("@")[0]
    return "User"


def _claim_is_true(value: Any) -> bool:
    # Providers have sent booleans and "true"/"false" strings
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


class JwksTokenVerifier:
    """RS256 ID-token verification against a provider's published keys."""

    provider: str = ""
    issuers: tuple[str, ...] = ()
    algorithms = ["RS256"]

    def __init__(
        self,
        audience: Optional[str],
        jwks_url: str,
        http_client: httpx.AsyncClient,
        cache_seconds: int = 3600,
    ):
        self.audience = audience
        self.jwks_url = jwks_url
        self.http_client = http_client
        self.cache_seconds = cache_seconds
        self._keys: list[dict[str, Any]] = []
        self._fetched_at: Optional[float] = None

    def _failure(self) -> UnauthorizedError:
        return UnauthorizedError(f"Failed to verify {self.provider.capitalize()} token")

    async def _fetch_keys(self) -> list[dict[str, Any]]:
        response = await self.http_client.get(self.jwks_url)
        response.raise_for_status()
        return response.json().get("keys", [])

    async def _signing_keys(self, refresh: bool = False) -> list[dict[str, Any]]:
        stale = (
            self._fetched_at is None
            or time.monotonic() - self._fetched_at > self.cache_seconds
        )
        if refresh or stale:
            try:
                self._keys = await self._fetch_keys()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Could not fetch {self.provider} signing keys from {self.jwks_url}: {e}")
                raise self._failure()
            self._fetched_at = time.monotonic()
        return self._keys

    async def _find_key(self, kid: str) -> dict[str, Any]:
        for key in await self._signing_keys():
            if key.get("kid") == kid:
                return key
        # Unknown kid: the provider may have rotated its keys since the last fetch
        for key in await self._signing_keys(refresh=True):
            if key.get("kid") == kid:
                return key
        logger.info(f"{self.provider} token signed with unknown key id {kid}")
        raise self._failure()

    async def verify_claims(self, token: str) -> dict[str, Any]:
        """Return the token's claims, or raise UnauthorizedError."""
        if not self.audience:
            logger.error(f"{self.provider} sign-in attempted but no audience is configured")
            raise self._failure()

        try:
            header = jwt.get_unverified_header(token)
        except JOSEError:
            logger.info(f"Malformed {self.provider} token")
            raise self._failure()

        kid = header.get("kid")
        if not kid:
            logger.info(f"{self.provider} token missing key id")
            raise self._failure()

        key = await self._find_key(kid)

        try:
            return jwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuers,
                options={"verify_at_hash": False},
            )
        except JOSEError as e:
            logger.info(f"{self.provider} token rejected: {e}")
            raise self._failure()

    async def verify(self, token: str, hints: Optional[AppleUserInfo] = None) -> VerifiedIdentity:
        raise NotImplementedError


class GoogleTokenVerifier(JwksTokenVerifier):
    provider = "google"
    issuers = GOOGLE_ISSUERS

    async def verify(self, token: str, hints: Optional[AppleUserInfo] = None) -> VerifiedIdentity:
        claims = await self.verify_claims(token)
        email = claims.get("email")
        if email and not _claim_is_true(claims.get("email_verified", True)):
            logger.info(f"Ignoring unverified email on google token for {claims['sub']}")
            email = None
        return VerifiedIdentity(
            provider=self.provider,
            provider_id=str(claims["sub"]),
            email=email,
            full_name=claims.get("name") or _name_from_email(email),
            profile_picture=claims.get("picture"),
        )


class AppleTokenVerifier(JwksTokenVerifier):
    """
    Apple puts the name only in the client-side hints of the first sign-in.

    The hints are not signed. Their email is used only when the token carries
    none, and is then reported with email_verified=False.
    """

    provider = "apple"
    issuers = (APPLE_ISSUER,)

    async def verify(self, token: str, hints: Optional[AppleUserInfo] = None) -> VerifiedIdentity:
        claims = await self.verify_claims(token)
        email = claims.get("email")
        email_verified = bool(email)
        if not email and hints is not None:
            email = hints.email

        full_name = None
        if hints and (hints.first_name or hints.last_name):
            full_name = f"{hints.first_name or ''} {hints.last_name or ''}".strip()

        return VerifiedIdentity(
            provider=self.provider,
            provider_id=str(claims["sub"]),
            email=email,
            full_name=full_name or _name_from_email(email),
            email_verified=email_verified,
        )


@dataclass
class OAuthVerifiers:
    """Per-provider verifiers sharing one HTTP client."""
    google: JwksTokenVerifier
    apple: JwksTokenVerifier
    http_client: Optional[httpx.AsyncClient] = None

    def for_provider(self, provider: str) -> JwksTokenVerifier:
        return getattr(self, provider)

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()


def build_oauth_verifiers(settings: Settings) -> OAuthVerifiers:
    http_client = httpx.AsyncClient(timeout=settings.oauth_http_timeout)
    return OAuthVerifiers(
        google=GoogleTokenVerifier(
            audience=settings.google_client_id,
            jwks_url=settings.google_jwks_url,
            http_client=http_client,
            cache_seconds=settings.oauth_jwks_cache_seconds,
        ),
        apple=AppleTokenVerifier(
            audience=settings.apple_bundle_id,
            jwks_url=settings.apple_jwks_url,
            http_client=http_client,
            cache_seconds=settings.oauth_jwks_cache_seconds,
        ),
        http_client=http_client,
    )


def get_oauth_verifiers(request: Request) -> OAuthVerifiers:
    """Dependency returning the verifiers built in the application lifespan."""
    return request.app.state.oauth_verifiers
