"""Domain services used by the API routers."""
from app.services.users import UserStore
from app.services.auth import AuthService
from app.services.addresses import AddressService
from app.services.oauth import (
    VerifiedIdentity,
    OAuthVerifiers,
    GoogleTokenVerifier,
    AppleTokenVerifier,
    build_oauth_verifiers,
    get_oauth_verifiers,
)

__all__ = [
    "UserStore",
    "AuthService",
    "AddressService",
    "VerifiedIdentity",
    "OAuthVerifiers",
    "GoogleTokenVerifier",
    "AppleTokenVerifier",
    "build_oauth_verifiers",
    "get_oauth_verifiers",
]
