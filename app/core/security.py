"""
Security utilities for authentication and authorization.
Handles JWT tokens, password and OTP hashing, and bearer-token dependencies.
"""
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Any
import secrets
import uuid

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db


ACCESS_TOKEN_TYPE = "access"
PASSWORD_RESET_TOKEN_TYPE = "password-reset"

OTP_LENGTH = 6

# Password and OTP hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

# HTTP Bearer token scheme
security_scheme = HTTPBearer(auto_error=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password (or OTP) against its hash. A missing hash never matches."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password (or OTP) using bcrypt."""
    return pwd_context.hash(password)


def matches_any(plain_password: str, hashes: Iterable[Optional[str]]) -> bool:
    return any(verify_password(plain_password, hashed) for hashed in hashes)


# Threadpool variants for code running on the event loop

async def verify_password_async(plain_password: str, hashed_password: Optional[str]) -> bool:
    return await run_in_threadpool(verify_password, plain_password, hashed_password)


async def matches_any_async(plain_password: str, hashes: Iterable[Optional[str]]) -> bool:
    return await run_in_threadpool(matches_any, plain_password, list(hashes))


async def get_password_hash_async(password: str) -> str:
    return await run_in_threadpool(get_password_hash, password)


def generate_otp() -> str:
    """Uniformly random numeric code of OTP_LENGTH digits, no leading-zero loss."""
    low = 10 ** (OTP_LENGTH - 1)
    return str(low + secrets.randbelow(9 * low))


def _encode(claims: dict[str, Any], expires_delta: timedelta) -> str:
    now = utcnow()
    to_encode = {**claims, "iat": now, "exp": now + expires_delta}
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def create_access_token(
    subject: str | uuid.UUID,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a login token.

    Args:
        subject: User ID
        email: User email at the time of issuance
        role: User role ("user" or "admin")
        expires_delta: Token lifetime, defaults to JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    return _encode(
        {
            "sub": str(subject),
            "email": email,
            "role": role,
            "type": ACCESS_TOKEN_TYPE,
        },
        expires_delta,
    )


def create_password_reset_token(
    subject: str | uuid.UUID,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create the short-lived token accepted only by the reset-password step."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.password_reset_token_expire_minutes)

    return _encode(
        {
            "sub": str(subject),
            "email": email,
            "type": PASSWORD_RESET_TOKEN_TYPE,
        },
        expires_delta,
    )


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a JWT token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def _subject_from_token(token: str, expected_type: str) -> uuid.UUID:
    payload = decode_token(token)

    if payload.get("type") != expected_type:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id_str = payload.get("sub")
    if user_id_str is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return uuid.UUID(user_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID in token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme)
) -> uuid.UUID:
    """Subject of a valid login token."""
    return _subject_from_token(credentials.credentials, ACCESS_TOKEN_TYPE)


async def get_password_reset_subject(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme)
) -> uuid.UUID:
    """Subject of a valid password-reset token. Login tokens are rejected."""
    return _subject_from_token(credentials.credentials, PASSWORD_RESET_TOKEN_TYPE)


async def get_current_user(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the current authenticated user from database.

    Raises:
        HTTPException: If the user no longer exists
    """
    # Import here to avoid circular dependency
    from app.services.users import UserStore

    user = await UserStore(db).find_by_id(user_id)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user
