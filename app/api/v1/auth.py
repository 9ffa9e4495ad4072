"""
Authentication API endpoints: registration, login, password reset and social sign-in.
"""
import uuid
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.security import get_password_reset_subject
from app.email_service import EmailService, get_email_service
from app.middleware import limiter
from app.schemas.user import (
    UserCreate,
    UserResponse,
    RegisterResponse,
    LoginRequest,
    LoginResponse,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
    ResetPasswordRequest,
    MessageResponse,
    GoogleAuthRequest,
    AppleAuthRequest,
    LinkGoogleAccountRequest,
    LinkAppleAccountRequest,
)
from app.services.auth import AuthService
from app.services.oauth import OAuthVerifiers, get_oauth_verifiers

router = APIRouter(prefix="/auth", tags=["Authentication"])


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    verifiers: OAuthVerifiers = Depends(get_oauth_verifiers),
) -> AuthService:
    return AuthService(db, email_service, verifiers)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    auth: AuthService = Depends(get_auth_service)
):
    """
    Register a new user account.

    - **full_name**: 2 to 50 characters
    - **email**: Valid email address, not already registered
    - **password**: Minimum 6 characters
    """
    user = await auth.register(user_data.full_name, user_data.email, user_data.password)
    return RegisterResponse(
        message="User registered successfully",
        user=UserResponse.model_validate(user)
    )


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.rate_limit_auth)
async def login(
    request: Request,
    credentials: LoginRequest,
    auth: AuthService = Depends(get_auth_service)
):
    """
    Authenticate with email and password and return a bearer token (24h).
    """
    return await auth.login(credentials.email, credentials.password)


@router.post("/forgot-password", response_model=ForgotPasswordResponse, response_model_exclude_none=True)
@limiter.limit(settings.rate_limit_auth)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    auth: AuthService = Depends(get_auth_service)
):
    """
    Email a 6-digit password reset code, valid for 10 minutes.

    Outside production the code is also returned in the response.
    """
    return await auth.forgot_password(body.email)


@router.post("/verify-otp", response_model=VerifyOtpResponse)
@limiter.limit(settings.rate_limit_auth)
async def verify_otp(
    request: Request,
    body: VerifyOtpRequest,
    auth: AuthService = Depends(get_auth_service)
):
    """
    Exchange a valid reset code for a 15-minute password-reset token.
    """
    return await auth.verify_otp(body.email, body.otp)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    user_id: uuid.UUID = Depends(get_password_reset_subject),
    auth: AuthService = Depends(get_auth_service)
):
    """
    Set a new password. Requires the token returned by /verify-otp.

    The new password may not match the current one or any of the last five.
    """
    return await auth.reset_password(user_id, body.password)


@router.post("/google", response_model=LoginResponse)
async def google_sign_in(
    body: GoogleAuthRequest,
    auth: AuthService = Depends(get_auth_service)
):
    """Sign in (or sign up) with a Google ID token."""
    return await auth.oauth_sign_in("google", body.id_token)


@router.post("/apple", response_model=LoginResponse)
async def apple_sign_in(
    body: AppleAuthRequest,
    auth: AuthService = Depends(get_auth_service)
):
    """
    Sign in (or sign up) with an Apple identity token.

    - **user**: name/email hints, only sent by Apple on the first sign-in
    """
    return await auth.oauth_sign_in("apple", body.identity_token, body.user)


@router.post("/link/google", response_model=LoginResponse)
async def link_google_account(
    body: LinkGoogleAccountRequest,
    auth: AuthService = Depends(get_auth_service)
):
    """Link a Google identity to an existing email/password account."""
    return await auth.link_account("google", body.email, body.password, body.id_token)


@router.post("/link/apple", response_model=LoginResponse)
async def link_apple_account(
    body: LinkAppleAccountRequest,
    auth: AuthService = Depends(get_auth_service)
):
    """Link an Apple identity to an existing email/password account."""
    return await auth.link_account("apple", body.email, body.password, body.identity_token, body.user)
