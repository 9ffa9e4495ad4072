"""
Authentication flows: registration, login, OTP password reset and social
sign-in / account linking.

AuthService raises the application exceptions from app.error_handlers; the
routers in app.api.v1.auth only translate HTTP payloads to calls here.
Notification emails are sent after the state change is committed and never
fail the operation.
"""
from typing import Optional
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import (
    create_access_token,
    create_password_reset_token,
    generate_otp,
    verify_password_async,
)
from app.email_service import EmailService, notify
from app.error_handlers import (
    BadRequestError,
    ConflictError,
    ResourceNotFoundError,
    UnauthorizedError,
)
from app.logging_config import get_logger
from app.models.user import User
from app.schemas.user import (
    AppleUserInfo,
    ForgotPasswordResponse,
    LoginResponse,
    MessageResponse,
    UserResponse,
    VerifyOtpResponse,
)
from app.services.oauth import OAuthVerifiers, VerifiedIdentity
from app.services.users import UserStore

logger = get_logger("auth")

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """Credential lifecycle over one database session."""

    def __init__(
        self,
        db: AsyncSession,
        email_service: EmailService,
        verifiers: Optional[OAuthVerifiers] = None,
    ):
        self.users = UserStore(db)
        self.email_service = email_service
        self.verifiers = verifiers

    # Local accounts

    async def register(self, full_name: str, email: str, password: str) -> User:
        user = await self.users.create(full_name, email, password)
        logger.info(f"Registered user {user.id}")
        await notify(self.email_service.send_welcome_email, user.email, user.full_name)
        return user

    async def validate_user(self, email: str, password: str) -> Optional[User]:
        """The user if the password matches, else None. The reason is only logged."""
        user = await self.users.find_by_email(email)

        if user is None:
            logger.info(f"Login failed: no account for {email}")
            return None

        if not user.password_hash:
            logger.info(f"Login failed: user {user.id} has no local password ({user.auth_provider} account)")
            return None

        if not await verify_password_async(password, user.password_hash):
            logger.info(f"Login failed: wrong password for user {user.id}")
            return None

        return user

    def issue_login(self, user: User) -> LoginResponse:
        token = create_access_token(subject=user.id, email=user.email, role=user.role)
        return LoginResponse(
            access_token=token,
            token_type="bearer",
            user=UserResponse.model_validate(user),
        )

    async def login(self, email: str, password: str) -> LoginResponse:
        user = await self.validate_user(email, password)
        if user is None:
            raise UnauthorizedError(INVALID_CREDENTIALS)
        return self.issue_login(user)

    # Password reset

    async def forgot_password(self, email: str) -> ForgotPasswordResponse:
        otp = generate_otp()
        user = await self.users.save_otp(email, otp)

        if user is None:
            raise ResourceNotFoundError("User with this email does not exist", resource="User")

        delivered = await notify(self.email_service.send_otp_email, user.email, otp)
        if not delivered:
            logger.warning(f"OTP for user {user.id} issued but not delivered")

        return ForgotPasswordResponse(
            message="OTP sent to your email address",
            otp=None if settings.is_production else otp,
        )

    async def verify_otp(self, email: str, otp: str) -> VerifyOtpResponse:
        user = await self.users.verify_otp(email, otp)

        if user is None:
            raise UnauthorizedError("Invalid or expired OTP")

        # Single use
        await self.users.clear_otp(user.id)

        return VerifyOtpResponse(
            message="OTP verified successfully",
            access_token=create_password_reset_token(subject=user.id, email=user.email),
        )

    async def reset_password(self, user_id: uuid.UUID, new_password: str) -> MessageResponse:
        user = await self.users.reset_password(user_id, new_password)

        if user is None:
            raise ResourceNotFoundError("User not found", resource="User", identifier=user_id)

        logger.info(f"Password reset for user {user.id}")
        await notify(self.email_service.send_password_reset_confirmation, user.email, user.full_name)
        return MessageResponse(message="Password reset successfully")

    # Social sign-in

    async def _verify(
        self,
        provider: str,
        token: str,
        hints: Optional[AppleUserInfo] = None,
    ) -> VerifiedIdentity:
        return await self.verifiers.for_provider(provider).verify(token, hints)

    async def oauth_sign_in(
        self,
        provider: str,
        token: str,
        hints: Optional[AppleUserInfo] = None,
    ) -> LoginResponse:
        """
        Sign in with a Google or Apple token, linking or creating the account.

        A provider-verified email is matched against existing accounts first.
        Otherwise an account that already holds the provider id (its email
        has changed since) is used, or a password-less account is created.
        An unverified email never selects an existing account.
        """
        identity = await self._verify(provider, token, hints)
        label = provider.capitalize()

        if not identity.email:
            raise BadRequestError(f"Email is required from {label} Sign-In")

        user = None
        if identity.email_verified:
            user = await self.users.find_by_email(identity.email)

        if user is not None:
            linked_id = user.provider_id(provider)
            if linked_id is None:
                owner = await self.users.find_by_provider_id(provider, identity.provider_id)
                if owner is not None:
                    logger.warning(
                        f"{provider} id already linked to user {owner.id}, sign-in for {user.id} refused"
                    )
                    raise ConflictError(f"This {label} account is already linked to another user")
                user = await self.users.link_provider(
                    user, provider, identity.provider_id, identity.profile_picture
                )
            elif linked_id != identity.provider_id:
                logger.warning(f"User {user.id} is linked to a different {provider} id, sign-in refused")
                raise ConflictError(f"A different {label} account is already linked to this user")
        else:
            user = await self.users.find_by_provider_id(provider, identity.provider_id)
            if user is None:
                if not identity.email_verified and await self.users.find_by_email(identity.email):
                    logger.warning(f"Unverified {provider} email matches an existing account, sign-in refused")
                    raise ConflictError("User with this email already exists")
                user = await self.users.create_oauth_user(identity)
                logger.info(f"Created {provider} account {user.id}")

        return self.issue_login(user)

    async def link_account(
        self,
        provider: str,
        email: str,
        password: str,
        token: str,
        hints: Optional[AppleUserInfo] = None,
    ) -> LoginResponse:
        """Attach a provider identity to a local account proven by its password."""
        user = await self.validate_user(email, password)
        if user is None:
            raise UnauthorizedError(INVALID_CREDENTIALS)

        identity = await self._verify(provider, token, hints)
        label = provider.capitalize()

        if user.provider_id(provider):
            raise BadRequestError(f"{label} account already linked to this user")

        owner = await self.users.find_by_provider_id(provider, identity.provider_id)
        if owner is not None:
            raise BadRequestError(f"This {label} account is already linked to another user")

        user = await self.users.link_provider(user, provider, identity.provider_id, identity.profile_picture)
        return self.issue_login(user)
