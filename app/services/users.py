"""
Credential store: every read and write of a user record goes through UserStore.

Single-statement updates are atomic. Sequences that read and then write
(OTP issuance, provider linking) are not, and rely on the unique columns of
the users table to reject a lost race.
"""
from datetime import timedelta
from typing import Any, Optional
import uuid

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import (
    as_utc,
    get_password_hash_async,
    utcnow,
    matches_any_async,
    verify_password_async,
)
from app.error_handlers import ConflictError, ResourceNotFoundError
from app.logging_config import get_logger
from app.models.address import Address
from app.models.product import Product
from app.models.user import User, user_favourites

logger = get_logger("users")

_CLEAR_OTP = {"reset_otp_hash": None, "reset_otp_expiry": None}


class UserStore:
    """Async persistence operations for User records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Lookups

    async def find_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_provider_id(self, provider: str, provider_id: str) -> Optional[User]:
        column = User.google_id if provider == "google" else User.apple_id
        result = await self.db.execute(select(User).where(column == provider_id))
        return result.scalar_one_or_none()

    # Writes

    async def insert(self, user: User) -> User:
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def update_fields(self, user_id: uuid.UUID, **fields: Any) -> Optional[User]:
        """Single UPDATE of the given columns; returns the fresh record."""
        await self.db.execute(
            update(User).where(User.id == user_id).values(**fields)
        )
        await self.db.commit()
        user = await self.db.get(User, user_id, populate_existing=True)
        return user

    async def create(self, full_name: str, email: str, password: str) -> User:
        """Register a local account. Raises ConflictError on a taken email."""
        if await self.find_by_email(email) is not None:
            raise ConflictError("User with this email already exists")

        return await self.insert(User(
            full_name=full_name,
            email=email,
            password_hash=await get_password_hash_async(password),
            password_history=[],
            role="user",
            auth_provider="local",
        ))

    async def create_oauth_user(self, identity) -> User:
        """Account for a first social sign-in: no password, provider id linked."""
        user = User(
            full_name=identity.full_name or "User",
            email=identity.email,
            password_history=[],
            role="user",
            auth_provider=identity.provider,
            profile_picture=identity.profile_picture,
        )
        setattr(user, f"{identity.provider}_id", identity.provider_id)
        return await self.insert(user)

    async def link_provider(
        self,
        user: User,
        provider: str,
        provider_id: str,
        profile_picture: Optional[str] = None,
    ) -> User:
        fields: dict[str, Any] = {f"{provider}_id": provider_id}
        if profile_picture and not user.profile_picture:
            fields["profile_picture"] = profile_picture
        logger.info(f"Linking {provider} identity to user {user.id}")
        return await self.update_fields(user.id, **fields)

    async def update_profile(self, user: User, changes: dict[str, Any]) -> User:
        """Apply profile changes. Raises ConflictError if the new email is taken."""
        new_email = changes.get("email")
        if new_email and new_email != user.email:
            if await self.find_by_email(new_email) is not None:
                raise ConflictError("User with this email already exists")

        if not changes:
            return user
        return await self.update_fields(user.id, **changes)

    async def delete(self, user: User) -> None:
        """Remove the user together with addresses and favourites."""
        await self.db.execute(delete(Address).where(Address.user_id == user.id))
        await self.db.execute(delete(user_favourites).where(user_favourites.c.user_id == user.id))
        await self.db.execute(delete(User).where(User.id == user.id))
        await self.db.commit()

    # Password reset

    async def save_otp(self, email: str, otp: str) -> Optional[User]:
        """Store the hashed code, replacing any pending one for this email."""
        user = await self.find_by_email(email)
        if user is None:
            return None

        expiry = utcnow() + timedelta(minutes=settings.otp_expire_minutes)
        return await self.update_fields(
            user.id,
            reset_otp_hash=await get_password_hash_async(otp),
            reset_otp_expiry=expiry,
        )

    async def verify_otp(self, email: str, otp: str) -> Optional[User]:
        """The user if the code matches a pending, unexpired OTP; otherwise None."""
        user = await self.find_by_email(email)

        if user is None or not user.reset_otp_hash or user.reset_otp_expiry is None:
            return None

        if utcnow() > as_utc(user.reset_otp_expiry):
            logger.info(f"Expired OTP presented for user {user.id}")
            return None

        if not await verify_password_async(otp, user.reset_otp_hash):
            logger.info(f"Wrong OTP presented for user {user.id}")
            return None

        return user

    async def clear_otp(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.update_fields(user_id, **_CLEAR_OTP)

    async def reset_password(self, user_id: uuid.UUID, new_password: str) -> Optional[User]:
        """
        Replace the password, refusing the current one and any in the history.

        Returns None if the user does not exist. The previous hash becomes the
        head of password_history, which keeps at most PASSWORD_HISTORY_SIZE
        entries.
        """
        user = await self.find_by_id(user_id)
        if user is None:
            return None

        if await verify_password_async(new_password, user.password_hash):
            raise ConflictError(
                "Cannot reuse your current password. Please choose a different password."
            )

        history = list(user.password_history or [])
        if await matches_any_async(new_password, history):
            raise ConflictError(
                "Cannot reuse a previous password. Please choose a different password."
            )

        if user.password_hash:
            history.insert(0, user.password_hash)

        return await self.update_fields(
            user.id,
            password_hash=await get_password_hash_async(new_password),
            password_history=history[:settings.password_history_size],
            **_CLEAR_OTP,
        )

    # Favourites

    async def list_favourites(self, user: User) -> list[Product]:
        result = await self.db.execute(
            select(Product)
            .join(user_favourites, user_favourites.c.product_id == Product.id)
            .where(user_favourites.c.user_id == user.id)
            .order_by(Product.name)
        )
        return list(result.scalars().all())

    async def _is_favourite(self, user: User, product_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(user_favourites.c.product_id).where(
                user_favourites.c.user_id == user.id,
                user_favourites.c.product_id == product_id,
            )
        )
        return result.first() is not None

    async def add_favourite(self, user: User, product_id: uuid.UUID) -> list[Product]:
        if await self.db.get(Product, product_id) is None:
            raise ResourceNotFoundError("Product not found", resource="Product", identifier=product_id)

        if await self._is_favourite(user, product_id):
            raise ConflictError("Product already in favourites")

        await self.db.execute(
            user_favourites.insert().values(user_id=user.id, product_id=product_id)
        )
        await self.db.commit()
        return await self.list_favourites(user)

    async def remove_favourite(self, user: User, product_id: uuid.UUID) -> list[Product]:
        if not await self._is_favourite(user, product_id):
            raise ResourceNotFoundError("Product not found in favourites", resource="Product", identifier=product_id)

        await self.db.execute(
            delete(user_favourites).where(
                user_favourites.c.user_id == user.id,
                user_favourites.c.product_id == product_id,
            )
        )
        await self.db.commit()
        return await self.list_favourites(user)
