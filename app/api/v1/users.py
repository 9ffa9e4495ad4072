"""
Current-user endpoints: profile, account deletion and favourites.
"""
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_user
from app.email_service import EmailService, get_email_service, notify
from app.logging_config import get_logger
from app.models.user import User
from app.schemas.user import UserResponse, UserUpdate, MessageResponse
from app.schemas.product import ProductResponse
from app.services.users import UserStore

logger = get_logger("api.users")

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the authenticated user's profile."""
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """
    Update the authenticated user's profile.

    Changing **email** notifies the previous address.
    """
    old_email = current_user.email
    changes = user_update.model_dump(exclude_unset=True, exclude_none=True)

    user = await UserStore(db).update_profile(current_user, changes)

    if user.email != old_email:
        await notify(email_service.send_email_change_notification, old_email, user.email, user.full_name)

    return user


@router.delete("/me", response_model=MessageResponse)
async def delete_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """Delete the authenticated user's account, addresses and favourites."""
    email, full_name, user_id = current_user.email, current_user.full_name, current_user.id

    await UserStore(db).delete(current_user)
    logger.info(f"Deleted user {user_id}")

    await notify(email_service.send_account_deletion_notification, email, full_name)
    return MessageResponse(message="Account deleted successfully")


@router.get("/me/favourites", response_model=list[ProductResponse])
async def get_favourites(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the authenticated user's favourite products."""
    return await UserStore(db).list_favourites(current_user)


@router.post(
    "/me/favourites/{product_id}",
    response_model=list[ProductResponse],
    status_code=status.HTTP_201_CREATED
)
async def add_favourite(
    product_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Add a product to favourites."""
    return await UserStore(db).add_favourite(current_user, product_id)


@router.delete("/me/favourites/{product_id}", response_model=list[ProductResponse])
async def remove_favourite(
    product_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Remove a product from favourites."""
    return await UserStore(db).remove_favourite(current_user, product_id)
