"""
Address book endpoints for the authenticated user.
"""
import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.address import AddressCreate, AddressUpdate, AddressResponse
from app.schemas.user import MessageResponse
from app.services.addresses import AddressService

router = APIRouter(prefix="/addresses", tags=["Addresses"])


@router.post("", response_model=AddressResponse, status_code=status.HTTP_201_CREATED)
async def create_address(
    address_data: AddressCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create an address.

    - **nickname**: home, work or other
    - **is_default**: makes this the only default address
    """
    return await AddressService(db).create(current_user, address_data.model_dump())


@router.get("", response_model=list[AddressResponse])
async def list_addresses(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await AddressService(db).list_for_user(current_user)


@router.get("/{address_id}", response_model=AddressResponse)
async def get_address(
    address_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await AddressService(db).get(current_user, address_id)


@router.patch("/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: uuid.UUID,
    address_update: AddressUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    changes = address_update.model_dump(exclude_unset=True, exclude_none=True)
    return await AddressService(db).update(current_user, address_id, changes)


@router.delete("/{address_id}", response_model=MessageResponse)
async def delete_address(
    address_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await AddressService(db).delete(current_user, address_id)
    return MessageResponse(message="Address deleted successfully")
