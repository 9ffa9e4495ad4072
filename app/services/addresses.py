"""
Address book operations, scoped to the owning user.

Setting is_default on one address clears it on the user's others with a
second UPDATE; the pair is not atomic.
"""
from typing import Any
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.error_handlers import ForbiddenError, ResourceNotFoundError
from app.models.address import Address
from app.models.user import User


class AddressService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _clear_other_defaults(self, user_id: uuid.UUID, keep_id: uuid.UUID) -> None:
        await self.db.execute(
            update(Address)
            .where(Address.user_id == user_id, Address.id != keep_id)
            .values(is_default=False)
        )

    async def create(self, user: User, data: dict[str, Any]) -> Address:
        address = Address(user_id=user.id, **data)
        self.db.add(address)
        await self.db.flush()

        if address.is_default:
            await self._clear_other_defaults(user.id, address.id)

        await self.db.commit()
        await self.db.refresh(address)
        return address

    async def list_for_user(self, user: User) -> list[Address]:
        result = await self.db.execute(
            select(Address)
            .where(Address.user_id == user.id)
            .order_by(Address.created_at)
        )
        return list(result.scalars().all())

    async def get(self, user: User, address_id: uuid.UUID) -> Address:
        address = await self.db.get(Address, address_id)
        if address is None:
            raise ResourceNotFoundError("Address not found", resource="Address", identifier=address_id)
        if address.user_id != user.id:
            raise ForbiddenError("You do not have access to this address")
        return address

    async def update(self, user: User, address_id: uuid.UUID, changes: dict[str, Any]) -> Address:
        address = await self.get(user, address_id)
        for field, value in changes.items():
            setattr(address, field, value)
        await self.db.flush()

        if changes.get("is_default"):
            await self._clear_other_defaults(user.id, address.id)

        await self.db.commit()
        await self.db.refresh(address)
        return address

    async def delete(self, user: User, address_id: uuid.UUID) -> None:
        address = await self.get(user, address_id)
        await self.db.delete(address)
        await self.db.commit()
