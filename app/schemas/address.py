"""
Pydantic schemas for Address model.
"""
from typing import Literal, Optional
from datetime import datetime
import uuid
from pydantic import BaseModel, Field, ConfigDict


AddressNickname = Literal["home", "work", "other"]


class AddressCreate(BaseModel):
    """Schema for creating an address."""
    nickname: AddressNickname
    address: str = Field(..., min_length=1)
    is_default: bool = False


class AddressUpdate(BaseModel):
    """Schema for updating an address."""
    nickname: Optional[AddressNickname] = None
    address: Optional[str] = Field(None, min_length=1)
    is_default: Optional[bool] = None


class AddressResponse(BaseModel):
    """Schema for address response."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    nickname: str
    address: str
    is_default: bool
    created_at: datetime
    updated_at: datetime
