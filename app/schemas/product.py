"""
Pydantic schemas for Product model.
"""
from typing import Optional
from datetime import datetime
import uuid
from decimal import Decimal
from pydantic import BaseModel, ConfigDict


class ProductResponse(BaseModel):
    """Schema for product response."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    category: Optional[str] = None
    price: Decimal
    discount_percent: int
    image_url: Optional[str] = None
    is_active: bool
    created_at: datetime
