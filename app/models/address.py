"""
Address model. A user has at most one default address.
"""
import uuid
from sqlalchemy import String, Text, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class Address(Base):
    """Shipping address owned by a user."""

    __tablename__ = "addresses"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    nickname: Mapped[str] = mapped_column(String(20), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_addresses_user_default", "user_id", "is_default"),
    )

    def __repr__(self) -> str:
        return f"<Address(id={self.id}, user_id={self.user_id}, nickname={self.nickname}, default={self.is_default})>"
