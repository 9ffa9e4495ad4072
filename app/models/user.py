"""
User model for authentication and account data.
"""
from typing import Optional
from datetime import date, datetime
from sqlalchemy import String, Date, DateTime, JSON, Table, Column, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


# Favourite products, one row per (user, product) pair
user_favourites = Table(
    "user_favourites",
    Base.metadata,
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("product_id", ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    """User account model."""

    __tablename__ = "users"

    # Identity
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Credentials; password_hash is absent for accounts created through social sign-in
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    password_history: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Pending password reset, both set or both NULL
    reset_otp_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reset_otp_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    role: Mapped[str] = mapped_column(String(50), default="user", nullable=False)

    # Social sign-in
    auth_provider: Mapped[str] = mapped_column(String(20), default="local", nullable=False)
    google_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    apple_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    profile_picture: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Profile information
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    def provider_id(self, provider: str) -> Optional[str]:
        """Linked external id for 'google' or 'apple'."""
        return getattr(self, f"{provider}_id")
