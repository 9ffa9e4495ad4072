"""Core application modules."""
from app.core.config import settings
from app.core.database import Base, get_db, close_db
from app.core.security import (
    get_password_hash,
    verify_password,
    generate_otp,
    create_access_token,
    create_password_reset_token,
    decode_token,
    get_current_user,
    get_current_user_id,
    get_password_reset_subject,
)

__all__ = [
    "settings",
    "Base",
    "get_db",
    "close_db",
    "get_password_hash",
    "verify_password",
    "generate_otp",
    "create_access_token",
    "create_password_reset_token",
    "decode_token",
    "get_current_user",
    "get_current_user_id",
    "get_password_reset_subject",
]
