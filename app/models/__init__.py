"""
SQLAlchemy models for the Vestitus backend.
Import all models here to ensure they're registered with SQLAlchemy.
"""
from app.models.user import User, user_favourites
from app.models.product import Product
from app.models.address import Address

__all__ = [
    "User",
    "user_favourites",
    "Product",
    "Address",
]
