"""API v1 Router."""
from fastapi import APIRouter

from app.api.v1 import auth, users, addresses

api_router = APIRouter(prefix="/api/v1")

# Include all route modules
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(addresses.router)

__all__ = ["api_router"]
