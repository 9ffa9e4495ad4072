"""
Pydantic schemas for request/response validation.
"""
from app.schemas.user import (
    UserCreate, UserUpdate, UserResponse, RegisterResponse,
    LoginRequest, LoginResponse, ForgotPasswordRequest, ForgotPasswordResponse,
    VerifyOtpRequest, VerifyOtpResponse, ResetPasswordRequest, MessageResponse,
    AppleUserInfo, GoogleAuthRequest, AppleAuthRequest,
    LinkAccountRequest, LinkGoogleAccountRequest, LinkAppleAccountRequest
)
from app.schemas.product import ProductResponse
from app.schemas.address import AddressCreate, AddressUpdate, AddressResponse

__all__ = [
    # User and auth schemas
    "UserCreate", "UserUpdate", "UserResponse", "RegisterResponse",
    "LoginRequest", "LoginResponse", "ForgotPasswordRequest", "ForgotPasswordResponse",
    "VerifyOtpRequest", "VerifyOtpResponse", "ResetPasswordRequest", "MessageResponse",
    "AppleUserInfo", "GoogleAuthRequest", "AppleAuthRequest",
    "LinkAccountRequest", "LinkGoogleAccountRequest", "LinkAppleAccountRequest",

    # Product schemas
    "ProductResponse",

    # Address schemas
    "AddressCreate", "AddressUpdate", "AddressResponse",
]
