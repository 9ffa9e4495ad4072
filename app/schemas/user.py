"""
Pydantic schemas for User model and authentication.
"""
from typing import Annotated, Literal, Optional
from datetime import date, datetime
import uuid
from pydantic import AfterValidator, BaseModel, Field, ConfigDict
from pydantic.networks import validate_email


Gender = Literal["male", "female", "other"]


def _check_email(value: str) -> str:
    # Same checks as EmailStr but the address is stored as provided
    validate_email(value)
    if "<" in value:
        raise ValueError("value is not a valid email address")
    return value


Email = Annotated[str, AfterValidator(_check_email)]


class UserCreate(BaseModel):
    """Schema for user registration."""
    full_name: str = Field(..., min_length=2, max_length=50)
    email: Email
    password: str = Field(..., min_length=6, max_length=100)


class UserUpdate(BaseModel):
    """Schema for user profile update."""
    full_name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[Email] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone_number: Optional[str] = Field(None, max_length=50)


class UserResponse(BaseModel):
    """Redacted user view: no password, history or OTP fields."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    full_name: str
    role: str
    auth_provider: str
    profile_picture: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class RegisterResponse(BaseModel):
    message: str
    user: UserResponse


# Authentication schemas
class LoginRequest(BaseModel):
    """Schema for login request."""
    email: Email
    password: str


class LoginResponse(BaseModel):
    """Schema for login response."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class ForgotPasswordRequest(BaseModel):
    email: Email


class ForgotPasswordResponse(BaseModel):
    message: str
    # Only outside production
    otp: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    email: Email
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class VerifyOtpResponse(BaseModel):
    message: str
    access_token: str


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=6, max_length=100)


class MessageResponse(BaseModel):
    message: str


# Social sign-in schemas
class AppleUserInfo(BaseModel):
    """Profile hints Apple hands the client on the first sign-in only."""
    email: Optional[Email] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class GoogleAuthRequest(BaseModel):
    id_token: str = Field(..., min_length=1)


class AppleAuthRequest(BaseModel):
    identity_token: str = Field(..., min_length=1)
    user: Optional[AppleUserInfo] = None


class LinkAccountRequest(BaseModel):
    email: Email
    password: str = Field(..., min_length=1)


class LinkGoogleAccountRequest(LinkAccountRequest):
    id_token: str = Field(..., min_length=1)


class LinkAppleAccountRequest(LinkAccountRequest):
    identity_token: str = Field(..., min_length=1)
    user: Optional[AppleUserInfo] = None
