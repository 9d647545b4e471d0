"""
Pydantic schemas for authentication endpoints.

Login, registration, OTP and password-change request/response contracts.
Missing fields or malformed emails are rejected by Pydantic before any
handler runs (answered as 400 by the RequestValidationError handler).
"""

from pydantic import BaseModel, EmailStr, Field

from storefront.schemas.user import DisplayName, PhoneNumber, UserResponse, UserSummary


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login and POST /api/admin/login."""
    email: EmailStr
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    """Token plus a summary of the principal it identifies."""
    token: str
    token_type: str = "bearer"
    expires_in: int                     # seconds until the token expires
    user: UserSummary
    password_change_required: bool = False


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register/send-otp."""
    name: DisplayName
    email: EmailStr
    password: str = Field(min_length=1)   # full policy checked by the service
    phone: PhoneNumber


class RegisterConfirmRequest(BaseModel):
    """Request body for POST /api/auth/register/verify-otp."""
    email: EmailStr
    otp: str = Field(min_length=1, max_length=12)


class RegisterConfirmResponse(BaseModel):
    message: str
    user: UserResponse


class EmailRequest(BaseModel):
    """Request body for endpoints that only need an address (OTP requests)."""
    email: EmailStr


class EmailOTPRequest(BaseModel):
    """Request body for POST /api/auth/verify-email/confirm."""
    email: EmailStr
    otp: str = Field(min_length=1, max_length=12)


class PasswordResetRequest(BaseModel):
    """Request body for POST /api/auth/verify-otp."""
    email: EmailStr
    otp: str = Field(min_length=1, max_length=12)
    new_password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /api/auth/change-password."""
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class MessageResponse(BaseModel):
    message: str


class OTPSentResponse(BaseModel):
    success: bool = True
    message: str
