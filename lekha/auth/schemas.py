"""Pydantic schemas for authentication API.

Owners sign in with their mobile number and a one-time code; there are
no passwords.
"""

from pydantic import AfterValidator, BaseModel, Field
from datetime import datetime
import uuid
from typing import Annotated, Optional

from lekha.customers.validators import clean_mobile

Mobile = Annotated[str, AfterValidator(clean_mobile), Field(examples=["9876543210"])]

# --- BASE MODELS (Used by multiple responses) ---

class Owner(BaseModel):
    """Owner model for responses."""
    owner_id: uuid.UUID
    mobile: str
    business_name: Optional[str] = None
    created_at: datetime

class OwnerResponse(BaseModel):
    success: bool
    message: str
    data: Owner

class OwnerUpdate(BaseModel):
    business_name: Annotated[str, Field(min_length=1, max_length=100)]


# --- ONE-TIME CODE ---

class OtpRequestInput(BaseModel):
    """Payload asking for a code to be sent."""
    mobile: Mobile

class OtpRequestData(BaseModel):
    mobile: str
    expires_in: int

class OtpRequestResponse(BaseModel):
    success: bool
    message: str
    data: OtpRequestData

class OtpVerifyInput(BaseModel):
    """Payload exchanging a code for tokens."""
    mobile: Mobile
    code: Annotated[str, Field(pattern=r"^[0-9]{4,8}$")]

class LoginData(BaseModel):
    """Data returned upon successful verification."""
    owner_id: uuid.UUID
    mobile: str
    business_name: Optional[str] = None
    created_at: datetime
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

class LoginResponse(BaseModel):
    """Response structure for successful sign-in."""
    success: bool
    message: str
    data: LoginData


# --- TOKEN RENEWAL ---

class RenewAccessTokenResponse(BaseModel):
    success: bool
    message: str
    data: dict = {}

# --- LOGOUT ---

class LogoutInput(BaseModel):
    refresh_token: Optional[str] = None

class LogoutResponse(BaseModel):
    success: bool
    message: str
    data: dict = {}
