"""Authentication API routes.

This module defines the REST API endpoints for phone-number sign-in.
"""

from fastapi import APIRouter, Depends, status, Response, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel.ext.asyncio.session import AsyncSession

from lekha.auth.services import AuthServices
from lekha.auth.schemas import (
    OtpRequestInput,
    OtpRequestResponse,
    OtpVerifyInput,
    LoginResponse,
    OwnerResponse,
    OwnerUpdate,
    RenewAccessTokenResponse,
    LogoutInput,
    LogoutResponse
)
from lekha.config import Config
from lekha.db.main import get_Session
from lekha.errors import UnauthenticatedError
from lekha.utils.limiter import limiter
from lekha.utils.auth import get_current_user


authRouter = APIRouter()

authServices = AuthServices()
security = HTTPBearer(auto_error=False)

cookie_settings = {
    "httponly": True,
    "secure": Config.COOKIE_SECURE,
    "samesite": "none" if Config.COOKIE_SECURE else "lax"
}

ACCESS_COOKIE_MAX_AGE = Config.ACCESS_TOKEN_MINUTES * 60
REFRESH_COOKIE_MAX_AGE = Config.REFRESH_TOKEN_DAYS * 60 * 60 * 24


def get_auth_services() -> AuthServices:
    return authServices


def set_token_cookies(response: Response, tokens: dict):
    response.set_cookie(
        key="access_token",
        value=tokens.get('access_token'),
        **cookie_settings,
        max_age=ACCESS_COOKIE_MAX_AGE
    )
    response.set_cookie(
        key="refresh_token",
        value=tokens.get('refresh_token'),
        **cookie_settings,
        max_age=REFRESH_COOKIE_MAX_AGE
    )


@authRouter.post("/otp/request", status_code=status.HTTP_200_OK, response_model=OtpRequestResponse)
@limiter.limit("3/minute")
async def request_otp(
    otpInput: OtpRequestInput,
    request: Request,
    response: Response,
    services: AuthServices = Depends(get_auth_services),
):
    """Send a one-time code to the given mobile number."""
    challenge = await services.request_otp(otpInput.mobile)

    return {
        "success": True,
        "message": f"We've sent a code to {otpInput.mobile}.",
        "data": challenge
    }


@authRouter.post("/otp/verify", status_code=status.HTTP_200_OK, response_model=LoginResponse)
@limiter.limit("5/minute")
async def verify_otp(
    verifyInput: OtpVerifyInput,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_Session),
    services: AuthServices = Depends(get_auth_services),
):
    """Verify the code and sign the owner in.

    Tokens are returned in the body for mobile clients and set as httponly
    cookies for web clients.
    """
    owner = await services.verify_otp(verifyInput.mobile, verifyInput.code, session)

    set_token_cookies(response, owner)

    return {
        "success": True,
        "message": "login successful",
        "data": owner
    }


@authRouter.get("/me", status_code=status.HTTP_200_OK, response_model=OwnerResponse)
async def get_me(
    user_info: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_Session),
    services: AuthServices = Depends(get_auth_services),
):
    """Get current authenticated owner details."""
    owner = await services.get_owner(user_info.get("owner_id"), session)

    return {
        "success": True,
        "message": "Owner details fetched successfully",
        "data": owner
    }


@authRouter.patch("/me", status_code=status.HTTP_200_OK, response_model=OwnerResponse)
async def update_me(
    update_data: OwnerUpdate,
    user_info: dict = Depends(get_current_user),
    session: AsyncSession = Depends(get_Session),
    services: AuthServices = Depends(get_auth_services),
):
    """Set the business name used in payment reminders."""
    owner = await services.update_owner(user_info.get("owner_id"), update_data.business_name, session)

    return {
        "success": True,
        "message": "Owner details updated successfully",
        "data": owner
    }


@authRouter.post("/renew_access_token", status_code=status.HTTP_201_CREATED, response_model=RenewAccessTokenResponse)
@limiter.limit("5/minute")
async def renewAccessToken(
    request: Request,
    response: Response,
    bearer_token: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_Session),
    services: AuthServices = Depends(get_auth_services),
):
    """Renew the access token using a refresh token.

    - Web (cookies): new tokens in cookies, empty body
    - Mobile (bearer): new tokens in the body
    """
    bearer_raw = bearer_token.credentials if bearer_token else None
    cookie_raw = request.cookies.get('refresh_token')

    token = bearer_raw or cookie_raw
    if token is None:
        raise UnauthenticatedError("Refresh token missing")

    # Basic structural check (JWT should have 2 dots)
    if token.count('.') != 2:
        raise UnauthenticatedError("Invalid token format")

    new_token = await services.renewAccessToken(token, session)

    if bearer_raw:
        return {
            "success": True,
            "message": "access token renewed successfully",
            "data": new_token
        }

    set_token_cookies(response, new_token)
    return {
        "success": True,
        "message": "access token renewed successfully",
        "data": {}
    }


@authRouter.post("/logout", status_code=status.HTTP_200_OK, response_model=LogoutResponse)
async def logout(
    request: Request,
    response: Response,
    logout_input: LogoutInput,
    bearer_token: HTTPAuthorizationCredentials = Depends(security),
    services: AuthServices = Depends(get_auth_services),
):
    """Logout by revoking the access and refresh tokens."""

    await services.logout(request, response, logout_input, bearer_token)

    return {
        "success": True,
        "message": "Logged out successfully",
        "data": {}
    }
