"""Authentication service layer.

This module implements phone-number sign-in: issuing one-time codes,
verifying them, creating the owner on first sign-in, and managing the
access/refresh token pair afterwards.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from fastapi import Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from lekha.auth.models import Owner
from lekha.auth.otp import get_otp_sender
from lekha.auth.schemas import LogoutInput
from lekha.config import Config
from lekha.db.redis import redis_client
from lekha.errors import (
    NotFoundError,
    TransientStoreError,
    UnauthenticatedError,
)
from lekha.utils.auth import (
    create_token,
    decode_token,
    generate_otp,
    generate_otp_hash,
    verify_otp_hash,
)

logger = structlog.get_logger(__name__)

access_token_expiry = timedelta(minutes=Config.ACCESS_TOKEN_MINUTES)
refresh_token_expiry = timedelta(days=Config.REFRESH_TOKEN_DAYS)


def otp_key(mobile: str) -> str:
    return f"otp:{mobile}"


def otp_attempts_key(mobile: str) -> str:
    return f"otp_attempts:{mobile}"


class AuthServices:
    """Service class for authentication operations."""

    def __init__(self, redis=None, otp_sender=None):
        self.redis = redis if redis is not None else redis_client
        self.otp_sender = otp_sender or get_otp_sender()

    async def get_owner_by_mobile(self, mobile: str, session: AsyncSession) -> Optional[Owner]:
        try:
            statement = select(Owner).where(Owner.mobile == mobile)
            result = await session.exec(statement)
            return result.first()
        except SQLAlchemyError as e:
            logger.error("owner_lookup_failed", error=str(e))
            raise TransientStoreError() from e

    async def get_owner(self, owner_id: uuid.UUID, session: AsyncSession) -> Owner:
        """Return the owner behind a token.

        Raises:
            UnauthenticatedError: If the owner no longer exists.
        """
        statement = select(Owner).where(Owner.owner_id == owner_id)
        result = await session.exec(statement)
        owner = result.first()

        if not owner:
            raise UnauthenticatedError("You are not authorized to proceed")

        return owner

    async def update_owner(self, owner_id: uuid.UUID, business_name: str, session: AsyncSession) -> Owner:
        owner = await self.get_owner(owner_id, session)
        owner.business_name = business_name.strip()

        try:
            await session.commit()
            await session.refresh(owner)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("owner_update_failed", owner_id=str(owner_id), error=str(e))
            raise TransientStoreError() from e

        return owner

    async def request_otp(self, mobile: str) -> dict:
        """Issue a fresh code for ``mobile`` and hand it to the sender.

        Requesting again replaces the previous code and resets the attempt
        counter.
        """
        code = generate_otp()

        await self.redis.setex(
            name=otp_key(mobile),
            time=Config.OTP_TTL_SECONDS,
            value=generate_otp_hash(code),
        )
        await self.redis.delete(otp_attempts_key(mobile))

        await self.otp_sender.send(mobile, code)

        return {"mobile": mobile, "expires_in": Config.OTP_TTL_SECONDS}

    async def verify_otp(self, mobile: str, code: str, session: AsyncSession) -> dict:
        """Exchange a valid code for tokens, creating the owner on first sign-in.

        Returns:
            dict: Owner data with access_token and refresh_token included.

        Raises:
            UnauthenticatedError: Code missing, expired, wrong, or too many attempts.
        """
        INVALID_CODE = UnauthenticatedError("Invalid or expired code")

        hashed_code = await self.redis.get(otp_key(mobile))
        if not hashed_code:
            raise INVALID_CODE

        attempts = await self.redis.incr(otp_attempts_key(mobile))
        if attempts == 1:
            await self.redis.expire(otp_attempts_key(mobile), Config.OTP_TTL_SECONDS)

        if attempts > Config.OTP_MAX_ATTEMPTS:
            await self.redis.delete(otp_key(mobile), otp_attempts_key(mobile))
            logger.warning("otp_attempts_exceeded", mobile=mobile)
            raise UnauthenticatedError("Too many attempts. Request a new code.")

        if not verify_otp_hash(code, hashed_code):
            raise INVALID_CODE

        # Single use
        await self.redis.delete(otp_key(mobile), otp_attempts_key(mobile))

        owner = await self.get_or_create_owner(mobile, session)

        owner_dict = owner.model_dump()
        access_token = create_token(owner_dict, access_token_expiry, type="access")
        refresh_token = create_token(owner_dict, refresh_token_expiry, type="refresh")

        logger.info("owner_signed_in", owner_id=str(owner.owner_id))

        return {
            **owner_dict,
            'access_token': access_token,
            'refresh_token': refresh_token,
        }

    async def get_or_create_owner(self, mobile: str, session: AsyncSession) -> Owner:
        owner = await self.get_owner_by_mobile(mobile, session)
        if owner:
            return owner

        owner = Owner(mobile=mobile)
        session.add(owner)

        try:
            await session.commit()
            await session.refresh(owner)
        except IntegrityError:
            # Two first sign-ins raced; the other one created the row.
            await session.rollback()
            owner = await self.get_owner_by_mobile(mobile, session)
            if not owner:
                raise TransientStoreError()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("owner_create_failed", error=str(e))
            raise TransientStoreError() from e

        logger.info("owner_created", owner_id=str(owner.owner_id))
        return owner

    async def renewAccessToken(self, old_refresh_token_str: str, session: AsyncSession):
        """Renew access token using refresh token with rotation.

        The old refresh token is blocklisted and a new pair is issued.

        Raises:
            UnauthenticatedError: If token invalid, expired, or already used.
        """
        old_refresh_token_decode = decode_token(old_refresh_token_str)

        if old_refresh_token_decode.get('type') != "refresh":
            raise UnauthenticatedError("Invalid token type")

        # Detect refresh token reuse
        jti = old_refresh_token_decode.get('jti')
        if await self.is_token_blacklisted(jti):
            raise UnauthenticatedError("Refresh token reused. Login required.")

        owner_id = old_refresh_token_decode.get("sub")
        statement = select(Owner).where(Owner.owner_id == uuid.UUID(owner_id))
        result = await session.exec(statement)
        owner = result.first()

        if not owner:
            raise NotFoundError("Owner not found")

        owner_data = {
            "owner_id": owner.owner_id,
            "mobile": owner.mobile
        }

        new_token = create_token(owner_data, expiry_delta=access_token_expiry, type="access")

        await self.add_token_to_blocklist(old_refresh_token_str)

        new_refresh_token = create_token(owner_data, expiry_delta=refresh_token_expiry, type="refresh")

        return {
            "access_token": new_token,
            "refresh_token": new_refresh_token
        }

    async def add_token_to_blocklist(self, token):
        """Revokes token by adding its ``jti`` to the Redis blocklist until it expires."""
        token_decoded = decode_token(token)
        token_id = token_decoded.get('jti')
        exp_timestamp = token_decoded.get('exp')

        current_time = datetime.now(timezone.utc).timestamp()
        time_to_live = int(exp_timestamp - current_time)

        if time_to_live > 0:
            await self.redis.setex(name=token_id, time=time_to_live, value="true")

    async def is_token_blacklisted(self, jti: str) -> bool:
        result = await self.redis.get(jti)
        return result is not None

    async def logout(
        self,
        request: Request,
        response: Response,
        logout_input: LogoutInput,
        bearer_token: HTTPAuthorizationCredentials,
    ):
        """Revoke the caller's tokens.

        Mobile clients send the access token as a bearer header and the
        refresh token in the body; web clients send both as cookies.

        Raises:
            UnauthenticatedError: If no tokens found in either source.
        """
        if bearer_token:
            access_token = bearer_token.credentials
            refresh_token = logout_input.refresh_token
        else:
            access_token = request.cookies.get("access_token")
            refresh_token = request.cookies.get("refresh_token")

        if access_token is None and refresh_token is None:
            raise UnauthenticatedError("Refresh token missing")

        if access_token:
            await self.add_token_to_blocklist(access_token)
        if refresh_token:
            await self.add_token_to_blocklist(refresh_token)

        # Delete cookies (harmless for mobile, necessary for web)
        response.delete_cookie(key="access_token")
        response.delete_cookie(key="refresh_token")
