"""Authentication utilities.

This module provides helpers for one-time code hashing and JSON Web Token
creation/verification used across the application. The helpers are
intentionally small and focussed to keep the crypto surface area easy to
test and review.

Security notes:
- One-time codes are never stored in clear; only a bcrypt hash is kept,
    with a per-code salt, until the code expires or is used.
- JWT creation uses symmetric signing with the key in `lekha.config.Config`.
    Ensure the key is strong and kept secret in production.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from lekha.config import Config
from lekha.db.redis import redis_client
from lekha.errors import UnauthenticatedError

logger = structlog.get_logger(__name__)

security = HTTPBearer(auto_error=False)


def generate_otp(length: int = None) -> str:
    """Return a random numeric one-time code of ``length`` digits."""
    length = length or Config.OTP_LENGTH
    return "".join(secrets.choice("0123456789") for _ in range(length))


def generate_otp_hash(code: str) -> str:
    """Return a bcrypt hash for the provided one-time code.

    Args:
        code: Plaintext code sent to the owner.

    Returns:
        The bcrypt hash as a utf-8 string.
    """

    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(code.encode('utf-8'), salt)
    return hashed.decode('utf-8')

def verify_otp_hash(code: str, hashed_code: str) -> bool:
    """Check a submitted code against the stored bcrypt hash."""

    return bcrypt.checkpw(code.encode('utf-8'), hashed_code.encode('utf-8'))



def create_token(owner_data: dict, expiry_delta: timedelta, type: str):

    current_time = datetime.now(timezone.utc)
    payload = {
        'iat': current_time,
        'jti': str(uuid.uuid4()),
        'sub': str(owner_data.get('owner_id')),
    }

    # Compute absolute expiration time once to keep iat/exp consistent.
    payload['exp'] = current_time + expiry_delta

    token_type = type.lower()
    payload['type'] = token_type

    if token_type == "access":
        payload['mobile'] = owner_data.get('mobile')

    token = jwt.encode(
        payload=payload,
        key=Config.JWT_KEY,
        algorithm=Config.JWT_ALGORITHM
    )

    return token


def decode_token(token: str) -> dict:

    try:

        token_data = jwt.decode(
            jwt=token,
            key=Config.JWT_KEY,
            algorithms=[Config.JWT_ALGORITHM],
            leeway=10
        )

    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Token has expired")
    except jwt.InvalidTokenError:
        raise UnauthenticatedError("Invalid token.")

    return token_data



async def get_current_user(request: Request, bearer_token: HTTPAuthorizationCredentials = Depends(security)):
    """Extract and validate the owner from dual authentication sources.

    Bearer token first (mobile clients), then the ``access_token`` cookie
    (web clients).

    Returns:
        dict: ``owner_id`` (UUID) and ``mobile`` of the signed-in owner.

    Raises:
        UnauthenticatedError: If no credentials were provided, or the token
            is invalid, expired, revoked or not an access token.
    """
    token = None

    if bearer_token and bearer_token.credentials:
        token = bearer_token.credentials
    if not token:
        token = request.cookies.get("access_token")

    if token is None:
        raise UnauthenticatedError()

    # Decode and validate token signature and expiry
    token_decoded = decode_token(token)

    jti = token_decoded.get('jti')

    # Check if token has been revoked (logout/token rotation)
    if jti and await redis_client.get(jti):
        raise UnauthenticatedError("Token has been revoked (User logged out)")

    # Ensure this is an access token, not a refresh token
    if token_decoded.get('type') != 'access':
        raise UnauthenticatedError("Invalid token type. Access token required.")

    owner_id = token_decoded.get("sub")
    try:
        owner_uuid = uuid.UUID(owner_id)
    except (TypeError, ValueError):
        raise UnauthenticatedError("Token missing owner ID.")

    return {
        "owner_id": owner_uuid,
        "mobile": token_decoded.get("mobile"),
    }
