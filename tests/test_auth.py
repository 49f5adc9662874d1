from datetime import timedelta
import uuid

import jwt
import pytest
from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials

from lekha.auth.services import AuthServices, otp_attempts_key, otp_key
from lekha.config import Config
from lekha.errors import UnauthenticatedError
from lekha.utils import auth as auth_utils
from lekha.utils.auth import (
    create_token,
    decode_token,
    generate_otp,
    generate_otp_hash,
    get_current_user,
    verify_otp_hash,
)


class CapturingSender:

    def __init__(self):
        self.sent = []

    async def send(self, mobile, code):
        self.sent.append((mobile, code))


@pytest.fixture
def sender():
    return CapturingSender()


@pytest.fixture
def services(fake_redis, sender):
    return AuthServices(redis=fake_redis, otp_sender=sender)


def bare_request(cookies=None):
    headers = []
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        headers.append((b"cookie", cookie_header.encode()))
    return Request({"type": "http", "headers": headers})


def bearer(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_otp_has_configured_length():
    code = generate_otp()
    assert len(code) == Config.OTP_LENGTH
    assert code.isdigit()
    assert len(generate_otp(6)) == 6


def test_otp_hash_round_trip():
    hashed = generate_otp_hash("4821")
    assert hashed != "4821"
    assert verify_otp_hash("4821", hashed)
    assert not verify_otp_hash("4822", hashed)


def test_access_token_carries_owner():
    owner_id = uuid.uuid4()
    token = create_token({"owner_id": owner_id, "mobile": "9876543210"}, timedelta(minutes=5), type="access")

    payload = decode_token(token)

    assert payload["sub"] == str(owner_id)
    assert payload["mobile"] == "9876543210"
    assert payload["type"] == "access"
    assert payload["jti"]


def test_refresh_token_omits_mobile():
    token = create_token({"owner_id": uuid.uuid4(), "mobile": "9876543210"}, timedelta(days=1), type="refresh")

    payload = decode_token(token)

    assert payload["type"] == "refresh"
    assert "mobile" not in payload


def test_expired_token_is_rejected():
    token = create_token({"owner_id": uuid.uuid4()}, timedelta(minutes=-5), type="access")

    with pytest.raises(UnauthenticatedError) as exc_info:
        decode_token(token)
    assert exc_info.value.message == "Token has expired"


def test_token_signed_with_another_key_is_rejected():
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "access", "jti": "x"},
        key="some-other-signing-key-of-decent-length",
        algorithm=Config.JWT_ALGORITHM,
    )

    with pytest.raises(UnauthenticatedError):
        decode_token(token)


async def test_request_otp_stores_only_a_hash(services, fake_redis, sender):
    challenge = await services.request_otp("9876543210")

    assert challenge == {"mobile": "9876543210", "expires_in": Config.OTP_TTL_SECONDS}
    mobile, code = sender.sent[-1]
    assert mobile == "9876543210"
    stored = fake_redis.values[otp_key("9876543210")]
    assert stored != code
    assert verify_otp_hash(code, stored)
    assert fake_redis.ttls[otp_key("9876543210")] == Config.OTP_TTL_SECONDS


async def test_verify_otp_creates_owner_and_issues_tokens(services, sender, session):
    await services.request_otp("9876543210")
    _, code = sender.sent[-1]

    login = await services.verify_otp("9876543210", code, session)

    assert login["mobile"] == "9876543210"
    assert decode_token(login["access_token"])["sub"] == str(login["owner_id"])
    assert decode_token(login["refresh_token"])["type"] == "refresh"

    owner = await services.get_owner_by_mobile("9876543210", session)
    assert owner.owner_id == login["owner_id"]


async def test_second_sign_in_reuses_owner(services, sender, session):
    await services.request_otp("9876543210")
    first = await services.verify_otp("9876543210", sender.sent[-1][1], session)

    await services.request_otp("9876543210")
    second = await services.verify_otp("9876543210", sender.sent[-1][1], session)

    assert first["owner_id"] == second["owner_id"]


async def test_code_is_single_use(services, sender, session, fake_redis):
    await services.request_otp("9876543210")
    _, code = sender.sent[-1]
    await services.verify_otp("9876543210", code, session)

    assert otp_key("9876543210") not in fake_redis.values
    with pytest.raises(UnauthenticatedError):
        await services.verify_otp("9876543210", code, session)


async def test_wrong_code_is_rejected(services, sender, session):
    await services.request_otp("9876543210")
    _, code = sender.sent[-1]
    wrong = "0000" if code != "0000" else "1111"

    with pytest.raises(UnauthenticatedError) as exc_info:
        await services.verify_otp("9876543210", wrong, session)
    assert exc_info.value.message == "Invalid or expired code"

    login = await services.verify_otp("9876543210", code, session)
    assert login["mobile"] == "9876543210"


async def test_too_many_attempts_burns_the_code(services, sender, session, fake_redis):
    await services.request_otp("9876543210")
    _, code = sender.sent[-1]
    wrong = "0000" if code != "0000" else "1111"

    for _ in range(Config.OTP_MAX_ATTEMPTS):
        with pytest.raises(UnauthenticatedError):
            await services.verify_otp("9876543210", wrong, session)

    with pytest.raises(UnauthenticatedError) as exc_info:
        await services.verify_otp("9876543210", code, session)
    assert exc_info.value.message == "Too many attempts. Request a new code."
    assert otp_key("9876543210") not in fake_redis.values
    assert otp_attempts_key("9876543210") not in fake_redis.values


async def test_requesting_again_resets_attempts(services, sender, session, fake_redis):
    await services.request_otp("9876543210")
    await fake_redis.incr(otp_attempts_key("9876543210"))

    await services.request_otp("9876543210")

    assert otp_attempts_key("9876543210") not in fake_redis.values


async def test_refresh_rotation_blocks_reuse(services, sender, session):
    await services.request_otp("9876543210")
    login = await services.verify_otp("9876543210", sender.sent[-1][1], session)

    renewed = await services.renewAccessToken(login["refresh_token"], session)
    assert decode_token(renewed["access_token"])["type"] == "access"

    with pytest.raises(UnauthenticatedError):
        await services.renewAccessToken(login["refresh_token"], session)


async def test_current_user_from_bearer(monkeypatch, fake_redis):
    monkeypatch.setattr(auth_utils, "redis_client", fake_redis)
    owner_id = uuid.uuid4()
    token = create_token({"owner_id": owner_id, "mobile": "9876543210"}, timedelta(minutes=5), type="access")

    user = await get_current_user(bare_request(), bearer(token))

    assert user == {"owner_id": owner_id, "mobile": "9876543210"}


async def test_current_user_from_cookie(monkeypatch, fake_redis):
    monkeypatch.setattr(auth_utils, "redis_client", fake_redis)
    owner_id = uuid.uuid4()
    token = create_token({"owner_id": owner_id, "mobile": "9876543210"}, timedelta(minutes=5), type="access")

    user = await get_current_user(bare_request({"access_token": token}), None)

    assert user["owner_id"] == owner_id


async def test_current_user_requires_credentials(monkeypatch, fake_redis):
    monkeypatch.setattr(auth_utils, "redis_client", fake_redis)

    with pytest.raises(UnauthenticatedError):
        await get_current_user(bare_request(), None)


async def test_revoked_token_is_rejected(monkeypatch, fake_redis, services):
    monkeypatch.setattr(auth_utils, "redis_client", fake_redis)
    token = create_token({"owner_id": uuid.uuid4()}, timedelta(minutes=5), type="access")

    await services.add_token_to_blocklist(token)

    with pytest.raises(UnauthenticatedError) as exc_info:
        await get_current_user(bare_request(), bearer(token))
    assert "revoked" in exc_info.value.message


async def test_refresh_token_cannot_authenticate(monkeypatch, fake_redis):
    monkeypatch.setattr(auth_utils, "redis_client", fake_redis)
    token = create_token({"owner_id": uuid.uuid4()}, timedelta(days=1), type="refresh")

    with pytest.raises(UnauthenticatedError):
        await get_current_user(bare_request(), bearer(token))
