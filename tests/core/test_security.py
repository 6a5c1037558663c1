from datetime import timedelta
from uuid import uuid4

from jose import jwt

from app.core.config import settings
from app.core.security import (
    create_access_token,
    get_token_remaining_time,
    verify_access_token,
    verify_token,
)


def test_verify_token_round_trip_check():
    user_id = uuid4()
    token = create_access_token(user_id, email="reviewer@example.com")

    claims = verify_token(token)

    assert claims.sub == user_id
    assert claims.email == "reviewer@example.com"
    assert claims.role == "authenticated"
    assert verify_access_token(token) == str(user_id)


def test_expired_token_rejected_check():
    token = create_access_token(uuid4(), expires_delta=timedelta(seconds=-5))

    assert verify_token(token) is None
    assert get_token_remaining_time(token) == 0


def test_wrong_secret_rejected_check():
    token = jwt.encode(
        {"sub": str(uuid4()), "aud": settings.JWT_AUDIENCE},
        "another-secret",
        algorithm=settings.ALGORITHM
    )

    assert verify_token(token) is None


def test_non_uuid_subject_rejected_check():
    token = create_access_token("not-a-uuid")

    assert verify_token(token) is None


def test_garbage_token_check():
    assert verify_token("abc.def.ghi") is None
    assert get_token_remaining_time("abc") is None
