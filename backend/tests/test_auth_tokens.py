"""Bearer token verification tests."""

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest

from genrecon.services.auth_tokens import ALGORITHM, decode_access_token, encode_access_token
from genrecon.services.exceptions import AuthenticationError

SECRET = "unit-test-secret-0123456789abcdef"


def test_round_trip_returns_owner():
    owner_id = uuid4()

    assert decode_access_token(encode_access_token(owner_id, SECRET), SECRET) == owner_id


def test_wrong_secret():
    token = encode_access_token(uuid4(), SECRET)

    with pytest.raises(AuthenticationError, match="Invalid token"):
        decode_access_token(token, "some-other-secret-0123456789abcdef")


def test_expired_token():
    token = encode_access_token(uuid4(), SECRET, expires_in=timedelta(seconds=-1))

    with pytest.raises(AuthenticationError, match="expired"):
        decode_access_token(token, SECRET)


def test_missing_expiry_is_rejected():
    token = jwt.encode({"sub": str(uuid4())}, SECRET, algorithm=ALGORITHM)

    with pytest.raises(AuthenticationError):
        decode_access_token(token, SECRET)


def test_subject_must_be_uuid():
    token = jwt.encode({"sub": "alice", "exp": 4102444800}, SECRET, algorithm=ALGORITHM)

    with pytest.raises(AuthenticationError, match="owner id"):
        decode_access_token(token, SECRET)


def test_unconfigured_secret():
    token = encode_access_token(uuid4(), SECRET)

    with pytest.raises(AuthenticationError, match="not configured"):
        decode_access_token(token, "")
