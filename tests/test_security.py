from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from errors import UnauthenticatedError
from security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

SECRET = "unit-test-secret"


class TestPasswordHashing:

    def test_hash_verifies(self):
        hashed = hash_password("s3cret", rounds=4)
        assert hashed != "s3cret"
        assert verify_password("s3cret", hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("s3cret", rounds=4)
        assert not verify_password("S3cret", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)

    def test_overlong_password_never_verifies(self):
        hashed = hash_password("x" * 72, rounds=4)
        assert not verify_password("x" * 73, hashed)


class TestSessionToken:

    def test_round_trip(self):
        token = create_access_token("user-1", SECRET)
        assert decode_access_token(token, SECRET) == "user-1"

    def test_claims_expire_after_seven_days(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        token = create_access_token("user-1", SECRET, now=now)
        claims = jwt.get_unverified_claims(token)
        assert claims["sub"] == "user-1"
        assert claims["iat"] == int(now.timestamp())
        assert claims["exp"] - claims["iat"] == 7 * 24 * 60 * 60

    def test_expired_token_rejected(self):
        issued = datetime.now(timezone.utc) - timedelta(days=8)
        token = create_access_token("user-1", SECRET, now=issued)
        with pytest.raises(UnauthenticatedError):
            decode_access_token(token, SECRET)

    def test_wrong_secret_rejected(self):
        token = create_access_token("user-1", "another-secret")
        with pytest.raises(UnauthenticatedError):
            decode_access_token(token, SECRET)

    def test_tampered_payload_rejected(self):
        header, _, signature = create_access_token("user-1", SECRET).split(".")
        forged = jwt.encode({"sub": "user-2"}, "x").split(".")[1]
        with pytest.raises(UnauthenticatedError):
            decode_access_token(".".join([header, forged, signature]), SECRET)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_rejected(self, token):
        with pytest.raises(UnauthenticatedError):
            decode_access_token(token, SECRET)

    def test_missing_subject_rejected(self):
        token = jwt.encode({"exp": int(datetime.now(timezone.utc).timestamp()) + 60}, SECRET)
        with pytest.raises(UnauthenticatedError):
            decode_access_token(token, SECRET)
