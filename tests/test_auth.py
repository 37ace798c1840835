import time

import jwt
import pytest

from auth import Identity, create_access_token, decode_jwt_payload, verify_token
from config import JWT_ALGORITHM, JWT_LEEWAY_SECONDS, JWT_SECRET
from core.errors import InvalidCredential
from models import Role


def _encode(claims, secret=JWT_SECRET):
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


class TestVerifyToken:
    """Bearer credential validation"""

    def test_roundtrip(self):
        token = create_access_token("user-1", Role.MODEL)
        assert verify_token(token) == Identity(user_id="user-1", role=Role.MODEL)

    def test_sub_claim_is_accepted(self):
        now = int(time.time())
        token = _encode({"sub": "user-2", "role": "worker", "exp": now + 60})
        assert verify_token(token) == Identity(user_id="user-2", role=Role.WORKER)

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, token):
        with pytest.raises(InvalidCredential):
            verify_token(token)

    def test_garbage_token(self):
        with pytest.raises(InvalidCredential):
            verify_token("not-a-jwt")

    def test_wrong_secret(self):
        token = _encode({"id": "user-1", "role": "fan"}, secret="another-service-secret-0123456789abcdef")
        with pytest.raises(InvalidCredential):
            verify_token(token)

    def test_expired_token(self):
        token = create_access_token("user-1", Role.FAN, expires_in=-(JWT_LEEWAY_SECONDS + 5))
        with pytest.raises(InvalidCredential) as exc_info:
            verify_token(token)
        assert "expired" in str(exc_info.value).lower()

    def test_expiry_within_leeway_is_accepted(self):
        token = create_access_token("user-1", Role.FAN, expires_in=-1)
        assert verify_token(token).user_id == "user-1"

    def test_missing_user_id(self):
        with pytest.raises(InvalidCredential):
            verify_token(_encode({"role": "fan"}))

    def test_unknown_role(self):
        with pytest.raises(InvalidCredential):
            verify_token(_encode({"id": "user-1", "role": "superuser"}))


def test_decode_jwt_payload_for_debugging():
    token = create_access_token("user-1", Role.ADMIN)
    payload = decode_jwt_payload(token)
    assert payload["id"] == "user-1"
    assert payload["role"] == "admin"
    assert decode_jwt_payload("garbage") == {}
