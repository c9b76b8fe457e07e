from datetime import timedelta

import pytest

from auth import authenticate, create_access_token, decode_token, extract_token, get_optional_user
from errors import Inactive, Unauthenticated


@pytest.fixture
def user(user_store):
    return user_store.register("fan@example.com", "secret-password", "Carat Fan")


def bearer(user, **kwargs):
    return f"Bearer {create_access_token(user.id, user.email, **kwargs)}"


def test_token_carries_user_id_and_email(user):
    payload = decode_token(create_access_token(user.id, user.email))
    assert payload["sub"] == user.id
    assert payload["email"] == "fan@example.com"
    assert "exp" in payload


def test_expired_token():
    token = create_access_token("u1", "a@example.com", expires_delta=timedelta(seconds=-30))
    with pytest.raises(Unauthenticated, match="expired"):
        decode_token(token)


def test_tampered_token(user):
    with pytest.raises(Unauthenticated, match="Invalid token"):
        decode_token(create_access_token(user.id, user.email) + "x")


@pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer", "Bearer a b", "bearer abc"])
def test_extract_token_requires_bearer_scheme(header):
    with pytest.raises(Unauthenticated):
        extract_token(header)


def test_authenticate_resolves_identity(user_store, user):
    identity = authenticate(bearer(user), user_store)
    assert identity.id == user.id
    assert identity.email == user.email


def test_authenticate_rejects_inactive(user_store, user):
    user.is_active = False
    user_store.collection.put(user.id, user.model_dump())
    with pytest.raises(Inactive):
        authenticate(bearer(user), user_store)


def test_authenticate_rejects_deleted_user(user_store, user):
    header = bearer(user)
    user_store.collection.delete(user.id)
    with pytest.raises(Unauthenticated, match="User not found"):
        authenticate(header, user_store)


class TestOptionalUser:
    def test_no_header_is_anonymous(self, user_store):
        assert get_optional_user(authorization=None, users=user_store) is None

    def test_invalid_token_is_ignored(self, user_store):
        assert get_optional_user(authorization="Bearer garbage", users=user_store) is None

    def test_inactive_user_is_ignored(self, user_store, user):
        user.is_active = False
        user_store.collection.put(user.id, user.model_dump())
        assert get_optional_user(authorization=bearer(user), users=user_store) is None

    def test_valid_token(self, user_store, user):
        assert get_optional_user(authorization=bearer(user), users=user_store).id == user.id
