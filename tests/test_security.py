import asyncio

import pytest
from jose import jwt

from elevatehub.core.config import settings
from elevatehub.core.exceptions import AuthenticationError, ForbiddenError
from elevatehub.core.locks import KeyedLock
from elevatehub.core.permissions import ensure_role
from elevatehub.core.security import create_access_token, verify_identity_token
from elevatehub.models.user import User, UserRoleEnum
from elevatehub.schemas.common_schema import Pagination
from elevatehub.utils.rooms import ordered_pair, parse_room_key, room_key


def test_verify_reads_identity_claims():
    token = create_access_token(
        {"sub": "idp|42", "email": "  Ada@Example.COM ", "given_name": "Ada", "family_name": "Lovelace"}
    )

    claims = verify_identity_token(token)

    assert claims.sub == "idp|42"
    assert claims.email == "ada@example.com"
    assert (claims.first_name, claims.last_name) == ("Ada", "Lovelace")


def test_verify_splits_a_full_name():
    claims = verify_identity_token(create_access_token({"sub": "idp|7", "name": "Grace Brewster Hopper"}))
    assert claims.first_name == "Grace"
    assert claims.last_name == "Brewster Hopper"
    assert claims.email is None


def test_verify_rejects_bad_tokens():
    forged = jwt.encode({"sub": "idp|1"}, "some-other-secret", algorithm=settings.IDP_JWT_ALGORITHM)
    with pytest.raises(AuthenticationError):
        verify_identity_token(forged)
    with pytest.raises(AuthenticationError):
        verify_identity_token(create_access_token({"sub": "idp|1"}, expires_minutes=-5))
    with pytest.raises(AuthenticationError):
        verify_identity_token(create_access_token({"email": "nobody@example.com"}))
    with pytest.raises(AuthenticationError):
        verify_identity_token("not-a-jwt")


def test_ensure_role():
    client = User(role=UserRoleEnum.client)
    ensure_role(client, UserRoleEnum.client)
    ensure_role(client, UserRoleEnum.client, UserRoleEnum.freelancer)
    with pytest.raises(ForbiddenError) as exc:
        ensure_role(client, UserRoleEnum.freelancer)
    assert exc.value.detail == "Only freelancers can perform this action"


def test_room_keys_are_order_insensitive():
    assert ordered_pair("b", "a") == ("a", "b")
    assert room_key("j1", "u2", "u1") == room_key("j1", "u1", "u2") == "job:j1:u1:u2"
    assert parse_room_key("job:j1:u1:u2") == ("j1", "u1", "u2")
    assert parse_room_key("lobby") is None
    assert parse_room_key("job:j1::u2") is None
    assert parse_room_key("") is None


def test_pagination_build():
    page = Pagination.build(page=2, limit=10, total=25)
    assert page.pages == 3
    assert page.has_next and page.has_prev

    empty = Pagination.build(page=1, limit=10, total=0)
    assert empty.pages == 0
    assert not empty.has_next and not empty.has_prev


@pytest.mark.asyncio
async def test_keyed_lock_serialises_one_key():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold("job-1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
    assert not locks.is_held("job-1")
    assert locks._locks == {}
