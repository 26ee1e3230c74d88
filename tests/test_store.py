import pytest

from core.store import InMemoryUserStore
from exceptions import ConflictError


@pytest.fixture
def store():
    return InMemoryUserStore()


def user_fields(**overrides):
    fields = {
        "username": "janed",
        "email": "jane@x.com",
        "full_name": "Jane Doe",
        "password_hash": "hash",
        "avatar_url": "https://media.test/a",
    }
    fields.update(overrides)
    return fields


async def test_create_and_find(store):
    user = await store.create(user_fields())

    assert (await store.find_by_id(user.id)).username == "janed"
    assert (await store.find_by_identifier("janed")).id == user.id
    assert (await store.find_by_identifier("jane@x.com")).id == user.id
    assert await store.find_by_identifier("nobody") is None


async def test_unique_username_and_email(store):
    await store.create(user_fields())

    with pytest.raises(ConflictError):
        await store.create(user_fields(email="other@x.com"))
    with pytest.raises(ConflictError):
        await store.create(user_fields(username="other"))


async def test_update_missing_user_returns_none(store):
    assert await store.update("000000000000000000000000", {"full_name": "x"}) is None


async def test_swap_requires_expected_value(store):
    user = await store.create(user_fields())
    await store.set_refresh_token(user.id, "t1")

    assert not await store.swap_refresh_token(user.id, "stale", "t2")
    assert (await store.find_by_id(user.id)).refresh_token == "t1"

    assert await store.swap_refresh_token(user.id, "t1", "t2")
    assert (await store.find_by_id(user.id)).refresh_token == "t2"


async def test_swap_on_cleared_token_fails(store):
    user = await store.create(user_fields())
    await store.set_refresh_token(user.id, "t1")
    await store.set_refresh_token(user.id, None)

    assert not await store.swap_refresh_token(user.id, "t1", "t2")


async def test_returned_users_are_copies(store):
    user = await store.create(user_fields())
    found = await store.find_by_id(user.id)
    found.refresh_token = "mutated"

    assert (await store.find_by_id(user.id)).refresh_token is None


async def test_find_by_username_ignores_email(store):
    await store.create(user_fields())
    other = await store.create(user_fields(username="jane@x.com", email="b@x.com"))

    assert (await store.find_by_username("jane@x.com")).id == other.id
    assert await store.find_by_username("b@x.com") is None
