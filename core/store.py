"""
Credential Store
================

Persistence for users and subscriptions.

Two implementations share one interface:

- ``MongoUserStore`` / ``MongoSubscriptionStore``: MongoDB through motor.
- ``InMemoryUserStore`` / ``InMemorySubscriptionStore``: plain dicts, for
  tests and local demos.

The refresh-token field gets a compare-and-swap operation
(``swap_refresh_token``) so that two requests racing with the same stale
token cannot both rotate it. In Mongo this is a single ``find_one_and_update``
filtered on the expected value; in memory the check and the write happen
without yielding to the event loop.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings
from exceptions import ConflictError
from models import Subscription, User, utcnow


logger = logging.getLogger(__name__)


USERS_COLLECTION = "users"
SUBSCRIPTIONS_COLLECTION = "subscriptions"


class UserStore(Protocol):
    """Interface every user store implements. There is no delete path."""

    async def find_by_id(self, user_id: str) -> Optional[User]: ...

    async def find_by_identifier(self, identifier: str) -> Optional[User]:
        """Find a user whose username or email equals ``identifier``."""
        ...

    async def find_by_username(self, username: str) -> Optional[User]: ...

    async def find_by_username_or_email(self, username: str, email: str) -> Optional[User]: ...

    async def create(self, fields: dict[str, Any]) -> User:
        """Insert a user. Raises ConflictError if username or email is taken."""
        ...

    async def update(self, user_id: str, fields: dict[str, Any]) -> Optional[User]:
        """Apply a partial update. Returns None if the user does not exist."""
        ...

    async def set_refresh_token(self, user_id: str, token: Optional[str]) -> bool:
        """Unconditionally overwrite (or clear) the stored refresh token."""
        ...

    async def swap_refresh_token(self, user_id: str, expected: str, token: str) -> bool:
        """
        Replace the refresh token only if the stored one equals ``expected``.

        Returns True if the swap happened.
        """
        ...

    async def ping(self) -> bool: ...


class SubscriptionStore(Protocol):
    async def add(self, subscriber: str, channel: str) -> Subscription: ...

    async def count_subscribers(self, channel: str) -> int: ...

    async def count_subscriptions(self, subscriber: str) -> int: ...

    async def is_subscribed(self, subscriber: str, channel: str) -> bool: ...


# =============================================================================
# In-memory implementation
# =============================================================================

class InMemoryUserStore:
    """Dict-backed user store. Data is lost when the process exits."""

    def __init__(self):
        self._users: dict[str, dict[str, Any]] = {}

    async def find_by_id(self, user_id: str) -> Optional[User]:
        doc = self._users.get(user_id)
        return User(**doc) if doc else None

    async def find_by_identifier(self, identifier: str) -> Optional[User]:
        for doc in self._users.values():
            if identifier in (doc["username"], doc["email"]):
                return User(**doc)
        return None

    async def find_by_username(self, username: str) -> Optional[User]:
        for doc in self._users.values():
            if doc["username"] == username:
                return User(**doc)
        return None

    async def find_by_username_or_email(self, username: str, email: str) -> Optional[User]:
        for doc in self._users.values():
            if doc["username"] == username or doc["email"] == email:
                return User(**doc)
        return None

    def _check_unique(self, fields: dict[str, Any], exclude_id: Optional[str] = None) -> None:
        for user_id, doc in self._users.items():
            if user_id == exclude_id:
                continue
            for key in ("username", "email"):
                if key in fields and doc[key] == fields[key]:
                    raise ConflictError(f"User with this {key} already exists")

    async def create(self, fields: dict[str, Any]) -> User:
        self._check_unique(fields)
        now = utcnow()
        user = User(id=str(ObjectId()), created_at=now, updated_at=now, **fields)
        self._users[user.id] = user.model_dump()
        return user

    async def update(self, user_id: str, fields: dict[str, Any]) -> Optional[User]:
        doc = self._users.get(user_id)
        if doc is None:
            return None
        self._check_unique(fields, exclude_id=user_id)
        doc.update(fields, updated_at=utcnow())
        return User(**doc)

    async def set_refresh_token(self, user_id: str, token: Optional[str]) -> bool:
        doc = self._users.get(user_id)
        if doc is None:
            return False
        doc["refresh_token"] = token
        return True

    async def swap_refresh_token(self, user_id: str, expected: str, token: str) -> bool:
        doc = self._users.get(user_id)
        if doc is None or doc.get("refresh_token") != expected:
            return False
        doc["refresh_token"] = token
        return True

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._users)


class InMemorySubscriptionStore:
    def __init__(self):
        self._subscriptions: list[Subscription] = []

    async def add(self, subscriber: str, channel: str) -> Subscription:
        subscription = Subscription(id=str(ObjectId()), subscriber=subscriber, channel=channel)
        self._subscriptions.append(subscription)
        return subscription

    async def count_subscribers(self, channel: str) -> int:
        return sum(1 for s in self._subscriptions if s.channel == channel)

    async def count_subscriptions(self, subscriber: str) -> int:
        return sum(1 for s in self._subscriptions if s.subscriber == subscriber)

    async def is_subscribed(self, subscriber: str, channel: str) -> bool:
        return any(
            s.subscriber == subscriber and s.channel == channel
            for s in self._subscriptions
        )


# =============================================================================
# MongoDB implementation
# =============================================================================

def _object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _to_user(doc: Optional[dict]) -> Optional[User]:
    if not doc:
        return None
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return User(**doc)


def _conflict_from(error: DuplicateKeyError) -> ConflictError:
    key_pattern = (error.details or {}).get("keyPattern") or {}
    field = next(iter(key_pattern), "username or email")
    return ConflictError(f"User with this {field} already exists")


class MongoUserStore:
    """
    User store backed by the ``users`` collection.

    Uniqueness of username and email is enforced by the unique indexes created
    in ``ensure_indexes``; a DuplicateKeyError is surfaced as ConflictError.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        self.collection = database[USERS_COLLECTION]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index("username", unique=True)
        await self.collection.create_index("email", unique=True)

    async def find_by_id(self, user_id: str) -> Optional[User]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        return _to_user(await self.collection.find_one({"_id": oid}))

    async def find_by_identifier(self, identifier: str) -> Optional[User]:
        doc = await self.collection.find_one(
            {"$or": [{"username": identifier}, {"email": identifier}]}
        )
        return _to_user(doc)

    async def find_by_username(self, username: str) -> Optional[User]:
        return _to_user(await self.collection.find_one({"username": username}))

    async def find_by_username_or_email(self, username: str, email: str) -> Optional[User]:
        doc = await self.collection.find_one(
            {"$or": [{"username": username}, {"email": email}]}
        )
        return _to_user(doc)

    async def create(self, fields: dict[str, Any]) -> User:
        now = utcnow()
        doc = {**fields, "refresh_token": None, "created_at": now, "updated_at": now}
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise _conflict_from(e) from e
        doc["_id"] = result.inserted_id
        return _to_user(doc)

    async def update(self, user_id: str, fields: dict[str, Any]) -> Optional[User]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": {**fields, "updated_at": utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise _conflict_from(e) from e
        return _to_user(doc)

    async def set_refresh_token(self, user_id: str, token: Optional[str]) -> bool:
        oid = _object_id(user_id)
        if oid is None:
            return False
        result = await self.collection.update_one(
            {"_id": oid},
            {"$set": {"refresh_token": token}},
        )
        return result.matched_count == 1

    async def swap_refresh_token(self, user_id: str, expected: str, token: str) -> bool:
        oid = _object_id(user_id)
        if oid is None:
            return False
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "refresh_token": expected},
            {"$set": {"refresh_token": token}},
            projection={"_id": 1},
        )
        return doc is not None

    async def ping(self) -> bool:
        try:
            await self.collection.database.command("ping")
            return True
        except PyMongoError as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False


class MongoSubscriptionStore:
    def __init__(self, database: AsyncIOMotorDatabase):
        self.collection = database[SUBSCRIPTIONS_COLLECTION]

    async def ensure_indexes(self) -> None:
        # Non-unique: duplicate subscriptions stay representable.
        await self.collection.create_index("channel")
        await self.collection.create_index("subscriber")

    async def add(self, subscriber: str, channel: str) -> Subscription:
        now = utcnow()
        doc = {
            "subscriber": ObjectId(subscriber),
            "channel": ObjectId(channel),
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(doc)
        return Subscription(
            id=str(result.inserted_id),
            subscriber=subscriber,
            channel=channel,
            created_at=now,
            updated_at=now,
        )

    async def count_subscribers(self, channel: str) -> int:
        oid = _object_id(channel)
        if oid is None:
            return 0
        return await self.collection.count_documents({"channel": oid})

    async def count_subscriptions(self, subscriber: str) -> int:
        oid = _object_id(subscriber)
        if oid is None:
            return 0
        return await self.collection.count_documents({"subscriber": oid})

    async def is_subscribed(self, subscriber: str, channel: str) -> bool:
        subscriber_oid, channel_oid = _object_id(subscriber), _object_id(channel)
        if subscriber_oid is None or channel_oid is None:
            return False
        doc = await self.collection.find_one(
            {"subscriber": subscriber_oid, "channel": channel_oid},
            projection={"_id": 1},
        )
        return doc is not None


# =============================================================================
# Factory
# =============================================================================

async def _noop() -> None:
    return None


@dataclass
class Storage:
    """The stores the services need, plus a hook to release connections."""
    users: UserStore
    subscriptions: SubscriptionStore
    close: Callable[[], Awaitable[None]] = _noop

    async def ensure_indexes(self) -> None:
        for store in (self.users, self.subscriptions):
            ensure = getattr(store, "ensure_indexes", None)
            if ensure is not None:
                await ensure()


def create_storage(settings: Settings) -> Storage:
    """
    Build the stores selected by ``settings.storage_backend``.

    The motor client connects lazily, so this does not touch the network.
    """
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage; data will not survive a restart")
        return Storage(users=InMemoryUserStore(), subscriptions=InMemorySubscriptionStore())

    client = AsyncIOMotorClient(
        settings.mongodb_uri,
        serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
        tz_aware=True,
    )
    database = client[settings.mongodb_database]

    async def close() -> None:
        client.close()

    return Storage(
        users=MongoUserStore(database),
        subscriptions=MongoSubscriptionStore(database),
        close=close,
    )
