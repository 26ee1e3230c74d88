"""
Domain Models for VidTube
=========================

Pydantic schemas for the documents stored in MongoDB and the public views
built from them. Each persisted model maps to one collection:

- User         -> users
- Video        -> videos
- Subscription -> subscriptions

Ids are kept as strings at this layer; the Mongo store converts them to and
from ObjectId.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """
    A registered account, as stored.

    Attributes:
        id: Document id
        username: Unique handle, always lower-case
        email: Unique email address, always lower-case
        full_name: Display name
        password_hash: bcrypt hash of the password
        avatar_url: URL of the avatar on the media host (required)
        cover_image_url: URL of the cover image, empty when none was uploaded
        avatar_public_id: Media host id of the avatar, used to delete it
        cover_image_public_id: Media host id of the cover image
        refresh_token: The single currently valid refresh token, if any
    """
    id: str
    username: str
    email: str
    full_name: str
    password_hash: str
    avatar_url: str
    cover_image_url: str = ""
    avatar_public_id: Optional[str] = None
    cover_image_public_id: Optional[str] = None
    refresh_token: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def has_session(self) -> bool:
        return bool(self.refresh_token)

    def to_profile(self) -> "UserProfile":
        return UserProfile.model_validate(self.model_dump())


class UserProfile(BaseModel):
    """Public view of a user. Never carries the password hash or refresh token."""

    model_config = ConfigDict(extra="ignore")

    id: str
    username: str
    email: str
    full_name: str
    avatar_url: str
    cover_image_url: str = ""
    created_at: datetime
    updated_at: datetime


class ChannelProfile(UserProfile):
    subscribers_count: int = 0
    channels_subscribed_to_count: int = 0
    is_subscribed: bool = False


class Video(BaseModel):
    """An uploaded video, owned by a user."""
    id: Optional[str] = None
    video_url: str = Field(..., min_length=1)
    thumbnail_url: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    duration_seconds: float = Field(..., ge=0)
    view_count: int = Field(default=0, ge=0)
    is_published: bool = True
    owner: str = Field(..., description="Owner user id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Subscription(BaseModel):
    """
    A subscriber following a channel. Both sides are user ids.

    No uniqueness is enforced on the pair, so the same subscription may be
    stored more than once.
    """
    id: Optional[str] = None
    subscriber: str = Field(..., description="User id of the one subscribing")
    channel: str = Field(..., description="User id of the channel subscribed to")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
