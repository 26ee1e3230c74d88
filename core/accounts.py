"""
Account Service
===============

Registration, login/logout, and profile changes.

Every operation either completes all of its side effects or raises a
``VidTubeError`` having made none that matter: registration uploads media
first and, if anything after that fails, deletes what it uploaded before
re-raising, so no user record ever points at half a registration.

bcrypt and media uploads are blocking; they run through ``asyncio.to_thread``
and never while holding anything on the user record.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from config import Settings, get_settings
from core.media import MediaRelay, UploadedMedia
from core.security import PasswordHasher
from core.store import SubscriptionStore, UserStore
from core.tokens import TokenIssuer, TokenPair
from exceptions import (
    ConflictError,
    InternalError,
    InvalidCredentialsError,
    NotFoundError,
    UploadError,
    ValidationError,
)
from models import ChannelProfile, UserProfile


logger = logging.getLogger(__name__)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _require(**fields: Optional[str]) -> None:
    missing = [name for name, value in fields.items() if _blank(value)]
    if missing:
        raise ValidationError("All fields are required", fields=missing)


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    user: UserProfile


class AccountService:
    """
    User-facing account operations over a store, a media relay and a token issuer.

    Args:
        store: User persistence
        media_relay: Where avatar and cover images are uploaded
        token_issuer: Token lifecycle (built from ``store`` if not given)
        subscriptions: Subscription persistence, for channel profiles
        settings: Application settings (uses defaults if not provided)
    """

    def __init__(
        self,
        store: UserStore,
        media_relay: MediaRelay,
        token_issuer: Optional[TokenIssuer] = None,
        subscriptions: Optional[SubscriptionStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.media_relay = media_relay
        self.tokens = token_issuer or TokenIssuer(store, self.settings)
        self.subscriptions = subscriptions
        self.hasher = PasswordHasher(rounds=self.settings.bcrypt_rounds)

    # =========================================================================
    # Media helpers
    # =========================================================================

    async def _upload(self, file_path: str) -> UploadedMedia:
        return await asyncio.to_thread(self.media_relay.upload, file_path)

    async def _discard(self, *uploads: Optional[UploadedMedia]) -> None:
        """Delete uploaded assets after a failed operation. Failures are only logged."""
        for media in uploads:
            if media is None:
                continue
            try:
                await asyncio.to_thread(self.media_relay.delete, media.public_id)
            except UploadError as e:
                logger.error(f"Could not remove orphaned upload {media.public_id}: {e}")

    async def _discard_public_id(self, public_id: Optional[str]) -> None:
        if public_id:
            await self._discard(UploadedMedia(url="", public_id=public_id))

    # =========================================================================
    # Registration
    # =========================================================================

    async def register(
        self,
        full_name: Optional[str],
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
        avatar_path: Optional[str] = None,
        cover_image_path: Optional[str] = None,
    ) -> UserProfile:
        """
        Create a user with an avatar and an optional cover image.

        Raises:
            ValidationError: A required field is empty or the avatar is missing
            ConflictError: Username or email already taken
            UploadError: The media host failed; nothing is persisted
            InternalError: The new user could not be read back
        """
        _require(fullname=full_name, username=username, email=email, password=password)

        username = username.strip().lower()
        email = email.strip().lower()

        if await self.store.find_by_username_or_email(username, email):
            raise ConflictError("User with this username or email already exists")

        if _blank(avatar_path):
            raise ValidationError("Avatar image is required", fields=["avatar"])

        avatar = await self._upload(avatar_path)
        cover_image = None
        try:
            if not _blank(cover_image_path):
                cover_image = await self._upload(cover_image_path)

            password_hash = await asyncio.to_thread(self.hasher.hash, password)
            user = await self.store.create({
                "full_name": full_name.strip(),
                "username": username,
                "email": email,
                "password_hash": password_hash,
                "avatar_url": avatar.url,
                "avatar_public_id": avatar.public_id,
                "cover_image_url": cover_image.url if cover_image else "",
                "cover_image_public_id": cover_image.public_id if cover_image else None,
            })
        except Exception:
            await self._discard(avatar, cover_image)
            raise

        created = await self.store.find_by_id(user.id)
        if created is None:
            raise InternalError("Something went wrong while registering the user")

        logger.info(f"Registered user {created.id} ({created.username})")
        return created.to_profile()

    # =========================================================================
    # Sessions
    # =========================================================================

    async def login(self, identifier: Optional[str], password: Optional[str]) -> LoginResult:
        """
        Authenticate by username or email and start a new session.

        Any previous session of the user ends, since its refresh token is
        overwritten.

        Raises:
            ValidationError: Identifier or password missing
            NotFoundError: No such user
            InvalidCredentialsError: Wrong password
        """
        if _blank(identifier):
            raise ValidationError("Username or email is required", fields=["username", "email"])
        if _blank(password):
            raise ValidationError("Password is required", fields=["password"])

        user = await self.store.find_by_identifier(identifier.strip().lower())
        if user is None:
            raise NotFoundError()

        if not await asyncio.to_thread(self.hasher.verify, password, user.password_hash):
            logger.info(f"Failed login for user {user.id}")
            raise InvalidCredentialsError()

        tokens = await self.tokens.issue_tokens(user)
        return LoginResult(tokens=tokens, user=user.to_profile())

    async def logout(self, user_id: str) -> None:
        await self.tokens.revoke(user_id)

    async def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        return await self.tokens.refresh(refresh_token)

    # =========================================================================
    # Profile
    # =========================================================================

    async def get_profile(self, user_id: str) -> UserProfile:
        user = await self.store.find_by_id(user_id)
        if user is None:
            raise NotFoundError()
        return user.to_profile()

    async def change_password(
        self,
        user_id: str,
        old_password: Optional[str],
        new_password: Optional[str],
    ) -> None:
        """
        Replace the password hash. Sessions are left alone.

        Raises:
            ValidationError: Either password is empty
            NotFoundError: No such user
            InvalidCredentialsError: ``old_password`` does not match
        """
        _require(oldPassword=old_password, newPassword=new_password)

        user = await self.store.find_by_id(user_id)
        if user is None:
            raise NotFoundError()

        if not await asyncio.to_thread(self.hasher.verify, old_password, user.password_hash):
            raise InvalidCredentialsError("Invalid old password")

        password_hash = await asyncio.to_thread(self.hasher.hash, new_password)
        await self.store.update(user_id, {"password_hash": password_hash})
        logger.info(f"Password changed for user {user_id}")

    async def update_profile(
        self,
        user_id: str,
        full_name: Optional[str],
        email: Optional[str],
    ) -> UserProfile:
        """
        Update the display fields.

        Raises:
            ValidationError: Either field is empty
            ConflictError: Email belongs to another user
            NotFoundError: No such user
        """
        _require(fullname=full_name, email=email)

        user = await self.store.update(user_id, {
            "full_name": full_name.strip(),
            "email": email.strip().lower(),
        })
        if user is None:
            raise NotFoundError()
        return user.to_profile()

    async def _replace_image(self, user_id: str, file_path: Optional[str], field: str) -> UserProfile:
        if _blank(file_path):
            raise ValidationError(f"{field.replace('_', ' ').capitalize()} file is missing", fields=[field])

        current = await self.store.find_by_id(user_id)
        if current is None:
            raise NotFoundError()

        media = await self._upload(file_path)
        try:
            user = await self.store.update(user_id, {
                f"{field}_url": media.url,
                f"{field}_public_id": media.public_id,
            })
        except Exception:
            await self._discard(media)
            raise
        if user is None:
            await self._discard(media)
            raise NotFoundError()

        await self._discard_public_id(getattr(current, f"{field}_public_id"))
        return user.to_profile()

    async def update_avatar(self, user_id: str, file_path: Optional[str]) -> UserProfile:
        return await self._replace_image(user_id, file_path, "avatar")

    async def update_cover_image(self, user_id: str, file_path: Optional[str]) -> UserProfile:
        return await self._replace_image(user_id, file_path, "cover_image")

    async def get_channel_profile(self, username: Optional[str], viewer_id: Optional[str] = None) -> ChannelProfile:
        """
        Public channel page data: the profile plus subscription counts.

        Raises:
            ValidationError: Username missing
            NotFoundError: No such channel
        """
        if _blank(username):
            raise ValidationError("Username is missing", fields=["username"])

        user = await self.store.find_by_username(username.strip().lower())
        if user is None:
            raise NotFoundError("Channel does not exist")

        profile = ChannelProfile.model_validate(user.model_dump())
        if self.subscriptions is not None:
            profile.subscribers_count = await self.subscriptions.count_subscribers(user.id)
            profile.channels_subscribed_to_count = await self.subscriptions.count_subscriptions(user.id)
            if viewer_id:
                profile.is_subscribed = await self.subscriptions.is_subscribed(viewer_id, user.id)
        return profile
