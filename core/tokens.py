"""
Token Issuer
============

Issues access/refresh token pairs and rotates refresh tokens.

Each user has at most one valid refresh token: the one stored on the user
record. Session states:

    NoSession          refresh_token is empty
    ActiveSession(t)   refresh_token == t

    issue_tokens / refresh  ->  ActiveSession(new token)
    revoke                  ->  NoSession
    failed refresh          ->  unchanged

Issuing a pair overwrites the stored token, which ends every other session
of that user. A refresh token that was rotated out is rejected with
TokenReuseError.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from config import Settings, get_settings
from core.security import TokenCodec
from core.store import UserStore
from exceptions import InvalidTokenError, TokenReuseError, UnauthenticatedError
from models import User


logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenIssuer:
    """
    Access/refresh token lifecycle for one user store.

    Args:
        store: Where refresh tokens are persisted
        settings: Secrets, algorithm and expiries (defaults to get_settings())
    """

    def __init__(self, store: UserStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()
        self.access_codec = TokenCodec(self.settings.access_token_secret, self.settings.jwt_algorithm)
        self.refresh_codec = TokenCodec(self.settings.refresh_token_secret, self.settings.jwt_algorithm)
        self.access_ttl = timedelta(minutes=self.settings.access_token_expire_minutes)
        self.refresh_ttl = timedelta(days=self.settings.refresh_token_expire_days)

    def _sign_pair(self, user: User) -> TokenPair:
        access_token = self.access_codec.sign(
            {
                "sub": user.id,
                "type": ACCESS_TOKEN_TYPE,
                "username": user.username,
                "email": user.email,
            },
            self.access_ttl,
        )
        refresh_token = self.refresh_codec.sign(
            {"sub": user.id, "type": REFRESH_TOKEN_TYPE},
            self.refresh_ttl,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def issue_tokens(self, user: User) -> TokenPair:
        """Sign a fresh pair and make its refresh token the only valid one."""
        pair = self._sign_pair(user)
        if not await self.store.set_refresh_token(user.id, pair.refresh_token):
            raise InvalidTokenError("User no longer exists")
        logger.info(f"Issued tokens for user {user.id}")
        return pair

    @staticmethod
    def _subject(claims: dict, expected_type: str) -> str:
        if claims.get("type") != expected_type:
            raise InvalidTokenError()
        user_id = claims.get("sub")
        if not user_id:
            raise InvalidTokenError()
        return str(user_id)

    async def refresh(self, presented: Optional[str]) -> TokenPair:
        """
        Exchange the current refresh token for a new pair.

        Raises:
            UnauthenticatedError: No token presented
            InvalidTokenError: Bad signature, expired, wrong type, or unknown user
            TokenReuseError: Token is not the user's current refresh token
        """
        if not presented or not presented.strip():
            raise UnauthenticatedError()

        claims = self.refresh_codec.verify(presented)
        user_id = self._subject(claims, REFRESH_TOKEN_TYPE)

        user = await self.store.find_by_id(user_id)
        if user is None:
            raise InvalidTokenError()

        if user.refresh_token != presented:
            logger.warning(f"Rejected stale refresh token for user {user_id}")
            raise TokenReuseError()

        pair = self._sign_pair(user)
        # Another request may have rotated the token since it was read.
        if not await self.store.swap_refresh_token(user.id, presented, pair.refresh_token):
            logger.warning(f"Lost refresh race for user {user_id}")
            raise TokenReuseError()

        logger.info(f"Rotated refresh token for user {user_id}")
        return pair

    async def revoke(self, user_id: str) -> None:
        await self.store.set_refresh_token(user_id, None)
        logger.info(f"Revoked session for user {user_id}")

    async def authenticate(self, access_token: Optional[str]) -> User:
        """
        Resolve the user behind an access token.

        Raises:
            UnauthenticatedError: No token presented
            InvalidTokenError: Unverifiable token or unknown user
        """
        if not access_token:
            raise UnauthenticatedError()
        claims = self.access_codec.verify(access_token)
        user = await self.store.find_by_id(self._subject(claims, ACCESS_TOKEN_TYPE))
        if user is None:
            raise InvalidTokenError("Invalid access token")
        return user
