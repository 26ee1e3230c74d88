"""
Core Module
===========

Business logic for VidTube, independent of the HTTP layer:
- store: user and subscription persistence (MongoDB or in-memory)
- security: password hashing and JWT codec
- tokens: access/refresh token issuance and rotation
- media: uploads to the media host
- accounts: registration, login/logout, profile changes
"""

from core.accounts import AccountService, LoginResult
from core.media import CloudinaryMediaRelay, LocalMediaRelay, MediaRelay, UploadedMedia, create_media_relay
from core.security import PasswordHasher, TokenCodec
from core.store import (
    InMemorySubscriptionStore,
    InMemoryUserStore,
    MongoSubscriptionStore,
    MongoUserStore,
    Storage,
    create_storage,
)
from core.tokens import TokenIssuer, TokenPair

__all__ = [
    'AccountService',
    'LoginResult',
    'CloudinaryMediaRelay',
    'LocalMediaRelay',
    'MediaRelay',
    'UploadedMedia',
    'create_media_relay',
    'PasswordHasher',
    'TokenCodec',
    'InMemorySubscriptionStore',
    'InMemoryUserStore',
    'MongoSubscriptionStore',
    'MongoUserStore',
    'Storage',
    'create_storage',
    'TokenIssuer',
    'TokenPair',
]
