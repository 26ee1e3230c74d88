"""
Dependency Injection Functions
==============================

FastAPI dependencies for settings, services and authentication.

Everything is read from ``app.state``, which the application factory fills
at startup, so tests can build an app around their own store and relay.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.utils.file_handler import FileHandler
from config import Settings
from core.accounts import AccountService
from exceptions import AuthError
from models import User

# Security scheme for JWT Bearer tokens
security = HTTPBearer(auto_error=False)

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_account_service(request: Request) -> AccountService:
    """
    Dependency to get the account service from app state.

    Raises:
        HTTPException: 503 if the service is not initialized yet
    """
    service = getattr(request.app.state, "account_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up."
        )
    return service


def get_file_handler(settings: Settings = Depends(get_app_settings)) -> FileHandler:
    return FileHandler(settings)


def _access_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    service: AccountService = Depends(get_account_service),
) -> User:
    """
    Dependency to get the authenticated user.

    The access token is taken from the ``Authorization: Bearer`` header, or
    from the ``accessToken`` cookie when the header is absent.

    Raises:
        UnauthenticatedError: No access token
        InvalidTokenError: Token invalid/expired or user gone
    """
    return await service.tokens.authenticate(_access_token(request, credentials))


async def get_current_user_optional(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    service: AccountService = Depends(get_account_service),
) -> Optional[User]:
    """Optional authentication - returns None if not authenticated."""
    try:
        return await service.tokens.authenticate(_access_token(request, credentials))
    except AuthError:
        return None
