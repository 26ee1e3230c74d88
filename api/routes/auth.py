"""
Authentication Endpoints
========================

User registration, login, logout, and token refresh.

Login and refresh also set the tokens as http-only cookies so browser
clients never have to handle them in script.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status

from api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_account_service,
    get_app_settings,
    get_current_user,
    get_file_handler,
)
from api.middleware.rate_limiter import login_limit, refresh_limit, register_limit
from api.models.requests import LoginRequest, RefreshTokenRequest
from api.models.responses import ApiResponse, LoginData, TokenData
from api.utils.file_handler import FileHandler
from config import Settings
from core.accounts import AccountService
from core.tokens import TokenPair
from models import User, UserProfile


logger = logging.getLogger(__name__)

router = APIRouter()


def set_token_cookies(response: Response, tokens: TokenPair, settings: Settings) -> None:
    options = {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": settings.cookie_samesite,
    }
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=settings.access_token_expire_minutes * 60,
        **options,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        **options,
    )


def clear_token_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(
            name,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )


@router.post(
    "/register",
    response_model=ApiResponse[UserProfile],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(register_limit)],
)
async def register(
    fullname: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None, description="Avatar image (required)"),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage", description="Cover image"),
    service: AccountService = Depends(get_account_service),
    file_handler: FileHandler = Depends(get_file_handler),
):
    """
    Register a new user.

    Multipart form with ``fullname``, ``username``, ``email``, ``password``
    and the files ``avatar`` (required) and ``coverImage`` (optional).
    """
    async with file_handler.saved(avatar, cover_image) as (avatar_path, cover_image_path):
        profile = await service.register(
            full_name=fullname,
            username=username,
            email=email,
            password=password,
            avatar_path=avatar_path,
            cover_image_path=cover_image_path,
        )

    return ApiResponse.ok(profile, "User registered successfully", status.HTTP_201_CREATED)


@router.post("/login", response_model=ApiResponse[LoginData], dependencies=[Depends(login_limit)])
async def login(
    response: Response,
    payload: LoginRequest,
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_app_settings),
):
    """Log in with username or email and password; returns tokens and sets cookies."""
    result = await service.login(payload.identifier, payload.password)
    set_token_cookies(response, result.tokens, settings)

    return ApiResponse.ok(
        LoginData(
            user=result.user,
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
        ),
        "User logged in successfully",
    )


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_app_settings),
):
    """End the current session and clear the token cookies."""
    await service.logout(user.id)
    clear_token_cookies(response, settings)
    return ApiResponse.ok({}, "User logged out")


@router.post(
    "/refresh-token",
    response_model=ApiResponse[TokenData],
    dependencies=[Depends(refresh_limit)],
)
async def refresh_token(
    request: Request,
    response: Response,
    payload: Optional[RefreshTokenRequest] = None,
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Exchange a refresh token for a new pair.

    The token is read from the ``refreshToken`` cookie, or from the JSON body
    when no cookie is present. The presented token stops being valid.
    """
    presented = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not presented and payload is not None:
        presented = payload.refresh_token

    tokens = await service.refresh(presented)
    set_token_cookies(response, tokens, settings)

    return ApiResponse.ok(
        TokenData(access_token=tokens.access_token, refresh_token=tokens.refresh_token),
        "Access token refreshed",
    )
