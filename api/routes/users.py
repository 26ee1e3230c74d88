"""
User Profile Endpoints
======================

Current-user profile, password change, avatar/cover image updates, and
public channel profiles.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from api.dependencies import (
    get_account_service,
    get_current_user,
    get_current_user_optional,
    get_file_handler,
)
from api.models.requests import ChangePasswordRequest, UpdateAccountRequest
from api.models.responses import ApiResponse
from api.utils.file_handler import FileHandler
from core.accounts import AccountService
from models import ChannelProfile, User, UserProfile

router = APIRouter()


@router.get("/me", response_model=ApiResponse[UserProfile])
async def get_current_profile(user: User = Depends(get_current_user)):
    """Return the authenticated user's profile."""
    return ApiResponse.ok(user.to_profile(), "Current user fetched successfully")


@router.patch("/me", response_model=ApiResponse[UserProfile])
async def update_account(
    payload: UpdateAccountRequest,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    profile = await service.update_profile(user.id, payload.full_name, payload.email)
    return ApiResponse.ok(profile, "Account details updated successfully")


@router.post("/change-password", response_model=ApiResponse[dict])
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    await service.change_password(user.id, payload.old_password, payload.new_password)
    return ApiResponse.ok({}, "Password changed successfully")


@router.patch("/avatar", response_model=ApiResponse[UserProfile])
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
    file_handler: FileHandler = Depends(get_file_handler),
):
    async with file_handler.saved(avatar) as (avatar_path,):
        profile = await service.update_avatar(user.id, avatar_path)
    return ApiResponse.ok(profile, "Avatar image updated successfully")


@router.patch("/cover-image", response_model=ApiResponse[UserProfile])
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
    file_handler: FileHandler = Depends(get_file_handler),
):
    async with file_handler.saved(cover_image) as (cover_image_path,):
        profile = await service.update_cover_image(user.id, cover_image_path)
    return ApiResponse.ok(profile, "Cover image updated successfully")


@router.get("/channel/{username}", response_model=ApiResponse[ChannelProfile])
async def get_channel_profile(
    username: str,
    viewer: Optional[User] = Depends(get_current_user_optional),
    service: AccountService = Depends(get_account_service),
):
    """Public channel profile with subscriber counts."""
    profile = await service.get_channel_profile(username, viewer.id if viewer else None)
    return ApiResponse.ok(profile, "Channel fetched successfully")
