"""
API Request Models
==================

Pydantic models for JSON request bodies. Field names follow the
camelCase used by the web client; emptiness checks happen in the services
so that every missing field is reported the same way.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Credentials for login. Either username or email identifies the user."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "janed",
                "password": "secret1"
            }
        }
    )

    username: Optional[str] = Field(default=None, description="Username (case-insensitive)")
    email: Optional[str] = Field(default=None, description="Email address")
    password: Optional[str] = Field(default=None, description="Plain text password")

    @property
    def identifier(self) -> Optional[str]:
        return self.username or self.email


class RefreshTokenRequest(BaseModel):
    """Refresh token sent in the body when the cookie is not available."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    old_password: Optional[str] = Field(default=None, alias="oldPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class UpdateAccountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_name: Optional[str] = Field(default=None, alias="fullname")
    email: Optional[str] = None
