"""
API Response Models
===================

Pydantic models for API responses. Successful responses are wrapped in
``ApiResponse`` so the client always finds the payload under ``data``.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from models import UserProfile


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for every successful response."""

    status_code: int = Field(..., description="HTTP status of the response")
    data: Optional[T] = Field(default=None, description="Response payload")
    message: str = Field(default="Success", description="Human-readable outcome")
    success: bool = Field(default=True)

    @classmethod
    def ok(cls, data: Optional[T] = None, message: str = "Success", status_code: int = 200) -> "ApiResponse[T]":
        return cls(status_code=status_code, data=data, message=message, success=status_code < 400)


class TokenData(BaseModel):
    """A freshly issued access/refresh token pair."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "accessToken": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                "refreshToken": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."
            }
        }
    )

    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")


class LoginData(TokenData):
    user: UserProfile
