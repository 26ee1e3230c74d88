"""
Custom Exceptions for VidTube
=============================

Every failure a handler can report is one of the classes below. Each carries
a human-readable message plus a ``details`` dict, and the API layer maps the
class to an HTTP status (see ``api/middleware/error_handler.py``).

Exception Hierarchy:
    VidTubeError (base)
    ├── ValidationError
    │   └── UnsupportedImageFormatError
    ├── ConflictError
    ├── NotFoundError
    ├── AuthError
    │   ├── InvalidCredentialsError
    │   ├── UnauthenticatedError
    │   ├── InvalidTokenError
    │   └── TokenReuseError
    ├── UploadError
    ├── FileTooLargeError
    ├── InternalError
    └── ConfigurationError
"""

from typing import Optional


class VidTubeError(Exception):
    """
    Base exception for all VidTube errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (dict for API responses)
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to a dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(VidTubeError):
    """Raised when required input is missing or empty."""

    def __init__(self, message: str, fields: Optional[list[str]] = None):
        super().__init__(
            message=message,
            details={"fields": fields} if fields else None
        )


class ConflictError(VidTubeError):
    """Raised when a username or email is already taken."""

    def __init__(self, message: str = "User with this username or email already exists"):
        super().__init__(message=message)


class NotFoundError(VidTubeError):
    """Raised when the requested user does not exist."""

    def __init__(self, message: str = "User does not exist"):
        super().__init__(message=message)


# =============================================================================
# Authentication Errors
# =============================================================================

class AuthError(VidTubeError):
    """Base class for authentication and session errors."""
    pass


class InvalidCredentialsError(AuthError):
    def __init__(self, message: str = "Invalid user credentials"):
        super().__init__(message=message)


class UnauthenticatedError(AuthError):
    def __init__(self, message: str = "Unauthorized request"):
        super().__init__(message=message)


class InvalidTokenError(AuthError):
    """Raised for malformed, expired, or unverifiable tokens."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message=message)


class TokenReuseError(AuthError):
    """
    Raised when a refresh token that is no longer the user's current one is
    presented, e.g. a token already consumed by an earlier refresh.
    """

    def __init__(self, message: str = "Refresh token is expired or already used"):
        super().__init__(message=message)


# =============================================================================
# Infrastructure Errors
# =============================================================================

class UploadError(VidTubeError):
    """Raised when the media host rejects or fails an upload."""

    def __init__(self, file_name: str, reason: str):
        super().__init__(
            message=f"Failed to upload {file_name}: {reason}",
            details={
                "file_name": file_name,
                "reason": reason
            }
        )


class UnsupportedImageFormatError(ValidationError):
    def __init__(self, file_name: str, format: str, supported_formats: list[str]):
        VidTubeError.__init__(
            self,
            message=f"Unsupported image format: {format or 'none'}. Supported: {', '.join(supported_formats)}",
            details={
                "file_name": file_name,
                "format": format,
                "supported_formats": supported_formats
            }
        )


class FileTooLargeError(VidTubeError):
    def __init__(self, file_name: str, max_size_mb: int):
        super().__init__(
            message=f"File too large: {file_name}. Maximum size: {max_size_mb}MB",
            details={
                "file_name": file_name,
                "max_size_mb": max_size_mb
            }
        )


class InternalError(VidTubeError):
    """Raised when a write could not be verified afterwards."""

    def __init__(self, message: str = "Something went wrong while processing the request"):
        super().__init__(message=message)


class ConfigurationError(VidTubeError):
    """Raised when there's a configuration problem."""

    def __init__(self, setting_name: str, issue: str):
        super().__init__(
            message=f"Configuration error for '{setting_name}': {issue}",
            details={
                "setting_name": setting_name,
                "issue": issue
            }
        )
