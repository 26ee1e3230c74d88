"""
File Upload Handler
===================

Async image upload handling with validation and cleanup.

Uploaded avatars and cover images are written to a temporary directory,
handed to the media relay by path, and deleted once the request is done.
"""

import logging
import tempfile
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiofiles
from fastapi import UploadFile

from config import Settings, get_settings
from exceptions import FileTooLargeError, UnsupportedImageFormatError, ValidationError


logger = logging.getLogger(__name__)


class FileHandler:
    """Handle image uploads and temporary file management."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.temp_dir = Path(self.settings.temp_file_dir or tempfile.gettempdir())
        self.temp_dir.mkdir(parents=True, exist_ok=True)

        self.max_size_bytes = self.settings.max_upload_size_mb * 1024 * 1024
        self.allowed_formats = [f.lower() for f in self.settings.allowed_image_formats]

    @staticmethod
    def is_present(upload_file: Optional[UploadFile]) -> bool:
        """Browsers send an empty part with no filename for an unselected file input."""
        return upload_file is not None and bool(upload_file.filename)

    async def save_upload_file(self, upload_file: UploadFile) -> Path:
        """
        Save an uploaded image to a temporary location with validation.

        Args:
            upload_file: FastAPI UploadFile object from request

        Returns:
            Path to the saved file

        Raises:
            ValidationError: If the part carries no filename
            UnsupportedImageFormatError: If the extension is not allowed
            FileTooLargeError: If the file exceeds the size limit
        """
        if not upload_file.filename:
            raise ValidationError("Filename is required")

        file_ext = Path(upload_file.filename).suffix.lower()
        if file_ext not in self.allowed_formats:
            raise UnsupportedImageFormatError(upload_file.filename, file_ext, self.allowed_formats)

        temp_file_path = self.temp_dir / f"{uuid.uuid4().hex}{file_ext}"

        # Chunked write so oversized files are rejected without reading them whole
        total_size = 0
        chunk_size = 8192

        try:
            async with aiofiles.open(temp_file_path, 'wb') as f:
                while True:
                    chunk = await upload_file.read(chunk_size)
                    if not chunk:
                        break

                    total_size += len(chunk)
                    if total_size > self.max_size_bytes:
                        raise FileTooLargeError(upload_file.filename, self.settings.max_upload_size_mb)

                    await f.write(chunk)
        except BaseException:
            temp_file_path.unlink(missing_ok=True)
            raise

        return temp_file_path

    def cleanup_file(self, file_path: Path | str) -> None:
        """
        Delete a temporary file.

        Best-effort: errors are logged but not raised, so cleanup never
        changes the outcome of the request.
        """
        try:
            Path(file_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete temp file {file_path}: {e}")

    @asynccontextmanager
    async def saved(self, *upload_files: Optional[UploadFile]) -> AsyncIterator[list[Optional[str]]]:
        """
        Save each present upload and yield their paths (None for absent ones).

        All saved files are removed on exit, whether or not the body raised.
        """
        paths: list[Optional[str]] = []
        try:
            for upload_file in upload_files:
                if self.is_present(upload_file):
                    paths.append(str(await self.save_upload_file(upload_file)))
                else:
                    paths.append(None)
            yield paths
        finally:
            for path in paths:
                if path:
                    self.cleanup_file(path)
