"""
Media Relay
===========

Forwards uploaded files to a media host and returns their public URLs.

Architecture Pattern: Protocol-based Service
--------------------------------------------
``MediaRelay`` defines what a relay does; the services only depend on that.
Two implementations ship here:

- ``CloudinaryMediaRelay``: signed uploads to the Cloudinary REST API.
- ``LocalMediaRelay``: copies files into a directory served by the API
  itself, for development without a Cloudinary account.

Relay calls are blocking network/disk I/O. The account service runs them in
a thread pool.
"""

import hashlib
import logging
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import requests

from config import Settings, get_settings
from exceptions import ConfigurationError, UploadError


logger = logging.getLogger(__name__)

CLOUDINARY_API_URL = "https://api.cloudinary.com/v1_1"


@dataclass(frozen=True)
class UploadedMedia:
    """Where an uploaded asset ended up."""
    url: str
    public_id: str


class MediaRelay(Protocol):
    """
    Interface for media hosts.

    Any class with matching ``upload`` and ``delete`` methods is a valid relay.
    """

    def upload(self, file_path: str) -> UploadedMedia:
        """
        Upload a local file.

        Raises:
            UploadError: On transport failure or when the host rejects the file
        """
        ...

    def delete(self, public_id: str) -> None:
        """Remove a previously uploaded asset."""
        ...


class CloudinaryMediaRelay:
    """
    Upload images to Cloudinary using the signed upload API.

    Credentials come from settings and are passed in at construction; the
    module keeps no global Cloudinary configuration.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.timeout = timeout
        self.session = session or requests.Session()

    def _sign(self, params: dict) -> str:
        """Cloudinary signature: sha1 of sorted ``k=v`` pairs joined by ``&`` plus the secret."""
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _signed_params(self, **params) -> dict:
        params = {k: v for k, v in params.items() if v is not None}
        params["timestamp"] = int(time.time())
        params["signature"] = self._sign(params)
        params["api_key"] = self.api_key
        return params

    def upload(self, file_path: str) -> UploadedMedia:
        path = Path(file_path)
        if not path.is_file():
            raise UploadError(path.name, "file not found")

        url = f"{CLOUDINARY_API_URL}/{self.cloud_name}/image/upload"
        data = self._signed_params(folder=self.folder)

        try:
            with path.open("rb") as f:
                response = self.session.post(
                    url,
                    data=data,
                    files={"file": (path.name, f)},
                    timeout=self.timeout,
                )
        except requests.exceptions.Timeout as e:
            raise UploadError(path.name, f"timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise UploadError(path.name, str(e)) from e

        if response.status_code != 200:
            try:
                reason = response.json().get("error", {}).get("message", response.text)
            except ValueError:
                reason = response.text
            raise UploadError(path.name, f"media host returned {response.status_code}: {reason}")

        body = response.json()
        logger.info(f"Uploaded {path.name} to Cloudinary as {body.get('public_id')}")
        return UploadedMedia(
            url=body.get("secure_url") or body["url"],
            public_id=body["public_id"],
        )

    def delete(self, public_id: str) -> None:
        url = f"{CLOUDINARY_API_URL}/{self.cloud_name}/image/destroy"
        data = self._signed_params(public_id=public_id)
        try:
            response = self.session.post(url, data=data, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise UploadError(public_id, f"delete failed: {e}") from e
        if response.status_code != 200:
            raise UploadError(public_id, f"delete returned {response.status_code}")


class LocalMediaRelay:
    """Copy uploads into ``media_dir`` and serve them under ``base_url``."""

    def __init__(self, media_dir: str, base_url: str = "/media"):
        self.media_dir = Path(media_dir)
        self.media_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    def upload(self, file_path: str) -> UploadedMedia:
        path = Path(file_path)
        public_id = f"{uuid.uuid4().hex}{path.suffix.lower()}"
        try:
            shutil.copyfile(path, self.media_dir / public_id)
        except OSError as e:
            raise UploadError(path.name, str(e)) from e
        return UploadedMedia(url=f"{self.base_url}/{public_id}", public_id=public_id)

    def delete(self, public_id: str) -> None:
        try:
            (self.media_dir / public_id).unlink(missing_ok=True)
        except OSError as e:
            raise UploadError(public_id, f"delete failed: {e}") from e


def create_media_relay(settings: Optional[Settings] = None) -> MediaRelay:
    """
    Factory function to create the relay selected by ``settings.media_backend``.

    Raises:
        ConfigurationError: Cloudinary selected without credentials
    """
    settings = settings or get_settings()

    if settings.media_backend == "local":
        return LocalMediaRelay(settings.local_media_dir, settings.local_media_url)

    if not settings.cloudinary_configured:
        raise ConfigurationError(
            "cloudinary_api_key",
            "cloud name, API key and API secret are required for the cloudinary media backend"
        )
    return CloudinaryMediaRelay(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        folder=settings.cloudinary_folder,
        timeout=settings.media_upload_timeout,
    )
