from __future__ import annotations

import logging
import secrets
import time
from pathlib import Path
from typing import Protocol

from ..errors import InvalidContent, UploadFailed

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class AssetStore(Protocol):
    def upload(self, data: bytes, owner_id: str, mime_type: str = "image/jpeg", file_name: str = "") -> str: ...

    def delete(self, url: str) -> bool: ...


def validate_image(data: bytes, mime_type: str, max_bytes: int) -> None:
    if not data:
        raise InvalidContent("File is empty")
    if mime_type not in ALLOWED_MIME_TYPES:
        allowed = ", ".join(sorted(ALLOWED_MIME_TYPES))
        raise InvalidContent(f"Invalid file type. Allowed types: {allowed}")
    if len(data) > max_bytes:
        raise InvalidContent(f"File too large. Maximum size: {max_bytes // (1024 * 1024)}MB")


def unique_filename(mime_type: str, file_name: str = "") -> str:
    ext = ALLOWED_MIME_TYPES.get(mime_type, "")
    if "." in file_name:
        candidate = file_name.rsplit(".", 1)[-1].lower()
        if candidate.isalnum() and len(candidate) <= 5:
            ext = candidate
    return f"submission_{int(time.time() * 1000)}_{secrets.token_hex(4)}.{ext or 'bin'}"


class LocalAssetStore:
    """Writes uploads under ``upload_dir`` and serves them from ``base_url``."""

    def __init__(self, upload_dir: str | Path, base_url: str = "/uploads", max_bytes: int = 5 * 1024 * 1024):
        self.upload_dir = Path(upload_dir)
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    def upload(self, data: bytes, owner_id: str, mime_type: str = "image/jpeg", file_name: str = "") -> str:
        validate_image(data, mime_type, self.max_bytes)
        name = unique_filename(mime_type, file_name)
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            (self.upload_dir / name).write_bytes(data)
        except OSError as e:
            logger.error("Failed to store upload for %s: %s", owner_id, e, exc_info=True)
            raise UploadFailed() from e

        url = f"{self.base_url}/{name}"
        logger.info("Stored %d bytes for player %s at %s", len(data), owner_id, url)
        return url

    def delete(self, url: str) -> bool:
        if not url.startswith(self.base_url + "/"):
            return False
        name = url[len(self.base_url) + 1:]
        if "/" in name or name.startswith("."):
            return False
        path = self.upload_dir / name
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True
