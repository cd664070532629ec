"""
board/uploads.py -- Attachment validation and local file storage.

Stored names are generated, never taken from the client:
    posts/<post_id>/<uuid4 hex><lowercased extension>
so a crafted filename cannot escape the upload root.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

logger = logging.getLogger("forum.uploads")

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
VIDEO_EXTENSIONS = frozenset({".mp4", ".webm"})

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_VIDEO_BYTES = 50 * 1024 * 1024


@dataclass(frozen=True)
class UploadCheck:
    ok: bool
    kind: Literal["image", "video"] | None = None
    error: str | None = None


class UploadPolicy:
    def __init__(
        self,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        max_video_bytes: int = DEFAULT_MAX_VIDEO_BYTES,
    ) -> None:
        self.max_image_bytes = max_image_bytes
        self.max_video_bytes = max_video_bytes

    def classify(self, filename: str, size: int) -> UploadCheck:
        ext = Path(filename or "").suffix.lower()
        if size <= 0:
            return UploadCheck(ok=False, error="File is empty.")
        if ext in IMAGE_EXTENSIONS:
            if size > self.max_image_bytes:
                return UploadCheck(ok=False, error=f"Images must be at most {self.max_image_bytes // (1024 * 1024)} MB.")
            return UploadCheck(ok=True, kind="image")
        if ext in VIDEO_EXTENSIONS:
            if size > self.max_video_bytes:
                return UploadCheck(ok=False, error=f"Videos must be at most {self.max_video_bytes // (1024 * 1024)} MB.")
            return UploadCheck(ok=True, kind="video")
        allowed = ", ".join(sorted(IMAGE_EXTENSIONS | VIDEO_EXTENSIONS))
        return UploadCheck(ok=False, error=f"Unsupported file type. Allowed: {allowed}")


class LocalBlobStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def path_for(self, stored_name: str) -> Path:
        path = (self.root / stored_name).resolve()
        if not path.is_relative_to(self.root):
            raise ValueError(f"Stored name escapes upload root: {stored_name!r}")
        return path

    def save(self, post_id: int, filename: str, data: bytes) -> str:
        """Write `data` and return the stored name relative to the root."""
        stored_name = f"posts/{post_id}/{uuid.uuid4().hex}{Path(filename).suffix.lower()}"
        path = self.path_for(stored_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug("Saved %d bytes to %s", len(data), stored_name)
        return stored_name

    def delete(self, stored_name: str) -> bool:
        path = self.path_for(stored_name)
        if not path.exists():
            return False
        path.unlink()
        return True
