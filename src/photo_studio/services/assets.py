"""Asset storage interface for source photos and generated images."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"})


@dataclass(frozen=True)
class SourceImage:
    """Uploaded photo loaded for an image-conditioned provider."""

    name: str
    data: bytes
    mime_type: str


@dataclass(frozen=True)
class StoredAsset:
    """Location of a saved asset."""

    path: str
    url: str


@dataclass(frozen=True)
class AssetInfo:
    """Listing entry for a stored image."""

    filename: str
    size: int
    modified_at: datetime
    url: str


class AssetStorage(Protocol):
    """Persistence interface for image files."""

    async def save_upload(self, original_name: str, data: bytes) -> str:
        """Store an uploaded photo and return its stored name."""

    def upload_exists(self, name: str) -> bool:
        """Return true when an uploaded photo exists."""

    async def read_source(self, name: str) -> SourceImage:
        """Load an uploaded photo."""

    async def save_generated(self, filename: str, data: bytes) -> StoredAsset:
        """Store a generated image and return its location."""

    def list_uploads(self) -> list[AssetInfo]:
        """Return uploaded photos, newest first."""

    def list_generated(self) -> list[AssetInfo]:
        """Return generated images, newest first."""


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in {b"GIF87a", b"GIF89a"}:
        return "image/gif"
    return "image/jpeg"


def extension_for(mime_type: str) -> str:
    """Return a file extension for an image MIME type."""
    return {
        "image/png": "png",
        "image/webp": "webp",
        "image/gif": "gif",
    }.get(mime_type, "jpg")
