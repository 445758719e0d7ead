"""Filesystem-backed asset storage."""

import asyncio
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from photo_studio.services.assets import (
    IMAGE_EXTENSIONS,
    AssetInfo,
    AssetStorage,
    SourceImage,
    StoredAsset,
    detect_mime_type,
)


@dataclass
class LocalAssetStorage(AssetStorage):
    """Stores uploads and generated images in two local directories."""

    upload_dir: Path
    generated_dir: Path
    upload_url_prefix: str = "/uploads"
    generated_url_prefix: str = "/generated"

    @classmethod
    def create(cls, upload_dir: str, generated_dir: str) -> "LocalAssetStorage":
        """Create storage and make sure both directories exist."""
        storage = cls(upload_dir=Path(upload_dir), generated_dir=Path(generated_dir))
        storage.upload_dir.mkdir(parents=True, exist_ok=True)
        storage.generated_dir.mkdir(parents=True, exist_ok=True)
        return storage

    async def save_upload(self, original_name: str, data: bytes) -> str:
        """Write an upload under a unique name and return that name."""
        extension = Path(original_name).suffix.lower()
        if extension not in IMAGE_EXTENSIONS:
            extension = ".jpg"
        name = f"{int(time.time() * 1000)}-{uuid4().hex[:9]}{extension}"
        await asyncio.to_thread(self._write, self.upload_dir / name, data)
        return name

    def upload_exists(self, name: str) -> bool:
        return (self.upload_dir / name).is_file()

    async def read_source(self, name: str) -> SourceImage:
        """Read an uploaded photo."""
        data = await asyncio.to_thread((self.upload_dir / name).read_bytes)
        return SourceImage(name=name, data=data, mime_type=detect_mime_type(data))

    async def save_generated(self, filename: str, data: bytes) -> StoredAsset:
        """Write a generated image."""
        path = self.generated_dir / filename
        await asyncio.to_thread(self._write, path, data)
        return StoredAsset(
            path=str(path), url=f"{self.generated_url_prefix}/{filename}"
        )

    def list_uploads(self) -> list[AssetInfo]:
        return _list_images(self.upload_dir, self.upload_url_prefix)

    def list_generated(self) -> list[AssetInfo]:
        return _list_images(self.generated_dir, self.generated_url_prefix)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


def _list_images(directory: Path, url_prefix: str) -> list[AssetInfo]:
    """List image files in a directory, newest first."""
    if not directory.is_dir():
        return []
    entries: list[AssetInfo] = []
    for path in directory.iterdir():
        if path.name.startswith(".") or path.suffix.lower() not in IMAGE_EXTENSIONS:
            continue
        stats = path.stat()
        entries.append(
            AssetInfo(
                filename=path.name,
                size=stats.st_size,
                modified_at=datetime.fromtimestamp(stats.st_mtime, tz=UTC),
                url=f"{url_prefix}/{path.name}",
            )
        )
    entries.sort(key=lambda entry: entry.modified_at, reverse=True)
    return entries
