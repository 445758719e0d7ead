"""Session lifecycle around uploaded source photos."""

import logging
from dataclasses import dataclass
from pathlib import PurePath

from photo_studio.domain.sessions import SessionRecord
from photo_studio.services.assets import IMAGE_EXTENSIONS, AssetInfo, AssetStorage
from photo_studio.services.errors import AssetNotFoundError, ValidationError
from photo_studio.services.store import InMemorySessionStore

_logger = logging.getLogger(__name__)


@dataclass
class SessionService:
    """Creates, inspects and deletes sessions."""

    store: InMemorySessionStore
    storage: AssetStorage
    max_upload_bytes: int = 5 * 1024 * 1024

    async def create_from_upload(
        self, original_name: str, content_type: str | None, data: bytes
    ) -> SessionRecord:
        """Store an uploaded photo and open a session for it."""
        if not content_type or not content_type.startswith("image/"):
            raise ValidationError("Only image files are allowed")
        if not data:
            raise ValidationError("No file uploaded")
        if len(data) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes / (1024 * 1024)
            raise ValidationError(f"File too large (max {limit_mb:g}MB)")
        stored_name = await self.storage.save_upload(original_name, data)
        session = self.store.create(stored_name, original_name)
        _logger.info("Upload stored: session=%s file=%s", session.id, stored_name)
        return session

    def select_existing(self, filename: str) -> SessionRecord:
        """Open a session for a photo that was uploaded earlier."""
        cleaned = (filename or "").strip()
        if not cleaned:
            raise ValidationError("Filename is required")
        if PurePath(cleaned).name != cleaned or cleaned.startswith("."):
            raise ValidationError("Invalid filename")
        if PurePath(cleaned).suffix.lower() not in IMAGE_EXTENSIONS:
            raise ValidationError("Only image files are allowed")
        if not self.storage.upload_exists(cleaned):
            raise AssetNotFoundError(f"Image not found: {cleaned}")
        return self.store.create(cleaned, cleaned)

    def get_session(self, session_id: str) -> SessionRecord:
        return self.store.get(session_id)

    def list_uploads(self) -> list[AssetInfo]:
        return self.storage.list_uploads()

    def list_generated(self) -> list[AssetInfo]:
        return self.storage.list_generated()

    async def delete_session(self, session_id: str) -> bool:
        """Cancel running work and forget the session."""
        deleted = await self.store.delete(session_id)
        if deleted:
            _logger.info("Session deleted: session=%s", session_id)
        return deleted
