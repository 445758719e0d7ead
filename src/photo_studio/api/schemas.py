"""Pydantic models for the HTTP API."""

from datetime import datetime

from pydantic import StrictInt

from photo_studio.domain.outcomes import CamelModel, ProviderOutcome
from photo_studio.domain.progress import BatchProgressView
from photo_studio.domain.sessions import (
    TERMINAL_STATES,
    GenerationState,
    ProviderStatus,
    SessionRecord,
)
from photo_studio.services.assets import AssetInfo


class GenerateRequest(CamelModel):
    """Single generation request."""

    session_id: str
    prompt: str | None = None
    provider: str = "both"


class BatchGenerateRequest(CamelModel):
    """Batch generation request."""

    session_id: str
    prompt: str | None = None
    provider: str = "both"
    iterations: StrictInt


class SelectImageRequest(CamelModel):
    """Request to reuse an earlier upload."""

    filename: str | None = None


class GenerationAccepted(CamelModel):
    success: bool = True
    session_id: str
    status: str
    providers: list[str]
    message: str = "Generation started"


class BatchAccepted(GenerationAccepted):
    iterations: int
    message: str = "Batch generation started"


class SessionCreated(CamelModel):
    success: bool = True
    session_id: str
    image_path: str
    message: str


class SessionImage(CamelModel):
    session_id: str
    image_path: str
    original_name: str
    created_at: datetime


class ImageEntry(CamelModel):
    filename: str
    size: int
    modified_at: datetime
    url: str
    provider: str | None = None

    @classmethod
    def from_asset(cls, asset: AssetInfo, *, with_provider: bool = False) -> "ImageEntry":
        provider = None
        if with_provider:
            prefix = asset.filename.split("-", 1)[0]
            provider = prefix if prefix.isalpha() else "unknown"
        return cls(
            filename=asset.filename,
            size=asset.size,
            modified_at=asset.modified_at,
            url=asset.url,
            provider=provider,
        )


class ImageList(CamelModel):
    images: list[ImageEntry]


class ProviderInfo(CamelModel):
    name: str
    label: str
    enabled: bool
    image_conditioned: bool


class ProviderList(CamelModel):
    providers: list[ProviderInfo]


class SessionResult(CamelModel):
    """Full session view returned by the result endpoint."""

    session_id: str
    image_path: str
    original_name: str
    prompt: str | None
    status: GenerationState
    progress: dict[str, ProviderStatus]
    result: dict[str, ProviderOutcome]
    is_complete: bool
    error: str | None
    batch: BatchProgressView | None

    @classmethod
    def from_record(cls, session: SessionRecord) -> "SessionResult":
        return cls(
            session_id=session.id,
            image_path=session.source_image,
            original_name=session.original_name,
            prompt=session.prompt,
            status=session.generation_state,
            progress=session.provider_progress,
            result=session.results,
            is_complete=session.generation_state in TERMINAL_STATES,
            error=session.error,
            batch=(
                BatchProgressView.from_state(session.batch) if session.batch else None
            ),
        )


class DeleteResponse(CamelModel):
    success: bool = True
    message: str = "Session reset"
