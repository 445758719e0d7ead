"""Upload, generation and polling endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, File, Request, UploadFile, status

from photo_studio.api.auth import require_api_token
from photo_studio.api.schemas import (
    BatchAccepted,
    BatchGenerateRequest,
    DeleteResponse,
    GenerateRequest,
    GenerationAccepted,
    ImageEntry,
    ImageList,
    ProviderInfo,
    ProviderList,
    SelectImageRequest,
    SessionCreated,
    SessionImage,
    SessionResult,
)
from photo_studio.domain.progress import (
    BatchProgressView,
    CompletedBatch,
    GenerationProgress,
)

if TYPE_CHECKING:
    from photo_studio.containers import AppContainer

router = APIRouter(
    prefix="/api", tags=["generation"], dependencies=[Depends(require_api_token)]
)


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.post("/upload")
async def upload_image(request: Request, image: UploadFile = File(...)) -> SessionCreated:
    """Store an uploaded photo and open a session."""
    session_service = _container(request).session_service
    data = await image.read(session_service.max_upload_bytes + 1)
    session = await session_service.create_from_upload(
        original_name=image.filename or "upload",
        content_type=image.content_type,
        data=data,
    )
    return SessionCreated(
        session_id=session.id,
        image_path=session.source_image,
        message="Image uploaded",
    )


@router.get("/images")
async def list_images(request: Request) -> ImageList:
    """List earlier uploads, newest first."""
    uploads = _container(request).session_service.list_uploads()
    return ImageList(images=[ImageEntry.from_asset(asset) for asset in uploads])


@router.get("/generated-images")
async def list_generated_images(request: Request) -> ImageList:
    """List generated images, newest first."""
    generated = _container(request).session_service.list_generated()
    return ImageList(
        images=[ImageEntry.from_asset(asset, with_provider=True) for asset in generated]
    )


@router.post("/select-image")
async def select_image(body: SelectImageRequest, request: Request) -> SessionCreated:
    """Open a session for an earlier upload."""
    session = _container(request).session_service.select_existing(body.filename or "")
    return SessionCreated(
        session_id=session.id,
        image_path=session.source_image,
        message="Image selected",
    )


@router.get("/image/{session_id}")
async def session_image(session_id: str, request: Request) -> SessionImage:
    """Return the source image of a session."""
    session = _container(request).session_service.get_session(session_id)
    return SessionImage(
        session_id=session.id,
        image_path=session.source_image,
        original_name=session.original_name,
        created_at=session.created_at,
    )


@router.get("/providers")
async def list_providers(request: Request) -> ProviderList:
    """List providers and whether each is configured."""
    registry = _container(request).registry
    return ProviderList(
        providers=[
            ProviderInfo(
                name=adapter.name,
                label=adapter.label or adapter.name,
                enabled=adapter.enabled,
                image_conditioned=adapter.image_conditioned,
            )
            for adapter in registry.adapters.values()
        ]
    )


@router.post("/generate", status_code=status.HTTP_202_ACCEPTED)
async def generate(body: GenerateRequest, request: Request) -> GenerationAccepted:
    """Start a single generation and return before providers finish."""
    providers = await _container(request).generation_service.start_generation(
        body.session_id, body.prompt or "", body.provider
    )
    return GenerationAccepted(
        session_id=body.session_id, status="generating", providers=providers
    )


@router.get("/progress/{session_id}")
async def progress(session_id: str, request: Request) -> GenerationProgress:
    """Poll single-generation progress."""
    return _container(request).progress_service.get_progress(session_id)


@router.post("/batch-generate", status_code=status.HTTP_202_ACCEPTED)
async def batch_generate(body: BatchGenerateRequest, request: Request) -> BatchAccepted:
    """Start a batch generation and return immediately."""
    providers = await _container(request).batch_service.start_batch(
        body.session_id, body.prompt or "", body.provider, body.iterations
    )
    return BatchAccepted(
        session_id=body.session_id,
        status="batch-generating",
        providers=providers,
        iterations=body.iterations,
    )


@router.get("/batch-progress/{session_id}")
async def batch_progress(session_id: str, request: Request) -> BatchProgressView:
    """Poll batch progress and accumulated results."""
    return _container(request).progress_service.get_batch_progress(session_id)


@router.get("/completed-batches")
async def completed_batches(request: Request) -> list[CompletedBatch]:
    """List finished batches for the gallery."""
    return _container(request).progress_service.list_completed_batches()


@router.get("/result/{session_id}")
async def result(session_id: str, request: Request) -> SessionResult:
    """Return the full session state."""
    session = _container(request).progress_service.get_result(session_id)
    return SessionResult.from_record(session)


@router.delete("/session/{session_id}")
async def delete_session(session_id: str, request: Request) -> DeleteResponse:
    """Cancel running work and forget the session."""
    await _container(request).session_service.delete_session(session_id)
    return DeleteResponse()
