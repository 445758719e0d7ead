"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from photo_studio.adapters.comfyui_client import HttpxComfyUIClient
from photo_studio.adapters.gemini_image_client import GeminiImageClient
from photo_studio.adapters.local_asset_storage import LocalAssetStorage
from photo_studio.adapters.openai_image_client import OpenAIImageClient
from photo_studio.adapters.stability_image_client import HttpxStabilityClient
from photo_studio.config import Settings, parse_provider_names
from photo_studio.services.assets import AssetStorage
from photo_studio.services.batch import BatchPolicy, BatchService
from photo_studio.services.generation import GenerationService
from photo_studio.services.progress import ProgressService
from photo_studio.services.providers import (
    ImageClient,
    ProviderAdapter,
    ProviderPricing,
    ProviderRegistry,
)
from photo_studio.services.sessions import SessionService
from photo_studio.services.store import InMemorySessionStore
from photo_studio.services.variations import VariationCatalog, VariationEngine

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: InMemorySessionStore
    storage: AssetStorage
    registry: ProviderRegistry
    variations: VariationEngine
    session_service: SessionService
    generation_service: GenerationService
    batch_service: BatchService
    progress_service: ProgressService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    storage = LocalAssetStorage.create(
        resolved_settings.upload_dir, resolved_settings.generated_dir
    )
    variations = VariationEngine(
        VariationCatalog.load(resolved_settings.variation_catalog_path)
    )
    allowed = parse_provider_names(resolved_settings.enabled_providers)

    gemini_client = (
        GeminiImageClient.create(
            resolved_settings.gemini_api_key, resolved_settings.gemini_model
        )
        if resolved_settings.gemini_api_key
        else None
    )
    openai_client = (
        OpenAIImageClient.create(
            resolved_settings.openai_api_key, resolved_settings.openai_image_model
        )
        if resolved_settings.openai_api_key
        else None
    )
    stability_client = (
        HttpxStabilityClient.create(
            resolved_settings.stability_api_key, resolved_settings.stability_base_url
        )
        if resolved_settings.stability_api_key
        else None
    )
    comfyui_client = (
        HttpxComfyUIClient.create(resolved_settings.comfyui_url)
        if resolved_settings.comfyui_enabled
        else None
    )

    def adapter(  # noqa: PLR0913
        name: str,
        client: ImageClient | None,
        pricing: ProviderPricing,
        timeout_seconds: float,
        image_conditioned: bool,
        label: str,
    ) -> ProviderAdapter:
        if client is not None and allowed is not None and name not in allowed:
            client = None
        if client is None:
            _logger.warning("Provider %s disabled: not configured", name)
        return ProviderAdapter(
            name=name,
            client=client,
            storage=storage,
            variations=variations,
            pricing=pricing,
            timeout_seconds=timeout_seconds,
            image_conditioned=image_conditioned,
            label=label,
        )

    hosted_timeout = resolved_settings.hosted_provider_timeout_seconds
    registry = ProviderRegistry(
        {
            "gemini": adapter(
                "gemini",
                gemini_client,
                ProviderPricing(input_cost=0.30, output_cost=0.039),
                hosted_timeout,
                True,
                "Google Gemini",
            ),
            "openai": adapter(
                "openai",
                openai_client,
                ProviderPricing(output_cost=0.040),
                hosted_timeout,
                False,
                "OpenAI DALL-E 3",
            ),
            "stability": adapter(
                "stability",
                stability_client,
                ProviderPricing(output_cost=resolved_settings.stability_image_cost),
                hosted_timeout,
                False,
                "Stability AI SDXL",
            ),
            "comfyui": adapter(
                "comfyui",
                comfyui_client,
                ProviderPricing(),
                resolved_settings.comfyui_timeout_seconds,
                True,
                "ComfyUI (local)",
            ),
        }
    )

    store = InMemorySessionStore()
    session_service = SessionService(
        store=store,
        storage=storage,
        max_upload_bytes=resolved_settings.max_upload_bytes,
    )
    generation_service = GenerationService(
        store=store,
        registry=registry,
        deadline_seconds=resolved_settings.generation_deadline_seconds,
    )
    batch_service = BatchService(
        store=store,
        registry=registry,
        variations=variations,
        policy=BatchPolicy(
            chunk_size=resolved_settings.batch_chunk_size,
            pause_seconds=resolved_settings.batch_chunk_pause_seconds,
            max_iterations=resolved_settings.max_batch_iterations,
        ),
        deadline_seconds=resolved_settings.batch_deadline_seconds,
    )
    progress_service = ProgressService(store)

    async def close_resources() -> None:
        await store.aclose()
        for client in (openai_client, stability_client, comfyui_client):
            if client is not None:
                await client.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        storage=storage,
        registry=registry,
        variations=variations,
        session_service=session_service,
        generation_service=generation_service,
        batch_service=batch_service,
        progress_service=progress_service,
        close_resources=close_resources,
    )
