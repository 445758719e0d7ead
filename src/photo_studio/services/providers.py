"""Uniform provider capability over vendor image clients."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Protocol
from uuid import uuid4

from photo_studio.domain.outcomes import (
    Cost,
    ProviderFailure,
    ProviderOutcome,
    ProviderSuccess,
)
from photo_studio.services.assets import AssetStorage, SourceImage, extension_for
from photo_studio.services.errors import ValidationError
from photo_studio.services.variations import VariationEngine

_logger = logging.getLogger(__name__)

ALL_PROVIDERS_ALIASES = frozenset({"both", "all", "*"})


class ProviderError(Exception):
    """Base class for failures raised by vendor clients."""

    kind = "provider_error"
    retryable = False


class AuthError(ProviderError):
    """Credentials were rejected by the vendor."""

    kind = "auth"


class RateLimitedError(ProviderError):
    """The vendor throttled the request; the caller may retry later."""

    kind = "rate_limited"
    retryable = True


class ProviderTimeoutError(ProviderError):
    """The vendor did not answer within the adapter's bounded wait."""

    kind = "timeout"
    retryable = True


class InvalidResponseError(ProviderError):
    """The vendor answered without a usable image."""

    kind = "invalid_response"


class ProviderDisabledError(ProviderError):
    """The provider is not configured."""

    kind = "disabled"


@dataclass(frozen=True)
class GeneratedImage:
    """Raw image bytes returned by a vendor client."""

    data: bytes
    mime_type: str = "image/png"
    metadata: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class VariationContext:
    """Batch position of a provider call."""

    base_prompt: str
    iteration: int


@dataclass(frozen=True)
class ProviderPricing:
    """Flat per-call pricing used for cost estimates."""

    input_cost: float = 0.0
    output_cost: float = 0.0

    def estimate(self) -> Cost:
        return Cost.from_parts(self.input_cost, self.output_cost)


class ImageClient(Protocol):
    """Interface for vendor image generation calls."""

    model: str

    async def generate(self, prompt: str, source: SourceImage | None) -> GeneratedImage:
        """Generate one image, raising ProviderError subclasses on failure."""


@dataclass
class ProviderAdapter:
    """Wraps one vendor client so every call resolves to a ProviderOutcome.

    Image-conditioned adapters load the session photo and pass it along;
    text-to-image adapters ignore it. A missing client means the provider is
    not configured and calls short-circuit without network I/O.
    """

    name: str
    client: ImageClient | None
    storage: AssetStorage
    variations: VariationEngine
    pricing: ProviderPricing = field(default_factory=ProviderPricing)
    timeout_seconds: float = 90.0
    image_conditioned: bool = True
    label: str = ""

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def generate(
        self,
        prompt: str,
        source_image: str,
        variation_context: VariationContext | None = None,
    ) -> ProviderOutcome:
        """Generate one asset; never raises past this boundary."""
        started = time.perf_counter()
        try:
            image = await self._call_client(prompt, source_image)
            filename = self._filename(image.mime_type, variation_context)
            stored = await self.storage.save_generated(filename, image.data)
        except ProviderError as exc:
            _logger.warning("Provider %s failed (%s): %s", self.name, exc.kind, exc)
            return ProviderFailure(
                provider=self.name,
                error=f"{self.name}: {exc}",
                error_kind=exc.kind,
                retryable=exc.retryable,
            )
        except Exception as exc:
            _logger.exception("Provider %s raised unexpectedly", self.name)
            return ProviderFailure(provider=self.name, error=f"{self.name}: {exc}")

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        metadata: dict[str, object] = {
            "model": getattr(self.client, "model", None),
            "type": "image-to-image" if self.image_conditioned else "text-to-image",
            "prompt": prompt,
            **image.metadata,
        }
        if variation_context is not None:
            metadata["iteration"] = variation_context.iteration
        return ProviderSuccess(
            provider=self.name,
            asset_path=stored.path,
            asset_url=stored.url,
            cost=self.pricing.estimate(),
            processing_time_ms=elapsed_ms,
            metadata=metadata,
        )

    async def _call_client(self, prompt: str, source_image: str) -> GeneratedImage:
        if self.client is None:
            raise ProviderDisabledError("provider is not configured")
        source = None
        if self.image_conditioned:
            source = await self.storage.read_source(source_image)
        try:
            image = await asyncio.wait_for(
                self.client.generate(prompt, source), timeout=self.timeout_seconds
            )
        except TimeoutError as exc:
            raise ProviderTimeoutError(
                f"no result within {self.timeout_seconds:g}s"
            ) from exc
        if not image.data:
            raise InvalidResponseError("response contained no image")
        return image

    def _filename(
        self, mime_type: str, variation_context: VariationContext | None
    ) -> str:
        extension = extension_for(mime_type)
        if variation_context is None:
            return f"{self.name}-{int(time.time() * 1000)}-{uuid4().hex[:8]}.{extension}"
        return self.variations.create_descriptive_filename(
            variation_context.base_prompt,
            variation_context.iteration,
            self.name,
            extension,
        )


@dataclass
class ProviderRegistry:
    """Ordered set of adapters addressable by name."""

    adapters: dict[str, ProviderAdapter]

    def names(self) -> list[str]:
        return list(self.adapters)

    def enabled_names(self) -> list[str]:
        return [name for name, adapter in self.adapters.items() if adapter.enabled]

    def get(self, name: str) -> ProviderAdapter:
        adapter = self.adapters.get(name)
        if adapter is None:
            raise ValidationError(f"Unknown provider: {name}")
        return adapter

    def resolve(self, selection: str) -> list[ProviderAdapter]:
        """Resolve a provider selection into a concrete adapter list.

        ``both``/``all``/``*`` expand to every configured provider; otherwise a
        single name or a comma-separated list of names is expected.
        """
        cleaned = selection.strip().lower()
        if cleaned in ALL_PROVIDERS_ALIASES:
            resolved = [self.adapters[name] for name in self.enabled_names()]
            if not resolved:
                raise ValidationError("No providers are configured")
            return resolved
        names = [chunk.strip() for chunk in cleaned.split(",") if chunk.strip()]
        if not names:
            raise ValidationError("Provider is required")
        return [self.get(name) for name in dict.fromkeys(names)]
