"""Single-generation orchestration across providers."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from functools import partial

from photo_studio.domain.outcomes import ProviderFailure, ProviderOutcome
from photo_studio.domain.sessions import GenerationState, ProviderStatus
from photo_studio.services.errors import (
    SessionBusyError,
    SessionNotFoundError,
    ValidationError,
)
from photo_studio.services.providers import (
    ProviderAdapter,
    ProviderRegistry,
    VariationContext,
)
from photo_studio.services.store import InMemorySessionStore

_logger = logging.getLogger(__name__)

StatusCallback = Callable[[str, ProviderStatus, ProviderOutcome | None], Awaitable[None]]

_UNSETTLED = frozenset({ProviderStatus.PENDING, ProviderStatus.GENERATING})


async def fan_out(
    adapters: Sequence[ProviderAdapter],
    prompt: str,
    source_image: str,
    *,
    variation_context: VariationContext | None = None,
    on_status: StatusCallback | None = None,
) -> dict[str, ProviderOutcome]:
    """Call every adapter concurrently and collect one outcome per provider."""

    async def run_one(adapter: ProviderAdapter) -> tuple[str, ProviderOutcome]:
        if on_status is not None:
            await on_status(adapter.name, ProviderStatus.GENERATING, None)
        try:
            outcome = await adapter.generate(prompt, source_image, variation_context)
        except Exception as exc:
            _logger.exception("Adapter %s escaped its failure boundary", adapter.name)
            outcome = ProviderFailure(provider=adapter.name, error=f"{adapter.name}: {exc}")
        status = ProviderStatus.COMPLETED if outcome.success else ProviderStatus.ERROR
        if on_status is not None:
            await on_status(adapter.name, status, outcome)
        return adapter.name, outcome

    pairs = await asyncio.gather(*(run_one(adapter) for adapter in adapters))
    return dict(pairs)


def validate_prompt(prompt: str | None) -> str:
    """Return a stripped prompt or reject it."""
    cleaned = (prompt or "").strip()
    if not cleaned:
        raise ValidationError("Prompt is required")
    return cleaned


@dataclass
class GenerationService:
    """Runs one prompt against the selected providers in the background."""

    store: InMemorySessionStore
    registry: ProviderRegistry
    deadline_seconds: float = 300.0

    async def start_generation(
        self, session_id: str, prompt: str, provider: str = "both"
    ) -> list[str]:
        """Validate, reset progress, and launch generation; returns providers."""
        if not self.store.exists(session_id):
            raise SessionNotFoundError(session_id)
        cleaned_prompt = validate_prompt(prompt)
        adapters = self.registry.resolve(provider)
        names = [adapter.name for adapter in adapters]

        async with self.store.mutate(session_id) as session:
            if session.is_busy:
                raise SessionBusyError(session_id)
            session.prompt = cleaned_prompt
            session.generation_state = GenerationState.GENERATING
            session.provider_progress = dict.fromkeys(names, ProviderStatus.PENDING)
            session.results = {}
            session.error = None
            source_image = session.source_image

        _logger.info("Generation started: session=%s providers=%s", session_id, names)
        self.store.supervise(
            session_id,
            self._run(session_id, cleaned_prompt, source_image, adapters),
            on_crash=partial(self._fail, session_id),
        )
        return names

    async def _run(
        self,
        session_id: str,
        prompt: str,
        source_image: str,
        adapters: list[ProviderAdapter],
    ) -> None:
        deadline = asyncio.timeout(self.deadline_seconds)
        try:
            async with deadline:
                await fan_out(
                    adapters,
                    prompt,
                    source_image,
                    on_status=partial(self._record, session_id),
                )
        except TimeoutError:
            if not deadline.expired():
                raise
            _logger.error("Generation deadline exceeded: session=%s", session_id)
            await self._fail(
                session_id,
                TimeoutError(f"generation exceeded {self.deadline_seconds:g}s deadline"),
            )
            return

        async with self.store.mutate(session_id) as session:
            session.generation_state = GenerationState.COMPLETED
        _logger.info("Generation completed: session=%s", session_id)

    async def _record(
        self,
        session_id: str,
        provider: str,
        status: ProviderStatus,
        outcome: ProviderOutcome | None,
    ) -> None:
        async with self.store.mutate(session_id) as session:
            if session.generation_state != GenerationState.GENERATING:
                return
            if provider not in session.provider_progress:
                return
            session.provider_progress[provider] = status
            if outcome is not None:
                session.results[provider] = outcome

    async def _fail(self, session_id: str, exc: BaseException) -> None:
        async with self.store.mutate(session_id) as session:
            session.generation_state = GenerationState.ERROR
            session.error = str(exc) or type(exc).__name__
            for provider, status in session.provider_progress.items():
                if status in _UNSETTLED:
                    session.provider_progress[provider] = ProviderStatus.ERROR
                    session.results.setdefault(
                        provider,
                        ProviderFailure(
                            provider=provider,
                            error=f"{provider}: {session.error}",
                            error_kind="aborted",
                        ),
                    )
