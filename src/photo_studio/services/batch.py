"""Batch generation: N varied iterations run in paced, bounded chunks."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial

from photo_studio.domain.outcomes import IterationOutcome, ProviderFailure
from photo_studio.domain.sessions import BatchProgress, BatchState, GenerationState
from photo_studio.services.errors import (
    SessionBusyError,
    SessionNotFoundError,
    ValidationError,
)
from photo_studio.services.generation import fan_out, validate_prompt
from photo_studio.services.providers import (
    ProviderAdapter,
    ProviderRegistry,
    VariationContext,
)
from photo_studio.services.store import InMemorySessionStore
from photo_studio.services.variations import VariationEngine

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchPolicy:
    """Throughput knobs: iterations per chunk and the pause between chunks."""

    chunk_size: int = 10
    pause_seconds: float = 3.0
    max_iterations: int = 1000

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if self.pause_seconds < 0:
            raise ValueError("pause_seconds must be >= 0")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")

    def chunks(self, iterations: int) -> list[range]:
        """Split 1..iterations into contiguous chunks."""
        return [
            range(start, min(start + self.chunk_size, iterations + 1))
            for start in range(1, iterations + 1, self.chunk_size)
        ]

    def validate_iterations(self, iterations: object) -> int:
        if isinstance(iterations, bool) or not isinstance(iterations, int):
            raise ValidationError("Iterations must be an integer")
        if not 1 <= iterations <= self.max_iterations:
            raise ValidationError(
                f"Iterations must be between 1 and {self.max_iterations}"
            )
        return iterations


@dataclass
class BatchService:
    """Runs batch generations in the background and records progress."""

    store: InMemorySessionStore
    registry: ProviderRegistry
    variations: VariationEngine
    policy: BatchPolicy = field(default_factory=BatchPolicy)
    deadline_seconds: float = 1800.0

    async def start_batch(
        self,
        session_id: str,
        prompt: str,
        provider: str,
        iterations: int,
    ) -> list[str]:
        """Validate the request and launch the batch; returns providers."""
        if not self.store.exists(session_id):
            raise SessionNotFoundError(session_id)
        cleaned_prompt = validate_prompt(prompt)
        total = self.policy.validate_iterations(iterations)
        adapters = self.registry.resolve(provider)
        names = [adapter.name for adapter in adapters]

        async with self.store.mutate(session_id) as session:
            if session.is_busy:
                raise SessionBusyError(session_id)
            session.prompt = cleaned_prompt
            session.batch = BatchState(
                prompt=cleaned_prompt,
                providers=names,
                progress=BatchProgress(total=total),
            )
            source_image = session.source_image

        _logger.info(
            "Batch started: session=%s iterations=%s providers=%s chunk=%s",
            session_id,
            total,
            names,
            self.policy.chunk_size,
        )
        self.store.supervise(
            session_id,
            self._run(session_id, cleaned_prompt, source_image, adapters, total),
            on_crash=partial(self._fail, session_id),
        )
        return names

    async def _run(
        self,
        session_id: str,
        base_prompt: str,
        source_image: str,
        adapters: list[ProviderAdapter],
        iterations: int,
    ) -> None:
        chunks = self.policy.chunks(iterations)
        deadline = asyncio.timeout(self.deadline_seconds)
        try:
            async with deadline:
                for index, chunk in enumerate(chunks):
                    _logger.info(
                        "Batch chunk %s/%s: session=%s iterations=%s-%s",
                        index + 1,
                        len(chunks),
                        session_id,
                        chunk.start,
                        chunk.stop - 1,
                    )
                    await self._run_chunk(
                        session_id, base_prompt, source_image, adapters, chunk
                    )
                    if index < len(chunks) - 1 and self.policy.pause_seconds > 0:
                        await asyncio.sleep(self.policy.pause_seconds)
        except TimeoutError:
            if not deadline.expired():
                raise
            _logger.error("Batch deadline exceeded: session=%s", session_id)
            await self._fail(
                session_id,
                TimeoutError(f"batch exceeded {self.deadline_seconds:g}s deadline"),
            )
            return

        async with self.store.mutate(session_id) as session:
            if session.batch is None:
                return
            session.batch.status = GenerationState.COMPLETED
            _close_progress(session.batch.progress)
            progress = session.batch.progress
        _logger.info(
            "Batch completed: session=%s completed=%s failed=%s duration=%.1fs",
            session_id,
            len(progress.completed),
            len(progress.failed),
            progress.duration_seconds or 0.0,
        )

    async def _run_chunk(
        self,
        session_id: str,
        base_prompt: str,
        source_image: str,
        adapters: list[ProviderAdapter],
        chunk: range,
    ) -> None:
        tasks = [
            asyncio.create_task(
                self._run_iteration(base_prompt, source_image, adapters, iteration)
            )
            for iteration in chunk
        ]
        try:
            for settled in asyncio.as_completed(tasks):
                outcome = await settled
                await self._record(session_id, outcome)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run_iteration(
        self,
        base_prompt: str,
        source_image: str,
        adapters: list[ProviderAdapter],
        iteration: int,
    ) -> IterationOutcome:
        prompt = base_prompt
        try:
            prompt = self.variations.vary_prompt(base_prompt, iteration)
            results = await fan_out(
                adapters,
                prompt,
                source_image,
                variation_context=VariationContext(base_prompt, iteration),
            )
        except Exception as exc:
            _logger.exception("Batch iteration %s failed", iteration)
            results = {
                adapter.name: ProviderFailure(
                    provider=adapter.name,
                    error=f"{adapter.name}: iteration {iteration} failed: {exc}",
                    error_kind="iteration_error",
                )
                for adapter in adapters
            }
        return IterationOutcome(iteration=iteration, prompt=prompt, results=results)

    async def _record(self, session_id: str, outcome: IterationOutcome) -> None:
        async with self.store.mutate(session_id) as session:
            batch = session.batch
            if batch is None or batch.status != GenerationState.GENERATING:
                return
            batch.results.append(outcome)
            batch.progress.record(outcome.iteration, succeeded=outcome.succeeded)

    async def _fail(self, session_id: str, exc: BaseException) -> None:
        async with self.store.mutate(session_id) as session:
            if session.batch is None:
                return
            session.batch.status = GenerationState.ERROR
            session.batch.error = str(exc) or type(exc).__name__
            _close_progress(session.batch.progress)


def _close_progress(progress: BatchProgress) -> None:
    progress.end_time = datetime.now(tz=UTC)
    progress.duration_seconds = round(
        (progress.end_time - progress.start_time).total_seconds(), 3
    )
