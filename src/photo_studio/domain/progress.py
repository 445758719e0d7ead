"""Read-only projections returned to polling clients."""

from datetime import datetime

from pydantic import Field

from photo_studio.domain.outcomes import CamelModel, IterationOutcome, ProviderOutcome
from photo_studio.domain.sessions import (
    BatchProgress,
    BatchState,
    GenerationState,
    ProviderStatus,
)


class GenerationProgress(CamelModel):
    """Polling view of a single generation."""

    status: GenerationState
    results: dict[str, ProviderOutcome] = Field(default_factory=dict)
    progress: dict[str, ProviderStatus] = Field(default_factory=dict)
    is_complete: bool = False
    error: str | None = None


class BatchSummary(CamelModel):
    """Aggregate counts and cost over a batch's results."""

    successful_images: int = 0
    failed_images: int = 0
    total_cost: float = 0.0

    @classmethod
    def from_results(cls, results: list[IterationOutcome]) -> "BatchSummary":
        successful = 0
        failed = 0
        cost = 0.0
        for iteration in results:
            for outcome in iteration.results.values():
                if outcome.success:
                    successful += 1
                    cost += outcome.cost.total
                else:
                    failed += 1
        return cls(
            successful_images=successful,
            failed_images=failed,
            total_cost=round(cost, 6),
        )


class BatchProgressView(CamelModel):
    """Polling view of a batch."""

    status: GenerationState
    progress: BatchProgress | None = None
    results: list[IterationOutcome] = Field(default_factory=list)
    is_complete: bool = False
    summary: BatchSummary = Field(default_factory=BatchSummary)
    error: str | None = None

    @classmethod
    def from_state(cls, batch: BatchState | None) -> "BatchProgressView":
        if batch is None:
            return cls(status=GenerationState.IDLE)
        return cls(
            status=batch.status,
            progress=batch.progress,
            results=batch.results,
            is_complete=batch.is_complete,
            summary=BatchSummary.from_results(batch.results),
            error=batch.error,
        )


class CompletedBatch(CamelModel):
    """Gallery entry for a finished batch."""

    session_id: str
    prompt: str
    timestamp: datetime
    preview_url: str | None
    iterations: int
    total_images: int
    total_cost: float
