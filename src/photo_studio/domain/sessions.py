"""Domain models for generation sessions."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import Field

from photo_studio.domain.outcomes import CamelModel, IterationOutcome, ProviderOutcome


class GenerationState(StrEnum):
    """Lifecycle of a generation run."""

    IDLE = "idle"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


class ProviderStatus(StrEnum):
    """Progress of one provider within a generation run."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATES = frozenset({GenerationState.COMPLETED, GenerationState.ERROR})


class BatchProgress(CamelModel):
    """Counters for a running or finished batch."""

    current: int = 0
    total: int
    completed: list[int] = Field(default_factory=list)
    failed: list[int] = Field(default_factory=list)
    start_time: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    end_time: datetime | None = None
    duration_seconds: float | None = None

    def record(self, iteration: int, *, succeeded: bool) -> None:
        """Record the terminal state of an iteration exactly once."""
        if iteration in self.completed or iteration in self.failed:
            raise ValueError(f"Iteration {iteration} already recorded")
        if succeeded:
            self.completed.append(iteration)
        else:
            self.failed.append(iteration)
        self.current = max(self.current, iteration)


class BatchState(CamelModel):
    """State of a batch run attached to a session."""

    status: GenerationState = GenerationState.GENERATING
    prompt: str
    providers: list[str]
    progress: BatchProgress
    results: list[IterationOutcome] = Field(default_factory=list)
    error: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.status in TERMINAL_STATES


@dataclass
class SessionRecord:
    """In-memory state for one upload and its generation runs."""

    id: str
    source_image: str
    original_name: str
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    prompt: str | None = None
    generation_state: GenerationState = GenerationState.IDLE
    provider_progress: dict[str, ProviderStatus] = field(default_factory=dict)
    results: dict[str, ProviderOutcome] = field(default_factory=dict)
    error: str | None = None
    batch: BatchState | None = None

    @property
    def is_busy(self) -> bool:
        """Return true while a single or batch run is in flight."""
        if self.generation_state == GenerationState.GENERATING:
            return True
        return self.batch is not None and not self.batch.is_complete
