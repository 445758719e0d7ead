"""Read projections over session state for polling endpoints."""

from dataclasses import dataclass

from photo_studio.domain.outcomes import ProviderSuccess
from photo_studio.domain.progress import (
    BatchProgressView,
    BatchSummary,
    CompletedBatch,
    GenerationProgress,
)
from photo_studio.domain.sessions import TERMINAL_STATES, GenerationState, SessionRecord
from photo_studio.services.store import InMemorySessionStore


@dataclass
class ProgressService:
    """Builds polling views from store snapshots without mutating state."""

    store: InMemorySessionStore

    def get_progress(self, session_id: str) -> GenerationProgress:
        """Return single-generation progress; raises for unknown sessions."""
        session = self.store.get(session_id)
        return GenerationProgress(
            status=session.generation_state,
            results=session.results,
            progress=session.provider_progress,
            is_complete=session.generation_state in TERMINAL_STATES,
            error=session.error,
        )

    def get_batch_progress(self, session_id: str) -> BatchProgressView:
        """Return batch progress; idle with no progress when never started."""
        return BatchProgressView.from_state(self.store.get(session_id).batch)

    def get_result(self, session_id: str) -> SessionRecord:
        """Return the full session snapshot."""
        return self.store.get(session_id)

    def list_completed_batches(self) -> list[CompletedBatch]:
        """Return finished batches, newest first."""
        entries: list[CompletedBatch] = []
        for session in self.store.list_sessions():
            batch = session.batch
            if batch is None or batch.status != GenerationState.COMPLETED:
                continue
            summary = BatchSummary.from_results(batch.results)
            entries.append(
                CompletedBatch(
                    session_id=session.id,
                    prompt=batch.prompt,
                    timestamp=batch.progress.end_time or batch.progress.start_time,
                    preview_url=_preview_url(session),
                    iterations=batch.progress.total,
                    total_images=summary.successful_images,
                    total_cost=summary.total_cost,
                )
            )
        entries.sort(key=lambda entry: entry.timestamp, reverse=True)
        return entries


def _preview_url(session: SessionRecord) -> str | None:
    if session.batch is None:
        return None
    for iteration in sorted(session.batch.results, key=lambda item: item.iteration):
        for outcome in iteration.results.values():
            if isinstance(outcome, ProviderSuccess):
                return outcome.asset_url
    return None
