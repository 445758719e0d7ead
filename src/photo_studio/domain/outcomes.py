"""Models for provider and iteration outcomes."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys for the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Cost(CamelModel):
    """Estimated cost of a single provider call."""

    input: float = 0.0
    output: float = 0.0
    total: float = 0.0
    currency: str = "USD"

    @classmethod
    def from_parts(cls, input_cost: float, output_cost: float) -> "Cost":
        """Build a cost with a rounded total."""
        return cls(
            input=round(input_cost, 6),
            output=round(output_cost, 6),
            total=round(input_cost + output_cost, 6),
        )


class ProviderSuccess(CamelModel):
    """A provider returned a usable asset."""

    success: Literal[True] = True
    provider: str
    asset_path: str
    asset_url: str
    cost: Cost
    processing_time_ms: int = Field(ge=0)
    metadata: dict[str, object] = Field(default_factory=dict)


class ProviderFailure(CamelModel):
    """A provider call failed; the message is prefixed with the provider name."""

    success: Literal[False] = False
    provider: str
    error: str
    error_kind: str = "unexpected"
    retryable: bool = False


ProviderOutcome = ProviderSuccess | ProviderFailure


class IterationOutcome(CamelModel):
    """Results of one batch iteration across the selected providers."""

    iteration: int = Field(ge=1)
    prompt: str
    results: dict[str, ProviderOutcome]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def succeeded(self) -> bool:
        """Return true when at least one provider produced an asset."""
        return any(outcome.success for outcome in self.results.values())
