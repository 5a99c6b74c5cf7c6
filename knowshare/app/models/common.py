"""Common types and enums shared across all models."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChunkKind(str, Enum):
    """Which source a knowledge chunk was extracted from."""

    resource = "resource"
    message = "message"


class MessageRole(str, Enum):
    """Author of a dialogue turn."""

    user = "user"
    assistant = "assistant"
    system = "system"


RetrievalTier = Literal["own", "shared", "suggestion"]


class RetrievalBand(BaseModel):
    """Open cosine-distance interval ``(lower_bound, upper_bound)``.

    The lower bound drops near-restatements of the query, the upper bound drops
    irrelevant matches. Both ends are exclusive.
    """

    lower_bound: float = Field(0.01, ge=0.0, le=2.0)
    upper_bound: float = Field(0.5, ge=0.0, le=2.0)

    @model_validator(mode="after")
    def _check_order(self) -> "RetrievalBand":
        if self.lower_bound >= self.upper_bound:
            raise ValueError("lower_bound must be strictly less than upper_bound")
        return self

    def contains(self, distance: float) -> bool:
        """Check if a distance falls strictly inside the band."""
        return self.lower_bound < distance < self.upper_bound


class TierLimits(BaseModel):
    """Per-tier result caps."""

    own: int = Field(4, ge=0)
    shared: int = Field(4, ge=0)
    suggestions: int = Field(2, ge=0)
