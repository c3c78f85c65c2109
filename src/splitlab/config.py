"""Tunables for the statistics engine."""

import os

from pydantic import BaseModel, ConfigDict, Field

from splitlab.stats.primitives import z_for_confidence


class AnalysisConfig(BaseModel):
    """Immutable engine configuration, bound when an analyzer is constructed."""

    model_config = ConfigDict(frozen=True)

    confidence_level: float = Field(default=0.95, gt=0, lt=1)
    min_sample_size: int = Field(default=100, ge=0)
    min_conversions: int = Field(default=10, ge=0)

    @property
    def z_score(self) -> float:
        return z_for_confidence(self.confidence_level)

    def meets_minimum(self, total_users: int, conversions: int) -> bool:
        """Whether a variant has enough users and conversions to be tested."""
        return (
            total_users >= self.min_sample_size
            and conversions >= self.min_conversions
        )

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        return cls(
            confidence_level=float(os.getenv("SPLITLAB_CONFIDENCE_LEVEL", "0.95")),
            min_sample_size=int(os.getenv("SPLITLAB_MIN_SAMPLE_SIZE", "100")),
            min_conversions=int(os.getenv("SPLITLAB_MIN_CONVERSIONS", "10")),
        )
