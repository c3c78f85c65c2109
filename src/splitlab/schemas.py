"""Pydantic models for experiments and the results derived from them."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class ExperimentStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class Granularity(str, Enum):
    """Time bucket size for time-series rollups."""

    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class Experiment(BaseModel):
    """An A/B test definition as loaded from the data source."""

    id: str
    name: str
    description: Optional[str] = None
    status: ExperimentStatus = ExperimentStatus.RUNNING
    variants: List[str]
    goal_event: str
    start_date: datetime
    end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("variants", mode="before")
    @classmethod
    def _parse_variants(cls, value: Any) -> Any:
        # Stored as a JSON array of names.
        if isinstance(value, str):
            return json.loads(value)
        return value

    @field_validator("variants")
    @classmethod
    def _check_variants(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("an experiment needs at least one variant")
        if any(not name.strip() for name in value):
            raise ValueError("variant names must not be blank")
        if len(set(value)) != len(value):
            raise ValueError("variant names must be unique")
        return value


class Assignment(BaseModel):
    """A user's assignment to one variant of an experiment."""

    experiment_id: str
    user_id: str
    variant: str
    assigned_at: datetime


class ConversionEvent(BaseModel):
    """A tracked event that may count as a conversion."""

    user_id: str
    event_name: str
    timestamp: datetime
    properties: Dict[str, Any] = {}


class ConfidenceInterval(BaseModel):
    lower: float
    upper: float


class VariantMetrics(BaseModel):
    """Conversion metrics for a single variant."""

    variant: str
    total_users: int
    conversions: int
    conversion_rate: float
    confidence_interval: ConfidenceInterval
    avg_time_to_conversion_hours: Optional[float] = None


class AggregateMetrics(BaseModel):
    total_users: int
    total_conversions: int
    overall_conversion_rate: float


class ExperimentResults(BaseModel):
    """All variants' metrics for an experiment, plus totals."""

    experiment_id: str
    experiment_name: str
    description: Optional[str] = None
    status: ExperimentStatus
    goal_event: str
    start_date: datetime
    end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    variants: List[VariantMetrics]
    aggregate: AggregateMetrics


class BestVariant(BaseModel):
    name: str
    conversion_rate: float
    sample_size: int


class SampleSizeCheck(BaseModel):
    variant: str
    users: int
    conversions: int
    meets_minimum: bool


class SignificanceResult(BaseModel):
    """Outcome of the chi-square test across all variants."""

    experiment_id: Optional[str] = None
    experiment_name: Optional[str] = None
    is_significant: bool
    p_value: Optional[float] = Field(default=None, ge=0, le=1)
    chi_square: Optional[float] = Field(default=None, ge=0)
    degrees_of_freedom: int
    best_variant: BestVariant
    confidence_level: float
    interpretation: str
    warning: Optional[str] = None
    sample_size_check: Optional[List[SampleSizeCheck]] = None


class BestVariantSnapshot(BaseModel):
    name: str
    conversion_rate: float
    total_users: int
    conversions: int
    confidence_interval: ConfidenceInterval


class VariantComparison(BaseModel):
    variant: str
    conversion_rate: float
    difference_from_best: float
    relative_lift: float
    confidence_intervals_overlap: bool
    likely_worse: bool


class ComparisonSummary(BaseModel):
    total_variants_compared: int
    best_variant: str
    significantly_worse_variants: int
    average_difference: float


class ComparisonResult(BaseModel):
    """Every variant measured against the current leader."""

    experiment_id: Optional[str] = None
    experiment_name: Optional[str] = None
    best_variant: BestVariantSnapshot
    comparisons: List[VariantComparison]
    summary: ComparisonSummary


class TimeSeriesPoint(BaseModel):
    period: str
    assignments: int
    conversions: int
    conversion_rate: float
    cumulative_assignments: int
    cumulative_conversions: int
    cumulative_conversion_rate: float


class VariantTimeSeries(BaseModel):
    variant: str
    data_points: List[TimeSeriesPoint]


class PeriodSnapshot(BaseModel):
    assignments: int
    conversions: int
    conversion_rate: float


class TimelineEntry(BaseModel):
    """One period of the combined timeline, keyed by variant name."""

    period: str
    variants: Dict[str, PeriodSnapshot]


class ExperimentTimeSeries(BaseModel):
    experiment_id: str
    experiment_name: str
    granularity: Granularity
    variants: List[VariantTimeSeries]
    timeline: List[TimelineEntry]


RecommendationAction = Literal["implement_winner", "continue", "no_clear_winner"]
RecommendationConfidence = Literal["low", "medium", "high"]


class RecommendationEntry(BaseModel):
    type: Literal["success", "action", "info", "warning"]
    message: str
    details: str


class MetricsSummary(BaseModel):
    total_users: int
    total_conversions: int
    best_conversion_rate: float
    p_value: Optional[float] = None


class Recommendation(BaseModel):
    """A decision on what to do next with an experiment."""

    experiment_id: str
    experiment_name: str
    action: RecommendationAction
    confidence: RecommendationConfidence
    days_running: int
    is_statistically_significant: bool
    recommended_variant: str
    recommendations: List[RecommendationEntry]
    metrics_summary: MetricsSummary
    next_steps: List[str]
