"""Per-period and cumulative conversion rollups."""

from functools import partial
from typing import Iterable, Sequence, Union

import pandas as pd

from splitlab.errors import InvalidInputError
from splitlab.schemas import (
    Granularity,
    PeriodSnapshot,
    TimelineEntry,
    TimeSeriesPoint,
    VariantTimeSeries,
)
from splitlab.stats.metrics import conversion_rate

PeriodCounts = list[tuple[str, int]]

# Week labels use the ISO calendar and are built in period_label.
_PERIOD_FORMATS = {
    Granularity.HOUR: "%Y-%m-%d %H:00:00",
    Granularity.DAY: "%Y-%m-%d",
    Granularity.MONTH: "%Y-%m",
}


def to_granularity(value: Union[str, Granularity]) -> Granularity:
    try:
        return Granularity(value)
    except ValueError:
        allowed = ", ".join(g.value for g in Granularity)
        raise InvalidInputError(
            f"Unsupported granularity '{value}'. Expected one of: {allowed}."
        ) from None


def period_label(timestamp, granularity: Granularity) -> str:
    """Label of the calendar period containing `timestamp`."""
    if granularity is Granularity.WEEK:
        iso = timestamp.isocalendar()
        return f"{iso[0]}-W{iso[1]:02d}"
    return timestamp.strftime(_PERIOD_FORMATS[granularity])


def bucket_by_period(timestamps: Iterable, granularity: Granularity) -> PeriodCounts:
    """Count timestamps per period, ordered chronologically."""
    stamps = pd.Series(list(timestamps), dtype="object")
    if stamps.empty:
        return []
    labels = stamps.map(partial(period_label, granularity=granularity))
    counts = labels.value_counts().sort_index()
    return [(str(period), int(count)) for period, count in counts.items()]


def merge_period_counts(
    assignments: PeriodCounts, conversions: PeriodCounts
) -> list[TimeSeriesPoint]:
    """
    Join per-period assignment and conversion counts into a cumulative series.

    Every period present in either input gets a point. Cumulative counts are
    running sums in period order, so they never decrease.
    """
    assigned_by_period = dict(assignments)
    converted_by_period = dict(conversions)
    periods = sorted(set(assigned_by_period) | set(converted_by_period))

    points = []
    cumulative_assignments = 0
    cumulative_conversions = 0
    for period in periods:
        assigned = assigned_by_period.get(period, 0)
        converted = converted_by_period.get(period, 0)
        cumulative_assignments += assigned
        cumulative_conversions += converted
        points.append(
            TimeSeriesPoint(
                period=period,
                assignments=assigned,
                conversions=converted,
                conversion_rate=round(conversion_rate(converted, assigned), 2),
                cumulative_assignments=cumulative_assignments,
                cumulative_conversions=cumulative_conversions,
                cumulative_conversion_rate=round(
                    conversion_rate(cumulative_conversions, cumulative_assignments),
                    2,
                ),
            )
        )
    return points


def build_time_series(
    source,
    experiment_id: str,
    variant: str,
    goal_event: str,
    granularity: Union[str, Granularity],
) -> VariantTimeSeries:
    """Time series of one variant's assignments and conversions."""
    granularity = to_granularity(granularity)
    assignments = source.assignments_by_period(experiment_id, variant, granularity)
    conversions = source.conversions_by_period(
        experiment_id, variant, goal_event, granularity
    )
    return VariantTimeSeries(
        variant=variant,
        data_points=merge_period_counts(assignments, conversions),
    )


def combine_time_series(series: Sequence[VariantTimeSeries]) -> list[TimelineEntry]:
    """Merge several variants' series into one timeline keyed by period."""
    timeline: dict[str, dict[str, PeriodSnapshot]] = {}
    for variant_series in series:
        for point in variant_series.data_points:
            timeline.setdefault(point.period, {})[variant_series.variant] = (
                PeriodSnapshot(
                    assignments=point.assignments,
                    conversions=point.conversions,
                    conversion_rate=point.conversion_rate,
                )
            )
    return [
        TimelineEntry(period=period, variants=variants)
        for period, variants in sorted(timeline.items())
    ]
