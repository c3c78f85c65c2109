"""Head-to-head comparison of every variant against the leader."""

from typing import Sequence

from splitlab.errors import InvalidInputError
from splitlab.schemas import (
    BestVariantSnapshot,
    ComparisonResult,
    ComparisonSummary,
    VariantComparison,
    VariantMetrics,
)


def relative_lift(best_rate: float, rate: float) -> float:
    """Lift of the best rate over `rate` in percent; 0 when `rate` is 0."""
    if rate == 0:
        return 0.0
    return (best_rate - rate) / rate * 100


def intervals_overlap(best: VariantMetrics, other: VariantMetrics) -> bool:
    best_ci = best.confidence_interval
    other_ci = other.confidence_interval
    return not (best_ci.lower > other_ci.upper or other_ci.lower > best_ci.upper)


def compare_variants(metrics: Sequence[VariantMetrics]) -> ComparisonResult:
    """Rank variants by conversion rate and compare each one to the best."""
    if len(metrics) < 2:
        raise InvalidInputError("Need at least 2 variants to compare")

    # sorted() is stable, so tied variants keep their configured order.
    ranked = sorted(metrics, key=lambda m: m.conversion_rate, reverse=True)
    best, others = ranked[0], ranked[1:]

    comparisons = []
    for variant in others:
        overlap = intervals_overlap(best, variant)
        comparisons.append(
            VariantComparison(
                variant=variant.variant,
                conversion_rate=variant.conversion_rate,
                difference_from_best=round(
                    best.conversion_rate - variant.conversion_rate, 2
                ),
                relative_lift=round(
                    relative_lift(best.conversion_rate, variant.conversion_rate), 2
                ),
                confidence_intervals_overlap=overlap,
                likely_worse=not overlap
                and variant.conversion_rate < best.conversion_rate,
            )
        )

    average_difference = sum(abs(c.difference_from_best) for c in comparisons) / len(
        comparisons
    )
    return ComparisonResult(
        best_variant=BestVariantSnapshot(
            name=best.variant,
            conversion_rate=best.conversion_rate,
            total_users=best.total_users,
            conversions=best.conversions,
            confidence_interval=best.confidence_interval,
        ),
        comparisons=comparisons,
        summary=ComparisonSummary(
            total_variants_compared=len(ranked),
            best_variant=best.variant,
            significantly_worse_variants=sum(c.likely_worse for c in comparisons),
            average_difference=round(average_difference, 2),
        ),
    )
