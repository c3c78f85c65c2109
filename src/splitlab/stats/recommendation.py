"""Rule-based decision on what to do next with an experiment."""

from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog

from splitlab.config import AnalysisConfig
from splitlab.schemas import (
    ComparisonResult,
    Experiment,
    MetricsSummary,
    Recommendation,
    RecommendationEntry,
    SignificanceResult,
    VariantMetrics,
)
from splitlab.stats.significance import insufficient_sample_warning

log = structlog.get_logger()

# Percentage points below which a non-significant difference is not worth chasing.
MEANINGFUL_DIFFERENCE = 1.0
STALE_AFTER_DAYS = 14

_NEXT_STEPS = {
    "implement_winner": [
        "1. Prepare deployment of winning variant to all users",
        "2. Monitor metrics closely during rollout",
        "3. Document learnings for future experiments",
        "4. Expected outcome: {best_rate}% conversion rate",
    ],
    "continue": [
        "1. Continue running experiment to gather more data",
        "2. Monitor daily for significant changes",
        "3. Re-evaluate after reaching minimum sample size",
        "4. Consider increasing traffic allocation if possible",
    ],
    "no_clear_winner": [
        "1. Consider ending experiment - no clear winner",
        "2. Implement the simpler or less costly variant",
        "3. Plan new experiments with more dramatic changes",
        "4. Review assumptions and test different hypotheses",
    ],
}
_DEFAULT_NEXT_STEPS = [
    "1. Review experiment setup and goals",
    "2. Ensure proper tracking implementation",
    "3. Monitor for any data quality issues",
]


def next_steps(action: str, best_rate: float) -> list[str]:
    templates = _NEXT_STEPS.get(action, _DEFAULT_NEXT_STEPS)
    return [step.format(best_rate=best_rate) for step in templates]


def _align(moment: datetime, reference: datetime) -> datetime:
    """Make `moment` comparable with `reference` (naive datetimes are UTC)."""
    if reference.tzinfo is None and moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    if reference.tzinfo is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def days_running(experiment: Experiment, as_of: Optional[datetime] = None) -> int:
    """Whole days between the experiment's start and its end (or `as_of`)."""
    start = experiment.start_date
    now = _align(as_of or datetime.now(timezone.utc), start)
    end = now
    if experiment.end_date is not None:
        end = min(_align(experiment.end_date, start), now)
    return max(0, (end - start).days)


def recommend(
    experiment: Experiment,
    metrics: Sequence[VariantMetrics],
    significance: SignificanceResult,
    comparison: ComparisonResult,
    config: AnalysisConfig,
    as_of: Optional[datetime] = None,
) -> Recommendation:
    """
    Combine metrics, the significance test and the comparison into a decision.

    The first matching rule picks the action: not enough data, a significant
    winner, or no significance (split on whether the largest gap to the leader
    is under one percentage point). Advisories about a badly trailing variant
    and a long-running inconclusive test are appended afterwards.
    """
    entries: list[RecommendationEntry] = []
    has_enough_data = all(
        config.meets_minimum(m.total_users, m.conversions) for m in metrics
    )
    best = comparison.best_variant

    if not has_enough_data:
        entries.append(
            RecommendationEntry(
                type="warning",
                message="Insufficient sample size. Continue running the experiment.",
                details=insufficient_sample_warning(config),
            )
        )
        action, confidence = "continue", "low"
    elif significance.is_significant:
        winner = significance.best_variant
        improvement = (
            abs(comparison.comparisons[0].relative_lift)
            if comparison.comparisons
            else 0.0
        )
        entries.append(
            RecommendationEntry(
                type="success",
                message=(
                    f'Implement variant "{winner.name}" - statistically '
                    "significant winner detected."
                ),
                details=(
                    f"{winner.name} shows {improvement:.1f}% improvement over the "
                    f"runner-up with p-value of {significance.p_value}."
                ),
            )
        )
        entries.append(
            RecommendationEntry(
                type="action",
                message="Roll out winning variant to all users.",
                details=(
                    f"Expected improvement: {improvement:.1f}% increase in "
                    "conversion rate."
                ),
            )
        )
        action, confidence = "implement_winner", "high"
    else:
        max_difference = max(
            (abs(c.difference_from_best) for c in comparison.comparisons),
            default=0.0,
        )
        if max_difference < MEANINGFUL_DIFFERENCE:
            entries.append(
                RecommendationEntry(
                    type="info",
                    message="No meaningful difference between variants detected.",
                    details=(
                        "Consider implementing the simpler or less costly variant, "
                        "or continue testing with different approaches."
                    ),
                )
            )
            action, confidence = "no_clear_winner", "medium"
        else:
            entries.append(
                RecommendationEntry(
                    type="info",
                    message="Trends detected but not statistically significant yet.",
                    details=(
                        f"{best.name} is leading but needs more data. "
                        "Continue experiment."
                    ),
                )
            )
            action, confidence = "continue", "medium"

    rates = [m.conversion_rate for m in metrics]
    lowest, highest = min(rates), max(rates)
    if has_enough_data and highest > 0 and lowest / highest < 0.5:
        worst = next(m for m in metrics if m.conversion_rate == lowest)
        entries.append(
            RecommendationEntry(
                type="warning",
                message=(
                    f'Consider stopping variant "{worst.variant}" - performing '
                    "significantly worse."
                ),
                details=(
                    f"This variant shows {round((1 - lowest / highest) * 100, 1)}% "
                    "lower conversion rate."
                ),
            )
        )

    running = days_running(experiment, as_of)
    if running >= STALE_AFTER_DAYS and not significance.is_significant:
        entries.append(
            RecommendationEntry(
                type="info",
                message="Experiment running for 2+ weeks without clear winner.",
                details=(
                    "Consider re-evaluating your hypothesis or testing more "
                    "dramatic changes."
                ),
            )
        )

    log.info(
        "experiment.recommendation.decided",
        experiment_id=experiment.id,
        action=action,
        confidence=confidence,
        days_running=running,
    )
    return Recommendation(
        experiment_id=experiment.id,
        experiment_name=experiment.name,
        action=action,
        confidence=confidence,
        days_running=running,
        is_statistically_significant=significance.is_significant,
        recommended_variant=best.name,
        recommendations=entries,
        metrics_summary=MetricsSummary(
            total_users=sum(m.total_users for m in metrics),
            total_conversions=sum(m.conversions for m in metrics),
            best_conversion_rate=best.conversion_rate,
            p_value=significance.p_value,
        ),
        next_steps=next_steps(action, best.conversion_rate),
    )
