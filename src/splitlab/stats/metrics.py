"""Per-variant conversion metrics."""

import structlog

from splitlab.config import AnalysisConfig
from splitlab.schemas import ConfidenceInterval, VariantMetrics
from splitlab.stats.primitives import wilson_score_interval

log = structlog.get_logger()


def conversion_rate(conversions: int, total: int) -> float:
    """Conversion rate in percent, or 0 when nobody was assigned."""
    return conversions / total * 100 if total > 0 else 0.0


def compute_metrics(
    source,
    experiment_id: str,
    variant: str,
    goal_event: str,
    config: AnalysisConfig,
) -> VariantMetrics:
    """
    Compute conversion metrics for one variant of an experiment.

    `source` is any ExperimentDataSource. Conversions are distinct users in the
    variant whose goal event happened at or after their assignment.
    """
    total_users = int(source.count_assignments(experiment_id, variant))
    conversions = int(
        source.count_distinct_converted_users(experiment_id, variant, goal_event)
    )
    avg_hours = source.average_hours_to_conversion(experiment_id, variant, goal_event)

    lower, upper = wilson_score_interval(conversions, total_users, config.z_score)
    metrics = VariantMetrics(
        variant=variant,
        total_users=total_users,
        conversions=conversions,
        conversion_rate=round(conversion_rate(conversions, total_users), 2),
        confidence_interval=ConfidenceInterval(
            lower=round(lower, 2), upper=round(upper, 2)
        ),
        avg_time_to_conversion_hours=(
            round(avg_hours, 2) if conversions and avg_hours is not None else None
        ),
    )
    log.debug(
        "variant.metrics.computed",
        experiment_id=experiment_id,
        variant=variant,
        total_users=total_users,
        conversions=conversions,
    )
    return metrics
