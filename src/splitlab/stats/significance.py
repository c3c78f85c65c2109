"""Chi-square test of independence between variant and conversion."""

from typing import Sequence

import numpy as np
import structlog

from splitlab.config import AnalysisConfig
from splitlab.errors import InvalidInputError
from splitlab.schemas import (
    BestVariant,
    SampleSizeCheck,
    SignificanceResult,
    VariantMetrics,
)
from splitlab.stats.primitives import chi_square_p_value

log = structlog.get_logger()

SIGNIFICANCE_THRESHOLD = 0.05


def best_variant(metrics: Sequence[VariantMetrics]) -> VariantMetrics:
    """The variant with the highest conversion rate; the first one wins ties."""
    best = metrics[0]
    for current in metrics[1:]:
        if current.conversion_rate > best.conversion_rate:
            best = current
    return best


def chi_square_test(metrics: Sequence[VariantMetrics]) -> tuple[float, int, float]:
    """
    Run the chi-square test on a converted / not-converted contingency table.

    Returns the statistic, the degrees of freedom and the p-value. Degrees of
    freedom are reported as ``len(metrics) - 1``.
    """
    observed = np.array(
        [[m.conversions, m.total_users - m.conversions] for m in metrics],
        dtype=float,
    )
    row_totals = observed.sum(axis=1, keepdims=True)
    column_totals = observed.sum(axis=0, keepdims=True)
    grand_total = observed.sum()
    degrees_of_freedom = len(metrics) - 1
    if grand_total == 0:
        return 0.0, degrees_of_freedom, 1.0

    expected = row_totals * column_totals / grand_total
    # Empty cells contribute nothing instead of dividing by zero.
    contributions = np.divide(
        (observed - expected) ** 2,
        expected,
        out=np.zeros_like(expected),
        where=expected > 0,
    )
    chi_square = float(contributions.sum())
    return chi_square, degrees_of_freedom, chi_square_p_value(
        chi_square, degrees_of_freedom
    )


def interpret_p_value(p_value: float) -> str:
    if p_value < 0.01:
        return "Very strong evidence of difference between variants (p < 0.01)"
    if p_value < SIGNIFICANCE_THRESHOLD:
        return "Strong evidence of difference between variants (p < 0.05)"
    if p_value > 0.5:
        return "No evidence of difference between variants"
    return "Weak evidence - continue testing for conclusive results"


def insufficient_sample_warning(config: AnalysisConfig) -> str:
    return (
        f"Insufficient sample size. Need at least {config.min_sample_size} users "
        f"and {config.min_conversions} conversions per variant."
    )


def evaluate_significance(
    metrics: Sequence[VariantMetrics], config: AnalysisConfig
) -> SignificanceResult:
    """
    Test whether conversion rate depends on the variant.

    Underpowered data (any variant below the configured minimum users or
    conversions) is not tested; the result then carries ``p_value=None`` and
    a warning instead.
    """
    if len(metrics) < 2:
        raise InvalidInputError("Need at least 2 variants to calculate significance")

    best = best_variant(metrics)
    best_summary = BestVariant(
        name=best.variant,
        conversion_rate=best.conversion_rate,
        sample_size=best.total_users,
    )
    confidence_level = round(config.confidence_level * 100, 2)

    checks = [
        SampleSizeCheck(
            variant=m.variant,
            users=m.total_users,
            conversions=m.conversions,
            meets_minimum=config.meets_minimum(m.total_users, m.conversions),
        )
        for m in metrics
    ]
    if not all(check.meets_minimum for check in checks):
        warning = insufficient_sample_warning(config)
        return SignificanceResult(
            is_significant=False,
            p_value=None,
            chi_square=None,
            degrees_of_freedom=len(metrics) - 1,
            best_variant=best_summary,
            confidence_level=confidence_level,
            interpretation=warning,
            warning=warning,
            sample_size_check=checks,
        )

    chi_square, degrees_of_freedom, p_value = chi_square_test(metrics)
    is_significant = p_value < SIGNIFICANCE_THRESHOLD
    log.debug(
        "significance.chi_square",
        chi_square=chi_square,
        degrees_of_freedom=degrees_of_freedom,
        p_value=p_value,
    )
    return SignificanceResult(
        is_significant=is_significant,
        p_value=round(p_value, 4),
        chi_square=round(chi_square, 4),
        degrees_of_freedom=degrees_of_freedom,
        best_variant=best_summary,
        confidence_level=confidence_level,
        interpretation=interpret_p_value(p_value),
    )

