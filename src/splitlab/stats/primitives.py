"""Numeric routines shared by the statistics components."""

import math

from scipy import stats

# Two-sided z values for the confidence levels dashboards usually offer.
_COMMON_Z_SCORES = {0.90: 1.645, 0.95: 1.96, 0.99: 2.576}


def z_for_confidence(confidence_level: float) -> float:
    """Return the two-sided standard-normal critical value for a confidence level."""
    for level, z in _COMMON_Z_SCORES.items():
        if math.isclose(confidence_level, level):
            return z
    return float(stats.norm.ppf(1 - (1 - confidence_level) / 2))


def standard_normal_cdf(z: float) -> float:
    """
    Approximate the standard normal cumulative distribution function.

    Uses the Zelen & Severo polynomial (Abramowitz & Stegun 26.2.17), which is
    accurate to about 7.5e-8 and exactly symmetric around zero.
    """
    t = 1 / (1 + 0.2316419 * abs(z))
    d = 0.3989423 * math.exp(-z * z / 2)
    tail = (
        d
        * t
        * (
            0.3193815
            + t * (-0.3565638 + t * (1.781478 + t * (-1.821256 + t * 1.330274)))
        )
    )
    return 1 - tail if z > 0 else tail


def chi_square_p_value(chi_square: float, degrees_of_freedom: int) -> float:
    """
    Approximate the upper-tail p-value of a chi-square statistic.

    Parameters
    ----------
    chi_square : float
        The test statistic.
    degrees_of_freedom : int
        Degrees of freedom of the reference distribution.

    Returns
    -------
    float
        A probability in [0, 1]. The Wilson-Hilferty cube-root transform maps
        the statistic onto an approximately standard-normal deviate, whose
        upper tail is the p-value. A zero, negative or undefined statistic
        yields 1.
    """
    if chi_square <= 0 or degrees_of_freedom < 1 or math.isnan(chi_square):
        return 1.0

    k = 2 / (9 * degrees_of_freedom)
    z = ((chi_square / degrees_of_freedom) ** (1 / 3) - (1 - k)) / math.sqrt(k)
    p_value = 1 - standard_normal_cdf(z)
    return max(0.0, min(1.0, p_value))


def wilson_score_interval(
    successes: int, total: int, z: float = 1.96
) -> tuple[float, float]:
    """Wilson score interval for a binomial proportion, in percent."""
    if total == 0:
        return 0.0, 0.0

    p = successes / total
    z2 = z * z
    denominator = 1 + z2 / total
    center = (p + z2 / (2 * total)) / denominator
    margin = z * math.sqrt(p * (1 - p) / total + z2 / (4 * total * total))
    margin /= denominator

    lower = max(0.0, (center - margin) * 100)
    upper = min(100.0, (center + margin) * 100)
    # Floating point can nudge a bound past the observed rate at p=0 or p=1.
    rate = p * 100
    return min(lower, rate), max(upper, rate)
