"""Closed-form statistics shared by the risk, forecast and cashflow engines.

Dispersion helpers are POPULATION statistics (divide by n). Quantile tables
and normal CDF approximations are kept as documented closed forms so every
number in a risk certificate can be reproduced by hand.
"""

import math
from collections.abc import Sequence

#: One-sided standard normal quantiles used by parametric VaR.
PARAMETRIC_Z: dict[float, float] = {
    0.8: 0.842,
    0.9: 1.282,
    0.95: 1.645,
    0.99: 2.326,
    0.999: 3.090,
}

#: Two-sided standard normal quantiles used for prediction intervals.
INTERVAL_Z: dict[float, float] = {
    0.8: 1.282,
    0.9: 1.645,
    0.95: 1.960,
    0.99: 2.576,
    0.999: 3.291,
}

#: Two-sided Student-t critical values keyed by confidence, then degrees of freedom.
T_TABLE: dict[float, dict[int, float]] = {
    0.9: {5: 2.015, 10: 1.812, 20: 1.725, 30: 1.697},
    0.95: {5: 2.571, 10: 2.228, 20: 2.086, 30: 2.042},
    0.99: {5: 4.032, 10: 3.169, 20: 2.845, 30: 2.750},
}


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def variance(values: Sequence[float]) -> float:
    """Population variance, 0.0 for an empty sequence."""
    if not values:
        return 0.0
    mu = mean(values)
    return sum((v - mu) ** 2 for v in values) / len(values)


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation, 0.0 for an empty sequence."""
    return math.sqrt(variance(values))


def log_returns(prices: Sequence[float]) -> list[float]:
    """Per-step log returns ln(P_t / P_{t-1}).

    Steps where either price is not positive have no defined log return and
    are skipped.
    """
    returns: list[float] = []
    for prev, curr in zip(prices, prices[1:]):
        if prev <= 0 or curr <= 0:
            continue
        returns.append(math.log(curr / prev))
    return returns


def parametric_z(confidence_level: float) -> float:
    """One-sided z-score for parametric VaR (default 1.645)."""
    return PARAMETRIC_Z.get(round(confidence_level, 3), 1.645)


def interval_z(confidence_level: float) -> float:
    """Two-sided z-score for a confidence interval (default 1.96)."""
    return INTERVAL_Z.get(round(confidence_level, 3), 1.96)


def t_value(confidence_level: float, df: int) -> float:
    """Student-t critical value from the lookup table.

    Falls back to the normal quantile when df exceeds 30 or the confidence
    level is not tabulated. Otherwise uses the smallest tabulated df that is
    >= df, or the largest tabulated df when none is.
    """
    if df > 30:
        return interval_z(confidence_level)

    level_table = T_TABLE.get(round(confidence_level, 2))
    if level_table is None:
        return interval_z(confidence_level)

    dfs = sorted(level_table)
    closest = next((d for d in dfs if d >= df), dfs[-1])
    return level_table[closest]


def threshold_z(confidence_level: float) -> float:
    """Banded z-score used by the cashflow forecast."""
    if confidence_level >= 0.99:
        return 2.576
    if confidence_level >= 0.95:
        return 1.96
    if confidence_level >= 0.90:
        return 1.645
    return 1.28


def normal_cdf_as(z: float) -> float:
    """Standard normal CDF, Abramowitz and Stegun 26.2.17 polynomial."""
    t = 1.0 / (1.0 + 0.2316419 * abs(z))
    d = 0.3989423 * math.exp(-z * z / 2.0)
    p = d * t * (
        0.3193815 + t * (
            -0.3565638 + t * (
                1.781478 + t * (
                    -1.821256 + t * 1.330274
                )
            )
        )
    )
    if z > 0:
        p = 1.0 - p
    return p


def normal_cdf_erf(x: float) -> float:
    """Standard normal CDF via the A&S 7.1.26 error-function approximation."""
    a1 = 0.254829592
    a2 = -0.284496736
    a3 = 1.421413741
    a4 = -1.453152027
    a5 = 1.061405429
    p = 0.3275911

    sign = -1.0 if x < 0 else 1.0
    x = abs(x) / math.sqrt(2.0)

    t = 1.0 / (1.0 + p * x)
    y = 1.0 - (((((a5 * t + a4) * t) + a3) * t + a2) * t + a1) * t * math.exp(-x * x)

    return 0.5 * (1.0 + sign * y)
