"""Shared statistical building blocks for the quantitative core."""

from riskdesk.analytics.stats import (
    interval_z,
    log_returns,
    mean,
    normal_cdf_as,
    normal_cdf_erf,
    parametric_z,
    std_dev,
    t_value,
    threshold_z,
    variance,
)

__all__ = [
    "interval_z",
    "log_returns",
    "mean",
    "normal_cdf_as",
    "normal_cdf_erf",
    "parametric_z",
    "std_dev",
    "t_value",
    "threshold_z",
    "variance",
]
