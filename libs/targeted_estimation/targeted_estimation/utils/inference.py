"""Asymptotic inference from an estimated influence curve."""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from ..core.base import ConfigurationError, QueryReport

__all__ = [
    "standard_error",
    "pvalue",
    "confidence_interval",
    "query_report",
    "VALID_TAILS",
]

VALID_TAILS = ("both", "left", "right")

# 95% normal quantile, fixed
Z_95 = 1.96


def standard_error(influence_curve: NDArray[Any]) -> float:
    """sqrt(var(IC) / n) using the unbiased sample variance."""
    ic = np.asarray(influence_curve, dtype=float)
    if ic.size < 2:
        raise ValueError("At least two observations are needed for a standard error")
    return float(np.sqrt(np.var(ic, ddof=1) / ic.size))


def pvalue(estimate: float, stderror: float, tail: str = "both") -> float:
    """P-value of ``estimate`` against zero under a standard normal approximation.

    Args:
        estimate: Point estimate
        stderror: Its standard error
        tail: One of "both", "left" or "right"

    Returns:
        The p-value, clipped to 1 for the two-sided test. A zero standard error
        gives an infinite z-score for a nonzero estimate and NaN for a zero one

    Raises:
        ConfigurationError: If ``tail`` is not a valid tail
    """
    if tail not in VALID_TAILS:
        raise ConfigurationError(f"tail={tail!r} is invalid, expected one of {VALID_TAILS}")

    with np.errstate(divide="ignore", invalid="ignore"):
        z = np.divide(np.float64(estimate), np.float64(stderror))
    if np.isnan(z):
        return float("nan")
    if tail == "left":
        return float(stats.norm.cdf(z))
    if tail == "right":
        return float(stats.norm.sf(z))
    return float(min(2 * min(stats.norm.cdf(z), stats.norm.sf(z)), 1.0))


def confidence_interval(estimate: float, stderror: float) -> tuple[float, float]:
    """95% confidence interval based on the normal approximation."""
    return (estimate - Z_95 * stderror, estimate + Z_95 * stderror)


def query_report(
    query_result: tuple[NDArray[Any], float, float | None], tail: str = "both"
) -> QueryReport:
    """Summarize ``(influence_curve, estimate, initial_estimate)`` into a report."""
    if tail not in VALID_TAILS:
        raise ConfigurationError(f"tail={tail!r} is invalid, expected one of {VALID_TAILS}")

    influence_curve, estimate, initial_estimate = query_result
    stderror = standard_error(influence_curve)

    return QueryReport(
        pvalue=pvalue(estimate, stderror, tail=tail),
        confint=confidence_interval(estimate, stderror),
        estimate=float(estimate),
        stderror=stderror,
        initial_estimate=None if initial_estimate is None else float(initial_estimate),
        mean_influence_curve=float(np.mean(influence_curve)),
    )
