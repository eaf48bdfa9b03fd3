"""Elementwise numeric helpers shared by the targeting step.

Every helper accepts realized values (scalars, arrays, Series) or deferred
graph nodes, see :func:`targeted_estimation.core.graph.lazy`.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy import special

from ..core.graph import lazy

__all__ = ["logit", "expit", "plateau_likelihood", "elemwise_divide"]


@lazy
def logit(p: Any) -> NDArray[Any]:
    """log(p / (1 - p)); finite only for p strictly inside (0, 1)."""
    return special.logit(np.asarray(p, dtype=float))


@lazy
def expit(x: Any) -> NDArray[Any]:
    """1 / (1 + exp(-x))."""
    return special.expit(np.asarray(x, dtype=float))


@lazy
def plateau_likelihood(likelihood: Any, threshold: float) -> NDArray[Any]:
    """Truncate ``likelihood`` from below at ``threshold``.

    Values at or above the threshold pass through unchanged.
    """
    return np.maximum(np.asarray(likelihood, dtype=float), threshold)


@lazy
def elemwise_divide(x: Any, y: Any) -> NDArray[Any]:
    """Pairwise division of ``x`` by a strictly positive ``y``."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if np.any(y <= 0) or np.any(~np.isfinite(y)):
        raise ValueError("Denominator must be strictly positive and finite, plateau it first")
    return x / y
