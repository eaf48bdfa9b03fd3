"""Base exceptions and result containers for targeted estimation.

This module provides the exception taxonomy shared by every stage of the
estimation pipeline and the immutable records returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray


class CausalInferenceError(Exception):
    """Base exception class for causal inference specific errors."""

    pass


class ConfigurationError(CausalInferenceError):
    """Raised when a query, estimand or argument is invalid."""

    pass


class DataValidationError(CausalInferenceError):
    """Raised when input data fails validation."""

    pass


class TreatmentLevelMismatchError(DataValidationError):
    """Raised when a queried treatment level is absent from the dataset."""

    pass


class EstimationError(CausalInferenceError):
    """Raised when estimation process fails."""

    pass


class FluctuationError(EstimationError):
    """Raised when the fluctuation submodel cannot be fitted."""

    pass


class ModelInterfaceError(CausalInferenceError):
    """Raised when a nuisance model lacks an operation the pipeline needs."""

    pass


@dataclass(frozen=True)
class Estimate:
    """Point estimate together with its estimated influence curve.

    The influence curve drives all asymptotic inference: its empirical
    variance divided by the sample size is the squared standard error.
    """

    estimate: float
    influence_curve: NDArray[Any] = field(repr=False)

    method: str = "unknown"
    initial_estimate: float | None = None

    def __post_init__(self) -> None:
        ic = np.asarray(self.influence_curve, dtype=float)
        if ic.ndim != 1 or ic.size == 0:
            raise ValueError("Influence curve must be a non-empty 1-D array")
        object.__setattr__(self, "influence_curve", ic)
        object.__setattr__(self, "estimate", float(self.estimate))

    @property
    def n_observations(self) -> int:
        return int(self.influence_curve.size)

    @property
    def std_error(self) -> float:
        from ..utils.inference import standard_error

        return standard_error(self.influence_curve)

    @property
    def confidence_interval(self) -> tuple[float, float]:
        """95% normal-approximation confidence interval."""
        from ..utils.inference import confidence_interval

        return confidence_interval(self.estimate, self.std_error)

    def pvalue(self, tail: str = "both") -> float:
        from ..utils.inference import pvalue

        return pvalue(self.estimate, self.std_error, tail=tail)

    @property
    def is_significant(self) -> bool:
        lower, upper = self.confidence_interval
        return lower > 0 or upper < 0

    def report(self, tail: str = "both") -> QueryReport:
        from ..utils.inference import query_report

        return query_report(
            (self.influence_curve, self.estimate, self.initial_estimate), tail=tail
        )


@dataclass(frozen=True)
class TMLEstimate(Estimate):
    """Result of targeted minimum loss-based estimation."""

    method: str = "TMLE"


@dataclass(frozen=True)
class OSEstimate(Estimate):
    """Result of one-step estimation."""

    method: str = "OSE"


@dataclass(frozen=True)
class QueryReport:
    """Inference summary for a single query."""

    pvalue: float
    confint: tuple[float, float]
    estimate: float
    stderror: float
    initial_estimate: float | None
    mean_influence_curve: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "pvalue": self.pvalue,
            "confint": self.confint,
            "estimate": self.estimate,
            "stderror": self.stderror,
            "initial_estimate": self.initial_estimate,
            "mean_influence_curve": self.mean_influence_curve,
        }

    def summary(self) -> str:
        """Provide a printable summary of the report."""
        lines = [
            "Query Report",
            "=" * 40,
            f"Estimate: {self.estimate:.4f}",
            f"Std. error: {self.stderror:.4f}",
            f"95% CI: [{self.confint[0]:.4f}, {self.confint[1]:.4f}]",
            f"P-value: {self.pvalue:.4g}",
        ]
        if self.initial_estimate is not None:
            lines.append(f"Initial estimate: {self.initial_estimate:.4f}")
        lines.append(f"Mean influence curve: {self.mean_influence_curve:.2e}")
        return "\n".join(lines)
