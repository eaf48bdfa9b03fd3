"""One-covariate generalized linear model with a fixed offset.

The fluctuation submodel regresses the outcome on a single clever covariate
while holding the initial fit's linear predictor fixed as an offset. The loss
is a strategy object chosen per fit: the quasi-Bernoulli family accepts any
target in [0, 1] rather than strict 0/1 labels.
"""

from __future__ import annotations

import abc
import warnings
from typing import Any

import numpy as np
import statsmodels.api as sm
from numpy.typing import NDArray
from scipy import special
from statsmodels.tools.sm_exceptions import ConvergenceWarning, PerfectSeparationError

from ..core.base import DataValidationError, FluctuationError

__all__ = ["FluctuationFamily", "QuasiBernoulli", "Gaussian", "OffsetGLM"]


class FluctuationFamily(abc.ABC):
    """Loss, link and target validation for an offset GLM."""

    name: str = "family"

    @abc.abstractmethod
    def sm_family(self) -> sm.families.Family:
        pass

    @abc.abstractmethod
    def inverse_link(self, eta: NDArray[Any]) -> NDArray[Any]:
        pass

    @abc.abstractmethod
    def deviance_residuals(self, y: NDArray[Any], mu: NDArray[Any]) -> NDArray[Any]:
        pass

    def validate_target(self, y: NDArray[Any]) -> None:
        if not np.all(np.isfinite(y)):
            raise DataValidationError("Fluctuation target contains non-finite values")

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class QuasiBernoulli(FluctuationFamily):
    """Bernoulli log-likelihood extended to real targets in [0, 1].

    With ``check_labels=True`` the target must be strictly binary, which is
    what a plain logistic regression requires.
    """

    name = "quasi-bernoulli"

    def __init__(self, check_labels: bool = False) -> None:
        self.check_labels = check_labels

    def sm_family(self) -> sm.families.Family:
        return sm.families.Binomial()

    def inverse_link(self, eta: NDArray[Any]) -> NDArray[Any]:
        return special.expit(eta)

    def deviance_residuals(self, y: NDArray[Any], mu: NDArray[Any]) -> NDArray[Any]:
        # -2 [y log(mu) + (1 - y) log(1 - mu)]
        return -2 * (special.xlogy(y, mu) + special.xlog1py(1 - y, -mu))

    def validate_target(self, y: NDArray[Any]) -> None:
        super().validate_target(y)
        if self.check_labels:
            if not set(np.unique(y)) <= {0, 1}:
                raise DataValidationError("Target must be binary (0/1)")
        elif np.any(y < 0) or np.any(y > 1):
            raise DataValidationError("Quasi-Bernoulli target must lie in [0, 1]")

    def __repr__(self) -> str:
        return f"QuasiBernoulli(check_labels={self.check_labels})"


class Gaussian(FluctuationFamily):
    """Squared error loss with identity link."""

    name = "gaussian"

    def sm_family(self) -> sm.families.Family:
        return sm.families.Gaussian()

    def inverse_link(self, eta: NDArray[Any]) -> NDArray[Any]:
        return eta

    def deviance_residuals(self, y: NDArray[Any], mu: NDArray[Any]) -> NDArray[Any]:
        return (y - mu) ** 2


class OffsetGLM:
    """GLM ``g(E[y]) = covariate * epsilon + offset`` without intercept.

    Attributes:
        epsilon_: Fitted slope on the covariate
        converged_: Whether IRLS converged
        deviance_: Weighted sum of the family's deviance residuals
    """

    def __init__(self, family: FluctuationFamily, tol: float = 1e-8, max_iter: int = 100):
        self.family = family
        self.tol = tol
        self.max_iter = max_iter
        self.epsilon_: float | None = None
        self.converged_: bool = False
        self.deviance_: float | None = None
        self.n_iterations_: int = 0

    @property
    def is_fitted(self) -> bool:
        return self.epsilon_ is not None

    def fit(
        self,
        covariate: NDArray[Any],
        offset: NDArray[Any],
        y: NDArray[Any],
        weights: NDArray[Any] | None = None,
    ) -> OffsetGLM:
        """Fit the slope by (weighted) maximum likelihood.

        Raises:
            FluctuationError: If the covariate is degenerate or IRLS does not converge
        """
        covariate = np.asarray(covariate, dtype=float)
        offset = np.asarray(offset, dtype=float)
        y = np.asarray(y, dtype=float)

        if not (len(covariate) == len(offset) == len(y)):
            raise DataValidationError("Covariate, offset and target must have the same length")
        if not np.all(np.isfinite(covariate)) or not np.all(np.isfinite(offset)):
            raise FluctuationError("Covariate and offset must be finite")
        if np.ptp(covariate) == 0:
            raise FluctuationError(
                f"Degenerate clever covariate (constant value {covariate[0]:.4g}), "
                "the fluctuation is not identified"
            )
        self.family.validate_target(y)

        model = sm.GLM(
            y,
            covariate.reshape(-1, 1),
            family=self.family.sm_family(),
            offset=offset,
            var_weights=weights,
        )
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            try:
                results = model.fit(tol=self.tol, maxiter=self.max_iter)
            except (PerfectSeparationError, np.linalg.LinAlgError, ValueError) as e:
                raise FluctuationError(f"Fluctuation fit failed: {e}") from e

        epsilon = float(np.asarray(results.params)[0])
        if not results.converged or not np.isfinite(epsilon):
            raise FluctuationError(
                f"Fluctuation did not converge after {self.max_iter} iterations"
            )

        self.epsilon_ = epsilon
        self.converged_ = True
        self.n_iterations_ = int(results.fit_history.get("iteration", 0))
        mu = self.predict_mean(covariate, offset)
        residuals = self.family.deviance_residuals(y, mu)
        self.deviance_ = float(np.sum(residuals if weights is None else weights * residuals))
        return self

    def predict_mean(self, covariate: NDArray[Any], offset: NDArray[Any]) -> NDArray[Any]:
        """Inverse link of ``covariate * epsilon + offset``."""
        if self.epsilon_ is None:
            raise FluctuationError("OffsetGLM must be fitted before prediction")
        eta = np.asarray(covariate, dtype=float) * self.epsilon_ + np.asarray(offset, dtype=float)
        return self.family.inverse_link(eta)
