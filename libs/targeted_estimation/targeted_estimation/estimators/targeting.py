"""Clever covariate, offset, fluctuation and the estimation report.

The fluctuation submodel updates an initial outcome fit along the clever
covariate ``H = indicator(T) / max(g(T | W), threshold)`` so that the
plug-in estimate solves the efficient influence curve estimating equation.
"""
# ruff: noqa: N803

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from shared.observability import get_logger

from ..core.graph import lazy
from ..ml.glm import OffsetGLM
from ..ml.learners import DensityModel, OutcomeModel, TreatmentEncoder, merge
from ..utils.numeric import elemwise_divide, plateau_likelihood
from .interactions import Combination, indicator_values

__all__ = [
    "expected_value",
    "compute_offset",
    "density",
    "compute_covariate",
    "fluctuation_input",
    "counterfactual_treatment",
    "counterfactual_design",
    "counterfactual_aggregate",
    "influence_curve",
    "Fluctuation",
    "InitialFit",
    "estimation_report",
]

logger = get_logger(__name__)


@lazy
def expected_value(outcome_model: OutcomeModel, X: pd.DataFrame) -> NDArray[Any]:
    return outcome_model.expected_value(X)


@lazy
def compute_offset(outcome_model: OutcomeModel, X: pd.DataFrame) -> NDArray[Any]:
    """Initial fit on the scale of the fluctuation's linear predictor."""
    return outcome_model.offset(X)


@lazy
def density(density_model: DensityModel, W: pd.DataFrame, T: pd.DataFrame) -> NDArray[Any]:
    return density_model.density(W, T)


def compute_covariate(
    density_model: DensityModel,
    W: Any,
    T: Any,
    indicators: Mapping[Combination, int],
    threshold: float = 0.005,
) -> Any:
    """Clever covariate: signed indicator over the truncated treatment density.

    ``W`` and ``T`` may be realized tables or graph nodes; the result has the
    same nature.
    """
    indic_vals = indicator_values(indicators, T)
    likelihood = plateau_likelihood(density(density_model, W, T), threshold)
    return elemwise_divide(indic_vals, likelihood)


@lazy
def fluctuation_input(covariate: NDArray[Any], offset: NDArray[Any]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "covariate": np.asarray(covariate, dtype=float),
            "offset": np.asarray(offset, dtype=float),
        }
    )


def counterfactual_treatment(combination: Combination, T: pd.DataFrame) -> pd.DataFrame:
    """Treatment table with every row set to ``combination``.

    Categorical columns keep the categories of the observed data.
    """
    n = len(T)
    columns = {}
    for name, level in combination:
        observed = T[name]
        if isinstance(observed.dtype, pd.CategoricalDtype):
            columns[name] = pd.Categorical(
                [level] * n,
                categories=observed.cat.categories,
                ordered=observed.cat.ordered,
            )
        else:
            columns[name] = pd.Series([level] * n, dtype=observed.dtype).to_numpy()
    return pd.DataFrame(columns, index=T.index)


def counterfactual_design(
    encoder: TreatmentEncoder, W: pd.DataFrame, counterfactual_T: pd.DataFrame
) -> pd.DataFrame:
    return merge(encoder.transform(counterfactual_T), W)


def counterfactual_aggregate(
    outcome_model: OutcomeModel,
    encoder: TreatmentEncoder,
    W: pd.DataFrame,
    T: pd.DataFrame,
    indicators: Mapping[Combination, int],
) -> NDArray[Any]:
    """Per-row signed sum of the outcome model over all query combinations."""
    aggregate = np.zeros(len(T))
    for combination, sign in indicators.items():
        X = counterfactual_design(encoder, W, counterfactual_treatment(combination, T))
        aggregate += sign * expected_value(outcome_model, X)
    return aggregate


def influence_curve(
    covariate: NDArray[Any],
    y: NDArray[Any],
    observed_fluct: NDArray[Any],
    ct_fluct: NDArray[Any],
    estimate: float,
) -> NDArray[Any]:
    return (
        np.asarray(covariate, dtype=float) * (np.asarray(y, dtype=float) - observed_fluct)
        + ct_fluct
        - estimate
    )


class FluctuatedModel(Protocol):
    def predict_mean(
        self,
        outcome_model: OutcomeModel,
        density_model: DensityModel,
        W: pd.DataFrame,
        T: pd.DataFrame,
        X: pd.DataFrame,
    ) -> NDArray[Any]: ...


class Fluctuation:
    """Fluctuation submodel of an initial outcome fit.

    Fits ``g(E[Y | T, W]) = epsilon * H(T, W) + offset(T, W)`` where the offset
    is the initial fit on the link scale and ``H`` the clever covariate. With
    ``weighted=True`` the regressor is the bare signed indicator and the
    observations are weighted by the inverse truncated density instead, which
    keeps the fitted slope bounded when densities are small.

    Attributes:
        glm_: The fitted offset GLM
    """

    def __init__(
        self,
        indicators: Mapping[Combination, int],
        ps_lowerbound: float,
        weighted: bool = False,
        tol: float = 1e-8,
        max_iter: int = 100,
    ) -> None:
        self.indicators = dict(indicators)
        self.ps_lowerbound = ps_lowerbound
        self.weighted = weighted
        self.tol = tol
        self.max_iter = max_iter
        self.glm_: OffsetGLM | None = None

    @property
    def epsilon(self) -> float | None:
        return None if self.glm_ is None else self.glm_.epsilon_

    @property
    def converged(self) -> bool:
        return self.glm_ is not None and self.glm_.converged_

    @property
    def deviance(self) -> float | None:
        return None if self.glm_ is None else self.glm_.deviance_

    @property
    def is_fitted(self) -> bool:
        return self.glm_ is not None and self.glm_.is_fitted

    def _regressor_and_weights(
        self, density_model: DensityModel, W: pd.DataFrame, T: pd.DataFrame
    ) -> tuple[NDArray[Any], NDArray[Any] | None]:
        if not self.weighted:
            covariate = compute_covariate(
                density_model, W, T, self.indicators, threshold=self.ps_lowerbound
            )
            return covariate, None

        likelihood = plateau_likelihood(density(density_model, W, T), self.ps_lowerbound)
        return indicator_values(self.indicators, T), 1.0 / likelihood

    def fit(
        self,
        outcome_model: OutcomeModel,
        density_model: DensityModel,
        W: pd.DataFrame,
        T: pd.DataFrame,
        X: pd.DataFrame,
        y: pd.Series | NDArray[Any],
    ) -> Fluctuation:
        """Fit the fluctuation slope with the initial fit held as offset.

        Raises:
            FluctuationError: If the covariate is degenerate or the fit does not converge
        """
        offset = compute_offset(outcome_model, X)
        regressor, weights = self._regressor_and_weights(density_model, W, T)
        inputs = fluctuation_input(regressor, offset)

        glm = OffsetGLM(outcome_model.fluctuation_family(), tol=self.tol, max_iter=self.max_iter)
        glm.fit(inputs["covariate"], inputs["offset"], outcome_model.target(y), weights=weights)
        self.glm_ = glm

        logger.debug(
            "Fitted fluctuation: epsilon=%.6g, deviance=%.6g, iterations=%d, weighted=%s",
            glm.epsilon_,
            glm.deviance_,
            glm.n_iterations_,
            self.weighted,
        )
        return self

    def predict_mean(
        self,
        outcome_model: OutcomeModel,
        density_model: DensityModel,
        W: pd.DataFrame,
        T: pd.DataFrame,
        X: pd.DataFrame,
    ) -> NDArray[Any]:
        """Fluctuated expected outcome for (possibly counterfactual) ``T`` and ``X``."""
        if self.glm_ is None:
            raise ValueError("Fluctuation must be fitted before prediction")
        offset = compute_offset(outcome_model, X)
        regressor, _ = self._regressor_and_weights(density_model, W, T)
        inputs = fluctuation_input(regressor, offset)
        return self.glm_.predict_mean(inputs["covariate"], inputs["offset"])


class InitialFit:
    """The initial outcome fit used as is, in place of a fitted fluctuation."""

    def predict_mean(
        self,
        outcome_model: OutcomeModel,
        density_model: DensityModel,
        W: pd.DataFrame,
        T: pd.DataFrame,
        X: pd.DataFrame,
    ) -> NDArray[Any]:
        return expected_value(outcome_model, X)


@lazy
def fluctuated_mean(
    model: FluctuatedModel,
    outcome_model: OutcomeModel,
    density_model: DensityModel,
    W: pd.DataFrame,
    T: pd.DataFrame,
    X: pd.DataFrame,
) -> NDArray[Any]:
    return model.predict_mean(outcome_model, density_model, W, T, X)


@lazy
def estimation_report(
    model: FluctuatedModel,
    outcome_model: OutcomeModel,
    density_model: DensityModel,
    encoder: TreatmentEncoder,
    W: pd.DataFrame,
    T: pd.DataFrame,
    observed_fluct: NDArray[Any],
    ys: NDArray[Any],
    covariate: NDArray[Any],
    indicators: Mapping[Combination, int],
) -> tuple[NDArray[Any], float, float]:
    """Influence curve, targeted estimate and initial estimate of a query.

    The targeted estimate is the mean over observations of the signed sum of
    the fluctuated outcome at every counterfactual combination; for two binary
    treatments::

        F(t1=1, t2=1) - F(t1=1, t2=0) - F(t1=0, t2=1) + F(t1=0, t2=0)

    The initial estimate is the same aggregate computed with the initial
    outcome fit.
    """
    tmle_ct_agg = np.zeros(len(T))
    initial_ct_agg = np.zeros(len(T))
    for combination, sign in indicators.items():
        counterfactual_T = counterfactual_treatment(combination, T)
        X = counterfactual_design(encoder, W, counterfactual_T)
        initial_ct_agg += sign * expected_value(outcome_model, X)
        tmle_ct_agg += sign * model.predict_mean(
            outcome_model, density_model, W, counterfactual_T, X
        )

    initial_estimate = float(np.mean(initial_ct_agg))
    tmle_estimate = float(np.mean(tmle_ct_agg))
    inf_curve = influence_curve(covariate, ys, observed_fluct, tmle_ct_agg, tmle_estimate)

    return inf_curve, tmle_estimate, initial_estimate
