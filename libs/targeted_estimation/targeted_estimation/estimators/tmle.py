"""Targeted Minimum Loss-Based Estimation (TMLE) and One-Step Estimation (OSE).

Both estimators share one pipeline:

1. Validate the estimand's treatment levels against the dataset
2. Fit the nuisance equations (outcome regression, treatment density, encoding)
3. Resolve the truncation threshold of the treatment density
4. Fit the fluctuation submodel (TMLE only)
5. Evaluate the influence curve and the estimate

TMLE updates the initial outcome fit along the clever covariate so that its
plug-in estimate solves the efficient influence curve equation. OSE keeps the
initial fit and adds the mean of the influence curve to the plug-in estimate.
"""

from __future__ import annotations

import math
import warnings
from typing import Any, Literal

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from shared.config import get_config
from shared.observability import get_logger

from ..core.base import ConfigurationError, OSEstimate, TMLEstimate
from ..core.graph import source
from ..scm.estimands import CMCompositeEstimand
from ..scm.model import BackdoorAdjustment, NuisanceFit
from ..utils.inference import standard_error
from ..utils.validation import check_treatment_levels
from .interactions import indicator_fns
from .targeting import (
    FluctuatedModel,
    Fluctuation,
    InitialFit,
    compute_covariate,
    counterfactual_aggregate,
    estimation_report,
    fluctuated_mean,
)

__all__ = [
    "tmle",
    "ose",
    "naive_plugin_estimate",
    "gradient_and_estimate",
    "ps_lower_bound",
    "data_adaptive_ps_lower_bound",
    "check_score_equation",
]

logger = get_logger(__name__)

PsLowerBound = float | Literal["adaptive"] | None


def data_adaptive_ps_lower_bound(n: int, max_lb: float = 0.1) -> float:
    """Truncation level shrinking with the sample size: 5 / (sqrt(n) log(n / 5))."""
    if n <= 5:
        return max_lb
    return min(5 / (math.sqrt(n) * math.log(n / 5)), max_lb)


def ps_lower_bound(n: int, lower_bound: PsLowerBound = None, max_lb: float | None = None) -> float:
    """Resolve the effective truncation threshold of the treatment density.

    Args:
        n: Number of observations
        lower_bound: A threshold, "adaptive" for the data-adaptive rule, or None
            for the configured default
        max_lb: Cap on the returned threshold, the configured cap when None

    Returns:
        The threshold actually used to plateau densities
    """
    config = get_config()
    if max_lb is None:
        max_lb = config.max_ps_lowerbound
    if lower_bound == "adaptive":
        return data_adaptive_ps_lower_bound(n, max_lb=max_lb)
    if lower_bound is None:
        lower_bound = config.ps_lowerbound
    if not 0 < lower_bound < 1:
        raise ConfigurationError(f"ps_lowerbound must lie in (0, 1), got {lower_bound}")
    return min(lower_bound, max_lb)


def check_score_equation(influence_curve: NDArray[Any], tol: float = 0.1) -> bool:
    """Whether |mean(IC)| is small relative to the standard error.

    A targeted estimate should solve the influence curve equation; a warning
    is emitted when it does not.
    """
    mean_ic = float(np.mean(influence_curve))
    se = standard_error(influence_curve)
    solved = abs(mean_ic) <= tol * se if se > 0 else abs(mean_ic) < 1e-12
    if not solved:
        warnings.warn(
            f"Mean influence curve {mean_ic:.3g} is large relative to the standard "
            f"error {se:.3g}, the estimating equation may not be solved",
            UserWarning,
            stacklevel=2,
        )
    return solved


def _resolve_verbosity(verbosity: int | None) -> int:
    return get_config().verbosity if verbosity is None else verbosity


def _fit_equations(
    estimand: CMCompositeEstimand,
    dataset: pd.DataFrame,
    adjustment_method: BackdoorAdjustment | None,
    verbosity: int,
    force: bool,
) -> NuisanceFit:
    # Fail fast before any fitting
    check_treatment_levels(estimand.query, dataset)
    if verbosity >= 1:
        logger.info("Fitting the required equations...")
    return estimand.scm.fit(
        estimand,
        dataset,
        adjustment_method=adjustment_method,
        verbosity=verbosity,
        force=force,
    )


def gradient_and_estimate(
    estimand: CMCompositeEstimand,
    model: FluctuatedModel,
    ps_lowerbound: float,
) -> tuple[NDArray[Any], float, float]:
    """Influence curve, estimate from ``model`` and initial plug-in estimate.

    The computation is assembled as a deferred graph over the fitted data and
    evaluated once.
    """
    fit = estimand.scm.get_fit(estimand)
    indicators = indicator_fns(estimand.query)

    W = source(fit.W, name="W")
    T = source(fit.T, name="T")
    X = source(fit.X, name="X")
    ys = source(fit.outcome_model.target(fit.y), name="y")

    covariate = compute_covariate(
        fit.density_model, W, T, indicators, threshold=ps_lowerbound
    )
    observed_fluct = fluctuated_mean(model, fit.outcome_model, fit.density_model, W, T, X)
    report = estimation_report(
        model,
        fit.outcome_model,
        fit.density_model,
        fit.encoder,
        W,
        T,
        observed_fluct,
        ys,
        covariate,
        indicators,
    )
    return report()


def tmle(
    estimand: CMCompositeEstimand,
    dataset: pd.DataFrame,
    adjustment_method: BackdoorAdjustment | None = None,
    verbosity: int | None = None,
    force: bool = False,
    ps_lowerbound: PsLowerBound = None,
    weighted_fluctuation: bool = False,
) -> tuple[TMLEstimate, Fluctuation]:
    """Targeted Minimum Loss-Based Estimation of ``estimand``.

    Args:
        estimand: The estimand of interest
        dataset: Table holding the outcome, treatments and covariates
        adjustment_method: Confounding adjustment, backdoor adjustment by default
        verbosity: Level of logging, the configured default when None
        force: Refit the SCM's equations even when cached fits exist
        ps_lowerbound: Lower bound of the treatment density, see :func:`ps_lower_bound`
        weighted_fluctuation: Fit a weighted fluctuation, can improve stability

    Returns:
        The TMLE estimate and the fitted fluctuation

    Raises:
        TreatmentLevelMismatchError: If a queried level is absent from ``dataset``
        FluctuationError: If the fluctuation cannot be fitted
    """
    verbosity = _resolve_verbosity(verbosity)
    config = get_config()
    fit = _fit_equations(estimand, dataset, adjustment_method, verbosity, force)
    threshold = ps_lower_bound(fit.n_observations, ps_lowerbound)

    if verbosity >= 1:
        logger.info("Performing TMLE...")
    fluctuation = Fluctuation(
        indicator_fns(estimand.query),
        threshold,
        weighted=weighted_fluctuation,
        tol=config.fluctuation_tol,
        max_iter=config.fluctuation_max_iter,
    ).fit(fit.outcome_model, fit.density_model, fit.W, fit.T, fit.X, fit.y)

    ic, estimate, initial_estimate = gradient_and_estimate(estimand, fluctuation, threshold)
    if verbosity >= 1:
        logger.info("Done.")
    return TMLEstimate(estimate, ic, initial_estimate=initial_estimate), fluctuation


def ose(
    estimand: CMCompositeEstimand,
    dataset: pd.DataFrame,
    adjustment_method: BackdoorAdjustment | None = None,
    verbosity: int | None = None,
    force: bool = False,
    ps_lowerbound: PsLowerBound = None,
) -> tuple[OSEstimate, Any]:
    """One-Step Estimation of ``estimand``.

    The initial plug-in estimate is corrected by the mean of the influence
    curve evaluated at the initial fit.

    Returns:
        The one-step estimate and the fitted initial outcome model
    """
    verbosity = _resolve_verbosity(verbosity)
    fit = _fit_equations(estimand, dataset, adjustment_method, verbosity, force)
    threshold = ps_lower_bound(fit.n_observations, ps_lowerbound)

    ic, plugin_estimate, _ = gradient_and_estimate(estimand, InitialFit(), threshold)
    outcome_model, _ = estimand.scm.get_outcome_model(estimand)
    if verbosity >= 1:
        logger.info("Done.")
    estimate = OSEstimate(
        plugin_estimate + float(np.mean(ic)), ic, initial_estimate=plugin_estimate
    )
    return estimate, outcome_model


def naive_plugin_estimate(
    estimand: CMCompositeEstimand,
    dataset: pd.DataFrame,
    adjustment_method: BackdoorAdjustment | None = None,
    verbosity: int | None = None,
    force: bool = False,
) -> float:
    """Plug-in estimate from the initial outcome fit, without any targeting."""
    verbosity = _resolve_verbosity(verbosity)
    fit = _fit_equations(estimand, dataset, adjustment_method, verbosity, force)
    aggregate = counterfactual_aggregate(
        fit.outcome_model, fit.encoder, fit.W, fit.T, indicator_fns(estimand.query)
    )
    return float(np.mean(aggregate))
