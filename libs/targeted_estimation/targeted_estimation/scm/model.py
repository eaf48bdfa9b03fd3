"""Structural causal model glue: adjustment sets and cached nuisance fits."""
# ruff: noqa: N803

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from shared.observability import get_logger

from ..core.base import ConfigurationError, DataValidationError
from ..ml.learners import (
    DensityModel,
    OutcomeModel,
    TreatmentEncoder,
    infer_outcome_model,
    merge,
)
from ..utils.validation import check_treatment_levels, validate_input_dimensions
from .estimands import CMCompositeEstimand

__all__ = ["BackdoorAdjustment", "NuisanceFit", "StructuralCausalModel"]

logger = get_logger(__name__)


class BackdoorAdjustment(BaseModel):
    """Adjust for the parents of the treatments.

    Extra covariates enter the outcome model only.
    """

    model_config = ConfigDict(frozen=True)

    outcome_extra_covariates: tuple[str, ...] = Field(default=())

    def confounders(self, scm: StructuralCausalModel, treatments: tuple[str, ...]) -> list[str]:
        confounders: list[str] = []
        for treatment in treatments:
            for parent in scm.parents_of(treatment):
                if parent not in treatments and parent not in confounders:
                    confounders.append(parent)
        return confounders

    def outcome_covariates(
        self, scm: StructuralCausalModel, treatments: tuple[str, ...]
    ) -> list[str]:
        covariates = self.confounders(scm, treatments)
        for name in self.outcome_extra_covariates:
            if name not in covariates and name not in treatments:
                covariates.append(name)
        return covariates


@dataclass
class NuisanceFit:
    """Fitted nuisance models of one estimand and the data they were fitted on."""

    outcome_model: OutcomeModel
    density_model: DensityModel
    encoder: TreatmentEncoder
    W: pd.DataFrame
    T: pd.DataFrame
    X: pd.DataFrame
    y: pd.Series
    confounders: list[str]

    @property
    def n_observations(self) -> int:
        return len(self.T)


def data_fingerprint(data: pd.DataFrame) -> str:
    hashed = pd.util.hash_pandas_object(data, index=True).values
    return hashlib.sha256(hashed.tobytes() + str(list(data.columns)).encode()).hexdigest()


class StructuralCausalModel:
    """Causal graph given as parents per variable, with the learners of its equations.

    Fitted equations are cached by variables, learner and data fingerprint so
    that several estimands sharing an equation reuse the same fit. The cache is
    unbounded: every new dataset adds entries until :meth:`reset` is called.
    """

    def __init__(
        self,
        parents: dict[str, list[str]],
        outcome_model: OutcomeModel | None = None,
        propensity_model: DensityModel | None = None,
    ) -> None:
        self.parents = {name: list(p) for name, p in parents.items()}
        self.outcome_model = outcome_model
        self.propensity_model = propensity_model if propensity_model is not None else DensityModel()
        self._cache: dict[tuple[Any, ...], Any] = {}
        self._fits: dict[tuple[str, tuple[str, ...]], NuisanceFit] = {}

    def parents_of(self, variable: str) -> list[str]:
        if variable not in self.parents:
            raise ConfigurationError(f"Variable '{variable}' has no equation in the SCM")
        return self.parents[variable]

    def reset(self) -> None:
        self._cache.clear()
        self._fits.clear()

    def _cached(self, key: tuple[Any, ...], fit_fn: Any, force: bool, verbosity: int) -> Any:
        if not force and key in self._cache:
            if verbosity >= 2:
                logger.info("Reusing cached fit for %s", key[:2])
            return self._cache[key]
        if verbosity >= 2:
            logger.info("Fitting %s", key[:2])
        fitted = fit_fn()
        self._cache[key] = fitted
        return fitted

    def fit(
        self,
        estimand: CMCompositeEstimand,
        dataset: pd.DataFrame,
        adjustment_method: BackdoorAdjustment | None = None,
        verbosity: int = 1,
        force: bool = False,
    ) -> NuisanceFit:
        """Fit the outcome, propensity and encoding equations required by ``estimand``."""
        adjustment_method = adjustment_method or BackdoorAdjustment()
        treatments = estimand.treatments
        confounders = adjustment_method.confounders(self, treatments)
        covariates = adjustment_method.outcome_covariates(self, treatments)

        required = [estimand.outcome, *treatments, *covariates]
        missing = [name for name in required if name not in dataset.columns]
        if missing:
            raise DataValidationError(f"Columns {missing} are missing from the dataset")

        data = dataset[required].dropna().reset_index(drop=True)
        if len(data) < len(dataset) and verbosity >= 1:
            logger.info("Dropped %d rows with missing values", len(dataset) - len(data))
        # Queried levels must survive the dropped rows
        check_treatment_levels(estimand.query, data)

        T = data[list(treatments)]
        W = data[covariates]
        y = data[estimand.outcome]
        validate_input_dimensions(W, T, y)

        encoder = self._cached(
            ("encoder", treatments, data_fingerprint(T)),
            lambda: TreatmentEncoder().fit(T),
            force,
            verbosity,
        )
        X = merge(encoder.transform(T), W)

        outcome_template = self.outcome_model or infer_outcome_model(y)
        outcome_model = self._cached(
            ("outcome", (estimand.outcome, *X.columns), repr(outcome_template),
             data_fingerprint(data[[estimand.outcome, *treatments, *covariates]])),
            lambda: outcome_template.clone().fit(X, y),
            force,
            verbosity,
        )
        density_model = self._cached(
            ("propensity", (*treatments, *confounders), repr(self.propensity_model.estimator),
             data_fingerprint(data[[*treatments, *confounders]])),
            lambda: self.propensity_model.clone().fit(W[confounders], T),
            force,
            verbosity,
        )

        fit = NuisanceFit(
            outcome_model=outcome_model,
            density_model=density_model,
            encoder=encoder,
            W=W,
            T=T,
            X=X,
            y=y,
            confounders=confounders,
        )
        self._fits[(estimand.outcome, treatments)] = fit
        return fit

    def get_fit(self, estimand: CMCompositeEstimand) -> NuisanceFit:
        key = (estimand.outcome, estimand.treatments)
        if key not in self._fits:
            raise DataValidationError(f"The SCM has not been fitted for {estimand}")
        return self._fits[key]

    def get_outcome_model(
        self, estimand: CMCompositeEstimand
    ) -> tuple[OutcomeModel, tuple[pd.DataFrame, pd.Series]]:
        fit = self.get_fit(estimand)
        return fit.outcome_model, (fit.X, fit.y)
