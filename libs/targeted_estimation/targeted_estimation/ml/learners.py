"""Nuisance learners consumed by the targeting step.

Outcome models come in two kinds: a continuous outcome model whose offset is
the predicted mean itself, and a binary outcome model whose offset is the
logit of the predicted probability of the second class. Both wrap any
scikit-learn estimator.
"""
# ruff: noqa: N803

from __future__ import annotations

import abc
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from sklearn.base import clone
from sklearn.dummy import DummyClassifier
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.preprocessing import OneHotEncoder

from ..core.base import ConfigurationError, EstimationError, ModelInterfaceError
from ..core.graph import lazy
from ..utils.numeric import logit
from .glm import FluctuationFamily, Gaussian, QuasiBernoulli

__all__ = [
    "OutcomeModel",
    "ContinuousOutcomeModel",
    "BinaryOutcomeModel",
    "DensityModel",
    "TreatmentEncoder",
    "infer_outcome_model",
    "merge",
]


def _require(estimator: Any, *methods: str) -> None:
    missing = [m for m in methods if not callable(getattr(estimator, m, None))]
    if missing:
        raise ModelInterfaceError(
            f"{type(estimator).__name__} does not implement {', '.join(missing)}"
        )


@lazy
def merge(T_encoded: pd.DataFrame, W: pd.DataFrame) -> pd.DataFrame:
    """Outcome model design matrix: encoded treatments followed by covariates."""
    return pd.concat(
        [T_encoded.reset_index(drop=True), W.reset_index(drop=True)], axis=1
    )


def _design_matrix(X: pd.DataFrame) -> pd.DataFrame:
    # sklearn cannot fit on zero features
    if X.shape[1] == 0:
        return pd.DataFrame({"intercept": np.ones(len(X))}, index=X.index)
    return X


class OutcomeModel(abc.ABC):
    """Outcome regression E[Y | T, W] with the offset used by the fluctuation."""

    def __init__(self, estimator: Any = None) -> None:
        self.estimator = estimator if estimator is not None else self._default_estimator()
        self.model_: Any = None

    @abc.abstractmethod
    def _default_estimator(self) -> Any:
        pass

    @abc.abstractmethod
    def expected_value(self, X: pd.DataFrame) -> NDArray[Any]:
        """Per-row expected outcome."""

    @abc.abstractmethod
    def offset(self, X: pd.DataFrame) -> NDArray[Any]:
        """Per-row offset on the scale of the fluctuation's linear predictor."""

    @abc.abstractmethod
    def fluctuation_family(self) -> FluctuationFamily:
        """Loss used when fluctuating this model."""

    @property
    def is_fitted(self) -> bool:
        return self.model_ is not None

    def clone(self) -> OutcomeModel:
        return type(self)(clone(self.estimator))

    def fit(self, X: pd.DataFrame, y: pd.Series | NDArray[Any]) -> OutcomeModel:
        _require(self.estimator, "fit", "predict")
        self._validate_target(np.asarray(y))
        self.model_ = clone(self.estimator)
        self.model_.fit(_design_matrix(X), np.asarray(y))
        return self

    def predict(self, X: pd.DataFrame) -> NDArray[Any]:
        self._check_fitted()
        return self.model_.predict(_design_matrix(X))

    def target(self, y: pd.Series | NDArray[Any]) -> NDArray[Any]:
        """Observed outcome on the scale of :meth:`expected_value`."""
        return np.asarray(y, dtype=float)

    def _validate_target(self, y: NDArray[Any]) -> None:
        pass

    def _check_fitted(self) -> None:
        if not self.is_fitted:
            raise EstimationError(f"{type(self).__name__} must be fitted before prediction")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.estimator!r})"


class ContinuousOutcomeModel(OutcomeModel):
    """Deterministic outcome model, the offset is the predicted mean."""

    def _default_estimator(self) -> Any:
        return LinearRegression()

    def expected_value(self, X: pd.DataFrame) -> NDArray[Any]:
        return np.asarray(self.predict(X), dtype=float)

    def offset(self, X: pd.DataFrame) -> NDArray[Any]:
        return self.expected_value(X)

    def fluctuation_family(self) -> FluctuationFamily:
        return Gaussian()


class BinaryOutcomeModel(OutcomeModel):
    """Probabilistic outcome model for a two-class outcome.

    The expected value is the predicted probability of the second class in
    the classifier's ordering, and the offset is its logit.
    """

    def _default_estimator(self) -> Any:
        return LogisticRegression(max_iter=1000)

    def _validate_target(self, y: NDArray[Any]) -> None:
        n_classes = len(pd.unique(y))
        if n_classes > 2:
            raise ConfigurationError(
                f"BinaryOutcomeModel supports two outcome classes, got {n_classes}"
            )

    def fit(self, X: pd.DataFrame, y: pd.Series | NDArray[Any]) -> OutcomeModel:
        _require(self.estimator, "predict_proba")
        return super().fit(X, y)

    def _classes(self) -> NDArray[Any]:
        self._check_fitted()
        classes = np.asarray(self.model_.classes_)
        if len(classes) != 2:
            raise EstimationError(
                "Outcome model was fitted on a single class, the target class "
                "probability is undefined"
            )
        return classes

    def predict_target_class_prob(self, X: pd.DataFrame) -> NDArray[Any]:
        self._classes()
        proba = self.model_.predict_proba(_design_matrix(X))
        return np.asarray(proba[:, 1], dtype=float)

    def target(self, y: pd.Series | NDArray[Any]) -> NDArray[Any]:
        """Indicator of the second class, whatever the outcome labels are."""
        return (np.asarray(y) == self._classes()[1]).astype(float)

    def expected_value(self, X: pd.DataFrame) -> NDArray[Any]:
        return self.predict_target_class_prob(X)

    def offset(self, X: pd.DataFrame) -> NDArray[Any]:
        return logit(self.expected_value(X))

    def fluctuation_family(self) -> FluctuationFamily:
        return QuasiBernoulli()


def infer_outcome_model(y: pd.Series | NDArray[Any]) -> OutcomeModel:
    """Binary model for a 0/1 or two-label outcome, continuous model otherwise."""
    values = set(pd.unique(np.asarray(y)))
    numeric = pd.api.types.is_numeric_dtype(pd.Series(y))
    if len(values) == 2 and (values <= {0, 1} or not numeric):
        return BinaryOutcomeModel()
    return ContinuousOutcomeModel()


class DensityModel:
    """Joint treatment density given confounders.

    One classifier is fitted per treatment variable, each conditional on the
    confounders, and the joint density is the product of the per-variable
    probabilities of the queried levels.
    """

    def __init__(self, estimator: Any = None) -> None:
        self.estimator = estimator if estimator is not None else LogisticRegression(max_iter=1000)
        self.models_: dict[str, Any] = {}
        self.confounders_: list[str] = []

    @property
    def is_fitted(self) -> bool:
        return bool(self.models_)

    def clone(self) -> DensityModel:
        return DensityModel(clone(self.estimator))

    def fit(self, W: pd.DataFrame, T: pd.DataFrame) -> DensityModel:
        _require(self.estimator, "fit", "predict_proba")
        self.confounders_ = list(W.columns)
        features = _design_matrix(W)

        self.models_ = {}
        for name in T.columns:
            labels = np.asarray(T[name])
            if len(pd.unique(labels)) < 2:
                model = DummyClassifier(strategy="prior")
            else:
                model = clone(self.estimator)
            model.fit(features, labels)
            self.models_[name] = model
        return self

    def density(self, W: pd.DataFrame, T: pd.DataFrame) -> NDArray[Any]:
        """Per-row likelihood of the treatment assignment in ``T``.

        Levels never seen at fit time have probability zero.
        """
        if not self.is_fitted:
            raise EstimationError("DensityModel must be fitted before evaluation")

        missing = [name for name in self.models_ if name not in T.columns]
        if missing:
            raise ModelInterfaceError(f"Treatments {missing} are required for density evaluation")

        features = _design_matrix(W[self.confounders_])
        likelihood = np.ones(len(T))
        for name, model in self.models_.items():
            proba = model.predict_proba(features)
            positions = pd.Index(model.classes_).get_indexer(np.asarray(T[name]))
            row_proba = np.where(
                positions >= 0,
                proba[np.arange(len(T)), np.clip(positions, 0, None)],
                0.0,
            )
            likelihood *= row_proba
        return likelihood


class TreatmentEncoder:
    """One-hot encoding of treatment columns with levels fixed at fit time."""

    def __init__(self, drop: str | None = "first") -> None:
        self.drop = drop
        self.encoder_: OneHotEncoder | None = None
        self.levels_: dict[str, list[Any]] = {}

    def fit(self, T: pd.DataFrame) -> TreatmentEncoder:
        self.levels_ = {}
        for name in T.columns:
            column = T[name]
            if isinstance(column.dtype, pd.CategoricalDtype):
                levels = list(column.cat.categories)
            else:
                levels = sorted(pd.unique(column), key=lambda v: (str(type(v)), v))
            self.levels_[name] = levels

        self.encoder_ = OneHotEncoder(
            categories=[np.asarray(levels, dtype=object) for levels in self.levels_.values()],
            drop=self.drop,
            sparse_output=False,
            handle_unknown="error",
        )
        self.encoder_.fit(self._as_objects(T))
        return self

    def transform(self, T: pd.DataFrame) -> pd.DataFrame:
        if self.encoder_ is None:
            raise EstimationError("TreatmentEncoder must be fitted before transform")
        encoded = self.encoder_.transform(self._as_objects(T))
        return pd.DataFrame(
            encoded,
            columns=[str(c) for c in self.encoder_.get_feature_names_out()],
            index=T.index,
        )

    def _as_objects(self, T: pd.DataFrame) -> pd.DataFrame:
        return pd.DataFrame(
            {name: np.asarray(T[name], dtype=object) for name in self.levels_},
            index=T.index,
        )
