"""Validation utilities for targeted estimators.

This module provides the checks run before any model is fitted.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
import pandas as pd

from ..core.base import (
    ConfigurationError,
    DataValidationError,
    TreatmentLevelMismatchError,
)

__all__ = [
    "validate_query",
    "check_treatment_levels",
    "validate_input_dimensions",
]


def validate_query(query: Mapping[str, Sequence[Any]]) -> dict[str, tuple[Any, ...]]:
    """Validate a query and return it as an ordered dict of level tuples.

    Args:
        query: Mapping from treatment name to its levels, reference level first

    Returns:
        The query with levels converted to tuples, in the original variable order

    Raises:
        ConfigurationError: If the query is empty or a variable has no levels
    """
    if not query:
        raise ConfigurationError("A query must name at least one treatment variable")

    validated = {}
    for name, levels in query.items():
        if isinstance(levels, (str, bytes)) or not isinstance(
            levels, (Sequence, np.ndarray, pd.Index)
        ):
            levels = (levels,)
        levels = tuple(levels)
        if len(levels) == 0:
            raise ConfigurationError(f"Treatment '{name}' has no levels in the query")
        if len(set(levels)) != len(levels):
            raise ConfigurationError(f"Treatment '{name}' has repeated levels {levels}")
        validated[name] = levels
    return validated


def check_treatment_levels(
    query: Mapping[str, Sequence[Any]], dataset: pd.DataFrame
) -> None:
    """Check that every queried treatment level is present in ``dataset``.

    Raises:
        DataValidationError: If a treatment column is missing
        TreatmentLevelMismatchError: If a queried level never occurs in the data
    """
    for name, levels in validate_query(query).items():
        if name not in dataset.columns:
            raise DataValidationError(f"Treatment '{name}' is not a column of the dataset")

        observed = set(pd.unique(dataset[name].dropna()))
        missing = [level for level in levels if level not in observed]
        if missing:
            raise TreatmentLevelMismatchError(
                f"Levels {missing} of treatment '{name}' are not present in the dataset. "
                f"Observed levels: {sorted(observed, key=str)}"
            )


def validate_input_dimensions(
    confounders: pd.DataFrame,
    treatments: pd.DataFrame,
    outcome: pd.Series | np.ndarray | None = None,
) -> None:
    """Validate that confounders, treatments and outcome describe the same rows.

    Raises:
        DataValidationError: If dimensions don't match or data is missing
    """
    n_samples_t = len(treatments)
    n_samples_w = len(confounders)

    if n_samples_w != n_samples_t:
        raise DataValidationError(
            f"Confounders and treatments must have same number of samples. "
            f"Got {n_samples_w} and {n_samples_t} respectively."
        )

    if outcome is not None and len(outcome) != n_samples_t:
        raise DataValidationError(
            f"Outcome must have same number of samples as treatments. "
            f"Got {len(outcome)} and {n_samples_t} respectively."
        )

    if treatments.isna().any().any():
        raise DataValidationError("Treatments contain missing values.")

    if confounders.isna().any().any():
        raise DataValidationError("Confounders contain missing values.")

    if outcome is not None and pd.isna(np.asarray(outcome, dtype=object)).any():
        raise DataValidationError("Outcome contains missing values.")
