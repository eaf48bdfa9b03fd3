"""Numeric, inference and validation utilities."""

from .inference import confidence_interval, pvalue, query_report, standard_error
from .numeric import elemwise_divide, expit, logit, plateau_likelihood
from .validation import (
    check_treatment_levels,
    validate_input_dimensions,
    validate_query,
)

__all__ = [
    "check_treatment_levels",
    "confidence_interval",
    "elemwise_divide",
    "expit",
    "logit",
    "plateau_likelihood",
    "pvalue",
    "query_report",
    "standard_error",
    "validate_input_dimensions",
    "validate_query",
]
