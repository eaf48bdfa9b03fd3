"""Targeted estimators and the targeting machinery they share."""

from .interactions import indicator_fns, indicator_values, interaction_combinations
from .targeting import (
    Fluctuation,
    InitialFit,
    compute_covariate,
    compute_offset,
    counterfactual_aggregate,
    counterfactual_treatment,
    estimation_report,
    expected_value,
)
from .tmle import (
    check_score_equation,
    data_adaptive_ps_lower_bound,
    gradient_and_estimate,
    naive_plugin_estimate,
    ose,
    ps_lower_bound,
    tmle,
)

__all__ = [
    "Fluctuation",
    "InitialFit",
    "check_score_equation",
    "compute_covariate",
    "compute_offset",
    "counterfactual_aggregate",
    "counterfactual_treatment",
    "data_adaptive_ps_lower_bound",
    "estimation_report",
    "expected_value",
    "gradient_and_estimate",
    "indicator_fns",
    "indicator_values",
    "interaction_combinations",
    "naive_plugin_estimate",
    "ose",
    "ps_lower_bound",
    "tmle",
]
