"""Targeted estimation of causal effects.

Targeted Minimum Loss-Based Estimation (TMLE) and One-Step Estimation (OSE)
of counterfactual-mean based estimands, with influence curve based inference.
"""

__version__ = "0.1.0"
__author__ = "Causal Inference Marketing Team"

from .core import *
from .estimators import naive_plugin_estimate, ose, tmle
from .ml import (
    BinaryOutcomeModel,
    ContinuousOutcomeModel,
    DensityModel,
    TreatmentEncoder,
)
from .scm import ATE, CM, IATE, BackdoorAdjustment, StructuralCausalModel
from .utils import query_report

__all__ = [
    "__version__",
    "__author__",
    "ATE",
    "BackdoorAdjustment",
    "BinaryOutcomeModel",
    "CM",
    "ContinuousOutcomeModel",
    "DensityModel",
    "IATE",
    "StructuralCausalModel",
    "TreatmentEncoder",
    "naive_plugin_estimate",
    "ose",
    "query_report",
    "tmle",
]
