"""Nuisance learners and the offset GLM used for targeting."""

from .glm import FluctuationFamily, Gaussian, OffsetGLM, QuasiBernoulli
from .learners import (
    BinaryOutcomeModel,
    ContinuousOutcomeModel,
    DensityModel,
    OutcomeModel,
    TreatmentEncoder,
    infer_outcome_model,
)

__all__ = [
    "BinaryOutcomeModel",
    "ContinuousOutcomeModel",
    "DensityModel",
    "FluctuationFamily",
    "Gaussian",
    "OffsetGLM",
    "OutcomeModel",
    "QuasiBernoulli",
    "TreatmentEncoder",
    "infer_outcome_model",
]
