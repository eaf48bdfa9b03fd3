"""Structural causal model, adjustment methods and estimands."""

from .estimands import ATE, CM, IATE, CMCompositeEstimand
from .model import BackdoorAdjustment, NuisanceFit, StructuralCausalModel

__all__ = [
    "ATE",
    "BackdoorAdjustment",
    "CM",
    "CMCompositeEstimand",
    "IATE",
    "NuisanceFit",
    "StructuralCausalModel",
]
