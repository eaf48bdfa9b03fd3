"""Core data structures, exceptions and the deferred computation graph."""

from .base import (
    CausalInferenceError,
    ConfigurationError,
    DataValidationError,
    Estimate,
    EstimationError,
    FluctuationError,
    ModelInterfaceError,
    OSEstimate,
    QueryReport,
    TMLEstimate,
    TreatmentLevelMismatchError,
)
from .graph import Node, is_node, lazy, node, source

__all__ = [
    "CausalInferenceError",
    "ConfigurationError",
    "DataValidationError",
    "Estimate",
    "EstimationError",
    "FluctuationError",
    "ModelInterfaceError",
    "Node",
    "OSEstimate",
    "QueryReport",
    "TMLEstimate",
    "TreatmentLevelMismatchError",
    "is_node",
    "lazy",
    "node",
    "source",
]
