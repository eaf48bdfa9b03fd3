"""Counterfactual-mean based estimands.

Every estimand reduces to a *query*: an ordered mapping from treatment name
to its levels, the reference ("case") level first. The signed combination of
counterfactual means implied by the query is the estimand.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.base import ConfigurationError
from ..utils.validation import validate_query

__all__ = ["CMCompositeEstimand", "CM", "ATE", "IATE"]


class CMCompositeEstimand(BaseModel):
    """Base class of estimands built from counterfactual means."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    scm: Any = Field(..., description="Structural causal model holding the nuisance learners")
    outcome: str = Field(..., description="Name of the outcome variable")
    treatment: dict[str, Any] = Field(
        ..., description="Treatment name to level specification"
    )

    @field_validator("treatment")
    @classmethod
    def validate_treatment(cls, v: dict[str, Any]) -> dict[str, Any]:
        if not v:
            raise ConfigurationError("An estimand needs at least one treatment")
        return v

    @property
    def treatments(self) -> tuple[str, ...]:
        return tuple(self.treatment)

    @property
    def query(self) -> dict[str, tuple[Any, ...]]:
        return validate_query(
            {name: self._levels(name, spec) for name, spec in self.treatment.items()}
        )

    def _levels(self, name: str, spec: Any) -> tuple[Any, ...]:
        raise NotImplementedError

    def __str__(self) -> str:
        levels = ", ".join(f"{name}={spec}" for name, spec in self.treatment.items())
        return f"{type(self).__name__}: {self.outcome}, {levels}"


class CM(CMCompositeEstimand):
    """Counterfactual mean E[Y(t)] with one level per treatment."""

    def _levels(self, name: str, spec: Any) -> tuple[Any, ...]:
        if isinstance(spec, dict):
            raise ConfigurationError(f"CM expects a single level for treatment '{name}'")
        return (spec,)


class ATE(CMCompositeEstimand):
    """Average treatment effect E[Y(case)] - E[Y(control)].

    Treatments are given as ``{"T": {"case": 1, "control": 0}}``.
    """

    def _levels(self, name: str, spec: Any) -> tuple[Any, ...]:
        if not isinstance(spec, dict) or set(spec) != {"case", "control"}:
            raise ConfigurationError(
                f"Treatment '{name}' must be specified as {{'case': ..., 'control': ...}}"
            )
        return (spec["case"], spec["control"])


class IATE(ATE):
    """Interaction average treatment effect of two or more treatments."""

    @field_validator("treatment")
    @classmethod
    def validate_interaction_order(cls, v: dict[str, Any]) -> dict[str, Any]:
        if len(v) < 2:
            raise ConfigurationError("IATE requires at least two treatments")
        return v
