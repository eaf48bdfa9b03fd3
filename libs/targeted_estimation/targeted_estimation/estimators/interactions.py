"""Signed indicator weights for interaction queries.

For a query of order ``n`` (the number of treatment variables), each
combination of levels gets the weight ``(-1) ** (n - j)`` where ``j`` counts
the variables set to their reference (first) level. Summing the signed
counterfactual means over all combinations yields the contrast of interest,
e.g. for two binary treatments::

    Q(1, 1) - Q(1, 0) - Q(0, 1) + Q(0, 0)
"""

from __future__ import annotations

import itertools
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..core.graph import lazy
from ..utils.validation import validate_query

__all__ = [
    "Combination",
    "interaction_combinations",
    "indicator_fns",
    "indicator_values",
]

# ((treatment_name, level), ...) in query order
Combination = tuple[tuple[str, Any], ...]


def interaction_combinations(query: Mapping[str, Sequence[Any]]) -> Iterator[Combination]:
    """Iterate over the Cartesian product of the query's levels, in query order."""
    query = validate_query(query)
    names = tuple(query)
    for levels in itertools.product(*query.values()):
        yield tuple(zip(names, levels))


def indicator_fns(query: Mapping[str, Sequence[Any]]) -> dict[Combination, int]:
    """Map every level combination of ``query`` to its signed weight.

    Raises:
        ConfigurationError: If the query is empty or a variable has no levels
    """
    query = validate_query(query)
    case = {name: levels[0] for name, levels in query.items()}
    order = len(query)
    return {
        combination: (-1) ** (order - sum(level == case[name] for name, level in combination))
        for combination in interaction_combinations(query)
    }


@lazy
def indicator_values(indicators: Mapping[Combination, int], T: pd.DataFrame) -> NDArray[Any]:
    """Per-row weight of the observed treatment pattern, 0 when outside the query."""
    if not indicators:
        return np.zeros(len(T))

    names = [name for name, _ in next(iter(indicators))]
    values = np.zeros(len(T))
    rows = zip(*(T[name].tolist() for name in names))
    for i, row in enumerate(rows):
        values[i] = indicators.get(tuple(zip(names, row)), 0)
    return values
