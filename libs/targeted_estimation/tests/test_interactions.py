"""Tests for interaction combinations and signed indicators."""

import numpy as np
import pandas as pd
import pytest
from hypothesis import given
from hypothesis import strategies as st

from targeted_estimation.core.base import ConfigurationError
from targeted_estimation.core.graph import source
from targeted_estimation.estimators.interactions import (
    indicator_fns,
    indicator_values,
    interaction_combinations,
)


class TestIndicatorFns:
    """Test cases for the (-1)^(n - j) weights."""

    def test_single_binary_treatment(self):
        indicators = indicator_fns({"T": [0, 1]})

        assert indicators == {(("T", 0),): 1, (("T", 1),): -1}

    def test_ate_orientation(self):
        indicators = indicator_fns({"T": [1, 0]})

        assert indicators[(("T", 1),)] == 1
        assert indicators[(("T", 0),)] == -1

    def test_order_two_interaction(self):
        indicators = indicator_fns({"T1": [1, 0], "T2": [1, 0]})

        assert indicators == {
            (("T1", 1), ("T2", 1)): 1,
            (("T1", 1), ("T2", 0)): -1,
            (("T1", 0), ("T2", 1)): -1,
            (("T1", 0), ("T2", 0)): 1,
        }

    def test_conditional_mean_query(self):
        assert indicator_fns({"T": [1]}) == {(("T", 1),): 1}

    def test_combinations_follow_query_order(self):
        combinations = list(interaction_combinations({"A": ["a", "b"], "B": [0, 1, 2]}))

        assert len(combinations) == 6
        assert combinations[0] == (("A", "a"), ("B", 0))
        assert combinations[-1] == (("A", "b"), ("B", 2))

    @given(
        st.lists(
            st.lists(st.integers(0, 5), min_size=2, max_size=3, unique=True),
            min_size=1,
            max_size=3,
        )
    )
    def test_weight_sum_factorizes(self, levels):
        query = {f"T{i}": lv for i, lv in enumerate(levels)}
        indicators = indicator_fns(query)

        # each variable contributes +1 at its reference level and -1 elsewhere
        assert len(indicators) == int(np.prod([len(lv) for lv in levels]))
        assert sum(indicators.values()) == int(np.prod([2 - len(lv) for lv in levels]))

    @given(st.integers(min_value=1, max_value=4))
    def test_binary_contrasts_sum_to_zero(self, order):
        query = {f"T{i}": [1, 0] for i in range(order)}

        assert sum(indicator_fns(query).values()) == 0

    def test_sign_does_not_depend_on_variable_order(self):
        forward = indicator_fns({"T1": [1, 0], "T2": ["x", "y"]})
        backward = indicator_fns({"T2": ["x", "y"], "T1": [1, 0]})

        for combination, sign in forward.items():
            assert backward[tuple(reversed(combination))] == sign

    def test_empty_query_is_invalid(self):
        with pytest.raises(ConfigurationError):
            indicator_fns({})

    def test_variable_without_levels_is_invalid(self):
        with pytest.raises(ConfigurationError, match="no levels"):
            indicator_fns({"T": []})


class TestIndicatorValues:
    """Test cases for per-row indicator lookup."""

    def test_rows_outside_query_get_zero(self):
        indicators = indicator_fns({"T": [2, 0]})
        T = pd.DataFrame({"T": [0, 1, 2, 2]})

        np.testing.assert_array_equal(indicator_values(indicators, T), [-1, 0, 1, 1])

    def test_multiple_treatments(self):
        indicators = indicator_fns({"T1": [1, 0], "T2": ["b", "a"]})
        T = pd.DataFrame({"T2": ["a", "b", "a", "c"], "T1": [0, 0, 1, 1]})

        np.testing.assert_array_equal(indicator_values(indicators, T), [1, -1, -1, 0])

    def test_categorical_columns(self):
        indicators = indicator_fns({"T": ["treated", "control"]})
        T = pd.DataFrame({"T": pd.Categorical(["control", "treated"])})

        np.testing.assert_array_equal(indicator_values(indicators, T), [-1, 1])

    def test_lazy_evaluation(self):
        indicators = indicator_fns({"T": [1, 0]})
        values = indicator_values(indicators, source(pd.DataFrame({"T": [1, 0]})))

        np.testing.assert_array_equal(values(), [1, -1])
