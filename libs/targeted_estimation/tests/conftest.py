"""Shared test fixtures for the targeted estimation library.

This module provides simulated datasets with known causal effects and
structural causal models wired to them.
"""

import numpy as np
import pandas as pd
import pytest
from scipy.special import expit

from targeted_estimation.scm import StructuralCausalModel


@pytest.fixture
def random_state():
    """Provide a consistent random state for reproducible tests."""
    return 42


@pytest.fixture
def binary_outcome_data(random_state):
    """Binary treatment, binary outcome and a single confounder."""
    rng = np.random.default_rng(random_state)
    n = 2000

    W = rng.normal(0, 1, n)
    T = rng.binomial(1, expit(0.8 * W))
    Y = rng.binomial(1, expit(-0.5 + 1.0 * T + 1.5 * W))

    # Ground truth from a large sample of the confounder distribution
    W_truth = np.random.default_rng(0).normal(0, 1, 1_000_000)
    true_ate = float(np.mean(expit(0.5 + 1.5 * W_truth) - expit(-0.5 + 1.5 * W_truth)))

    return {
        "dataset": pd.DataFrame({"W": W, "T": T, "Y": Y}),
        "true_ate": true_ate,
    }


@pytest.fixture
def continuous_outcome_data(random_state):
    """Binary treatment, continuous outcome with a treatment effect of 2."""
    rng = np.random.default_rng(random_state)
    n = 1500

    W1 = rng.normal(0, 1, n)
    W2 = rng.normal(0, 1, n)
    T = rng.binomial(1, expit(0.5 * W1 - 0.3 * W2))
    Y = 1 + 2.0 * T + 1.0 * W1 + 0.5 * W2 + rng.normal(0, 1, n)

    return {
        "dataset": pd.DataFrame({"W1": W1, "W2": W2, "T": T, "Y": Y}),
        "true_ate": 2.0,
    }


@pytest.fixture
def interaction_data(random_state):
    """Two binary treatments whose joint effect has an interaction of 1.5."""
    rng = np.random.default_rng(random_state)
    n = 3000

    W = rng.normal(0, 1, n)
    T1 = rng.binomial(1, expit(0.3 * W))
    T2 = rng.binomial(1, expit(-0.3 * W))
    Y = T1 + T2 + 1.5 * T1 * T2 + W + rng.normal(0, 1, n)

    return {
        "dataset": pd.DataFrame({"W": W, "T1": T1, "T2": T2, "Y": Y}),
        "true_iate": 1.5,
    }


@pytest.fixture
def single_treatment_scm():
    """SCM with one confounder W of a treatment T and outcome Y."""
    return StructuralCausalModel(parents={"T": ["W"], "Y": ["T", "W"]})
