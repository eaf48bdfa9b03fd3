"""End-to-end tests for TMLE, OSE and the naive plug-in estimator."""

import warnings

import numpy as np
import pandas as pd
import pytest
from sklearn.compose import ColumnTransformer
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline

from targeted_estimation.core.base import (
    ConfigurationError,
    DataValidationError,
    OSEstimate,
    TMLEstimate,
    TreatmentLevelMismatchError,
)
from targeted_estimation.estimators.targeting import Fluctuation
from targeted_estimation.estimators.tmle import (
    check_score_equation,
    data_adaptive_ps_lower_bound,
    naive_plugin_estimate,
    ose,
    ps_lower_bound,
    tmle,
)
from targeted_estimation.ml.learners import BinaryOutcomeModel, ContinuousOutcomeModel
from targeted_estimation.scm import ATE, CM, IATE, StructuralCausalModel


def treatment_only_outcome_model():
    """Outcome model that ignores the confounder."""
    return BinaryOutcomeModel(
        Pipeline(
            [
                ("select", ColumnTransformer([("treatment", "passthrough", ["T_1"])])),
                ("logistic", LogisticRegression()),
            ]
        )
    )


class TestTMLEBinaryOutcome:
    """Test cases for TMLE of an average treatment effect on a binary outcome."""

    @pytest.fixture(autouse=True)
    def setup(self, binary_outcome_data, single_treatment_scm):
        self.dataset = binary_outcome_data["dataset"]
        self.true_ate = binary_outcome_data["true_ate"]
        self.scm = single_treatment_scm
        self.estimand = ATE(scm=self.scm, outcome="Y", treatment={"T": {"case": 1, "control": 0}})

    def test_estimate_close_to_truth(self):
        estimate, fluctuation = tmle(self.estimand, self.dataset, verbosity=0)

        assert isinstance(estimate, TMLEstimate)
        assert isinstance(fluctuation, Fluctuation)
        assert fluctuation.converged
        assert np.isfinite(fluctuation.deviance)
        assert estimate.estimate == pytest.approx(self.true_ate, abs=0.08)
        assert estimate.influence_curve.shape == (len(self.dataset),)
        lower, upper = estimate.confidence_interval
        assert lower < estimate.estimate < upper
        assert estimate.is_significant

    def test_influence_curve_mean_near_zero(self):
        estimate, _ = tmle(self.estimand, self.dataset, verbosity=0)

        assert abs(np.mean(estimate.influence_curve)) < 1e-4
        assert check_score_equation(estimate.influence_curve)

    def test_ose_agrees_with_tmle(self):
        tmle_estimate, _ = tmle(self.estimand, self.dataset, verbosity=0)
        ose_estimate, outcome_model = ose(self.estimand, self.dataset, verbosity=0)

        assert isinstance(ose_estimate, OSEstimate)
        assert isinstance(outcome_model, BinaryOutcomeModel)
        fitted_model, (X, y) = self.scm.get_outcome_model(self.estimand)
        assert outcome_model is fitted_model
        assert list(X.columns) == ["T_1", "W"]
        assert len(y) == len(self.dataset)
        assert ose_estimate.estimate == pytest.approx(tmle_estimate.estimate, abs=0.02)
        assert ose_estimate.std_error == pytest.approx(tmle_estimate.std_error, rel=0.1)

    def test_ose_adds_mean_influence_curve(self):
        ose_estimate, _ = ose(self.estimand, self.dataset, verbosity=0)
        plugin = naive_plugin_estimate(self.estimand, self.dataset, verbosity=0)

        assert ose_estimate.initial_estimate == pytest.approx(plugin)
        assert ose_estimate.estimate == pytest.approx(
            plugin + np.mean(ose_estimate.influence_curve)
        )

    def test_report_of_estimate(self):
        estimate, _ = tmle(self.estimand, self.dataset, verbosity=0)
        report = estimate.report()

        assert report.estimate == estimate.estimate
        assert report.initial_estimate == pytest.approx(
            naive_plugin_estimate(self.estimand, self.dataset, verbosity=0)
        )
        assert report.pvalue < 0.05

    def test_weighted_fluctuation(self):
        estimate, fluctuation = tmle(
            self.estimand, self.dataset, verbosity=0, weighted_fluctuation=True
        )

        assert fluctuation.weighted
        assert estimate.estimate == pytest.approx(self.true_ate, abs=0.08)

    def test_double_robustness(self):
        scm = StructuralCausalModel(
            parents={"T": ["W"], "Y": ["T", "W"]},
            outcome_model=treatment_only_outcome_model(),
        )
        estimand = ATE(scm=scm, outcome="Y", treatment={"T": {"case": 1, "control": 0}})

        naive = naive_plugin_estimate(estimand, self.dataset, verbosity=0)
        targeted, _ = tmle(estimand, self.dataset, verbosity=0)

        naive_bias = abs(naive - self.true_ate)
        tmle_bias = abs(targeted.estimate - self.true_ate)
        assert naive_bias > 0.08
        assert tmle_bias < naive_bias / 2

    def test_reverse_query_flips_sign(self):
        reverse = ATE(scm=self.scm, outcome="Y", treatment={"T": {"case": 0, "control": 1}})

        forward, _ = tmle(self.estimand, self.dataset, verbosity=0)
        backward, _ = tmle(reverse, self.dataset, verbosity=0)

        assert backward.estimate == pytest.approx(-forward.estimate, abs=1e-3)

    def test_conditional_mean(self):
        estimand = CM(scm=self.scm, outcome="Y", treatment={"T": 1})

        estimate, _ = tmle(estimand, self.dataset, verbosity=0)

        assert 0 < estimate.estimate < 1

    def test_missing_level_fails_before_fitting(self):
        estimand = ATE(scm=self.scm, outcome="Y", treatment={"T": {"case": 2, "control": 0}})

        with pytest.raises(TreatmentLevelMismatchError, match="2"):
            tmle(estimand, self.dataset, verbosity=0)
        with pytest.raises(DataValidationError, match="not been fitted"):
            self.scm.get_fit(estimand)

    def test_two_label_outcome(self):
        labelled = self.dataset.assign(Y=np.where(self.dataset["Y"] == 1, "yes", "no"))
        scm = StructuralCausalModel(
            parents={"T": ["W"], "Y": ["T", "W"]}, outcome_model=BinaryOutcomeModel()
        )
        estimand = ATE(scm=scm, outcome="Y", treatment={"T": {"case": 1, "control": 0}})

        labelled_estimate, _ = tmle(estimand, labelled, verbosity=0)
        labelled_one_step, _ = ose(estimand, labelled, verbosity=0)
        numeric_estimate, _ = tmle(self.estimand, self.dataset, verbosity=0)

        assert labelled_estimate.estimate == pytest.approx(numeric_estimate.estimate, abs=1e-6)
        assert labelled_one_step.estimate == pytest.approx(numeric_estimate.estimate, abs=0.02)

    def test_level_only_in_incomplete_rows(self):
        incomplete = pd.DataFrame({"W": [0.1], "T": [2.0], "Y": [np.nan]})
        dataset = pd.concat([self.dataset.astype(float), incomplete], ignore_index=True)
        estimand = ATE(scm=self.scm, outcome="Y", treatment={"T": {"case": 2.0, "control": 0.0}})

        with pytest.raises(TreatmentLevelMismatchError, match="2.0"):
            tmle(estimand, dataset, verbosity=0)
        with pytest.raises(DataValidationError, match="not been fitted"):
            self.scm.get_fit(estimand)

    def test_fits_are_cached(self):
        tmle(self.estimand, self.dataset, verbosity=0)
        first = self.scm.get_fit(self.estimand).outcome_model

        ose(self.estimand, self.dataset, verbosity=0)
        assert self.scm.get_fit(self.estimand).outcome_model is first

        ose(self.estimand, self.dataset, verbosity=0, force=True)
        assert self.scm.get_fit(self.estimand).outcome_model is not first

    def test_logs_progress(self, caplog):
        with caplog.at_level("INFO", logger="targeted_estimation"):
            tmle(self.estimand, self.dataset, verbosity=1)

        messages = [record.getMessage() for record in caplog.records]
        assert "Fitting the required equations..." in messages
        assert "Performing TMLE..." in messages
        assert "Done." in messages


class TestTMLEContinuousOutcome:
    """Test cases for continuous outcomes."""

    def test_ate(self, continuous_outcome_data):
        scm = StructuralCausalModel(
            parents={"T": ["W1", "W2"], "Y": ["T", "W1", "W2"]},
            outcome_model=ContinuousOutcomeModel(),
        )
        estimand = ATE(scm=scm, outcome="Y", treatment={"T": {"case": 1, "control": 0}})

        estimate, fluctuation = tmle(estimand, continuous_outcome_data["dataset"], verbosity=0)
        one_step, _ = ose(estimand, continuous_outcome_data["dataset"], verbosity=0)

        assert estimate.estimate == pytest.approx(continuous_outcome_data["true_ate"], abs=0.2)
        assert one_step.estimate == pytest.approx(estimate.estimate, abs=0.05)
        assert abs(np.mean(estimate.influence_curve)) < 1e-6

    def test_interaction(self, interaction_data):
        scm = StructuralCausalModel(parents={"T1": ["W"], "T2": ["W"], "Y": ["T1", "T2", "W"]})
        estimand = IATE(
            scm=scm,
            outcome="Y",
            treatment={"T1": {"case": 1, "control": 0}, "T2": {"case": 1, "control": 0}},
        )

        estimate, _ = tmle(estimand, interaction_data["dataset"], verbosity=0)
        naive = naive_plugin_estimate(estimand, interaction_data["dataset"], verbosity=0)

        # the additive outcome model cannot represent the interaction
        assert abs(naive) < 0.3
        assert estimate.estimate == pytest.approx(interaction_data["true_iate"], abs=0.4)

    def test_categorical_treatment(self, random_state):
        rng = np.random.default_rng(random_state)
        n = 1500
        W = rng.normal(0, 1, n)
        dose = rng.choice(["low", "mid", "high"], size=n)
        effect = pd.Series(dose).map({"low": 0.0, "mid": 1.0, "high": 3.0}).to_numpy()
        dataset = pd.DataFrame(
            {
                "W": W,
                "dose": pd.Categorical(dose, categories=["low", "mid", "high"]),
                "Y": effect + W + rng.normal(0, 1, n),
            }
        )
        scm = StructuralCausalModel(parents={"dose": ["W"], "Y": ["dose", "W"]})
        estimand = ATE(
            scm=scm, outcome="Y", treatment={"dose": {"case": "high", "control": "low"}}
        )

        estimate, _ = tmle(estimand, dataset, verbosity=0)

        assert estimate.estimate == pytest.approx(3.0, abs=0.3)


class TestThreshold:
    """Test cases for the truncation threshold."""

    def test_default_from_config(self):
        assert ps_lower_bound(1000) == pytest.approx(1e-8)

    def test_capped(self):
        assert ps_lower_bound(1000, 0.5) == pytest.approx(0.1)
        assert ps_lower_bound(1000, 0.5, max_lb=0.3) == pytest.approx(0.3)

    def test_adaptive(self):
        expected = 5 / (np.sqrt(1000) * np.log(200))

        assert ps_lower_bound(1000, "adaptive") == pytest.approx(expected)
        assert data_adaptive_ps_lower_bound(20) == pytest.approx(0.1)

    def test_invalid(self):
        with pytest.raises(ConfigurationError):
            ps_lower_bound(1000, 0.0)


class TestEstimands:
    """Test cases for estimand queries."""

    def test_queries(self, single_treatment_scm):
        assert CM(scm=single_treatment_scm, outcome="Y", treatment={"T": 1}).query == {
            "T": (1,)
        }
        ate = ATE(
            scm=single_treatment_scm, outcome="Y", treatment={"T": {"case": 1, "control": 0}}
        )
        assert ate.query == {"T": (1, 0)}
        assert ate.treatments == ("T",)

    def test_invalid_estimands(self, single_treatment_scm):
        with pytest.raises(ConfigurationError):
            ATE(scm=single_treatment_scm, outcome="Y", treatment={})
        with pytest.raises(ConfigurationError, match="at least two"):
            IATE(
                scm=single_treatment_scm,
                outcome="Y",
                treatment={"T": {"case": 1, "control": 0}},
            )
        with pytest.raises(ConfigurationError, match="case"):
            ATE(scm=single_treatment_scm, outcome="Y", treatment={"T": 1}).query


def test_score_equation_warning():
    ic = np.random.default_rng(0).normal(1.0, 1.0, 500)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        assert not check_score_equation(ic)
    assert any("influence curve" in str(w.message) for w in caught)
