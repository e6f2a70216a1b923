"""Tests for experimental design functions."""

from __future__ import annotations

import numpy as np
import pytest

from desopt.designs import bind_design
from desopt.designs.periodic import onecue_rect, resolve_half_period
from desopt.designs.stochastic import (
    ConditioningStage,
    backward_blocking,
    stochastic_conditioning,
    stochastic_conditioning_design,
    twostage_twocuecmpnd,
    twostage_twocueonly,
)


def test_onecue_rect_alternates_deterministic_contingency() -> None:
    """With probabilities 1/0 the outcome should follow the square wave."""

    data = onecue_rect(
        {"n_trials": 8, "half_period": 2, "us_prob_first": 1.0, "us_prob_second": 0.0},
        np.random.default_rng(0),
    )

    np.testing.assert_allclose(data.us_input, [1, 1, 0, 0, 1, 1, 0, 0])
    np.testing.assert_allclose(data.cs_input, np.ones((8, 1)))


def test_resolve_half_period_rounds_fraction_and_keeps_at_least_one() -> None:
    """Fractional half-periods round half up and never drop below one."""

    assert resolve_half_period({"half_period_frac": 0.25}, 10) == 3
    assert resolve_half_period({"half_period_frac": 0.0}, 10) == 1
    assert resolve_half_period({"half_period": 4}, 10) == 4


def test_resolve_half_period_requires_exactly_one_definition() -> None:
    """Both or neither half-period definitions should be rejected."""

    with pytest.raises(ValueError, match="not both"):
        resolve_half_period({"half_period": 2, "half_period_frac": 0.5}, 10)
    with pytest.raises(ValueError, match="one of half_period or half_period_frac"):
        resolve_half_period({}, 10)


def test_onecue_rect_rejects_invalid_probability() -> None:
    """Outcome probabilities must lie in [0, 1]."""

    with pytest.raises(ValueError, match="us_prob_first"):
        onecue_rect(
            {"n_trials": 4, "half_period": 1, "us_prob_first": 1.5, "us_prob_second": 0.0},
            np.random.default_rng(0),
        )


def test_conditioning_stage_validates_probability_tables() -> None:
    """Pattern probabilities must sum to one and match the pattern count."""

    with pytest.raises(ValueError, match="sum to 1"):
        ConditioningStage(n_trials=3, cs_patterns=[[1, 0], [0, 1]], pattern_prob=[0.5, 0.6], us_prob=[1, 1])
    with pytest.raises(ValueError, match="2 columns"):
        ConditioningStage(n_trials=3, cs_patterns=[[1, 0], [0, 1]], pattern_prob=[1.0], us_prob=[1, 1])
    with pytest.raises(ValueError, match="1 or 3 rows"):
        ConditioningStage(
            n_trials=3,
            cs_patterns=[[1, 0], [0, 1]],
            pattern_prob=[[0.5, 0.5], [0.5, 0.5]],
            us_prob=[1, 1],
        )


def test_conditioning_stage_supports_trialwise_probabilities() -> None:
    """Trial-wise tables should select the pattern of every trial."""

    stage = ConditioningStage(
        n_trials=3,
        cs_patterns=[[1, 0], [0, 1]],
        pattern_prob=[[1.0, 0.0], [0.0, 1.0], [1.0, 0.0]],
        us_prob=[[1.0, 0.0], [0.0, 0.0], [0.0, 1.0]],
    )

    data = stage.sample(np.random.default_rng(1))

    np.testing.assert_allclose(data.cs_input, [[1, 0], [0, 1], [1, 0]])
    np.testing.assert_allclose(data.us_input, [1, 0, 0])


def test_stochastic_conditioning_concatenates_stages() -> None:
    """Stages should be sampled in order and concatenated."""

    stages = [
        ConditioningStage(n_trials=2, cs_patterns=[[1, 0]], pattern_prob=[1.0], us_prob=[1.0]),
        ConditioningStage(n_trials=3, cs_patterns=[[0, 1]], pattern_prob=[1.0], us_prob=[0.0]),
    ]

    data = stochastic_conditioning(stages, np.random.default_rng(0))

    assert data.n_trials == 5
    np.testing.assert_allclose(data.cs_input, [[1, 0], [1, 0], [0, 1], [0, 1], [0, 1]])
    np.testing.assert_allclose(data.us_input, [1, 1, 0, 0, 0])


def test_stochastic_conditioning_rejects_inconsistent_cues() -> None:
    """Stages must share their cue count."""

    stages = [
        ConditioningStage(n_trials=1, cs_patterns=[[1, 0]], pattern_prob=[1.0], us_prob=[1.0]),
        ConditioningStage(n_trials=1, cs_patterns=[[1]], pattern_prob=[1.0], us_prob=[1.0]),
    ]

    with pytest.raises(ValueError, match="consistent across stages"):
        stochastic_conditioning(stages, np.random.default_rng(0))
    with pytest.raises(ValueError, match="at least one"):
        stochastic_conditioning([], np.random.default_rng(0))


def test_stochastic_conditioning_design_reads_stage_mappings() -> None:
    """The generic design builds stages from design variables."""

    data = stochastic_conditioning_design(
        {"stages": [{"n_trials": 4, "cs_patterns": [[1]], "pattern_prob": [1.0], "us_prob": [1.0]}]},
        np.random.default_rng(0),
    )

    np.testing.assert_allclose(data.us_input, np.ones(4))


def test_twostage_twocueonly_respects_deterministic_contingencies() -> None:
    """Deterministic stage probabilities should give a fixed sequence."""

    desvars = {
        "n_trials_all": [3, 2],
        "prob_a_1": 1.0,
        "prob_us_a_1": 1.0,
        "prob_us_b_1": 0.0,
        "prob_a_2": 0.0,
        "prob_us_a_2": 0.0,
        "prob_us_b_2": 1.0,
    }

    data = twostage_twocueonly(desvars, np.random.default_rng(0))

    np.testing.assert_allclose(data.cs_input, [[1, 0], [1, 0], [1, 0], [0, 1], [0, 1]])
    np.testing.assert_allclose(data.us_input, np.ones(5))


def test_twostage_twocuecmpnd_rejects_excess_probability() -> None:
    """Single-cue probabilities must leave room for the compound."""

    desvars = {
        "n_trials_all": [2, 2],
        "prob_a_1": 0.7,
        "prob_b_1": 0.5,
        "prob_us_a_1": 1.0,
        "prob_us_b_1": 1.0,
        "prob_us_ab_1": 1.0,
        "prob_a_2": 0.0,
        "prob_b_2": 0.0,
        "prob_us_a_2": 0.0,
        "prob_us_b_2": 0.0,
        "prob_us_ab_2": 0.0,
    }

    with pytest.raises(ValueError, match="must not exceed 1"):
        twostage_twocuecmpnd(desvars, np.random.default_rng(0))


def test_twostage_twocuecmpnd_gives_remainder_to_compound() -> None:
    """With zero single-cue probability every trial is the AB compound."""

    desvars = {"n_trials_all": [2, 1]}
    for stage in (1, 2):
        desvars.update(
            {
                f"prob_a_{stage}": 0.0,
                f"prob_b_{stage}": 0.0,
                f"prob_us_a_{stage}": 0.0,
                f"prob_us_b_{stage}": 0.0,
                f"prob_us_ab_{stage}": 1.0,
            }
        )

    data = twostage_twocuecmpnd(desvars, np.random.default_rng(0))

    np.testing.assert_allclose(data.cs_input, np.ones((3, 2)))
    np.testing.assert_allclose(data.us_input, np.ones(3))


def test_backward_blocking_appends_alternating_tests() -> None:
    """Compound, single-cue, and test phases should appear in order."""

    data = backward_blocking(
        {"n_trials_compound": 2, "n_trials_single": 1, "n_cue_test_trials": 2},
        np.random.default_rng(0),
    )

    np.testing.assert_allclose(
        data.cs_input,
        [[1, 1], [1, 1], [1, 0], [1, 0], [0, 1], [1, 0], [0, 1]],
    )
    np.testing.assert_allclose(data.us_input, [1, 1, 1, 0, 0, 0, 0])


def test_bind_design_lets_constants_override_point() -> None:
    """Bound designs should use constants over point values."""

    bound = bind_design(
        onecue_rect,
        {"n_trials": 6, "half_period": 3, "us_prob_first": 0.0, "us_prob_second": 0.0},
        {"us_prob_first": 1.0},
    )

    data = bound(np.random.default_rng(0))

    np.testing.assert_allclose(data.us_input, [1, 1, 1, 0, 0, 0])


def test_twostage_requires_stage_lengths() -> None:
    """Missing design variables should be named in the error."""

    with pytest.raises(ValueError, match="n_trials_all"):
        twostage_twocueonly({}, np.random.default_rng(0))
