"""Tests for built-in evolution and observation functions."""

from __future__ import annotations

import numpy as np
import pytest

from desopt.models.learning import evo_krw, evo_lsspd, obs_linear, obs_wa_mix


def test_lsspd_reduces_to_rescorla_wagner() -> None:
    """With eta=0 and kappa=1 weights should follow the RW recursion."""

    cs = np.ones((4, 1))
    us = np.array([1.0, 1.0, 0.0, 1.0])
    params = {"wInit": 0.0, "alphaInit": 0.5, "eta": 0.0, "kappa": 1.0}

    result = evo_lsspd(cs, us, params)

    expected_w = [0.0]
    for outcome in us:
        expected_w.append(expected_w[-1] + 0.5 * (outcome - expected_w[-1]))
    np.testing.assert_allclose(result["w"][:, 0], expected_w)
    np.testing.assert_allclose(result["v_pred"], expected_w[:-1])
    np.testing.assert_allclose(result["alpha"], 0.5)
    np.testing.assert_allclose(result["delta"], us - np.asarray(expected_w[:-1]))


def test_lsspd_updates_only_present_cues() -> None:
    """Absent cues should keep their weight and associability."""

    cs = np.array([[1.0, 0.0], [0.0, 1.0]])
    us = np.array([1.0, 1.0])
    params = {"wInit": [0.0, 0.2], "alphaInit": 0.4, "eta": 0.5, "kappa": 1.0}

    result = evo_lsspd(cs, us, params)

    assert result["w"].shape == (3, 2)
    assert result["w"][1, 1] == pytest.approx(0.2)
    assert result["w"][1, 0] == pytest.approx(0.4)
    # alpha <- eta * |delta| + (1 - eta) * alpha for the present cue.
    assert result["alpha"][1, 0] == pytest.approx(0.5 * 1.0 + 0.5 * 0.4)
    assert result["alpha"][1, 1] == pytest.approx(0.4)
    assert result["alpha_pred"][1] == pytest.approx(0.4)


def test_lsspd_rejects_mismatched_per_cue_vector() -> None:
    """Per-cue initial values must match the cue count."""

    with pytest.raises(ValueError, match="wInit has 3 values"):
        evo_lsspd(np.ones((2, 2)), np.ones(2), {"wInit": [0.0, 0.0, 0.0], "alphaInit": 0.5, "eta": 0.1, "kappa": 1.0})


def test_lsspd_handles_trials_without_cues() -> None:
    """Trials without cues predict zero and leave the state unchanged."""

    result = evo_lsspd(np.zeros((2, 1)), np.ones(2), {"wInit": 0.3, "alphaInit": 0.5, "eta": 0.2, "kappa": 1.0})

    np.testing.assert_allclose(result["v_pred"], 0.0)
    np.testing.assert_allclose(result["alpha_pred"], 0.0)
    np.testing.assert_allclose(result["w"], 0.3)


def test_krw_single_cue_matches_scalar_kalman_filter() -> None:
    """One-cue KRW should match the scalar Kalman recursion."""

    cs = np.ones((3, 1))
    us = np.array([1.0, 0.0, 1.0])
    params = {"wInit": 0.0, "logSigmaWInit": np.log(1.0), "logTauSq": np.log(0.1), "logSigmaRSq": np.log(0.5)}

    result = evo_krw(cs, us, params)

    w, c = 0.0, 1.0
    for t, outcome in enumerate(us):
        c_pred = c + 0.1
        k = c_pred / (c_pred + 0.5)
        assert result["v_pred"][t] == pytest.approx(w)
        assert result["gain"][t, 0] == pytest.approx(k)
        w = w + k * (outcome - w)
        c = c_pred - k * c_pred
        assert result["w"][t + 1, 0] == pytest.approx(w)
        assert result["C"][t + 1, 0, 0] == pytest.approx(c)


def test_krw_output_shapes() -> None:
    """KRW should report trajectories for every trial and cue."""

    result = evo_krw(
        np.array([[1.0, 1.0], [1.0, 0.0], [0.0, 1.0]]),
        np.array([1.0, 0.0, 1.0]),
        {"wInit": 0.0, "logSigmaWInit": 0.0, "logTauSq": -2.0, "logSigmaRSq": -1.0},
    )

    assert result["w"].shape == (4, 2)
    assert result["C"].shape == (4, 2, 2)
    assert result["gain"].shape == (3, 2)
    np.testing.assert_allclose(result["C"][-1], result["C"][-1].T, atol=1e-12)


def test_obs_wa_mix_and_linear() -> None:
    """Observation functions should apply their affine maps."""

    evo = {"v_pred": np.array([0.0, 1.0]), "alpha_pred": np.array([1.0, 0.5])}
    params = {"intercept": 0.1, "slope": 2.0, "mixCoef": 0.25}

    mixed = obs_wa_mix(evo, np.ones((2, 1)), np.ones(2), params)
    linear = obs_linear(evo, np.ones((2, 1)), np.ones(2), {"intercept": 0.1, "slope": 2.0})

    np.testing.assert_allclose(mixed["cr_pred"], 0.1 + 2.0 * (0.25 * evo["v_pred"] + 0.75 * evo["alpha_pred"]))
    np.testing.assert_allclose(linear["cr_pred"], [0.1, 2.1])


def test_obs_wa_mix_requires_associability() -> None:
    """The mixture observation needs an associability trajectory."""

    with pytest.raises(ValueError, match="alpha_pred"):
        obs_wa_mix({"v_pred": np.zeros(2)}, np.ones((2, 1)), np.ones(2), {"intercept": 0.0, "slope": 1.0, "mixCoef": 0.5})
