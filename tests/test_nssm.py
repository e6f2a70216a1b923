"""Tests for the NSSM runtime and model descriptors."""

from __future__ import annotations

import numpy as np
import pytest
from scipy.stats import norm

from desopt.core import FitParamSpec, InvalidParameterError, LatentsUnavailable, TrialData
from desopt.inference import FlatLogPrior
from desopt.models import NSSM, ModelSpec, floor_log_densities
from desopt.models.baseline import constant_response_log_likelihood, simulate_constant_response
from desopt.models.learning import evo_lsspd, obs_linear


def _rw_model() -> NSSM:
    return NSSM(evolution=evo_lsspd, observation=obs_linear)


def _params(sd: float = 0.2) -> dict:
    return {
        "evo": {"wInit": 0.0, "alphaInit": 0.3, "eta": 0.0, "kappa": 1.0},
        "obs": {"intercept": 0.0, "slope": 1.0, "sd": sd},
    }


def _obs_specs() -> list[FitParamSpec]:
    return [
        FitParamSpec(name="alphaInit", log_prior=FlatLogPrior(), lower=0.0, upper=1.0, group="evo"),
        FitParamSpec(name="sd", log_prior=FlatLogPrior(), lower=0.01, upper=2.0, group="obs"),
    ]


def test_predict_runs_evolution_then_observation() -> None:
    """Predictions should expose evolution latents and ``cr_pred``."""

    model = _rw_model()
    cs = np.ones((3, 1))
    us = np.ones(3)

    output = model.predict(cs, us, _params())

    np.testing.assert_allclose(output.cr_pred, output.evo["v_pred"])
    assert output.evo["w"].shape == (4, 1)


def test_predict_rejects_wrong_prediction_length() -> None:
    """Observation output length must match the trial count."""

    model = NSSM(evolution=evo_lsspd, observation=lambda evo, cs, us, p: {"cr_pred": np.zeros(1)})

    with pytest.raises(ValueError, match="returned 1 predictions for 3 trials"):
        model.predict(np.ones((3, 1)), np.ones(3), _params())


def test_simulate_is_reproducible_and_noisy() -> None:
    """Simulation should add seeded Gaussian noise around the prediction."""

    model = _rw_model()
    cs = np.ones((200, 1))
    us = np.ones(200)

    first = model.simulate(cs, us, _params(), np.random.default_rng(5))
    second = model.simulate(cs, us, _params(), np.random.default_rng(5))

    np.testing.assert_allclose(first.responses, second.responses)
    residuals = first.responses - first.latents.cr_pred
    assert 0.1 < float(np.std(residuals)) < 0.3


def test_simulated_latents_match_noise_free_prediction() -> None:
    """Noise enters only the responses, never the latent trajectories."""

    model = NSSM(evolution=evo_lsspd, observation=obs_linear)
    rng = np.random.default_rng(8)
    cs = np.vstack([np.eye(2), np.ones((1, 2))] * 5)
    us = (rng.random(15) < 0.5).astype(float)
    params = {
        "evo": {"wInit": 0.1, "alphaInit": [0.3, 0.5], "eta": 0.4, "kappa": 1.0},
        "obs": {"intercept": 0.2, "slope": 1.5, "sd": 0.3},
    }

    simulated = model.simulate(cs, us, params, rng)
    predicted = model.predict(cs, us, params)

    np.testing.assert_array_equal(simulated.latents.cr_pred, predicted.cr_pred)
    np.testing.assert_array_equal(simulated.latents.evo["alpha"], predicted.evo["alpha"])
    assert not np.allclose(simulated.responses, predicted.cr_pred)


def test_simulate_rejects_non_positive_sd() -> None:
    """Zero observation noise is not a valid simulation parameter."""

    with pytest.raises(InvalidParameterError, match="sd must be > 0"):
        _rw_model().simulate(np.ones((2, 1)), np.ones(2), _params(sd=0.0), np.random.default_rng(0))


def test_log_likelihood_matches_gaussian_density() -> None:
    """The likelihood should equal the summed normal log-density."""

    model = _rw_model()
    data = TrialData(cs_input=np.ones((4, 1)), us_input=np.ones(4), cr_output=[0.1, 0.4, 0.5, 0.8])
    fixed = _params()
    x = np.array([0.3, 0.2])

    log_likelihood, latents = model.log_likelihood(x, data, _obs_specs(), fixed)

    prediction = model.predict(data.cs_input, data.us_input, fixed).cr_pred
    expected = float(np.sum(norm.logpdf(data.cr_output, loc=prediction, scale=0.2)))
    assert log_likelihood == pytest.approx(expected)
    assert latents is None


def test_log_likelihood_returns_latents_on_request() -> None:
    """Latents should be returned only when requested."""

    model = _rw_model()
    data = TrialData(cs_input=np.ones((2, 1)), us_input=np.ones(2), cr_output=[0.0, 0.3])

    _, latents = model.log_likelihood(np.array([0.3, 0.2]), data, _obs_specs(), _params(), with_latents=True)

    assert latents is not None
    assert latents.cr_pred.shape == (2,)


def test_log_likelihood_floors_non_finite_densities() -> None:
    """Degenerate noise should give a finite, floored likelihood."""

    model = NSSM(evolution=evo_lsspd, observation=obs_linear, log_density_floor=-50.0)
    data = TrialData(cs_input=np.ones((3, 1)), us_input=np.ones(3), cr_output=[0.0, 0.0, 0.0])
    specs = [FitParamSpec(name="sd", log_prior=FlatLogPrior(), lower=-1.0, upper=1.0, group="obs")]

    log_likelihood, _ = model.log_likelihood(np.array([-0.5]), data, specs, _params())

    assert log_likelihood == pytest.approx(-150.0)


def test_floor_log_densities_replaces_only_negative_infinity_and_nan() -> None:
    """Finite and positive-infinite densities should pass through unchanged."""

    floored = floor_log_densities(np.array([-np.inf, np.nan, np.inf, -2.0]), -10.0)

    np.testing.assert_array_equal(floored, [-10.0, -10.0, np.inf, -2.0])


def test_log_likelihood_requires_responses() -> None:
    """Stimulus-only data cannot be scored."""

    data = TrialData(cs_input=np.ones((2, 1)), us_input=np.ones(2))

    with pytest.raises(ValueError, match="cr_output"):
        _rw_model().log_likelihood(np.array([0.3, 0.2]), data, _obs_specs(), _params())


def test_model_spec_dispatches_to_nssm_and_generic_models() -> None:
    """Model descriptors should route to the right callables."""

    nssm_spec = ModelSpec(name="RW", kind="nssm", nssm=_rw_model())
    generic_spec = ModelSpec(
        name="const",
        kind="generic",
        simulate_fn=simulate_constant_response,
        log_likelihood_fn=constant_response_log_likelihood,
    )
    cs = np.ones((5, 1))
    us = np.ones(5)

    responses, latents = nssm_spec.simulate(cs, us, _params(), np.random.default_rng(0))
    assert responses.shape == (5,)
    assert latents is not None

    const_params = {"obs": {"mean": 0.5, "sd": 0.1}}
    responses, latents = generic_spec.simulate(cs, us, const_params, np.random.default_rng(0))
    assert responses.shape == (5,)
    assert latents is None

    specs = [FitParamSpec(name="mean", log_prior=FlatLogPrior(), lower=-1.0, upper=1.0, group="obs")]
    data = TrialData(cs_input=cs, us_input=us, cr_output=responses)
    log_likelihood, _ = generic_spec.log_likelihood(np.array([0.5]), data, specs, const_params)
    assert log_likelihood == pytest.approx(float(np.sum(norm.logpdf(responses, loc=0.5, scale=0.1))))

    with pytest.raises(LatentsUnavailable):
        generic_spec.log_likelihood(np.array([0.5]), data, specs, const_params, with_latents=True)


def test_model_spec_validates_kind() -> None:
    """Descriptors should reject missing callables and unknown kinds."""

    with pytest.raises(ValueError, match="requires an NSSM"):
        ModelSpec(name="RW", kind="nssm")
    with pytest.raises(ValueError, match="requires simulate_fn and log_likelihood_fn"):
        ModelSpec(name="g", kind="generic", simulate_fn=simulate_constant_response)
    with pytest.raises(ValueError, match="model kind"):
        ModelSpec(name="x", kind="other", nssm=_rw_model())
