"""Tests for ground-truth sampling and data simulation."""

from __future__ import annotations

from functools import partial

import numpy as np
import pytest

from desopt.designs.periodic import onecue_rect
from desopt.evaluation import sample_param_grid, simulate_data
from desopt.models import NSSM, ModelSpec
from desopt.models.learning import evo_lsspd, obs_linear

DESVARS = {"n_trials": 10, "half_period": 5, "us_prob_first": 0.8, "us_prob_second": 0.2}
PRIOR = {
    "evo": {"wInit": 0.0, "alphaInit": "uniform(0.1, 0.9)", "eta": 0.0, "kappa": 1.0},
    "obs": {"intercept": 0.0, "slope": 1.0, "sd": 0.2},
}


def _model(name: str) -> ModelSpec:
    return ModelSpec(name=name, kind="nssm", nssm=NSSM(evolution=evo_lsspd, observation=obs_linear))


def test_sample_param_grid_shape_and_independence() -> None:
    """Each subject/experiment cell should get its own draw."""

    grid = sample_param_grid(PRIOR, n_sub=3, n_exp=2, rng=np.random.default_rng(0))

    assert len(grid) == 3
    assert all(len(row) == 2 for row in grid)
    values = {grid[sub][exp]["evo"]["alphaInit"] for sub in range(3) for exp in range(2)}
    assert len(values) == 6


def test_simulate_data_shares_stimuli_across_models() -> None:
    """Every model in a cell should see the same stimulus sequence."""

    rng = np.random.default_rng(1)
    params = tuple(sample_param_grid(PRIOR, 2, 2, rng) for _ in range(2))

    simulated = simulate_data(2, 2, partial(onecue_rect, DESVARS), [_model("a"), _model("b")], params, rng=rng)

    cell = simulated.data[1][0]
    assert len(cell) == 2
    np.testing.assert_array_equal(cell[0].us_input, cell[1].us_input)
    assert cell[0].cr_output is not None
    assert not np.array_equal(cell[0].cr_output, cell[1].cr_output)
    assert simulated.latents is not None
    assert simulated.latents[1][0][0].cr_pred.shape == (10,)

    model_b = simulated.model_slice(1)
    assert len(model_b) == 2 and len(model_b[0]) == 2
    assert model_b[1][0] is cell[1]


def test_simulate_data_without_models_returns_stimuli() -> None:
    """Stimuli-only runs should return bare trial sequences."""

    simulated = simulate_data(2, 3, partial(onecue_rect, DESVARS), [], [], rng=np.random.default_rng(0))

    assert simulated.latents is None
    assert simulated.data[0][2].cr_output is None
    assert simulated.data[0][2].n_trials == 10
    with pytest.raises(ValueError, match="stimuli-only"):
        simulated.model_slice(0)


def test_simulate_data_is_reproducible() -> None:
    """The same generator seed should reproduce the simulation."""

    def run() -> np.ndarray:
        rng = np.random.default_rng(9)
        params = (sample_param_grid(PRIOR, 1, 2, rng),)
        simulated = simulate_data(1, 2, partial(onecue_rect, DESVARS), [_model("a")], params, rng=rng)
        return simulated.data[0][1][0].cr_output

    np.testing.assert_array_equal(run(), run())


def test_simulate_data_validates_arguments() -> None:
    """Counts must be positive and parameter grids must match the models."""

    with pytest.raises(ValueError, match="must be > 0"):
        simulate_data(0, 1, partial(onecue_rect, DESVARS), [], [], rng=np.random.default_rng(0))
    with pytest.raises(ValueError, match="1 simulation models but 0 parameter grids"):
        simulate_data(1, 1, partial(onecue_rect, DESVARS), [_model("a")], [], rng=np.random.default_rng(0))
