"""Simulate stimulus sequences and model responses for design evaluation."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from desopt.core.data import TrialData
from desopt.core.params import sample_params
from desopt.designs.base import BoundDesign
from desopt.models.model_spec import ModelSpec

logger = logging.getLogger(__name__)

ParamGrid = tuple[tuple[dict[str, Any], ...], ...]


@dataclass(frozen=True, slots=True)
class SimulatedData:
    """Simulated data and latents.

    Parameters
    ----------
    data : tuple
        ``data[sub][exp][model]`` when models were simulated, otherwise
        ``data[sub][exp]`` (stimuli only).
    latents : tuple | None
        ``latents[sub][exp][model]``; ``None`` for stimuli-only runs.
    """

    data: tuple
    latents: tuple | None

    def model_slice(self, model_index: int) -> tuple[tuple[TrialData, ...], ...]:
        """Return the subjects x experiments data simulated by one model."""

        if self.latents is None:
            raise ValueError("stimuli-only simulations have no per-model slices")
        return tuple(tuple(cell[model_index] for cell in row) for row in self.data)


def sample_param_grid(
    prior: Mapping[str, Any],
    n_sub: int,
    n_exp: int,
    rng: np.random.Generator,
) -> ParamGrid:
    """Draw one ground-truth parameter set per subject and experiment.

    Returns
    -------
    ParamGrid
        ``grid[sub][exp]`` parameter mappings, drawn independently.
    """

    return tuple(
        tuple(sample_params(prior, rng) for _ in range(n_exp))
        for _ in range(n_sub)
    )


def simulate_data(
    n_sub: int,
    n_exp: int,
    design: BoundDesign,
    models: Sequence[ModelSpec],
    sim_params: Sequence[ParamGrid],
    *,
    rng: np.random.Generator,
) -> SimulatedData:
    """Generate stimuli per cell and, for each model, noisy responses.

    Parameters
    ----------
    n_sub : int
        Subjects per experiment.
    n_exp : int
        Simulated experiments.
    design : BoundDesign
        ``design(rng) -> TrialData``; one fresh stimulus sequence is drawn per
        ``(subject, experiment)`` and shared by every simulation model.
    models : Sequence[ModelSpec]
        Simulation models; empty for stimuli-only runs.
    sim_params : Sequence[ParamGrid]
        ``sim_params[model][sub][exp]`` ground-truth parameters.
    rng : numpy.random.Generator
        Source of stimuli and response noise.

    Returns
    -------
    SimulatedData
        Data and latents, see :class:`SimulatedData`.
    """

    if n_sub <= 0 or n_exp <= 0:
        raise ValueError("n_sub and n_exp must be > 0")
    if len(sim_params) != len(models):
        raise ValueError(
            f"got {len(models)} simulation models but {len(sim_params)} parameter grids"
        )

    data: list[list[Any]] = [[None] * n_exp for _ in range(n_sub)]
    latents: list[list[Any]] = [[None] * n_exp for _ in range(n_sub)]

    for exp_index in range(n_exp):
        for sub_index in range(n_sub):
            stimuli = design(rng)
            if not models:
                data[sub_index][exp_index] = stimuli
                continue

            cell_data = []
            cell_latents = []
            for model, grid in zip(models, sim_params):
                responses, model_latents = model.simulate(
                    stimuli.cs_input,
                    stimuli.us_input,
                    grid[sub_index][exp_index],
                    rng,
                )
                cell_data.append(stimuli.with_responses(responses))
                cell_latents.append(model_latents)
            data[sub_index][exp_index] = tuple(cell_data)
            latents[sub_index][exp_index] = tuple(cell_latents)

    logger.debug("simulated %d subjects x %d experiments x %d models", n_sub, n_exp, len(models))
    return SimulatedData(
        data=tuple(tuple(row) for row in data),
        latents=tuple(tuple(row) for row in latents) if models else None,
    )


__all__ = ["ParamGrid", "SimulatedData", "sample_param_grid", "simulate_data"]
