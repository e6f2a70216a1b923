"""Batch MAP fitting of candidate models across simulated experiments.

The unit of work is one ``(model, experiment)`` pair: every subject of the
experiment is fitted with :func:`desopt.inference.map_fit.fit_map`. Each unit
gets its own seed, drawn from the caller's generator before any work is
dispatched, so serial and process-parallel execution give identical results.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any

import numpy as np

from desopt.core.data import TrialData
from desopt.core.errors import ModelSpaceMisconfigured
from desopt.core.params import FitParamSpec
from desopt.models.model_spec import ModelSpec

from .map_fit import DEFAULT_N_STARTS, ExperimentFit, fit_map

logger = logging.getLogger(__name__)

_SEED_UPPER = 2**63 - 1


@dataclass(frozen=True, slots=True)
class FitUnit:
    """Self-contained work item for one model and one experiment."""

    model_index: int
    exp_index: int
    model: ModelSpec
    param_specs: tuple[FitParamSpec, ...]
    fixed_params: Mapping[str, Any] | None
    data: tuple[TrialData, ...]
    seed: int
    n_starts: int
    verbose: bool


def run_fit_unit(unit: FitUnit) -> ExperimentFit:
    """Fit one model to every subject of one experiment."""

    log_likelihood = partial(
        unit.model.log_likelihood,
        param_specs=unit.param_specs,
        fixed_params=unit.fixed_params,
    )
    fit = fit_map(
        log_likelihood,
        unit.param_specs,
        unit.data,
        rng=np.random.default_rng(unit.seed),
        n_starts=unit.n_starts,
        verbose=unit.verbose,
    )
    level = logging.INFO if unit.verbose else logging.DEBUG
    logger.log(level, "fitted model %r to experiment %d", unit.model.name, unit.exp_index + 1)
    return fit


def fit_models(
    data_grid: Sequence[Sequence[TrialData]],
    models: Sequence[ModelSpec],
    fit_priors: Sequence[Sequence[FitParamSpec]],
    fixed_params: Sequence[Mapping[str, Any] | None],
    *,
    rng: np.random.Generator,
    parallel: bool = False,
    max_workers: int | None = None,
    n_starts: int = DEFAULT_N_STARTS,
    verbose: bool = False,
) -> tuple[tuple[ExperimentFit, ...], ...]:
    """Fit every model to every experiment of a data grid.

    Parameters
    ----------
    data_grid : Sequence[Sequence[TrialData]]
        Subjects x experiments grid of data with responses.
    models : Sequence[ModelSpec]
        Fitting models.
    fit_priors : Sequence[Sequence[FitParamSpec]]
        One fitting prior per model.
    fixed_params : Sequence[Mapping[str, Any] | None]
        One fixed-parameter structure per model.
    rng : numpy.random.Generator
        Source of per-unit seeds.
    parallel : bool, optional
        Run units in a process pool. Models and priors must be picklable.
    max_workers : int | None, optional
        Pool size; ``None`` lets the executor choose.
    n_starts : int, optional
        Restarts per subject fit.
    verbose : bool, optional
        Log progress at ``INFO``.

    Returns
    -------
    tuple[tuple[ExperimentFit, ...], ...]
        Experiments x models grid of fits.

    Raises
    ------
    ModelSpaceMisconfigured
        If ``models``, ``fit_priors`` and ``fixed_params`` differ in length.
    ValueError
        If the data grid is empty or ragged.
    """

    n_models = len(models)
    if n_models == 0:
        raise ModelSpaceMisconfigured("at least one fitting model is required")
    if len(fit_priors) != n_models or len(fixed_params) != n_models:
        raise ModelSpaceMisconfigured(
            f"got {n_models} fitting models, {len(fit_priors)} fitting priors, "
            f"and {len(fixed_params)} fixed-parameter sets"
        )

    n_sub = len(data_grid)
    if n_sub == 0:
        raise ValueError("data_grid must contain at least one subject")
    n_exp = len(data_grid[0])
    if n_exp == 0 or any(len(row) != n_exp for row in data_grid):
        raise ValueError("data_grid must be a non-empty subjects x experiments grid")

    seeds = rng.integers(0, _SEED_UPPER, size=(n_models, n_exp))
    units = [
        FitUnit(
            model_index=model_index,
            exp_index=exp_index,
            model=models[model_index],
            param_specs=tuple(fit_priors[model_index]),
            fixed_params=fixed_params[model_index],
            data=tuple(data_grid[sub][exp_index] for sub in range(n_sub)),
            seed=int(seeds[model_index, exp_index]),
            n_starts=n_starts,
            verbose=verbose,
        )
        for model_index in range(n_models)
        for exp_index in range(n_exp)
    ]

    level = logging.INFO if verbose else logging.DEBUG
    logger.log(
        level,
        "fitting %d models x %d experiments x %d subjects (%s)",
        n_models,
        n_exp,
        n_sub,
        "parallel" if parallel else "serial",
    )
    if parallel:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            fits = list(executor.map(run_fit_unit, units))
    else:
        fits = [run_fit_unit(unit) for unit in units]

    # Units are laid out model-major.
    return tuple(
        tuple(fits[model_index * n_exp + exp_index] for model_index in range(n_models))
        for exp_index in range(n_exp)
    )


__all__ = ["FitUnit", "fit_models", "run_fit_unit"]
