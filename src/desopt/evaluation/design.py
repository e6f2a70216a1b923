"""Design evaluation: simulate, fit, and score one design-variable point."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

import numpy as np

from desopt.core.errors import ModelSpaceMisconfigured
from desopt.core.params import FitParamSpec, validate_fit_param_specs
from desopt.designs.base import DesignFn, bind_design
from desopt.inference.batch import fit_models
from desopt.inference.map_fit import DEFAULT_N_STARTS, ExperimentFit
from desopt.models.model_spec import ModelSpec

from .criteria import DesignCriterion
from .simulation import ParamGrid, SimulatedData, sample_param_grid, simulate_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DesignEvaluation:
    """Everything produced by one design evaluation.

    Parameters
    ----------
    desvars : dict[str, Any]
        Design variables the stimuli were generated from.
    sim_params : tuple[ParamGrid, ...]
        ``sim_params[modsim][sub][exp]`` ground-truth parameters.
    simulated : SimulatedData
        Simulated data and latents.
    fits : tuple[tuple[tuple[ExperimentFit, ...], ...], ...]
        ``fits[modsim][exp][modfit]``.
    loss : float
        Criterion value (lower is better).
    loss_info : Any
        Criterion diagnostics.
    """

    desvars: dict[str, Any]
    sim_params: tuple[ParamGrid, ...]
    simulated: SimulatedData
    fits: tuple[tuple[tuple[ExperimentFit, ...], ...], ...]
    loss: float
    loss_info: Any


def _check_model_space(
    sim_models: Sequence[ModelSpec],
    sim_priors: Sequence[Mapping[str, Any]],
    fit_model_specs: Sequence[ModelSpec],
    fit_priors: Sequence[Sequence[FitParamSpec]],
    fixed_params: Sequence[Mapping[str, Any] | None],
) -> None:
    if not sim_models or not fit_model_specs:
        raise ModelSpaceMisconfigured("simulation and fitting model spaces must be non-empty")
    if len(sim_priors) != len(sim_models):
        raise ModelSpaceMisconfigured(
            f"got {len(sim_models)} simulation models but {len(sim_priors)} sampling priors"
        )
    if len(fit_priors) != len(fit_model_specs) or len(fixed_params) != len(fit_model_specs):
        raise ModelSpaceMisconfigured(
            f"got {len(fit_model_specs)} fitting models, {len(fit_priors)} fitting priors, "
            f"and {len(fixed_params)} fixed-parameter sets"
        )
    for prior in fit_priors:
        validate_fit_param_specs(prior)


def evaluate_design(
    design: DesignFn,
    desvars: Mapping[str, Any],
    *,
    n_exp: int,
    n_sub: int,
    sim_models: Sequence[ModelSpec],
    sim_priors: Sequence[Mapping[str, Any]],
    fit_model_specs: Sequence[ModelSpec],
    fit_priors: Sequence[Sequence[FitParamSpec]],
    fixed_params: Sequence[Mapping[str, Any] | None],
    criterion: DesignCriterion | Callable[..., tuple[float, Any]],
    criterion_options: Mapping[str, Any] | None = None,
    rng: np.random.Generator,
    verbose: bool = False,
    parallel: bool = False,
    max_workers: int | None = None,
    n_starts: int = DEFAULT_N_STARTS,
    keep_outputs: bool = True,
) -> tuple[float, None, DesignEvaluation | None]:
    """Evaluate one design by simulation, model fitting, and scoring.

    Parameters
    ----------
    design : DesignFn
        ``design(desvars, rng) -> TrialData``.
    desvars : Mapping[str, Any]
        Complete design variables (constants already merged with the point).
    n_exp, n_sub : int
        Simulated experiments per simulation model and subjects per
        experiment.
    sim_models, sim_priors : Sequence
        Simulation models and their sampling priors.
    fit_model_specs, fit_priors, fixed_params : Sequence
        Fitting models, their fitting priors, and fixed parameters.
    criterion : DesignCriterion | Callable
        Scoring function ``criterion(fits, sim_params, fit_priors, options)``.
        A :class:`DesignCriterion` is validated before any simulation.
    criterion_options : Mapping[str, Any] | None, optional
        Criterion options.
    rng : numpy.random.Generator
        The run's single random source, consumed in a fixed order: sampling,
        stimuli and noise, then per-unit fitting seeds.
    verbose, parallel, max_workers, n_starts : optional
        Passed to :func:`desopt.inference.batch.fit_models`.
    keep_outputs : bool, optional
        Return the full :class:`DesignEvaluation` (otherwise ``None``).

    Returns
    -------
    tuple[float, None, DesignEvaluation | None]
        Loss, the unused constraints slot, and the optional outputs.

    Raises
    ------
    ParameterNotFound
        If the criterion targets a parameter absent from the fitting prior.
    ModelSpaceMisconfigured
        If model spaces and priors are inconsistent.
    """

    if n_exp <= 0 or n_sub <= 0:
        raise ValueError("n_exp and n_sub must be > 0")
    _check_model_space(sim_models, sim_priors, fit_model_specs, fit_priors, fixed_params)
    validate = getattr(criterion, "validate", None)
    if validate is not None:
        validate(criterion_options, fit_priors)

    level = logging.INFO if verbose else logging.DEBUG
    logger.log(level, "evaluating design %s", dict(desvars))

    sim_params = tuple(sample_param_grid(prior, n_sub, n_exp, rng) for prior in sim_priors)
    bound_design = bind_design(design, desvars)
    simulated = simulate_data(n_sub, n_exp, bound_design, sim_models, sim_params, rng=rng)

    fits = []
    for modsim_index, model in enumerate(sim_models):
        logger.log(level, "fitting data simulated by %r", model.name)
        fits.append(
            fit_models(
                simulated.model_slice(modsim_index),
                fit_model_specs,
                fit_priors,
                fixed_params,
                rng=rng,
                parallel=parallel,
                max_workers=max_workers,
                n_starts=n_starts,
                verbose=verbose,
            )
        )
    fits_grid = tuple(fits)

    loss, loss_info = criterion(fits_grid, sim_params, fit_priors, criterion_options)
    loss = float(loss)
    logger.log(level, "design loss: %.6g", loss)

    outputs = None
    if keep_outputs:
        outputs = DesignEvaluation(
            desvars=dict(desvars),
            sim_params=sim_params,
            simulated=simulated,
            fits=fits_grid,
            loss=loss,
            loss_info=loss_info,
        )
    return loss, None, outputs


VariableType = Literal["real", "integer"]


@dataclass(frozen=True, slots=True)
class OptimizableVariable:
    """One dimension of the design search box.

    Parameters
    ----------
    name : str
        Design-variable name.
    lower, upper : float
        Inclusive range.
    var_type : {"real", "integer"}
        Value type; integer points are rounded before evaluation.
    """

    name: str
    lower: float
    upper: float
    var_type: VariableType = "real"

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("optimizable variable name must be non-empty")
        if self.var_type not in ("real", "integer"):
            raise ValueError(f"variable type must be 'real' or 'integer', got {self.var_type!r}")
        if float(self.lower) > float(self.upper):
            raise ValueError(f"invalid range for {self.name!r}: {self.lower} > {self.upper}")

    def coerce(self, value: Any) -> float | int:
        """Validate ``value`` against the range and type."""

        number = float(value)
        if not self.lower <= number <= self.upper:
            raise ValueError(f"{self.name}={number} outside [{self.lower}, {self.upper}]")
        if self.var_type == "integer":
            return int(round(number))
        return number


__all__ = ["DesignEvaluation", "OptimizableVariable", "evaluate_design"]
