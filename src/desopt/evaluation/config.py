"""Config-driven design evaluation and optimization setups.

This module turns declarative mapping/JSON/YAML configs into typed setups:
resolved design and criterion components, model spaces with sampling and
fitting priors, and evaluation options. Every name is resolved through the
plugin registry while parsing, so misconfigured runs fail before any
simulation starts.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from desopt.core.config_loading import load_config_mapping
from desopt.core.config_validation import (
    coerce_bool,
    coerce_bound,
    coerce_non_empty_str,
    coerce_positive_int,
    require_mapping,
    require_sequence,
    validate_allowed_keys,
    validate_required_keys,
)
from desopt.core.errors import ModelSpaceMisconfigured
from desopt.core.params import FitParamSpec, build_prior_tree, validate_fit_param_specs
from desopt.designs.base import DesignFn
from desopt.inference.map_fit import DEFAULT_N_STARTS
from desopt.inference.priors import parse_log_prior
from desopt.models.model_spec import ModelSpec
from desopt.models.nssm import DEFAULT_LOG_DENSITY_FLOOR, NSSM
from desopt.plugins import PluginRegistry, build_default_registry

from .criteria import DesignCriterion
from .design import OptimizableVariable

_TOP_LEVEL_KEYS = (
    "sim_set",
    "sim_run",
    "eval_opts",
    "optim_opts",
    "exp_design",
    "design_criterion",
    "model_space",
    "models_sim",
    "models_fit",
)
_MODEL_KEYS = (
    "name",
    "type",
    "evolution",
    "observation",
    "simulate",
    "log_likelihood",
    "log_density_floor",
    "prior_sim",
    "prior_fit",
    "params_fit_fixed",
)
_PRIOR_FIT_KEYS = ("name", "type", "logpdf", "init", "lb", "ub")


@dataclass(frozen=True, slots=True)
class ModelEntry:
    """One parsed model-space entry.

    Parameters
    ----------
    model : ModelSpec
        Resolved model.
    prior_sim : dict[str, Any]
        Sampling prior (validated, kept in raw form).
    prior_fit : tuple[FitParamSpec, ...]
        Fitting prior.
    params_fit_fixed : dict[str, Any] | None
        Fixed parameters for fitting.
    """

    model: ModelSpec
    prior_sim: dict[str, Any]
    prior_fit: tuple[FitParamSpec, ...]
    params_fit_fixed: dict[str, Any] | None


@dataclass(frozen=True, slots=True)
class DesignStudyConfig:
    """Parsed design evaluation or optimization setup.

    ``desvars`` holds the evaluated design variables (evaluation) or the
    constant ones (optimization); ``variables`` is empty for evaluations.
    """

    name: str
    description: str
    rng_seed: int | None
    n_exp: int
    n_sub: int
    verbose: bool
    parallel: bool
    n_starts: int
    max_workers: int | None
    keep_outputs: bool
    design_id: str
    design: DesignFn
    desvars: dict[str, Any]
    variables: tuple[OptimizableVariable, ...]
    criterion: DesignCriterion
    criterion_options: dict[str, Any]
    models_sim: tuple[ModelEntry, ...]
    models_fit: tuple[ModelEntry, ...]

    @property
    def is_optimization(self) -> bool:
        return bool(self.variables)

    @property
    def sim_models(self) -> tuple[ModelSpec, ...]:
        return tuple(entry.model for entry in self.models_sim)

    @property
    def sim_priors(self) -> tuple[dict[str, Any], ...]:
        return tuple(entry.prior_sim for entry in self.models_sim)

    @property
    def fit_model_specs(self) -> tuple[ModelSpec, ...]:
        return tuple(entry.model for entry in self.models_fit)

    @property
    def fit_priors(self) -> tuple[tuple[FitParamSpec, ...], ...]:
        return tuple(entry.prior_fit for entry in self.models_fit)

    @property
    def fixed_params(self) -> tuple[dict[str, Any] | None, ...]:
        return tuple(entry.params_fit_fixed for entry in self.models_fit)

    def evaluation_kwargs(self) -> dict[str, Any]:
        """Keyword arguments shared by every :func:`evaluate_design` call."""

        return {
            "n_exp": self.n_exp,
            "n_sub": self.n_sub,
            "sim_models": self.sim_models,
            "sim_priors": self.sim_priors,
            "fit_model_specs": self.fit_model_specs,
            "fit_priors": self.fit_priors,
            "fixed_params": self.fixed_params,
            "criterion": self.criterion,
            "criterion_options": self.criterion_options,
            "verbose": self.verbose,
            "parallel": self.parallel,
            "max_workers": self.max_workers,
            "n_starts": self.n_starts,
            "keep_outputs": self.keep_outputs,
        }


def load_design_config(path: str | Path, *, registry: PluginRegistry | None = None) -> DesignStudyConfig:
    """Load and parse a design config file (``.json``, ``.yaml``, ``.yml``)."""

    return parse_design_config(load_config_mapping(path), registry=registry)


def parse_design_config(
    config: Mapping[str, Any],
    *,
    registry: PluginRegistry | None = None,
) -> DesignStudyConfig:
    """Parse a declarative design config.

    Parameters
    ----------
    config : Mapping[str, Any]
        Config mapping, see the module documentation.
    registry : PluginRegistry | None, optional
        Component registry. Defaults to the built-in registry.

    Returns
    -------
    DesignStudyConfig
        Parsed setup.

    Raises
    ------
    ModelSpaceMisconfigured
        If neither ``model_space`` nor both ``models_sim`` and ``models_fit``
        are given.
    KeyError
        If a component id is not registered.
    ValueError
        If any other field is invalid.
    """

    reg = registry if registry is not None else build_default_registry()
    cfg = require_mapping(config, field_name="config")
    validate_allowed_keys(cfg, field_name="config", allowed_keys=_TOP_LEVEL_KEYS)
    validate_required_keys(cfg, field_name="config", required_keys=("exp_design", "design_criterion"))

    sim_run = require_mapping(cfg.get("sim_run") or {}, field_name="sim_run")
    eval_opts = require_mapping(cfg.get("eval_opts") or {}, field_name="eval_opts")
    validate_allowed_keys(
        eval_opts,
        field_name="eval_opts",
        allowed_keys=("n_exp", "n_sub", "verbose", "parallel", "n_starts", "max_workers", "keep_outputs"),
    )
    validate_required_keys(eval_opts, field_name="eval_opts", required_keys=("n_exp",))
    optim_opts = require_mapping(cfg.get("optim_opts") or {}, field_name="optim_opts")

    exp_design = require_mapping(cfg["exp_design"], field_name="exp_design")
    validate_allowed_keys(
        exp_design,
        field_name="exp_design",
        allowed_keys=("design", "desvars", "desvars_const", "desvars_optim"),
    )
    validate_required_keys(exp_design, field_name="exp_design", required_keys=("design",))
    design_id = coerce_non_empty_str(exp_design["design"], field_name="exp_design.design")
    design = reg.resolve("design", design_id)

    if "desvars_optim" in exp_design:
        if "desvars" in exp_design:
            raise ValueError("exp_design must define either desvars or desvars_optim, not both")
        desvars = require_mapping(exp_design.get("desvars_const") or {}, field_name="exp_design.desvars_const")
        variables = _parse_variables(exp_design["desvars_optim"])
        keep_default = coerce_bool(
            optim_opts.get("store_user_data_trace"),
            field_name="optim_opts.store_user_data_trace",
            default=False,
        )
    else:
        desvars = require_mapping(exp_design.get("desvars") or {}, field_name="exp_design.desvars")
        variables = ()
        keep_default = True

    # Optimization configs may carry n_sub among the constant design variables.
    n_sub_const = desvars.pop("n_sub", None)
    n_sub_raw = eval_opts.get("n_sub", n_sub_const if n_sub_const is not None else 1)
    max_workers_raw = eval_opts.get("max_workers")

    criterion_cfg = require_mapping(cfg["design_criterion"], field_name="design_criterion")
    validate_allowed_keys(criterion_cfg, field_name="design_criterion", allowed_keys=("criterion", "options"))
    validate_required_keys(criterion_cfg, field_name="design_criterion", required_keys=("criterion",))
    criterion = reg.resolve(
        "criterion",
        coerce_non_empty_str(criterion_cfg["criterion"], field_name="design_criterion.criterion"),
    )
    criterion_options = require_mapping(criterion_cfg.get("options") or {}, field_name="design_criterion.options")

    models_sim, models_fit = _parse_model_spaces(cfg, reg)
    criterion.validate(criterion_options, tuple(entry.prior_fit for entry in models_fit))

    rng_seed = sim_run.get("rng_seed")
    return DesignStudyConfig(
        name=str(sim_run.get("name") or "design_evaluation"),
        description=str(sim_run.get("description") or ""),
        rng_seed=int(rng_seed) if rng_seed is not None else None,
        n_exp=coerce_positive_int(eval_opts["n_exp"], field_name="eval_opts.n_exp"),
        n_sub=coerce_positive_int(n_sub_raw, field_name="eval_opts.n_sub"),
        verbose=coerce_bool(eval_opts.get("verbose"), field_name="eval_opts.verbose", default=False),
        parallel=coerce_bool(eval_opts.get("parallel"), field_name="eval_opts.parallel", default=False),
        n_starts=coerce_positive_int(eval_opts.get("n_starts", DEFAULT_N_STARTS), field_name="eval_opts.n_starts"),
        max_workers=(
            coerce_positive_int(max_workers_raw, field_name="eval_opts.max_workers")
            if max_workers_raw is not None
            else None
        ),
        keep_outputs=coerce_bool(
            eval_opts.get("keep_outputs"), field_name="eval_opts.keep_outputs", default=keep_default
        ),
        design_id=design_id,
        design=design,
        desvars=desvars,
        variables=variables,
        criterion=criterion,
        criterion_options=criterion_options,
        models_sim=models_sim,
        models_fit=models_fit,
    )


def _parse_variables(raw: Any) -> tuple[OptimizableVariable, ...]:
    items = require_sequence(raw, field_name="exp_design.desvars_optim")
    if not items:
        raise ValueError("exp_design.desvars_optim must not be empty")
    variables = []
    for index, item in enumerate(items):
        field_name = f"exp_design.desvars_optim[{index}]"
        entry = require_mapping(item, field_name=field_name)
        validate_allowed_keys(entry, field_name=field_name, allowed_keys=("name", "range", "type"))
        validate_required_keys(entry, field_name=field_name, required_keys=("name", "range"))
        bounds = require_sequence(entry["range"], field_name=f"{field_name}.range")
        # Accept both [lo, hi] and [[lo, hi]].
        if len(bounds) == 1 and isinstance(bounds[0], (list, tuple)):
            bounds = list(bounds[0])
        if len(bounds) != 2:
            raise ValueError(f"{field_name}.range must have exactly two values")
        variables.append(
            OptimizableVariable(
                name=coerce_non_empty_str(entry["name"], field_name=f"{field_name}.name"),
                lower=float(bounds[0]),
                upper=float(bounds[1]),
                var_type=str(entry.get("type") or "real").strip().lower(),
            )
        )
    names = [variable.name for variable in variables]
    if len(set(names)) != len(names):
        raise ValueError(f"exp_design.desvars_optim has duplicate names: {names}")
    return tuple(variables)


def _parse_model_spaces(
    cfg: Mapping[str, Any],
    registry: PluginRegistry,
) -> tuple[tuple[ModelEntry, ...], tuple[ModelEntry, ...]]:
    if "model_space" in cfg:
        if "models_sim" in cfg or "models_fit" in cfg:
            raise ModelSpaceMisconfigured("give either model_space or models_sim/models_fit, not both")
        shared = _parse_model_space(cfg["model_space"], field_name="model_space", registry=registry)
        return shared, shared
    if "models_sim" in cfg and "models_fit" in cfg:
        return (
            _parse_model_space(cfg["models_sim"], field_name="models_sim", registry=registry),
            _parse_model_space(cfg["models_fit"], field_name="models_fit", registry=registry),
        )
    raise ModelSpaceMisconfigured(
        "model space(s) not specified properly; expected model_space or both models_sim and models_fit"
    )


def _parse_model_space(raw: Any, *, field_name: str, registry: PluginRegistry) -> tuple[ModelEntry, ...]:
    items = require_sequence(raw, field_name=field_name)
    if not items:
        raise ModelSpaceMisconfigured(f"{field_name} must list at least one model")
    return tuple(
        _parse_model_entry(item, field_name=f"{field_name}[{index}]", registry=registry)
        for index, item in enumerate(items)
    )


def _parse_model_entry(raw: Any, *, field_name: str, registry: PluginRegistry) -> ModelEntry:
    entry = require_mapping(raw, field_name=field_name)
    validate_allowed_keys(entry, field_name=field_name, allowed_keys=_MODEL_KEYS)
    validate_required_keys(entry, field_name=field_name, required_keys=("name", "type"))

    name = coerce_non_empty_str(entry["name"], field_name=f"{field_name}.name")
    kind = coerce_non_empty_str(entry["type"], field_name=f"{field_name}.type").lower()
    if kind == "nssm":
        validate_required_keys(entry, field_name=field_name, required_keys=("evolution", "observation"))
        floor = entry.get("log_density_floor", DEFAULT_LOG_DENSITY_FLOOR)
        model = ModelSpec(
            name=name,
            kind="nssm",
            nssm=NSSM(
                evolution=registry.resolve("evolution", str(entry["evolution"])),
                observation=registry.resolve("observation", str(entry["observation"])),
                log_density_floor=float(floor),
            ),
        )
    elif kind == "generic":
        validate_required_keys(entry, field_name=field_name, required_keys=("simulate", "log_likelihood"))
        model = ModelSpec(
            name=name,
            kind="generic",
            simulate_fn=registry.resolve("simulator", str(entry["simulate"])),
            log_likelihood_fn=registry.resolve("log_likelihood", str(entry["log_likelihood"])),
        )
    else:
        raise ValueError(f"{field_name}.type must be 'nssm' or 'generic', got {kind!r}")

    prior_sim = require_mapping(entry.get("prior_sim") or {}, field_name=f"{field_name}.prior_sim")
    build_prior_tree(prior_sim)

    prior_fit = _parse_prior_fit(entry.get("prior_fit") or [], field_name=f"{field_name}.prior_fit")
    fixed_raw = entry.get("params_fit_fixed")
    params_fit_fixed = (
        require_mapping(fixed_raw, field_name=f"{field_name}.params_fit_fixed") if fixed_raw else None
    )
    return ModelEntry(model=model, prior_sim=prior_sim, prior_fit=prior_fit, params_fit_fixed=params_fit_fixed)


def _parse_prior_fit(raw: Any, *, field_name: str) -> tuple[FitParamSpec, ...]:
    specs = []
    for index, item in enumerate(require_sequence(raw, field_name=field_name)):
        item_field = f"{field_name}[{index}]"
        entry = require_mapping(item, field_name=item_field)
        validate_allowed_keys(entry, field_name=item_field, allowed_keys=_PRIOR_FIT_KEYS)
        validate_required_keys(entry, field_name=item_field, required_keys=("name", "lb", "ub"))
        init = entry.get("init")
        if isinstance(init, (list, tuple)) and len(init) == 0:
            init = None
        specs.append(
            FitParamSpec(
                name=coerce_non_empty_str(entry["name"], field_name=f"{item_field}.name"),
                log_prior=parse_log_prior(entry.get("logpdf"), field_name=f"{item_field}.logpdf"),
                lower=coerce_bound(entry["lb"], field_name=f"{item_field}.lb", default=float("-inf")),
                upper=coerce_bound(entry["ub"], field_name=f"{item_field}.ub", default=float("inf")),
                init=None if init is None else float(init),
                group=entry.get("type"),
            )
        )
    return validate_fit_param_specs(specs)


__all__ = ["DesignStudyConfig", "ModelEntry", "load_design_config", "parse_design_config"]
