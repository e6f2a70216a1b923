"""MAP fitting, batch orchestration, and log-prior densities."""

from .batch import FitUnit, fit_models, run_fit_unit
from .map_fit import (
    DEFAULT_N_STARTS,
    ExperimentFit,
    RestartResult,
    SubjectFit,
    fit_map,
    fit_subject,
    initial_point,
    log_prior_sum,
    numeric_hessian,
    select_best_restart,
)
from .priors import (
    BetaLogPrior,
    FlatLogPrior,
    LogNormalLogPrior,
    NormalLogPrior,
    UniformLogPrior,
    parse_log_prior,
)

__all__ = [
    "BetaLogPrior",
    "DEFAULT_N_STARTS",
    "ExperimentFit",
    "FitUnit",
    "FlatLogPrior",
    "LogNormalLogPrior",
    "NormalLogPrior",
    "RestartResult",
    "SubjectFit",
    "UniformLogPrior",
    "fit_map",
    "fit_models",
    "fit_subject",
    "initial_point",
    "log_prior_sum",
    "numeric_hessian",
    "parse_log_prior",
    "run_fit_unit",
    "select_best_restart",
]
