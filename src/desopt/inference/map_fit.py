"""Multi-start bounded MAP estimation for one model over subjects.

For every subject the fitter runs ``n_starts`` restarts of SciPy's bounded
L-BFGS-B on the negative log-posterior and keeps the restart with the highest
log-posterior. Ties keep the earliest restart, so results are deterministic
for a fixed random generator.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import reduce
from typing import Any

import numpy as np
from scipy.optimize import minimize

from desopt.analysis.information_criteria import aic, bic, parse_criterion_name
from desopt.core.data import TrialData
from desopt.core.errors import LatentsUnavailable
from desopt.core.params import FitParamSpec, validate_fit_param_specs

logger = logging.getLogger(__name__)

LogLikelihood = Callable[..., tuple[float, Any]]

DEFAULT_N_STARTS = 5
NON_FINITE_PENALTY = 1e15


@dataclass(frozen=True, slots=True)
class RestartResult:
    """Outcome of one optimizer restart.

    Parameters
    ----------
    x0 : numpy.ndarray
        Initial point.
    x : numpy.ndarray
        Final point returned by the optimizer.
    log_posterior : float
        Log-posterior at ``x`` (may be ``-inf``).
    success : bool
        SciPy termination flag.
    message : str
        SciPy termination message.
    n_function_evaluations : int
        Objective evaluations used.
    """

    x0: np.ndarray
    x: np.ndarray
    log_posterior: float
    success: bool
    message: str
    n_function_evaluations: int


@dataclass(frozen=True, slots=True)
class SubjectFit:
    """MAP fit of one model to one subject.

    Parameters
    ----------
    x : numpy.ndarray
        MAP point, ordered like the fitting prior.
    log_likelihood : float
        Log-likelihood at ``x``.
    log_posterior : float
        Log-likelihood plus log-prior at ``x``.
    bic : float
        ``K * log(n_trials) - 2 * log_likelihood``.
    aic : float
        ``2 * K - 2 * log_likelihood``.
    hessian : numpy.ndarray
        Finite-difference Hessian of the negative log-posterior at ``x``.
    latents : Any
        Latent trajectories at ``x``; ``None`` when the likelihood cannot
        provide them.
    n_trials : int
        Number of fitted trials.
    restarts : tuple[RestartResult, ...]
        Per-restart diagnostics.
    """

    x: np.ndarray
    log_likelihood: float
    log_posterior: float
    bic: float
    aic: float
    hessian: np.ndarray
    latents: Any
    n_trials: int
    restarts: tuple[RestartResult, ...] = ()

    @property
    def n_params(self) -> int:
        """Return the number of free parameters."""

        return int(self.x.shape[0])


@dataclass(frozen=True, slots=True)
class ExperimentFit:
    """Fits of one model to every subject of one simulated experiment."""

    subjects: tuple[SubjectFit, ...]

    @property
    def n_subjects(self) -> int:
        return len(self.subjects)

    @property
    def x(self) -> np.ndarray:
        """Return MAP points stacked as ``(n_subjects, n_params)``."""

        return np.vstack([fit.x for fit in self.subjects])

    @property
    def bic(self) -> np.ndarray:
        return np.array([fit.bic for fit in self.subjects], dtype=float)

    @property
    def aic(self) -> np.ndarray:
        return np.array([fit.aic for fit in self.subjects], dtype=float)

    @property
    def log_likelihood(self) -> np.ndarray:
        return np.array([fit.log_likelihood for fit in self.subjects], dtype=float)

    @property
    def log_posterior(self) -> np.ndarray:
        return np.array([fit.log_posterior for fit in self.subjects], dtype=float)

    def criterion(self, name: str) -> np.ndarray:
        """Return per-subject ``"bic"`` or ``"aic"`` values."""

        if parse_criterion_name(name) == "aic":
            return self.aic
        return self.bic


def log_prior_sum(x: np.ndarray, param_specs: Sequence[FitParamSpec]) -> float:
    """Return the summed log-prior of packed ``x``."""

    return float(sum(float(spec.log_prior(float(value))) for value, spec in zip(x, param_specs)))


def initial_point(param_specs: Sequence[FitParamSpec], rng: np.random.Generator) -> np.ndarray:
    """Draw one restart initialization.

    Each parameter starts at its ``init`` when set, otherwise uniformly in
    ``[lower, upper]``.

    Raises
    ------
    ValueError
        If a parameter without ``init`` has an infinite bound.
    """

    x0 = np.empty(len(param_specs), dtype=float)
    for index, spec in enumerate(param_specs):
        if spec.init is not None:
            x0[index] = spec.init
            continue
        if not (np.isfinite(spec.lower) and np.isfinite(spec.upper)):
            raise ValueError(
                f"parameter {spec.label!r} needs finite bounds or an explicit init"
            )
        x0[index] = rng.uniform(spec.lower, spec.upper)
    return x0


def select_best_restart(restarts: Sequence[RestartResult]) -> RestartResult:
    """Return the restart with the highest log-posterior (earliest on ties)."""

    if not restarts:
        raise ValueError("at least one restart is required")
    return reduce(lambda best, item: item if item.log_posterior > best.log_posterior else best, restarts)


def numeric_hessian(func: Callable[[np.ndarray], float], x: np.ndarray, *, rel_step: float = 1e-4) -> np.ndarray:
    """Central finite-difference Hessian of a scalar function.

    Parameters
    ----------
    func : Callable[[numpy.ndarray], float]
        Scalar function.
    x : numpy.ndarray
        Evaluation point.
    rel_step : float, optional
        Step relative to ``max(|x_i|, 1)``.

    Returns
    -------
    numpy.ndarray
        Symmetric ``(n, n)`` matrix.
    """

    point = np.asarray(x, dtype=float).reshape(-1)
    n = point.shape[0]
    steps = rel_step * np.maximum(np.abs(point), 1.0)
    hessian = np.zeros((n, n), dtype=float)
    f0 = float(func(point))

    for i in range(n):
        e_i = np.zeros(n)
        e_i[i] = steps[i]
        hessian[i, i] = (float(func(point + e_i)) - 2.0 * f0 + float(func(point - e_i))) / steps[i] ** 2
        for j in range(i + 1, n):
            e_j = np.zeros(n)
            e_j[j] = steps[j]
            value = (
                float(func(point + e_i + e_j))
                - float(func(point + e_i - e_j))
                - float(func(point - e_i + e_j))
                + float(func(point - e_i - e_j))
            ) / (4.0 * steps[i] * steps[j])
            hessian[i, j] = value
            hessian[j, i] = value
    return hessian


def fit_subject(
    log_likelihood: LogLikelihood,
    param_specs: Sequence[FitParamSpec],
    data: TrialData,
    *,
    rng: np.random.Generator,
    n_starts: int = DEFAULT_N_STARTS,
) -> SubjectFit:
    """Fit one subject by multi-start bounded MAP search.

    Parameters
    ----------
    log_likelihood : LogLikelihood
        ``log_likelihood(x, data, *, with_latents) -> (value, latents)``.
    param_specs : Sequence[FitParamSpec]
        Fitting prior (packed layout, log priors, bounds, inits).
    data : TrialData
        Subject data with responses.
    rng : numpy.random.Generator
        Source of restart initializations.
    n_starts : int, optional
        Number of restarts.

    Returns
    -------
    SubjectFit
        MAP summary at the best restart.
    """

    if n_starts <= 0:
        raise ValueError("n_starts must be > 0")
    specs = validate_fit_param_specs(param_specs)
    if not specs:
        raise ValueError("fitting prior must include at least one parameter")

    def log_posterior(x: np.ndarray) -> float:
        value, _ = log_likelihood(x, data, with_latents=False)
        return float(value) + log_prior_sum(x, specs)

    def objective(x: np.ndarray) -> float:
        value = -log_posterior(x)
        if not np.isfinite(value):
            return NON_FINITE_PENALTY
        return value

    bounds = [
        (spec.lower if np.isfinite(spec.lower) else None, spec.upper if np.isfinite(spec.upper) else None)
        for spec in specs
    ]

    restarts: list[RestartResult] = []
    for _ in range(n_starts):
        x0 = initial_point(specs, rng)
        result = minimize(objective, x0, method="L-BFGS-B", bounds=bounds)
        x_opt = np.asarray(result.x, dtype=float)
        restarts.append(
            RestartResult(
                x0=x0,
                x=x_opt,
                log_posterior=log_posterior(x_opt),
                success=bool(result.success),
                message=str(result.message),
                n_function_evaluations=int(getattr(result, "nfev", -1)),
            )
        )

    best = select_best_restart(restarts)
    try:
        ll_value, latents = log_likelihood(best.x, data, with_latents=True)
    except LatentsUnavailable as exc:
        logger.debug("latents unavailable at MAP point: %s", exc)
        ll_value, _ = log_likelihood(best.x, data, with_latents=False)
        latents = None

    ll_value = float(ll_value)
    n_params = len(specs)
    return SubjectFit(
        x=best.x,
        log_likelihood=ll_value,
        log_posterior=best.log_posterior,
        bic=bic(log_likelihood=ll_value, n_parameters=n_params, n_observations=data.n_trials),
        aic=aic(log_likelihood=ll_value, n_parameters=n_params),
        hessian=numeric_hessian(lambda x: -log_posterior(x), best.x),
        latents=latents,
        n_trials=data.n_trials,
        restarts=tuple(restarts),
    )


def fit_map(
    log_likelihood: LogLikelihood,
    param_specs: Sequence[FitParamSpec],
    data: Sequence[TrialData],
    *,
    rng: np.random.Generator,
    n_starts: int = DEFAULT_N_STARTS,
    verbose: bool = False,
) -> ExperimentFit:
    """Fit one model to every subject of one experiment.

    Parameters
    ----------
    log_likelihood : LogLikelihood
        Model log-likelihood, see :func:`fit_subject`.
    param_specs : Sequence[FitParamSpec]
        Fitting prior.
    data : Sequence[TrialData]
        One entry per subject.
    rng : numpy.random.Generator
        Source of restart initializations, consumed subject by subject.
    n_starts : int, optional
        Restarts per subject.
    verbose : bool, optional
        Log per-subject progress at ``INFO`` instead of ``DEBUG``.

    Returns
    -------
    ExperimentFit
        Per-subject fits in input order.
    """

    level = logging.INFO if verbose else logging.DEBUG
    fits: list[SubjectFit] = []
    for index, subject_data in enumerate(data):
        fit = fit_subject(log_likelihood, param_specs, subject_data, rng=rng, n_starts=n_starts)
        logger.log(
            level,
            "subject %d/%d: log-posterior=%.4f log-likelihood=%.4f",
            index + 1,
            len(data),
            fit.log_posterior,
            fit.log_likelihood,
        )
        fits.append(fit)
    return ExperimentFit(subjects=tuple(fits))


__all__ = [
    "DEFAULT_N_STARTS",
    "ExperimentFit",
    "NON_FINITE_PENALTY",
    "RestartResult",
    "SubjectFit",
    "fit_map",
    "fit_subject",
    "initial_point",
    "log_prior_sum",
    "numeric_hessian",
    "select_best_restart",
]
