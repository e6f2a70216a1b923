"""Design criteria: score a completed simulate-and-fit run.

Two criteria are built in:

``paramest_err``
    Mean squared (or absolute) estimation error of one parameter of the first
    simulation model, recovered by the first fitting model.
``modsel_err``
    Model-selection error rate. For every simulated experiment the fitting
    model with the lowest subject-averaged AIC/BIC wins; wins accumulate into
    a confusion matrix. The error rate can be reported on the log-odds scale,
    with a half-count correction when it is exactly 0 or 1.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

import numpy as np

from desopt.analysis.information_criteria import InformationCriterion, parse_criterion_name
from desopt.core.config_validation import validate_allowed_keys
from desopt.core.errors import ModelSpaceMisconfigured
from desopt.core.params import FitParamSpec, ParamGroup, find_param_index, get_param_value
from desopt.inference.map_fit import ExperimentFit
from desopt.plugins import ComponentManifest

logger = logging.getLogger(__name__)

FitGrid = Sequence[Sequence[ExperimentFit]]
ErrorType = Literal["sqr", "abs"]


@dataclass(frozen=True, slots=True)
class ParamEstOptions:
    """Options of :func:`loss_paramest_err`.

    Parameters
    ----------
    param_name : str
        Target parameter name.
    param_type : ParamGroup
        Target parameter group (``"evo"``, ``"obs"``, or unset).
    error_type : {"sqr", "abs"}
        Squared or absolute error.
    """

    param_name: str
    param_type: ParamGroup = ParamGroup.OTHER
    error_type: ErrorType = "sqr"

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None) -> ParamEstOptions:
        """Parse and validate raw options.

        Raises
        ------
        ValueError
            If ``param_name`` is missing or an option is invalid.
        """

        raw = dict(options or {})
        validate_allowed_keys(
            raw,
            field_name="design_criterion.options",
            allowed_keys=("param_name", "param_type", "error_type"),
        )
        name = str(raw.get("param_name") or "").strip()
        if not name:
            raise ValueError("parameter name must be given in criterion options")
        error_type = str(raw.get("error_type") or "sqr").strip().lower()
        if error_type not in ("sqr", "abs"):
            raise ValueError(f"error_type must be 'sqr' or 'abs', got {error_type!r}")
        return cls(
            param_name=name,
            param_type=ParamGroup.parse(raw.get("param_type")),
            error_type=error_type,
        )


@dataclass(frozen=True, slots=True)
class ParamEstInfo:
    """Diagnostics of :func:`loss_paramest_err`.

    Parameters
    ----------
    signed_error : numpy.ndarray
        ``estimate - truth`` with shape ``(n_sub, n_exp)``.
    true_values : numpy.ndarray
        Ground-truth values ``(n_sub, n_exp)``.
    estimated_values : numpy.ndarray
        MAP estimates ``(n_sub, n_exp)``.
    """

    signed_error: np.ndarray
    true_values: np.ndarray
    estimated_values: np.ndarray


@dataclass(frozen=True, slots=True)
class ModelSelectionOptions:
    """Options of :func:`loss_modsel_err`."""

    criterion: InformationCriterion = "bic"
    do_logodds: bool = True

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None) -> ModelSelectionOptions:
        raw = dict(options or {})
        validate_allowed_keys(
            raw,
            field_name="design_criterion.options",
            allowed_keys=("criterion", "do_logodds"),
        )
        criterion = parse_criterion_name(raw.get("criterion"))
        do_logodds = raw.get("do_logodds", True)
        if not isinstance(do_logodds, (bool, np.bool_)):
            raise ValueError("do_logodds must be a boolean")
        return cls(criterion=criterion, do_logodds=bool(do_logodds))


@dataclass(frozen=True, slots=True)
class ModelSelectionInfo:
    """Diagnostics of :func:`loss_modsel_err`.

    Parameters
    ----------
    confusion_matrix : numpy.ndarray
        Counts ``(n_modsim, n_modfit)``; row ``i`` counts the winners over
        experiments simulated by model ``i``.
    avg_acc : float
        Mean over simulation models of diagonal count / row total.
    avg_err : float
        ``1 - avg_acc``.
    is_loss_adjusted : bool | None
        Whether the half-count correction was applied; ``None`` when the
        log-odds transform is disabled.
    adjusted_confusion_matrix : numpy.ndarray | None
        Confusion matrix after the correction (``None`` without log-odds).
    adjusted_avg_acc : float | None
        Accuracy from the adjusted diagonal and the raw row totals.
    adjusted_avg_err : float | None
        ``1 - adjusted_avg_acc``.
    """

    confusion_matrix: np.ndarray
    avg_acc: float
    avg_err: float
    is_loss_adjusted: bool | None = None
    adjusted_confusion_matrix: np.ndarray | None = None
    adjusted_avg_acc: float | None = None
    adjusted_avg_err: float | None = None


def loss_paramest_err(
    fits: Sequence[FitGrid],
    sim_params: Sequence[Sequence[Sequence[Mapping[str, Any]]]],
    fit_priors: Sequence[Sequence[FitParamSpec]],
    options: Mapping[str, Any] | ParamEstOptions | None = None,
) -> tuple[float, ParamEstInfo]:
    """Mean estimation error of one parameter.

    Parameters
    ----------
    fits : Sequence[FitGrid]
        ``fits[modsim][exp][modfit]``; only simulation model 0 and fitting
        model 0 are scored.
    sim_params : Sequence[Sequence[Sequence[Mapping[str, Any]]]]
        ``sim_params[modsim][sub][exp]`` ground-truth parameters.
    fit_priors : Sequence[Sequence[FitParamSpec]]
        Fitting priors; prior 0 locates the parameter in the MAP vectors.
    options : Mapping[str, Any] | ParamEstOptions | None, optional
        ``param_name`` (required), ``param_type``, ``error_type``.

    Returns
    -------
    tuple[float, ParamEstInfo]
        Loss (``>= 0``) and diagnostics.

    Raises
    ------
    ParameterNotFound
        If the parameter is absent from the fitting prior or the ground truth.
    """

    opts = options if isinstance(options, ParamEstOptions) else ParamEstOptions.from_mapping(options)
    param_index = find_param_index(fit_priors[0], opts.param_name, opts.param_type)
    # An untyped target takes the group of the fitting-prior entry it matched.
    group = fit_priors[0][param_index].group

    truth_grid = sim_params[0]
    n_sub = len(truth_grid)
    n_exp = len(truth_grid[0])
    true_values = np.array(
        [
            [float(get_param_value(truth_grid[sub][exp], opts.param_name, group)) for exp in range(n_exp)]
            for sub in range(n_sub)
        ],
        dtype=float,
    )
    estimated_values = np.column_stack([fits[0][exp][0].x[:, param_index] for exp in range(n_exp)])
    if estimated_values.shape != true_values.shape:
        raise ValueError(
            f"fit grid shape {estimated_values.shape} does not match ground-truth shape {true_values.shape}"
        )

    signed_error = estimated_values - true_values
    if opts.error_type == "sqr":
        loss = float(np.mean(signed_error**2))
    else:
        loss = float(np.mean(np.abs(signed_error)))
    return loss, ParamEstInfo(
        signed_error=signed_error,
        true_values=true_values,
        estimated_values=estimated_values,
    )


def confusion_matrix_from_fits(fits: Sequence[FitGrid], criterion: InformationCriterion = "bic") -> np.ndarray:
    """Count model-selection winners per simulation model.

    The winner of one experiment is the fitting model with the lowest
    subject-averaged criterion; ties go to the lowest model index.

    Raises
    ------
    ModelSpaceMisconfigured
        If fit grids differ in shape across simulation models.
    """

    n_modsim = len(fits)
    if n_modsim == 0:
        raise ModelSpaceMisconfigured("at least one simulation model is required")
    n_exp = len(fits[0])
    n_modfit = len(fits[0][0]) if n_exp else 0
    for grid in fits:
        if len(grid) != n_exp or any(len(row) != n_modfit for row in grid):
            raise ModelSpaceMisconfigured("fit grids must have the same shape for every simulation model")

    confusion = np.zeros((n_modsim, n_modfit), dtype=float)
    for exp_index in range(n_exp):
        for modsim_index in range(n_modsim):
            evidence = np.array(
                [
                    float(np.mean(fits[modsim_index][exp_index][modfit_index].criterion(criterion)))
                    for modfit_index in range(n_modfit)
                ]
            )
            # Undefined scores never win.
            evidence = np.where(np.isnan(evidence), np.inf, evidence)
            confusion[modsim_index, int(np.argmin(evidence))] += 1.0
    return confusion


def loss_modsel_err(
    fits: Sequence[FitGrid],
    sim_params: Sequence[Any] | None = None,
    fit_priors: Sequence[Sequence[FitParamSpec]] | None = None,
    options: Mapping[str, Any] | ModelSelectionOptions | None = None,
) -> tuple[float, ModelSelectionInfo]:
    """Model-selection error, optionally on the log-odds scale.

    Parameters
    ----------
    fits : Sequence[FitGrid]
        ``fits[modsim][exp][modfit]``; simulation and fitting model spaces
        must be the same size and in the same order.
    sim_params, fit_priors : optional
        Unused; accepted for a uniform criterion signature.
    options : Mapping[str, Any] | ModelSelectionOptions | None, optional
        ``criterion`` (``"bic"`` default) and ``do_logodds`` (default true).

    Returns
    -------
    tuple[float, ModelSelectionInfo]
        Loss and diagnostics. Without log-odds the loss is the raw error
        rate. With log-odds, a degenerate error of exactly 0 (or 1) first
        moves half a count off (onto) ``confusion_matrix[0, 0]``, so the
        loss stays finite.

    Raises
    ------
    ModelSpaceMisconfigured
        If the simulation and fitting model spaces differ in size.
    """

    opts = options if isinstance(options, ModelSelectionOptions) else ModelSelectionOptions.from_mapping(options)
    confusion = confusion_matrix_from_fits(fits, opts.criterion)
    n_modsim, n_modfit = confusion.shape
    if n_modsim != n_modfit:
        raise ModelSpaceMisconfigured(
            f"model selection needs matching model spaces, got {n_modsim} simulated and {n_modfit} fitted"
        )

    row_totals = confusion.sum(axis=1)
    avg_acc = float(np.mean(np.diag(confusion) / row_totals))
    avg_err = 1.0 - avg_acc

    if not opts.do_logodds:
        return avg_err, ModelSelectionInfo(confusion_matrix=confusion, avg_acc=avg_acc, avg_err=avg_err)

    adjusted = confusion.copy()
    is_adjusted = False
    if avg_err == 0.0:
        adjusted[0, 0] -= 0.5
        is_adjusted = True
    elif avg_err == 1.0:
        adjusted[0, 0] += 0.5
        is_adjusted = True
    if is_adjusted:
        logger.debug("model-selection error is %.0f; applied half-count correction", avg_err)

    adjusted_acc = float(np.mean(np.diag(adjusted) / row_totals))
    adjusted_err = 1.0 - adjusted_acc
    loss = float(np.log(adjusted_err / (1.0 - adjusted_err)))
    return loss, ModelSelectionInfo(
        confusion_matrix=confusion,
        avg_acc=avg_acc,
        avg_err=avg_err,
        is_loss_adjusted=is_adjusted,
        adjusted_confusion_matrix=adjusted,
        adjusted_avg_acc=adjusted_acc,
        adjusted_avg_err=adjusted_err,
    )


def _validate_paramest(options: Mapping[str, Any] | None, fit_priors: Sequence[Sequence[FitParamSpec]]) -> None:
    opts = ParamEstOptions.from_mapping(options)
    if not fit_priors:
        raise ModelSpaceMisconfigured("at least one fitting model is required")
    find_param_index(fit_priors[0], opts.param_name, opts.param_type)


def _validate_modsel(options: Mapping[str, Any] | None, fit_priors: Sequence[Sequence[FitParamSpec]]) -> None:
    ModelSelectionOptions.from_mapping(options)


@dataclass(frozen=True, slots=True)
class DesignCriterion:
    """Registered criterion: a scoring function plus an upfront validator.

    Parameters
    ----------
    name : str
        Criterion identifier.
    evaluate : Callable[..., tuple[float, Any]]
        ``evaluate(fits, sim_params, fit_priors, options) -> (loss, info)``.
    validate : Callable[..., None]
        ``validate(options, fit_priors)``; raises before any simulation when
        the options cannot be satisfied.
    """

    name: str
    evaluate: Callable[..., tuple[float, Any]]
    validate: Callable[..., None]

    def __call__(
        self,
        fits: Sequence[FitGrid],
        sim_params: Sequence[Any],
        fit_priors: Sequence[Sequence[FitParamSpec]],
        options: Mapping[str, Any] | None = None,
    ) -> tuple[float, Any]:
        return self.evaluate(fits, sim_params, fit_priors, options)


PARAMEST_ERR = DesignCriterion(name="paramest_err", evaluate=loss_paramest_err, validate=_validate_paramest)
MODSEL_ERR = DesignCriterion(name="modsel_err", evaluate=loss_modsel_err, validate=_validate_modsel)

PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="criterion",
        component_id="paramest_err",
        component=PARAMEST_ERR,
        description="Mean squared/absolute parameter estimation error",
        aliases=("loss_paramest_err",),
    ),
    ComponentManifest(
        kind="criterion",
        component_id="modsel_err",
        component=MODSEL_ERR,
        description="Model-selection error rate (optionally log-odds)",
        aliases=("loss_modsel_err",),
    ),
]


__all__ = [
    "DesignCriterion",
    "MODSEL_ERR",
    "ModelSelectionInfo",
    "ModelSelectionOptions",
    "PARAMEST_ERR",
    "ParamEstInfo",
    "ParamEstOptions",
    "confusion_matrix_from_fits",
    "loss_modsel_err",
    "loss_paramest_err",
]
