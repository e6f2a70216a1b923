"""Serialization helpers for design-evaluation outputs."""

from __future__ import annotations

import csv
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import numpy as np

from desopt.core.params import FitParamSpec

from .criteria import ModelSelectionInfo, ParamEstInfo
from .design import DesignEvaluation


def _model_names(names: Sequence[str] | None, count: int, prefix: str) -> list[str]:
    if names is None:
        return [f"{prefix}{index}" for index in range(count)]
    if len(names) != count:
        raise ValueError(f"expected {count} model names, got {len(names)}")
    return [str(name) for name in names]


def subject_fit_records(
    evaluation: DesignEvaluation,
    fit_priors: Sequence[Sequence[FitParamSpec]],
    *,
    sim_model_names: Sequence[str] | None = None,
    fit_model_names: Sequence[str] | None = None,
) -> list[dict[str, Any]]:
    """Flatten every subject-level MAP fit into one row.

    Parameters
    ----------
    evaluation : DesignEvaluation
        Outputs of one design evaluation.
    fit_priors : Sequence[Sequence[FitParamSpec]]
        Fitting priors, used to label parameter columns.
    sim_model_names, fit_model_names : Sequence[str] | None, optional
        Display names; indices are used when omitted.

    Returns
    -------
    list[dict[str, Any]]
        One row per ``(modsim, exp, modfit, sub)`` with ``param__<label>``
        columns.
    """

    sim_names = _model_names(sim_model_names, len(evaluation.fits), "sim_")
    n_modfit = len(fit_priors)
    fit_names = _model_names(fit_model_names, n_modfit, "fit_")

    rows: list[dict[str, Any]] = []
    for modsim_index, grid in enumerate(evaluation.fits):
        for exp_index, row in enumerate(grid):
            for modfit_index, experiment_fit in enumerate(row):
                labels = [spec.label for spec in fit_priors[modfit_index]]
                for sub_index, fit in enumerate(experiment_fit.subjects):
                    record: dict[str, Any] = {
                        "sim_model": sim_names[modsim_index],
                        "fit_model": fit_names[modfit_index],
                        "exp_index": exp_index,
                        "sub_index": sub_index,
                        "n_trials": int(fit.n_trials),
                        "log_likelihood": float(fit.log_likelihood),
                        "log_posterior": float(fit.log_posterior),
                        "aic": float(fit.aic),
                        "bic": float(fit.bic),
                    }
                    for label, value in zip(labels, fit.x):
                        record[f"param__{label}"] = float(value)
                    rows.append(record)
    return rows


def paramest_records(info: ParamEstInfo) -> list[dict[str, Any]]:
    """Convert parameter-estimation diagnostics into one row per subject."""

    n_sub, n_exp = info.signed_error.shape
    rows: list[dict[str, Any]] = []
    for exp_index in range(n_exp):
        for sub_index in range(n_sub):
            rows.append(
                {
                    "exp_index": exp_index,
                    "sub_index": sub_index,
                    "true_value": float(info.true_values[sub_index, exp_index]),
                    "estimated_value": float(info.estimated_values[sub_index, exp_index]),
                    "signed_error": float(info.signed_error[sub_index, exp_index]),
                }
            )
    return rows


def model_selection_case_records(
    evaluation: DesignEvaluation,
    *,
    criterion: str = "bic",
    sim_model_names: Sequence[str] | None = None,
    fit_model_names: Sequence[str] | None = None,
) -> list[dict[str, Any]]:
    """Subject-averaged evidence of every candidate per simulated experiment.

    The ``selected`` column marks the winner (lowest evidence, first index on
    ties, undefined evidence never wins).
    """

    sim_names = _model_names(sim_model_names, len(evaluation.fits), "sim_")
    rows: list[dict[str, Any]] = []
    for modsim_index, grid in enumerate(evaluation.fits):
        for exp_index, row in enumerate(grid):
            fit_names = _model_names(fit_model_names, len(row), "fit_")
            evidence = np.array([float(np.mean(fit.criterion(criterion))) for fit in row], dtype=float)
            winner = int(np.argmin(np.where(np.isnan(evidence), np.inf, evidence)))
            for modfit_index, value in enumerate(evidence):
                rows.append(
                    {
                        "sim_model": sim_names[modsim_index],
                        "exp_index": exp_index,
                        "fit_model": fit_names[modfit_index],
                        "criterion": criterion,
                        "mean_evidence": float(value),
                        "selected": modfit_index == winner,
                    }
                )
    return rows


def confusion_records(
    info: ModelSelectionInfo,
    *,
    sim_model_names: Sequence[str] | None = None,
    fit_model_names: Sequence[str] | None = None,
) -> list[dict[str, Any]]:
    """Convert a model-selection confusion matrix into row dictionaries."""

    confusion = np.asarray(info.confusion_matrix, dtype=float)
    sim_names = _model_names(sim_model_names, confusion.shape[0], "sim_")
    fit_names = _model_names(fit_model_names, confusion.shape[1], "fit_")
    rows: list[dict[str, Any]] = []
    for row_index, sim_name in enumerate(sim_names):
        for col_index, fit_name in enumerate(fit_names):
            rows.append(
                {
                    "sim_model": sim_name,
                    "fit_model": fit_name,
                    "count": float(confusion[row_index, col_index]),
                }
            )
    return rows


def _json_value(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Mapping):
        return {str(key): _json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_value(item) for item in value]
    return value


def evaluation_summary(
    loss: float,
    loss_info: Any,
    *,
    criterion_name: str,
    desvars: Mapping[str, Any],
) -> dict[str, Any]:
    """Build a JSON-serializable summary of one design evaluation."""

    summary: dict[str, Any] = {
        "criterion": criterion_name,
        "loss": float(loss),
        "desvars": _json_value(dict(desvars)),
    }
    if isinstance(loss_info, ParamEstInfo):
        summary["mean_signed_error"] = float(np.mean(loss_info.signed_error))
        summary["mean_absolute_error"] = float(np.mean(np.abs(loss_info.signed_error)))
    elif isinstance(loss_info, ModelSelectionInfo):
        summary["confusion_matrix"] = _json_value(loss_info.confusion_matrix)
        summary["avg_acc"] = float(loss_info.avg_acc)
        summary["avg_err"] = float(loss_info.avg_err)
        if loss_info.is_loss_adjusted is not None:
            summary["is_loss_adjusted"] = bool(loss_info.is_loss_adjusted)
            summary["adjusted_avg_err"] = float(loss_info.adjusted_avg_err)
    return summary


def write_records_csv(rows: list[dict[str, Any]], path: str | Path) -> Path:
    """Write row dictionaries to CSV.

    Columns follow first appearance across rows.

    Raises
    ------
    ValueError
        If ``rows`` is empty.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fieldnames: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                fieldnames.append(str(key))

    with output_path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)

    return output_path


__all__ = [
    "confusion_records",
    "evaluation_summary",
    "model_selection_case_records",
    "paramest_records",
    "subject_fit_records",
    "write_records_csv",
]
