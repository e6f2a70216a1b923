"""Penalized-likelihood evidence used to pick a model per simulated subject.

Model selection in :func:`~desopt.evaluation.criteria.loss_modsel_err`
compares candidate models by their mean AIC or BIC across subjects; lower
values win.
"""

from __future__ import annotations

import math
from typing import Literal

InformationCriterion = Literal["aic", "bic"]

INFORMATION_CRITERIA: tuple[str, ...] = ("aic", "bic")


def parse_criterion_name(value: str | None, *, default: str = "bic") -> InformationCriterion:
    """Normalize an information-criterion label from a config.

    Raises
    ------
    ValueError
        If ``value`` is neither ``"aic"`` nor ``"bic"``.
    """

    name = default if value is None or str(value).strip() == "" else str(value).strip().lower()
    if name not in INFORMATION_CRITERIA:
        raise ValueError(f"criterion must be 'aic' or 'bic', got {value!r}")
    return name


def aic(*, log_likelihood: float, n_parameters: int) -> float:
    """Akaike information criterion, ``2 K - 2 log L``.

    Only free parameters count toward ``K``; values held fixed during the
    fit do not.
    """

    if n_parameters < 0:
        raise ValueError("n_parameters must be >= 0")
    return 2.0 * n_parameters - 2.0 * float(log_likelihood)


def bic(*, log_likelihood: float, n_parameters: int, n_observations: int) -> float:
    """Bayesian information criterion, ``K log(n) - 2 log L``.

    Parameters
    ----------
    log_likelihood : float
        Log-likelihood at the fitted point.
    n_parameters : int
        Number of free parameters ``K``.
    n_observations : int
        Number of fitted trials ``n``.
    """

    if n_parameters < 0:
        raise ValueError("n_parameters must be >= 0")
    if n_observations <= 0:
        raise ValueError("n_observations must be > 0")
    return n_parameters * math.log(n_observations) - 2.0 * float(log_likelihood)


def information_criterion(
    name: str,
    *,
    log_likelihood: float,
    n_parameters: int,
    n_observations: int,
) -> float:
    """Dispatch to :func:`aic` or :func:`bic` by label."""

    if parse_criterion_name(name) == "aic":
        return aic(log_likelihood=log_likelihood, n_parameters=n_parameters)
    return bic(log_likelihood=log_likelihood, n_parameters=n_parameters, n_observations=n_observations)


__all__ = [
    "INFORMATION_CRITERIA",
    "InformationCriterion",
    "aic",
    "bic",
    "information_criterion",
    "parse_criterion_name",
]
