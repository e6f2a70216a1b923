"""Scalar log-prior densities for fitting priors.

Each prior is a frozen dataclass with ``__call__(value) -> float`` rather than
a closure, so fitting priors can be shipped to worker processes.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from math import lgamma, log, log1p, pi
from typing import Any

import numpy as np


@dataclass(frozen=True, slots=True)
class FlatLogPrior:
    """Improper flat prior: log-density ``0`` everywhere."""

    def __call__(self, value: float) -> float:
        return 0.0


@dataclass(frozen=True, slots=True)
class UniformLogPrior:
    """Uniform prior on ``[lower, upper]``.

    Parameters
    ----------
    lower : float
        Lower support bound.
    upper : float
        Upper support bound, strictly above ``lower``.
    """

    lower: float
    upper: float

    def __post_init__(self) -> None:
        if not float(self.lower) < float(self.upper):
            raise ValueError("uniform prior requires lower < upper")

    def __call__(self, value: float) -> float:
        v = float(value)
        if v < self.lower or v > self.upper:
            return float(-np.inf)
        return float(-log(self.upper - self.lower))


@dataclass(frozen=True, slots=True)
class NormalLogPrior:
    """Normal prior with ``mean`` and positive ``std``."""

    mean: float
    std: float

    def __post_init__(self) -> None:
        if float(self.std) <= 0.0:
            raise ValueError("std must be > 0")

    def __call__(self, value: float) -> float:
        sigma = float(self.std)
        centered = (float(value) - float(self.mean)) / sigma
        return float(-0.5 * log(2.0 * pi * sigma * sigma) - 0.5 * centered * centered)


@dataclass(frozen=True, slots=True)
class BetaLogPrior:
    """Beta prior on ``(0, 1)`` with positive shapes ``alpha`` and ``beta``."""

    alpha: float
    beta: float

    def __post_init__(self) -> None:
        if float(self.alpha) <= 0.0 or float(self.beta) <= 0.0:
            raise ValueError("alpha and beta must be > 0")

    def __call__(self, value: float) -> float:
        x = float(value)
        if x <= 0.0 or x >= 1.0:
            return float(-np.inf)
        a = float(self.alpha)
        b = float(self.beta)
        log_norm = lgamma(a + b) - lgamma(a) - lgamma(b)
        return float(log_norm + (a - 1.0) * log(x) + (b - 1.0) * log1p(-x))


@dataclass(frozen=True, slots=True)
class LogNormalLogPrior:
    """Log-normal prior on positive reals."""

    mean_log: float
    std_log: float

    def __post_init__(self) -> None:
        if float(self.std_log) <= 0.0:
            raise ValueError("std_log must be > 0")

    def __call__(self, value: float) -> float:
        x = float(value)
        if x <= 0.0:
            return float(-np.inf)
        sigma = float(self.std_log)
        z = (log(x) - float(self.mean_log)) / sigma
        return float(-0.5 * log(2.0 * pi * sigma * sigma) - log(x) - 0.5 * z * z)


LOG_PRIOR_BUILDERS: dict[str, Callable[..., Callable[[float], float]]] = {
    "flat": FlatLogPrior,
    "uniform": UniformLogPrior,
    "normal": NormalLogPrior,
    "beta": BetaLogPrior,
    "lognormal": LogNormalLogPrior,
}

# Configs written for older tooling spell the flat prior as an anonymous function.
_FLAT_ALIASES = {"flat", "none", "0", "@(x) 0", "@(x)0"}


def parse_log_prior(raw: Any, *, field_name: str = "logpdf") -> Callable[[float], float]:
    """Resolve a log-prior declaration.

    Parameters
    ----------
    raw : Any
        ``None`` or ``"flat"`` for a flat prior, a mapping such as
        ``{"dist": "normal", "mean": 0, "std": 1}``, or an already-built
        callable (returned unchanged).
    field_name : str, optional
        Field label used in error messages.

    Returns
    -------
    Callable[[float], float]
        Log-density function.

    Raises
    ------
    ValueError
        If the distribution name or its arguments are invalid.
    """

    if raw is None:
        return FlatLogPrior()
    if callable(raw):
        return raw
    if isinstance(raw, str):
        if raw.strip().lower() in _FLAT_ALIASES:
            return FlatLogPrior()
        raise ValueError(f"{field_name} string {raw!r} is not a known log-prior; use 'flat' or a mapping")
    if isinstance(raw, Mapping):
        kwargs = {str(key): value for key, value in raw.items()}
        dist = str(kwargs.pop("dist", "")).strip().lower()
        builder = LOG_PRIOR_BUILDERS.get(dist)
        if builder is None:
            raise ValueError(
                f"{field_name}.dist must be one of {sorted(LOG_PRIOR_BUILDERS)}, got {dist!r}"
            )
        try:
            return builder(**{key: float(value) for key, value in kwargs.items()})
        except TypeError as exc:
            raise ValueError(f"{field_name} has invalid arguments for {dist!r}: {sorted(kwargs)}") from exc
    raise ValueError(f"{field_name} must be a string, mapping, or callable")


__all__ = [
    "BetaLogPrior",
    "FlatLogPrior",
    "LOG_PRIOR_BUILDERS",
    "LogNormalLogPrior",
    "NormalLogPrior",
    "UniformLogPrior",
    "parse_log_prior",
]
