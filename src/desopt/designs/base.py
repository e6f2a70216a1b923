"""Design-function contract and binding of design variables."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from functools import partial
from typing import Any

import numpy as np

from desopt.core.data import TrialData

DesignFn = Callable[[Mapping[str, Any], np.random.Generator], TrialData]
BoundDesign = Callable[[np.random.Generator], TrialData]


def bind_design(
    design: DesignFn,
    desvars: Mapping[str, Any],
    desvars_const: Mapping[str, Any] | None = None,
) -> BoundDesign:
    """Fix design variables, leaving only the random source open.

    Parameters
    ----------
    design : DesignFn
        Design function ``design(desvars, rng) -> TrialData``.
    desvars : Mapping[str, Any]
        Design-variable values (e.g. the optimizer's current point).
    desvars_const : Mapping[str, Any] | None, optional
        Constant design variables; they override ``desvars`` on conflicts.

    Returns
    -------
    BoundDesign
        Picklable callable ``rng -> TrialData``.
    """

    merged = {**dict(desvars), **dict(desvars_const or {})}
    return partial(design, merged)


def require_desvar(desvars: Mapping[str, Any], name: str) -> Any:
    """Return ``desvars[name]`` or raise a ``ValueError`` naming the variable."""

    if name not in desvars or desvars[name] is None:
        raise ValueError(f"design variable {name!r} is required")
    return desvars[name]


def probability(desvars: Mapping[str, Any], name: str) -> float:
    """Return design variable ``name`` validated to lie in ``[0, 1]``."""

    value = float(require_desvar(desvars, name))
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"design variable {name!r} must be in [0, 1], got {value}")
    return value


def trial_count(desvars: Mapping[str, Any], name: str, *, allow_zero: bool = False) -> int:
    """Return design variable ``name`` as a trial count."""

    raw = require_desvar(desvars, name)
    value = int(round(float(raw)))
    if value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise ValueError(f"design variable {name!r} must be {bound}, got {raw}")
    return value


__all__ = ["BoundDesign", "DesignFn", "bind_design", "probability", "require_desvar", "trial_count"]
