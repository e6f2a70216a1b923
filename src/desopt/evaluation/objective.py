"""Entry points tying a parsed config to :func:`evaluate_design`.

:class:`DesignObjective` is the callable an external black-box optimizer
drives: it takes one point of the design search box and returns the loss.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import numpy as np

from .config import DesignStudyConfig
from .design import DesignEvaluation, OptimizableVariable, evaluate_design

logger = logging.getLogger(__name__)


def run_design_evaluation(
    study: DesignStudyConfig,
    *,
    rng: np.random.Generator | None = None,
) -> tuple[float, None, DesignEvaluation | None]:
    """Evaluate the fixed design of an evaluation config.

    Parameters
    ----------
    study : DesignStudyConfig
        Parsed evaluation config (no optimizable variables).
    rng : numpy.random.Generator | None, optional
        Random source; defaults to one seeded with ``study.rng_seed``.

    Raises
    ------
    ValueError
        If ``study`` is an optimization config.
    """

    if study.is_optimization:
        raise ValueError("optimization configs need a design point; use DesignObjective")
    generator = rng if rng is not None else np.random.default_rng(study.rng_seed)
    return evaluate_design(study.design, study.desvars, rng=generator, **study.evaluation_kwargs())


class DesignObjective:
    """Objective function for an external design optimizer.

    The random generator is seeded once, at construction. Successive calls
    continue the same stream, so a whole optimization run is reproducible
    from one seed while each evaluation sees fresh simulations.

    Parameters
    ----------
    study : DesignStudyConfig
        Parsed optimization config.
    seed : int | None, optional
        Seed overriding ``study.rng_seed``.
    """

    def __init__(self, study: DesignStudyConfig, seed: int | None = None) -> None:
        if not study.is_optimization:
            raise ValueError("DesignObjective requires a config with desvars_optim")
        self.study = study
        self._rng = np.random.default_rng(study.rng_seed if seed is None else seed)
        self.n_evaluations = 0

    @property
    def variables(self) -> tuple[OptimizableVariable, ...]:
        """Return the search-box dimensions."""

        return self.study.variables

    def merge_point(self, point: Mapping[str, Any]) -> dict[str, Any]:
        """Validate ``point`` and merge the constant design variables over it.

        Raises
        ------
        ValueError
            If ``point`` misses or adds variables, or a value is out of range.
        """

        expected = {variable.name for variable in self.variables}
        missing = sorted(expected - set(point))
        unknown = sorted(set(point) - expected)
        if missing or unknown:
            raise ValueError(f"design point mismatch: missing={missing}, unknown={unknown}")

        merged = {variable.name: variable.coerce(point[variable.name]) for variable in self.variables}
        merged.update(self.study.desvars)
        return merged

    def __call__(self, point: Mapping[str, Any]) -> tuple[float, None, DesignEvaluation | None]:
        desvars = self.merge_point(point)
        self.n_evaluations += 1
        logger.info("objective evaluation %d at %s", self.n_evaluations, dict(point))
        return evaluate_design(self.study.design, desvars, rng=self._rng, **self.study.evaluation_kwargs())


__all__ = ["DesignObjective", "run_design_evaluation"]
