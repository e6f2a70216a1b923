"""Single-cue design with a periodic, rectangular outcome contingency."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import numpy as np

from desopt.core.data import TrialData
from desopt.plugins import ComponentManifest

from .base import probability, trial_count


def resolve_half_period(desvars: Mapping[str, Any], n_trials: int) -> int:
    """Return the half-period length in trials.

    Exactly one of ``half_period`` (trials) or ``half_period_frac`` (fraction
    of ``n_trials``) must be set. A fractional half-period is rounded and
    never shorter than one trial.
    """

    has_abs = desvars.get("half_period") is not None
    has_frac = desvars.get("half_period_frac") is not None
    if has_abs and has_frac:
        raise ValueError("only half_period or half_period_frac can be defined, not both")
    if has_abs:
        return trial_count(desvars, "half_period")
    if has_frac:
        frac = float(desvars["half_period_frac"])
        if not 0.0 <= frac <= 1.0:
            raise ValueError(f"design variable 'half_period_frac' must be in [0, 1], got {frac}")
        # Round half away from zero.
        return max(1, int(np.floor(frac * n_trials + 0.5)))
    raise ValueError("one of half_period or half_period_frac is required")


def onecue_rect(desvars: Mapping[str, Any], rng: np.random.Generator) -> TrialData:
    """Present one cue on every trial; reinforcement alternates by half-period.

    Design variables: ``n_trials``, ``half_period`` or ``half_period_frac``,
    ``us_prob_first`` and ``us_prob_second`` (reinforcement probability in
    the first and second half of each period).
    """

    n_trials = trial_count(desvars, "n_trials")
    half_period = resolve_half_period(desvars, n_trials)
    first = probability(desvars, "us_prob_first")
    second = probability(desvars, "us_prob_second")

    in_second_half = (np.arange(n_trials) // half_period) % 2 == 1
    us_prob = np.where(in_second_half, second, first)
    us_input = (rng.random(n_trials) < us_prob).astype(float)
    return TrialData(cs_input=np.ones((n_trials, 1)), us_input=us_input)


PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="design",
        component_id="onecue_rect",
        component=onecue_rect,
        description="One cue with periodic rectangular US contingency",
        aliases=("exp_onecue_rect",),
    ),
]


__all__ = ["onecue_rect", "resolve_half_period"]
