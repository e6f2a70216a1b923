"""Multi-stage stochastic conditioning designs.

A stage presents one of several cue patterns per trial (categorical draw)
and reinforces it with a pattern-specific probability (Bernoulli draw).
Probabilities are either static (one row) or trial-wise (one row per trial).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from desopt.core.data import TrialData
from desopt.plugins import ComponentManifest

from .base import probability, require_desvar, trial_count

_PROB_TOLERANCE = 1e-9


@dataclass(frozen=True, slots=True)
class ConditioningStage:
    """One stage of a stochastic conditioning experiment.

    Parameters
    ----------
    n_trials : int
        Number of trials in the stage.
    cs_patterns : numpy.ndarray
        Binary cue patterns ``(n_patterns, n_cues)``.
    pattern_prob : numpy.ndarray
        Pattern probabilities, ``(n_patterns,)`` or ``(n_trials, n_patterns)``.
    us_prob : numpy.ndarray
        Pattern-conditional reinforcement probabilities, same layout as
        ``pattern_prob``.
    """

    n_trials: int
    cs_patterns: np.ndarray
    pattern_prob: np.ndarray
    us_prob: np.ndarray

    def __post_init__(self) -> None:
        if int(self.n_trials) < 0:
            raise ValueError("n_trials must be >= 0")
        patterns = np.atleast_2d(np.asarray(self.cs_patterns, dtype=float))
        n_patterns = patterns.shape[0]
        pattern_prob = _as_prob_table(self.pattern_prob, n_patterns, int(self.n_trials), field_name="pattern_prob")
        us_prob = _as_prob_table(self.us_prob, n_patterns, int(self.n_trials), field_name="us_prob")
        row_sums = pattern_prob.sum(axis=1)
        if np.any(np.abs(row_sums - 1.0) > _PROB_TOLERANCE):
            raise ValueError(f"pattern_prob rows must sum to 1, got {row_sums.tolist()}")
        object.__setattr__(self, "n_trials", int(self.n_trials))
        object.__setattr__(self, "cs_patterns", patterns)
        object.__setattr__(self, "pattern_prob", pattern_prob)
        object.__setattr__(self, "us_prob", us_prob)

    @property
    def n_cues(self) -> int:
        return int(self.cs_patterns.shape[1])

    def sample(self, rng: np.random.Generator) -> TrialData:
        """Draw the cue pattern and outcome of every trial of the stage."""

        n_patterns = self.cs_patterns.shape[0]
        if self.pattern_prob.shape[0] == 1:
            chosen = rng.choice(n_patterns, size=self.n_trials, p=_normalized(self.pattern_prob[0]))
        else:
            chosen = np.array(
                [rng.choice(n_patterns, p=_normalized(row)) for row in self.pattern_prob],
                dtype=int,
            )
        if self.us_prob.shape[0] == 1:
            us_prob = self.us_prob[0, chosen]
        else:
            us_prob = self.us_prob[np.arange(self.n_trials), chosen]
        us_input = (rng.random(self.n_trials) < us_prob).astype(float)
        return TrialData(cs_input=self.cs_patterns[chosen], us_input=us_input)


def _as_prob_table(raw: Any, n_patterns: int, n_trials: int, *, field_name: str) -> np.ndarray:
    table = np.atleast_2d(np.asarray(raw, dtype=float))
    if table.shape[1] != n_patterns:
        raise ValueError(f"{field_name} must have {n_patterns} columns, got {table.shape[1]}")
    if table.shape[0] not in (1, n_trials):
        raise ValueError(f"{field_name} must have 1 or {n_trials} rows, got {table.shape[0]}")
    if np.any(table < -_PROB_TOLERANCE) or np.any(table > 1.0 + _PROB_TOLERANCE):
        raise ValueError(f"{field_name} values must be in [0, 1]")
    return np.clip(table, 0.0, 1.0)


def _normalized(prob: np.ndarray) -> np.ndarray:
    # Absorb rounding so numpy's strict sum check passes.
    return prob / prob.sum()


def stochastic_conditioning(stages: Sequence[ConditioningStage], rng: np.random.Generator) -> TrialData:
    """Concatenate samples of every stage.

    Raises
    ------
    ValueError
        If no stages are given or cue counts differ across stages.
    """

    if not stages:
        raise ValueError("at least one conditioning stage is required")
    n_cues = stages[0].n_cues
    if any(stage.n_cues != n_cues for stage in stages):
        raise ValueError("the number of cues must be consistent across stages")

    data = stages[0].sample(rng)
    for stage in stages[1:]:
        data = data.concatenate(stage.sample(rng))
    return data


def _stage_counts(desvars: Mapping[str, Any], n_stages: int) -> list[int]:
    raw = np.asarray(require_desvar(desvars, "n_trials_all"), dtype=float).reshape(-1)
    if raw.size != n_stages:
        raise ValueError(f"design variable 'n_trials_all' must list {n_stages} stage lengths")
    if np.any(raw < 0):
        raise ValueError("design variable 'n_trials_all' must be >= 0")
    return [int(round(value)) for value in raw]


def stochastic_conditioning_design(desvars: Mapping[str, Any], rng: np.random.Generator) -> TrialData:
    """Generic multi-stage design.

    ``desvars["stages"]`` is a list of mappings with ``n_trials``,
    ``cs_patterns``, ``pattern_prob``, and ``us_prob``.
    """

    raw_stages = require_desvar(desvars, "stages")
    stages = [
        ConditioningStage(
            n_trials=require_desvar(item, "n_trials"),
            cs_patterns=require_desvar(item, "cs_patterns"),
            pattern_prob=require_desvar(item, "pattern_prob"),
            us_prob=require_desvar(item, "us_prob"),
        )
        for item in raw_stages
    ]
    return stochastic_conditioning(stages, rng)


_CUES_A_B = np.array([[1.0, 0.0], [0.0, 1.0]])
_CUES_A_B_AB = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])


def twostage_twocueonly(desvars: Mapping[str, Any], rng: np.random.Generator) -> TrialData:
    """Two stages presenting cue A or cue B.

    Design variables: ``n_trials_all`` (two stage lengths) and, for stage
    ``s`` in ``{1, 2}``, ``prob_a_s``, ``prob_us_a_s``, ``prob_us_b_s``.
    """

    counts = _stage_counts(desvars, 2)
    stages = []
    for index, n_trials in enumerate(counts, start=1):
        prob_a = probability(desvars, f"prob_a_{index}")
        stages.append(
            ConditioningStage(
                n_trials=n_trials,
                cs_patterns=_CUES_A_B,
                pattern_prob=[prob_a, 1.0 - prob_a],
                us_prob=[
                    probability(desvars, f"prob_us_a_{index}"),
                    probability(desvars, f"prob_us_b_{index}"),
                ],
            )
        )
    return stochastic_conditioning(stages, rng)


def twostage_twocuecmpnd(desvars: Mapping[str, Any], rng: np.random.Generator) -> TrialData:
    """Two stages presenting cue A, cue B, or compound AB.

    Design variables: ``n_trials_all`` and, per stage ``s``, ``prob_a_s``,
    ``prob_b_s`` (AB gets the remainder), ``prob_us_a_s``, ``prob_us_b_s``,
    ``prob_us_ab_s``.

    Raises
    ------
    ValueError
        If ``prob_a_s + prob_b_s`` exceeds 1.
    """

    counts = _stage_counts(desvars, 2)
    stages = []
    for index, n_trials in enumerate(counts, start=1):
        prob_a = probability(desvars, f"prob_a_{index}")
        prob_b = probability(desvars, f"prob_b_{index}")
        if prob_a + prob_b > 1.0 + _PROB_TOLERANCE:
            raise ValueError(f"prob_a_{index} + prob_b_{index} must not exceed 1")
        stages.append(
            ConditioningStage(
                n_trials=n_trials,
                cs_patterns=_CUES_A_B_AB,
                pattern_prob=[prob_a, prob_b, max(0.0, 1.0 - (prob_a + prob_b))],
                us_prob=[
                    probability(desvars, f"prob_us_a_{index}"),
                    probability(desvars, f"prob_us_b_{index}"),
                    probability(desvars, f"prob_us_ab_{index}"),
                ],
            )
        )
    return stochastic_conditioning(stages, rng)


def backward_blocking(desvars: Mapping[str, Any], rng: np.random.Generator) -> TrialData:
    """Reinforced AB compound trials, then reinforced A trials, then tests.

    Design variables: ``n_trials_compound``, ``n_trials_single`` and optional
    ``n_cue_test_trials`` (default 0). Test trials present A and B
    alternately without reinforcement, ``n_cue_test_trials`` times each.
    """

    patterns = np.array([[1.0, 0.0], [1.0, 1.0]])
    stages = [
        ConditioningStage(
            n_trials=trial_count(desvars, "n_trials_compound", allow_zero=True),
            cs_patterns=patterns,
            pattern_prob=[0.0, 1.0],
            us_prob=[0.0, 1.0],
        ),
        ConditioningStage(
            n_trials=trial_count(desvars, "n_trials_single", allow_zero=True),
            cs_patterns=patterns,
            pattern_prob=[1.0, 0.0],
            us_prob=[1.0, 0.0],
        ),
    ]
    data = stochastic_conditioning(stages, rng)

    n_test = 0
    if desvars.get("n_cue_test_trials") is not None:
        n_test = trial_count(desvars, "n_cue_test_trials", allow_zero=True)
    if n_test == 0:
        return data
    test = TrialData(cs_input=np.tile(np.eye(2), (n_test, 1)), us_input=np.zeros(2 * n_test))
    return data.concatenate(test)


PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="design",
        component_id="stochastic_conditioning",
        component=stochastic_conditioning_design,
        description="Multi-stage categorical cue patterns with Bernoulli outcomes",
        aliases=("exp_stochastic_conditioning",),
    ),
    ComponentManifest(
        kind="design",
        component_id="twostage_twocueonly",
        component=twostage_twocueonly,
        description="Two stages of single cues A and B",
        aliases=("exp_twostage_twocueonly",),
    ),
    ComponentManifest(
        kind="design",
        component_id="twostage_twocuecmpnd",
        component=twostage_twocuecmpnd,
        description="Two stages of cues A, B, and compound AB",
        aliases=("exp_twostage_twocuecmpnd",),
    ),
    ComponentManifest(
        kind="design",
        component_id="backward_blocking",
        component=backward_blocking,
        description="AB+ then A+ with optional alternating test trials",
        aliases=("exp_backward_blocking",),
    ),
]


__all__ = [
    "ConditioningStage",
    "backward_blocking",
    "stochastic_conditioning",
    "stochastic_conditioning_design",
    "twostage_twocuecmpnd",
    "twostage_twocueonly",
]
