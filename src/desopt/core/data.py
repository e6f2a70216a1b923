"""Trial-sequence containers shared by designs, models, and fitting."""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np


@dataclass(frozen=True, slots=True)
class TrialData:
    """One subject's stimulus sequence and optional responses.

    Parameters
    ----------
    cs_input : numpy.ndarray
        Cue indicators with shape ``(n_trials, n_cues)`` and values in
        ``{0, 1}``. One-dimensional input is promoted to a single cue column.
    us_input : numpy.ndarray
        Outcome indicators with shape ``(n_trials,)``.
    cr_output : numpy.ndarray | None, optional
        Observed (or simulated) responses with shape ``(n_trials,)``.

    Raises
    ------
    ValueError
        If array shapes are inconsistent, or cue and outcome indicators are
        not all 0 or 1.

    Notes
    -----
    Arrays are copied and made read-only on construction, so one instance can
    be shared between simulation, fitting, and scoring without defensive
    copies downstream.
    """

    cs_input: np.ndarray
    us_input: np.ndarray
    cr_output: np.ndarray | None = None

    def __post_init__(self) -> None:
        cs = np.array(self.cs_input, dtype=float)
        if cs.ndim == 1:
            cs = cs.reshape(-1, 1)
        if cs.ndim != 2:
            raise ValueError("cs_input must be a 2D array (n_trials, n_cues)")

        us = np.array(self.us_input, dtype=float).reshape(-1)
        if us.shape[0] != cs.shape[0]:
            raise ValueError(
                f"us_input length ({us.shape[0]}) does not match cs_input rows ({cs.shape[0]})"
            )
        if not _is_binary(cs):
            raise ValueError("cs_input values must be 0 or 1")
        if not _is_binary(us):
            raise ValueError("us_input values must be 0 or 1")

        cs.setflags(write=False)
        us.setflags(write=False)
        object.__setattr__(self, "cs_input", cs)
        object.__setattr__(self, "us_input", us)

        if self.cr_output is not None:
            cr = np.array(self.cr_output, dtype=float).reshape(-1)
            if cr.shape[0] != cs.shape[0]:
                raise ValueError(
                    f"cr_output length ({cr.shape[0]}) does not match cs_input rows ({cs.shape[0]})"
                )
            cr.setflags(write=False)
            object.__setattr__(self, "cr_output", cr)

    @property
    def n_trials(self) -> int:
        """Return the number of trials."""

        return int(self.cs_input.shape[0])

    @property
    def n_cues(self) -> int:
        """Return the number of cue channels."""

        return int(self.cs_input.shape[1])

    def with_responses(self, cr_output: np.ndarray) -> TrialData:
        """Return a copy of this sequence carrying ``cr_output``."""

        return replace(self, cr_output=cr_output)

    def concatenate(self, other: TrialData) -> TrialData:
        """Append ``other`` after this sequence.

        Raises
        ------
        ValueError
            If cue counts differ or only one side carries responses.
        """

        if other.n_cues != self.n_cues:
            raise ValueError("cannot concatenate sequences with different cue counts")
        if (self.cr_output is None) != (other.cr_output is None):
            raise ValueError("cannot concatenate sequences when only one carries responses")

        cr_output = None
        if self.cr_output is not None and other.cr_output is not None:
            cr_output = np.concatenate([self.cr_output, other.cr_output])
        return TrialData(
            cs_input=np.vstack([self.cs_input, other.cs_input]),
            us_input=np.concatenate([self.us_input, other.us_input]),
            cr_output=cr_output,
        )


def _is_binary(values: np.ndarray) -> bool:
    return bool(np.all((values == 0.0) | (values == 1.0)))


def empty_trial_data(n_cues: int) -> TrialData:
    """Return a zero-trial sequence with ``n_cues`` cue channels."""

    if n_cues <= 0:
        raise ValueError("n_cues must be > 0")
    return TrialData(cs_input=np.zeros((0, n_cues)), us_input=np.zeros(0))


__all__ = ["TrialData", "empty_trial_data"]
