"""Tests for trial-sequence containers."""

from __future__ import annotations

import numpy as np
import pytest

from desopt.core import TrialData, empty_trial_data


def test_trial_data_promotes_single_cue_and_freezes_arrays() -> None:
    """1D cue input becomes one column and stored arrays are read-only."""

    data = TrialData(cs_input=[1, 0, 1], us_input=[0, 1, 1], cr_output=[0.2, 0.5, 0.9])

    assert (data.n_trials, data.n_cues) == (3, 1)
    with pytest.raises(ValueError):
        data.cs_input[0, 0] = 0.0


def test_trial_data_rejects_non_binary_indicators() -> None:
    """Cue and outcome indicators must be 0 or 1; responses are unrestricted."""

    with pytest.raises(ValueError, match="cs_input values must be 0 or 1"):
        TrialData(cs_input=[[0.5, 1.0]], us_input=[1.0])
    with pytest.raises(ValueError, match="us_input values must be 0 or 1"):
        TrialData(cs_input=[[1.0, 0.0], [0.0, 1.0]], us_input=[1.0, 2.0])
    with pytest.raises(ValueError, match="us_input values must be 0 or 1"):
        TrialData(cs_input=[[1.0]], us_input=[np.nan])

    data = TrialData(cs_input=[[1.0]], us_input=[1.0], cr_output=[-3.7])
    assert data.cr_output[0] == -3.7


def test_trial_data_rejects_mismatched_lengths() -> None:
    """Outcome and response lengths must match the cue rows."""

    with pytest.raises(ValueError, match="us_input length"):
        TrialData(cs_input=np.ones((3, 1)), us_input=np.ones(2))
    with pytest.raises(ValueError, match="cr_output length"):
        TrialData(cs_input=np.ones((3, 1)), us_input=np.ones(3), cr_output=[0.1])


def test_concatenate_appends_trials_and_responses() -> None:
    """Concatenation should stack trials and keep responses aligned."""

    first = TrialData(cs_input=np.eye(2), us_input=[1.0, 0.0])
    second = TrialData(cs_input=np.ones((1, 2)), us_input=[1.0])

    joined = empty_trial_data(2).concatenate(first).concatenate(second)

    assert joined.n_trials == 3
    np.testing.assert_array_equal(joined.us_input, [1.0, 0.0, 1.0])
    with pytest.raises(ValueError, match="different cue counts"):
        first.concatenate(empty_trial_data(1))
    with pytest.raises(ValueError, match="only one carries responses"):
        first.concatenate(second.with_responses([0.4]))
