"""Tests for AIC/BIC helpers used in model selection."""

from __future__ import annotations

import math

import pytest

from desopt.analysis.information_criteria import aic, bic, information_criterion, parse_criterion_name


def test_penalties_scale_with_free_parameters() -> None:
    """Each extra free parameter costs 2 under AIC and log(n) under BIC."""

    assert aic(log_likelihood=-12.5, n_parameters=3) == pytest.approx(31.0)
    assert aic(log_likelihood=-12.5, n_parameters=4) - aic(log_likelihood=-12.5, n_parameters=3) == pytest.approx(2.0)
    assert bic(log_likelihood=-12.5, n_parameters=3, n_observations=40) == pytest.approx(3 * math.log(40) + 25.0)
    assert bic(log_likelihood=-12.5, n_parameters=0, n_observations=40) == pytest.approx(25.0)


def test_information_criterion_dispatches_by_label() -> None:
    """Labels should be case-insensitive and default to BIC."""

    kwargs = {"log_likelihood": -3.0, "n_parameters": 2, "n_observations": 10}

    assert information_criterion("AIC", **kwargs) == pytest.approx(10.0)
    assert information_criterion("bic", **kwargs) == pytest.approx(2 * math.log(10) + 6.0)
    assert parse_criterion_name(None) == "bic"
    assert parse_criterion_name(" Aic ") == "aic"


def test_invalid_inputs_are_rejected() -> None:
    """Negative parameter counts, empty data, and unknown labels fail."""

    with pytest.raises(ValueError, match="n_observations must be > 0"):
        bic(log_likelihood=-1.0, n_parameters=1, n_observations=0)
    with pytest.raises(ValueError, match="n_parameters must be >= 0"):
        aic(log_likelihood=-1.0, n_parameters=-1)
    with pytest.raises(ValueError, match="criterion must be 'aic' or 'bic'"):
        parse_criterion_name("waic")
