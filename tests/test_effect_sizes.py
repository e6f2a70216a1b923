"""Tests for effect sizes and intervals used to compare designs."""

from __future__ import annotations

import numpy as np
import pytest
from scipy.stats import norm

from desopt.analysis import (
    binomial_ci,
    bootstrap_ttest,
    cles,
    cles_bootstrap_ci,
    modsel_accuracy_ci,
    odds_ratio,
)


def test_cles_brute_counts_pairs_and_half_ties() -> None:
    """Brute-force CLES should count wins plus half the ties."""

    # Pairs: (2>1), (2=2), (3>1), (3>2) -> (3 + 0.5) / 4.
    assert cles([2.0, 3.0], [1.0, 2.0]) == pytest.approx(0.875)
    assert cles([0.0], [1.0]) == 0.0


def test_cles_algebraic_uses_normal_approximation() -> None:
    """Algebraic CLES should match the closed form."""

    x = np.array([1.0, 2.0, 3.0, 4.0])
    y = np.array([0.0, 1.0, 1.5, 2.5])

    expected = 1.0 - norm.cdf(0.0, loc=x.mean() - y.mean(), scale=np.sqrt(x.var(ddof=1) + y.var(ddof=1)))
    assert cles(x, y, method="algebraic") == pytest.approx(expected)
    with pytest.raises(ValueError, match="unrecognized CLES method"):
        cles(x, y, method="exact")
    with pytest.raises(ValueError, match="must not be empty"):
        cles([], y)


def test_cles_bootstrap_ci_brackets_estimate() -> None:
    """Bootstrap bounds should be ordered and reproducible."""

    rng = np.random.default_rng(0)
    x = rng.normal(1.0, 1.0, size=30)
    y = rng.normal(0.0, 1.0, size=30)

    first = cles_bootstrap_ci(x, y, n_boot=200, rng=np.random.default_rng(1))
    second = cles_bootstrap_ci(x, y, n_boot=200, rng=np.random.default_rng(1))

    assert 0.0 <= first.lower <= first.upper <= 1.0
    assert first.lower <= first.estimate <= first.upper
    assert first.bootstrap_values.shape == (200,)
    assert (first.lower, first.upper) == (second.lower, second.upper)


def test_bootstrap_ttest_detects_shift() -> None:
    """A clear mean shift should give a small one-sided p-value."""

    rng = np.random.default_rng(2)
    x = rng.normal(2.0, 1.0, size=40)
    y = rng.normal(0.0, 1.0, size=40)

    shifted = bootstrap_ttest(x, y, n_boot=500, rng=np.random.default_rng(3))
    reversed_ = bootstrap_ttest(y, x, n_boot=500, rng=np.random.default_rng(3))

    assert shifted.t_statistic > 0.0
    assert shifted.p_value < 0.05
    assert reversed_.p_value > 0.95
    with pytest.raises(ValueError, match="n_boot must be > 0"):
        bootstrap_ttest(x, y, n_boot=0, rng=np.random.default_rng(0))


def test_odds_ratio_without_and_with_correction() -> None:
    """Zero cells should trigger the Haldane-Anscombe correction."""

    plain = odds_ratio([[10, 5], [4, 8]])
    corrected = odds_ratio([[10, 0], [4, 8]])

    assert plain.odds_ratio == pytest.approx((10 * 8) / (5 * 4))
    assert not plain.corrected
    assert plain.lower < plain.odds_ratio < plain.upper
    assert corrected.corrected
    assert corrected.odds_ratio == pytest.approx((10.5 * 8.5) / (0.5 * 4.5))
    with pytest.raises(ValueError, match="must be 2x2"):
        odds_ratio([[1, 2, 3], [4, 5, 6]])


def test_binomial_ci_clopper_pearson() -> None:
    """Clopper-Pearson bounds should match known edge values."""

    p, lower, upper = binomial_ci(0, 10)
    assert p == 0.0
    assert lower == 0.0
    assert upper == pytest.approx(1.0 - 0.025 ** (1 / 10))

    p, lower, upper = binomial_ci(10, 10)
    assert p == 1.0
    assert upper == 1.0
    assert lower == pytest.approx(0.025 ** (1 / 10))

    p, lower, upper = binomial_ci(4, 10)
    assert lower < p < upper
    with pytest.raises(ValueError, match="successes must be in"):
        binomial_ci(11, 10)


def test_modsel_accuracy_ci_uses_diagonal_and_row_totals() -> None:
    """Per-model accuracies should come from the confusion diagonal."""

    result = modsel_accuracy_ci(np.array([[8.0, 2.0], [5.0, 5.0]]))

    assert result.shape == (2, 3)
    np.testing.assert_allclose(result[:, 0], [0.8, 0.5])
    assert np.all(result[:, 1] <= result[:, 0])
    assert np.all(result[:, 0] <= result[:, 2])
