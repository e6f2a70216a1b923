"""Effect sizes and intervals for comparing designs after evaluation.

These helpers summarize evaluation outputs, e.g. comparing the estimation
errors of two designs or attaching intervals to model-selection accuracies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np
from scipy.stats import beta as beta_dist
from scipy.stats import norm, ttest_ind

ClesMethod = Literal["brute", "algebraic"]


def _as_sample(values: np.ndarray, *, name: str) -> np.ndarray:
    sample = np.asarray(values, dtype=float).reshape(-1)
    if sample.size == 0:
        raise ValueError(f"{name} must not be empty")
    return sample


def cles(sample_1: np.ndarray, sample_2: np.ndarray, *, method: ClesMethod = "brute") -> float:
    """Common-language effect size ``P(X1 > X2)``.

    Parameters
    ----------
    sample_1, sample_2 : numpy.ndarray
        Independent samples.
    method : {"brute", "algebraic"}, optional
        ``"brute"`` compares every pair (ties count one half);
        ``"algebraic"`` assumes normality,
        ``1 - Phi(0; mean1 - mean2, sqrt(var1 + var2))``.

    Returns
    -------
    float
        Probability in ``[0, 1]``.
    """

    x = _as_sample(sample_1, name="sample_1")
    y = _as_sample(sample_2, name="sample_2")
    if method == "brute":
        diff = x[:, None] - y[None, :]
        return float((np.sum(diff > 0) + 0.5 * np.sum(diff == 0)) / diff.size)
    if method == "algebraic":
        mean_diff = float(np.mean(x) - np.mean(y))
        scale = float(np.sqrt(np.var(x, ddof=1) + np.var(y, ddof=1)))
        return float(1.0 - norm.cdf(0.0, loc=mean_diff, scale=scale))
    raise ValueError(f"unrecognized CLES method {method!r}; expected 'brute' or 'algebraic'")


@dataclass(frozen=True, slots=True)
class BootstrapInterval:
    """Percentile bootstrap interval.

    Parameters
    ----------
    estimate : float
        Statistic on the original samples.
    lower, upper : float
        Interval bounds.
    bootstrap_values : numpy.ndarray
        Statistic on every bootstrap resample.
    """

    estimate: float
    lower: float
    upper: float
    bootstrap_values: np.ndarray


def cles_bootstrap_ci(
    sample_1: np.ndarray,
    sample_2: np.ndarray,
    *,
    n_boot: int,
    rng: np.random.Generator,
    alpha: float = 0.05,
    method: ClesMethod = "brute",
) -> BootstrapInterval:
    """CLES with a percentile bootstrap interval.

    Each sample is resampled with replacement independently.
    """

    if n_boot <= 0:
        raise ValueError("n_boot must be > 0")
    if not 0.0 < alpha < 1.0:
        raise ValueError("alpha must be in (0, 1)")
    x = _as_sample(sample_1, name="sample_1")
    y = _as_sample(sample_2, name="sample_2")

    values = np.empty(n_boot, dtype=float)
    for index in range(n_boot):
        values[index] = cles(
            x[rng.integers(0, x.size, size=x.size)],
            y[rng.integers(0, y.size, size=y.size)],
            method=method,
        )
    return BootstrapInterval(
        estimate=cles(x, y, method=method),
        lower=float(np.percentile(values, 100.0 * alpha / 2.0)),
        upper=float(np.percentile(values, 100.0 * (1.0 - alpha / 2.0))),
        bootstrap_values=values,
    )


@dataclass(frozen=True, slots=True)
class BootstrapTTestResult:
    """Result of :func:`bootstrap_ttest`."""

    p_value: float
    t_statistic: float
    bootstrap_t: np.ndarray


def bootstrap_ttest(
    x: np.ndarray,
    y: np.ndarray,
    *,
    n_boot: int,
    rng: np.random.Generator,
) -> BootstrapTTestResult:
    """One-sided bootstrap test of ``mean(x) > mean(y)``.

    Follows Efron & Tibshirani (1993), algorithm 16.2: both samples are
    shifted to the pooled mean (enforcing the null), resampled with
    replacement, and the Welch t statistic of each resample is compared with
    the observed one.

    Returns
    -------
    BootstrapTTestResult
        ``p_value = mean(t_boot >= t_observed)``.
    """

    if n_boot <= 0:
        raise ValueError("n_boot must be > 0")
    x_arr = _as_sample(x, name="x")
    y_arr = _as_sample(y, name="y")
    t_observed = float(ttest_ind(x_arr, y_arr, equal_var=False).statistic)

    pooled_mean = float(np.mean(np.concatenate([x_arr, y_arr])))
    x_null = x_arr - np.mean(x_arr) + pooled_mean
    y_null = y_arr - np.mean(y_arr) + pooled_mean

    t_boot = np.empty(n_boot, dtype=float)
    for index in range(n_boot):
        x_sample = x_null[rng.integers(0, x_null.size, size=x_null.size)]
        y_sample = y_null[rng.integers(0, y_null.size, size=y_null.size)]
        t_boot[index] = float(ttest_ind(x_sample, y_sample, equal_var=False).statistic)

    return BootstrapTTestResult(
        p_value=float(np.mean(t_boot >= t_observed)),
        t_statistic=t_observed,
        bootstrap_t=t_boot,
    )


@dataclass(frozen=True, slots=True)
class OddsRatioResult:
    """Odds ratio of a 2x2 table with a Wald interval on the log scale.

    Parameters
    ----------
    odds_ratio : float
        ``(a * d) / (b * c)`` of the (possibly corrected) table.
    lower, upper : float
        Confidence bounds.
    table : numpy.ndarray
        Table the estimate was computed from.
    corrected : bool
        Whether the Haldane-Anscombe correction was applied.
    """

    odds_ratio: float
    lower: float
    upper: float
    table: np.ndarray
    corrected: bool


def odds_ratio(table: np.ndarray, *, alpha: float = 0.05) -> OddsRatioResult:
    """Odds ratio of ``[[a, b], [c, d]]`` with a Wald confidence interval.

    When any cell is zero, 0.5 is added to all four cells first
    (Haldane-Anscombe correction); otherwise the table is used as is.

    Raises
    ------
    ValueError
        If ``table`` is not 2x2 with non-negative counts.
    """

    counts = np.asarray(table, dtype=float)
    if counts.shape != (2, 2):
        raise ValueError(f"table must be 2x2, got shape {counts.shape}")
    if np.any(counts < 0):
        raise ValueError("table counts must be >= 0")
    if not 0.0 < alpha < 1.0:
        raise ValueError("alpha must be in (0, 1)")

    corrected = bool(np.any(counts == 0))
    if corrected:
        counts = counts + 0.5

    (a, b), (c, d) = counts
    log_or = float(np.log(a) + np.log(d) - np.log(b) - np.log(c))
    se = float(np.sqrt(1.0 / a + 1.0 / b + 1.0 / c + 1.0 / d))
    z = float(norm.ppf(1.0 - alpha / 2.0))
    return OddsRatioResult(
        odds_ratio=float(np.exp(log_or)),
        lower=float(np.exp(log_or - z * se)),
        upper=float(np.exp(log_or + z * se)),
        table=counts,
        corrected=corrected,
    )


def binomial_ci(successes: float, n_trials: float, *, alpha: float = 0.05) -> tuple[float, float, float]:
    """Clopper-Pearson interval for a binomial proportion.

    Fractional counts (e.g. a half-count corrected confusion diagonal) are
    accepted.

    Returns
    -------
    tuple[float, float, float]
        ``(proportion, lower, upper)``.
    """

    k = float(successes)
    n = float(n_trials)
    if n <= 0:
        raise ValueError("n_trials must be > 0")
    if not 0.0 <= k <= n:
        raise ValueError("successes must be in [0, n_trials]")

    lower = 0.0 if k == 0 else float(beta_dist.ppf(alpha / 2.0, k, n - k + 1.0))
    upper = 1.0 if k == n else float(beta_dist.ppf(1.0 - alpha / 2.0, k + 1.0, n - k))
    return k / n, lower, upper


def modsel_accuracy_ci(confusion_matrix: np.ndarray, *, alpha: float = 0.05) -> np.ndarray:
    """Per-model selection accuracy with Clopper-Pearson bounds.

    Returns
    -------
    numpy.ndarray
        ``(n_models, 3)`` rows of ``(accuracy, lower, upper)`` computed from
        the diagonal and row totals.
    """

    confusion = np.asarray(confusion_matrix, dtype=float)
    if confusion.ndim != 2 or confusion.shape[0] != confusion.shape[1]:
        raise ValueError("confusion_matrix must be square")
    totals = confusion.sum(axis=1)
    return np.array(
        [binomial_ci(confusion[index, index], totals[index], alpha=alpha) for index in range(confusion.shape[0])],
        dtype=float,
    )


__all__ = [
    "BootstrapInterval",
    "BootstrapTTestResult",
    "OddsRatioResult",
    "binomial_ci",
    "bootstrap_ttest",
    "cles",
    "cles_bootstrap_ci",
    "modsel_accuracy_ci",
    "odds_ratio",
]
