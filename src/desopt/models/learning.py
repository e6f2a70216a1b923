"""Built-in associative-learning evolution and observation functions.

Evolution functions
-------------------
``lsspd``
    Hybrid Rescorla-Wagner / Pearce-Hall model (Li, Schiller, Schoenbaum,
    Phelps & Daw, 2011). For the cues present on trial ``t``::

        v_pred = sum(w[present])
        delta = us - v_pred
        w[present] += kappa * alpha[present] * delta
        alpha[present] = eta * |delta| + (1 - eta) * alpha[present]

    With ``eta = 0`` and ``kappa = 1`` it reduces to Rescorla-Wagner with
    learning rate ``alphaInit``.
``krw``
    Kalman Rescorla-Wagner (Gershman, 2015). Weights diffuse as a random
    walk and outcomes are noisy linear combinations of present cues.

Observation functions
---------------------
``wa_mix``
    ``cr_pred = intercept + slope * (mixCoef * v_pred + (1 - mixCoef) * alpha_pred)``
``linear``
    ``cr_pred = intercept + slope * v_pred``
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import numpy as np

from desopt.plugins import ComponentManifest


def _per_cue(value: Any, n_cues: int, *, name: str) -> np.ndarray:
    """Broadcast a scalar (or validate a vector) to one value per cue."""

    array = np.asarray(value, dtype=float).reshape(-1)
    if array.size == 1:
        return np.full(n_cues, float(array[0]))
    if array.size != n_cues:
        raise ValueError(f"{name} has {array.size} values but there are {n_cues} cues")
    return array.copy()


def evo_lsspd(cs_input: np.ndarray, us_input: np.ndarray, params: Mapping[str, Any]) -> dict[str, np.ndarray]:
    """Hybrid RW/PH evolution over a whole trial batch.

    Parameters
    ----------
    cs_input : numpy.ndarray
        Cue indicators ``(n_trials, n_cues)``.
    us_input : numpy.ndarray
        Outcome indicators ``(n_trials,)``.
    params : Mapping[str, Any]
        ``wInit`` and ``alphaInit`` (scalar or one value per cue), ``eta``
        (associability update rate) and ``kappa`` (weight update scale).

    Returns
    -------
    dict[str, numpy.ndarray]
        ``w`` and ``alpha`` with shape ``(n_trials + 1, n_cues)``, plus
        per-trial ``v_pred``, ``alpha_pred`` (mean associability of present
        cues) and ``delta``.
    """

    cs = np.asarray(cs_input, dtype=float)
    us = np.asarray(us_input, dtype=float).reshape(-1)
    n_trials, n_cues = cs.shape
    eta = float(params["eta"])
    kappa = float(params["kappa"])

    w = np.empty((n_trials + 1, n_cues), dtype=float)
    alpha = np.empty((n_trials + 1, n_cues), dtype=float)
    w[0] = _per_cue(params["wInit"], n_cues, name="wInit")
    alpha[0] = _per_cue(params["alphaInit"], n_cues, name="alphaInit")
    v_pred = np.zeros(n_trials, dtype=float)
    alpha_pred = np.zeros(n_trials, dtype=float)
    delta = np.zeros(n_trials, dtype=float)

    for t in range(n_trials):
        present = cs[t] > 0
        w_t = w[t].copy()
        alpha_t = alpha[t].copy()

        v_pred[t] = float(np.sum(w_t[present]))
        alpha_pred[t] = float(np.mean(alpha_t[present])) if np.any(present) else 0.0
        delta[t] = us[t] - v_pred[t]

        w_t[present] += kappa * alpha_t[present] * delta[t]
        alpha_t[present] = eta * abs(delta[t]) + (1.0 - eta) * alpha_t[present]
        w[t + 1] = w_t
        alpha[t + 1] = alpha_t

    return {"w": w, "alpha": alpha, "v_pred": v_pred, "alpha_pred": alpha_pred, "delta": delta}


def evo_krw(cs_input: np.ndarray, us_input: np.ndarray, params: Mapping[str, Any]) -> dict[str, np.ndarray]:
    """Kalman Rescorla-Wagner evolution over a whole trial batch.

    Parameters
    ----------
    cs_input : numpy.ndarray
        Cue indicators ``(n_trials, n_cues)``.
    us_input : numpy.ndarray
        Outcome indicators ``(n_trials,)``.
    params : Mapping[str, Any]
        ``wInit`` (scalar or per cue), ``logSigmaWInit`` (log prior weight
        variance), ``logTauSq`` (log diffusion variance) and ``logSigmaRSq``
        (log outcome-noise variance).

    Returns
    -------
    dict[str, numpy.ndarray]
        ``w`` ``(n_trials + 1, n_cues)``, ``C`` ``(n_trials + 1, n_cues,
        n_cues)``, per-trial ``v_pred`` and ``delta``, and Kalman gains
        ``gain`` ``(n_trials, n_cues)``.
    """

    cs = np.asarray(cs_input, dtype=float)
    us = np.asarray(us_input, dtype=float).reshape(-1)
    n_trials, n_cues = cs.shape

    identity = np.eye(n_cues)
    q = np.exp(float(params["logTauSq"])) * identity
    sigma_r_sq = np.exp(float(params["logSigmaRSq"]))

    w = np.empty((n_trials + 1, n_cues), dtype=float)
    cov = np.empty((n_trials + 1, n_cues, n_cues), dtype=float)
    w[0] = _per_cue(params["wInit"], n_cues, name="wInit")
    cov[0] = np.exp(float(params["logSigmaWInit"])) * identity
    v_pred = np.zeros(n_trials, dtype=float)
    delta = np.zeros(n_trials, dtype=float)
    gain = np.zeros((n_trials, n_cues), dtype=float)

    for t in range(n_trials):
        h = cs[t]
        cov_pred = cov[t] + q
        v_pred[t] = float(h @ w[t])
        delta[t] = us[t] - v_pred[t]

        k = (cov_pred @ h) / (float(h @ cov_pred @ h) + sigma_r_sq)
        w[t + 1] = w[t] + k * delta[t]
        cov[t + 1] = cov_pred - np.outer(k, h) @ cov_pred
        gain[t] = k

    return {"w": w, "C": cov, "v_pred": v_pred, "delta": delta, "gain": gain}


def obs_wa_mix(
    evo_result: Mapping[str, np.ndarray],
    cs_input: np.ndarray,
    us_input: np.ndarray,
    params: Mapping[str, Any],
) -> dict[str, np.ndarray]:
    """Affine response to a mixture of value and associability.

    Requires ``v_pred`` and ``alpha_pred`` in ``evo_result`` and parameters
    ``intercept``, ``slope``, ``mixCoef`` (1 = pure value, 0 = pure
    associability).
    """

    if "alpha_pred" not in evo_result:
        raise ValueError("wa_mix observation requires an evolution result with 'alpha_pred'")
    mix = float(params["mixCoef"])
    mixed = mix * np.asarray(evo_result["v_pred"]) + (1.0 - mix) * np.asarray(evo_result["alpha_pred"])
    return {"cr_pred": float(params["intercept"]) + float(params["slope"]) * mixed}


def obs_linear(
    evo_result: Mapping[str, np.ndarray],
    cs_input: np.ndarray,
    us_input: np.ndarray,
    params: Mapping[str, Any],
) -> dict[str, np.ndarray]:
    """Affine response to the predicted value ``v_pred``."""

    v_pred = np.asarray(evo_result["v_pred"], dtype=float)
    return {"cr_pred": float(params["intercept"]) + float(params["slope"]) * v_pred}


PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="evolution",
        component_id="lsspd",
        component=evo_lsspd,
        description="Hybrid Rescorla-Wagner / Pearce-Hall value and associability",
        aliases=("evo_lsspd_batch",),
    ),
    ComponentManifest(
        kind="evolution",
        component_id="krw",
        component=evo_krw,
        description="Kalman Rescorla-Wagner weights and covariances",
        aliases=("evo_krw_batch",),
    ),
    ComponentManifest(
        kind="observation",
        component_id="wa_mix",
        component=obs_wa_mix,
        description="Affine response to a value/associability mixture",
        aliases=("obs_wa_mix_batch",),
    ),
    ComponentManifest(
        kind="observation",
        component_id="linear",
        component=obs_linear,
        description="Affine response to the predicted value",
        aliases=("obs_linear_batch",),
    ),
]


__all__ = ["evo_krw", "evo_lsspd", "obs_linear", "obs_wa_mix"]
