"""Generic no-learning baseline: responses are Gaussian around a constant.

Useful as a null model in model-selection designs. It has no latent
trajectories, so its likelihood raises
:class:`~desopt.core.errors.LatentsUnavailable` when latents are requested.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
from scipy.stats import norm

from desopt.core.data import TrialData
from desopt.core.errors import InvalidParameterError, LatentsUnavailable
from desopt.core.params import FitParamSpec, get_param_value, merge_params, unpack_params
from desopt.models.nssm import floor_log_densities
from desopt.plugins import ComponentManifest


def simulate_constant_response(
    cs_input: np.ndarray,
    us_input: np.ndarray,
    params: Mapping[str, Any],
    rng: np.random.Generator,
) -> tuple[np.ndarray, None]:
    """Draw ``n_trials`` responses from ``normal(mean, sd)``."""

    mean = float(get_param_value(params, "mean", "obs"))
    sd = float(get_param_value(params, "sd", "obs"))
    if not sd > 0.0:
        raise InvalidParameterError(f"observation noise sd must be > 0, got {sd}")
    n_trials = np.asarray(cs_input).shape[0]
    return rng.normal(mean, sd, size=n_trials), None


def constant_response_log_likelihood(
    x: np.ndarray,
    data: TrialData,
    param_specs: Sequence[FitParamSpec],
    fixed_params: Mapping[str, Any] | None = None,
    *,
    with_latents: bool = False,
) -> tuple[float, None]:
    """Gaussian log-likelihood of ``cr_output`` around a constant mean."""

    if with_latents:
        raise LatentsUnavailable("constant-response model has no latent trajectories")
    if data.cr_output is None:
        raise ValueError("log-likelihood requires data with cr_output")

    params = merge_params(fixed_params, unpack_params(x, param_specs))
    mean = float(get_param_value(params, "mean", "obs"))
    sd = float(get_param_value(params, "sd", "obs"))
    with np.errstate(divide="ignore", invalid="ignore"):
        pointwise = norm.logpdf(data.cr_output, loc=mean, scale=sd)
    pointwise = floor_log_densities(pointwise)
    return float(np.sum(pointwise)), None


PLUGIN_MANIFESTS = [
    ComponentManifest(
        kind="simulator",
        component_id="constant_response",
        component=simulate_constant_response,
        description="Gaussian responses around a constant mean (no learning)",
    ),
    ComponentManifest(
        kind="log_likelihood",
        component_id="constant_response",
        component=constant_response_log_likelihood,
        description="Gaussian log-likelihood around a constant mean",
    ),
]


__all__ = ["constant_response_log_likelihood", "simulate_constant_response"]
