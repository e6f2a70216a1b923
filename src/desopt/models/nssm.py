"""Nonlinear state-space model (NSSM) runtime.

An NSSM pairs a batch *evolution* function, which maps the whole cue/outcome
sequence to latent trajectories, with a batch *observation* function, which
maps those latents to predicted responses. Both are pure: all randomness
lives in :meth:`NSSM.simulate`.

Contracts
---------
Evolution
    ``evolution(cs_input, us_input, params_evo) -> dict[str, numpy.ndarray]``
Observation
    ``observation(evo_result, cs_input, us_input, params_obs) -> dict`` with
    at least a ``"cr_pred"`` entry of shape ``(n_trials,)``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy.stats import norm

from desopt.core.data import TrialData
from desopt.core.errors import InvalidParameterError
from desopt.core.params import FitParamSpec, merge_params, unpack_params

EvolutionFn = Callable[[np.ndarray, np.ndarray, Mapping[str, Any]], dict[str, np.ndarray]]
ObservationFn = Callable[[Mapping[str, np.ndarray], np.ndarray, np.ndarray, Mapping[str, Any]], dict[str, np.ndarray]]

DEFAULT_LOG_DENSITY_FLOOR = -1000.0


def floor_log_densities(pointwise: np.ndarray, floor: float = DEFAULT_LOG_DENSITY_FLOOR) -> np.ndarray:
    """Replace ``-inf`` and ``NaN`` pointwise log densities by ``floor``.

    ``+inf`` (a zero-width density hit exactly) is left alone; the fitter
    turns a non-finite objective into its own penalty.
    """

    values = np.asarray(pointwise, dtype=float)
    return np.where(np.isneginf(values) | np.isnan(values), floor, values)


@dataclass(frozen=True, slots=True)
class NSSMOutput:
    """Latent trajectories produced by one NSSM prediction.

    Parameters
    ----------
    evo : dict[str, numpy.ndarray]
        Evolution-function outputs (weights, associabilities, ...).
    obs : dict[str, numpy.ndarray]
        Observation-function outputs, including ``"cr_pred"``.
    """

    evo: dict[str, np.ndarray]
    obs: dict[str, np.ndarray]

    @property
    def cr_pred(self) -> np.ndarray:
        """Return the noise-free predicted responses."""

        return self.obs["cr_pred"]


@dataclass(frozen=True, slots=True)
class NSSMSimulation:
    """Noisy responses and the latents they were generated from."""

    responses: np.ndarray
    latents: NSSMOutput


@dataclass(frozen=True, slots=True)
class NSSM:
    """Evolution/observation pair with prediction, simulation, and likelihood.

    Parameters
    ----------
    evolution : EvolutionFn
        Batch evolution function.
    observation : ObservationFn
        Batch observation function.
    log_density_floor : float, optional
        Finite value substituted for ``-inf`` and ``NaN`` pointwise log
        densities, see :func:`floor_log_densities`.
    """

    evolution: EvolutionFn
    observation: ObservationFn
    log_density_floor: float = DEFAULT_LOG_DENSITY_FLOOR

    def __post_init__(self) -> None:
        if not callable(self.evolution) or not callable(self.observation):
            raise ValueError("evolution and observation must be callable")
        if not np.isfinite(self.log_density_floor):
            raise ValueError("log_density_floor must be finite")

    def predict(self, cs_input: np.ndarray, us_input: np.ndarray, params: Mapping[str, Any]) -> NSSMOutput:
        """Run evolution then observation over the whole trial batch.

        Parameters
        ----------
        cs_input : numpy.ndarray
            Cue indicators ``(n_trials, n_cues)``.
        us_input : numpy.ndarray
            Outcome indicators ``(n_trials,)``.
        params : Mapping[str, Any]
            Complete parameter set with ``"evo"`` and ``"obs"`` groups.

        Returns
        -------
        NSSMOutput
            Latent trajectories and predicted responses.
        """

        cs = np.asarray(cs_input, dtype=float)
        us = np.asarray(us_input, dtype=float).reshape(-1)
        evo_result = self.evolution(cs, us, params.get("evo", {}))
        obs_result = self.observation(evo_result, cs, us, params.get("obs", {}))
        cr_pred = np.asarray(obs_result["cr_pred"], dtype=float).reshape(-1)
        if cr_pred.shape[0] != cs.shape[0]:
            raise ValueError(
                f"observation returned {cr_pred.shape[0]} predictions for {cs.shape[0]} trials"
            )
        return NSSMOutput(evo=dict(evo_result), obs={**obs_result, "cr_pred": cr_pred})

    def simulate(
        self,
        cs_input: np.ndarray,
        us_input: np.ndarray,
        params: Mapping[str, Any],
        rng: np.random.Generator,
    ) -> NSSMSimulation:
        """Predict responses and add i.i.d. Gaussian noise with ``obs.sd``.

        Raises
        ------
        InvalidParameterError
            If ``params["obs"]["sd"]`` is missing or not strictly positive.
        """

        sd = _observation_sd(params)
        if not sd > 0.0:
            raise InvalidParameterError(f"observation noise sd must be > 0, got {sd}")

        latents = self.predict(cs_input, us_input, params)
        responses = latents.cr_pred + rng.normal(0.0, sd, size=latents.cr_pred.shape[0])
        return NSSMSimulation(responses=responses, latents=latents)

    def log_likelihood(
        self,
        x: np.ndarray,
        data: TrialData,
        param_specs: Sequence[FitParamSpec],
        fixed_params: Mapping[str, Any] | None = None,
        *,
        with_latents: bool = False,
    ) -> tuple[float, NSSMOutput | None]:
        """Gaussian log-likelihood of observed responses at packed point ``x``.

        Parameters
        ----------
        x : numpy.ndarray
            Packed free parameters ordered like ``param_specs``.
        data : TrialData
            Subject data with ``cr_output``.
        param_specs : Sequence[FitParamSpec]
            Fitting prior fixing the packed layout.
        fixed_params : Mapping[str, Any] | None, optional
            Values completing the parameter set; free parameters win on
            conflicts.
        with_latents : bool, optional
            Whether to return the latent trajectories.

        Returns
        -------
        tuple[float, NSSMOutput | None]
            Summed log-likelihood and latents (``None`` unless requested).
        """

        if data.cr_output is None:
            raise ValueError("log-likelihood requires data with cr_output")

        params = merge_params(fixed_params, unpack_params(x, param_specs))
        latents = self.predict(data.cs_input, data.us_input, params)
        sd = _observation_sd(params)
        with np.errstate(divide="ignore", invalid="ignore"):
            pointwise = norm.logpdf(data.cr_output, loc=latents.cr_pred, scale=sd)
        pointwise = floor_log_densities(pointwise, self.log_density_floor)
        return float(np.sum(pointwise)), (latents if with_latents else None)


def _observation_sd(params: Mapping[str, Any]) -> float:
    obs = params.get("obs")
    if not isinstance(obs, Mapping) or "sd" not in obs:
        raise InvalidParameterError("parameter set has no observation noise 'obs.sd'")
    return float(obs["sd"])


__all__ = [
    "DEFAULT_LOG_DENSITY_FLOOR",
    "EvolutionFn",
    "NSSM",
    "NSSMOutput",
    "NSSMSimulation",
    "ObservationFn",
    "floor_log_densities",
]
