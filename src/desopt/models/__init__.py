"""Learning models: NSSM runtime, built-in learning rules, and descriptors."""

from .baseline import constant_response_log_likelihood, simulate_constant_response
from .learning import evo_krw, evo_lsspd, obs_linear, obs_wa_mix
from .model_spec import ModelKind, ModelSpec
from .nssm import DEFAULT_LOG_DENSITY_FLOOR, NSSM, NSSMOutput, NSSMSimulation, floor_log_densities

__all__ = [
    "DEFAULT_LOG_DENSITY_FLOOR",
    "ModelKind",
    "ModelSpec",
    "NSSM",
    "NSSMOutput",
    "NSSMSimulation",
    "constant_response_log_likelihood",
    "evo_krw",
    "evo_lsspd",
    "floor_log_densities",
    "obs_linear",
    "obs_wa_mix",
    "simulate_constant_response",
]
