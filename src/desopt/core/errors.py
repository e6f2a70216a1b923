"""Error taxonomy for design evaluation.

Every error subclasses a builtin exception so callers that only care about
the broad category (``TypeError``, ``ValueError``, ``KeyError``) can keep
catching those.
"""

from __future__ import annotations


class UnsupportedParameterType(TypeError):
    """Prior leaf is neither numeric, callable, mapping, nor a distribution string."""


class InvalidParameterError(ValueError):
    """Parameter value violates a hard model precondition."""


class ParameterNotFound(KeyError):
    """Criterion options reference a parameter absent from the fitting prior."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable.
        return str(self.args[0]) if self.args else ""


class ModelSpaceMisconfigured(ValueError):
    """Simulation/fitting model spaces are missing or inconsistent."""


class LatentsUnavailable(RuntimeError):
    """Likelihood cannot produce latent trajectories for this model."""


__all__ = [
    "InvalidParameterError",
    "LatentsUnavailable",
    "ModelSpaceMisconfigured",
    "ParameterNotFound",
    "UnsupportedParameterType",
]
