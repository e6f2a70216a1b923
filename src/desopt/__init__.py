"""Top-level package for ``desopt``.

``desopt`` scores candidate designs of associative-learning experiments by
simulation:

1. a design function turns design variables into cue/outcome sequences,
2. simulation models generate responses under parameters drawn from priors,
3. fitting models are fit to every simulated subject by MAP estimation,
4. a design criterion turns the fits into one loss (lower is better).

:class:`~desopt.evaluation.objective.DesignObjective` wraps the loop as the
objective of an external black-box optimizer.
"""

from .core.data import TrialData
from .evaluation import (
    DesignObjective,
    evaluate_design,
    load_design_config,
    loss_modsel_err,
    loss_paramest_err,
    parse_design_config,
    run_design_evaluation,
)
from .inference import fit_map, fit_models
from .models import NSSM, ModelSpec

__version__ = "0.1.0"

__all__ = [
    "DesignObjective",
    "ModelSpec",
    "NSSM",
    "TrialData",
    "evaluate_design",
    "fit_map",
    "fit_models",
    "load_design_config",
    "loss_modsel_err",
    "loss_paramest_err",
    "parse_design_config",
    "run_design_evaluation",
]
