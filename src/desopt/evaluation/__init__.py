"""Design evaluation: simulation, criteria, configs, and the optimizer objective."""

from .config import DesignStudyConfig, ModelEntry, load_design_config, parse_design_config
from .criteria import (
    MODSEL_ERR,
    PARAMEST_ERR,
    DesignCriterion,
    ModelSelectionInfo,
    ModelSelectionOptions,
    ParamEstInfo,
    ParamEstOptions,
    confusion_matrix_from_fits,
    loss_modsel_err,
    loss_paramest_err,
)
from .design import DesignEvaluation, OptimizableVariable, evaluate_design
from .objective import DesignObjective, run_design_evaluation
from .serialization import (
    confusion_records,
    evaluation_summary,
    model_selection_case_records,
    paramest_records,
    subject_fit_records,
    write_records_csv,
)
from .simulation import ParamGrid, SimulatedData, sample_param_grid, simulate_data

__all__ = [
    "DesignCriterion",
    "DesignEvaluation",
    "DesignObjective",
    "DesignStudyConfig",
    "MODSEL_ERR",
    "ModelEntry",
    "ModelSelectionInfo",
    "ModelSelectionOptions",
    "OptimizableVariable",
    "PARAMEST_ERR",
    "ParamEstInfo",
    "ParamEstOptions",
    "ParamGrid",
    "SimulatedData",
    "confusion_matrix_from_fits",
    "confusion_records",
    "evaluate_design",
    "evaluation_summary",
    "load_design_config",
    "loss_modsel_err",
    "loss_paramest_err",
    "model_selection_case_records",
    "paramest_records",
    "parse_design_config",
    "run_design_evaluation",
    "sample_param_grid",
    "simulate_data",
    "subject_fit_records",
    "write_records_csv",
]
