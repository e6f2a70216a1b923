"""Core data containers, parameter trees, errors, and config helpers."""

from .config_loading import SUPPORTED_CONFIG_SUFFIXES, dump_config_mapping, load_config_mapping
from .data import TrialData, empty_trial_data
from .errors import (
    InvalidParameterError,
    LatentsUnavailable,
    ModelSpaceMisconfigured,
    ParameterNotFound,
    UnsupportedParameterType,
)
from .params import (
    Constant,
    DistributionSampler,
    FitParamSpec,
    Group,
    ParamGroup,
    Sampler,
    build_prior_tree,
    find_param_index,
    get_param_value,
    merge_params,
    pack_params,
    pack_params_ordered,
    parse_distribution,
    sample_params,
    unpack_params,
    validate_fit_param_specs,
)

__all__ = [
    "Constant",
    "DistributionSampler",
    "FitParamSpec",
    "Group",
    "InvalidParameterError",
    "LatentsUnavailable",
    "ModelSpaceMisconfigured",
    "ParamGroup",
    "ParameterNotFound",
    "SUPPORTED_CONFIG_SUFFIXES",
    "Sampler",
    "TrialData",
    "UnsupportedParameterType",
    "build_prior_tree",
    "dump_config_mapping",
    "empty_trial_data",
    "find_param_index",
    "get_param_value",
    "load_config_mapping",
    "merge_params",
    "pack_params",
    "pack_params_ordered",
    "parse_distribution",
    "sample_params",
    "unpack_params",
    "validate_fit_param_specs",
]
