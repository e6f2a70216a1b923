"""Nested parameter trees: sampling priors, fitting priors, and vector codecs.

Parameters of a learning model are kept in nested mappings such as
``{"evo": {"alphaInit": 0.3, ...}, "obs": {"sd": 0.2, ...}}``. Optimizers work
on flat vectors instead, so this module converts between the two forms.

Sampling priors are parsed into a closed set of node types:

* :class:`Constant` - a fixed numeric value (scalar or array),
* :class:`Sampler` - a distribution drawn once per :func:`sample_params` call,
* :class:`Group` - an ordered mapping of named child nodes.

Fitting priors are ordered sequences of :class:`FitParamSpec`. Their order
fixes the packed-vector layout used by optimization, unpacking, and scoring.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

import numpy as np
from scipy.stats import truncnorm

from .errors import ParameterNotFound, UnsupportedParameterType


class ParamGroup(str, Enum):
    """Group tag routing a parameter to a model sub-function."""

    EVOLUTION = "evo"
    OBSERVATION = "obs"
    OTHER = ""

    @classmethod
    def parse(cls, value: ParamGroup | str | None) -> ParamGroup:
        """Coerce ``None``, ``""``, ``"evo"``, or ``"obs"`` to a group tag.

        Raises
        ------
        ValueError
            If ``value`` is not a known group label.
        """

        if isinstance(value, ParamGroup):
            return value
        if value is None:
            return cls.OTHER
        label = str(value).strip().lower()
        for member in cls:
            if member.value == label:
                return member
        raise ValueError(f"unknown parameter group {value!r}; expected one of 'evo', 'obs', ''")


NESTED_GROUPS: tuple[str, ...] = (ParamGroup.EVOLUTION.value, ParamGroup.OBSERVATION.value)


# ---------------------------------------------------------------------------
# Sampling-prior nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Constant:
    """Fixed parameter value copied verbatim into every sample."""

    value: float | np.ndarray


@dataclass(frozen=True, slots=True)
class Sampler:
    """Distribution leaf.

    Parameters
    ----------
    draw : Callable[..., Any]
        Sampling function. Called with the run's ``numpy.random.Generator``
        when ``takes_rng`` is true, otherwise with no arguments.
    takes_rng : bool, optional
        Whether ``draw`` expects the random generator.
    """

    draw: Callable[..., Any]
    takes_rng: bool = True

    def sample(self, rng: np.random.Generator) -> Any:
        """Draw one value."""

        return self.draw(rng) if self.takes_rng else self.draw()


@dataclass(frozen=True, slots=True)
class Group:
    """Ordered mapping of named child nodes."""

    children: dict[str, ParamNode] = field(default_factory=dict)


ParamNode = Union[Constant, Sampler, Group]


@dataclass(frozen=True, slots=True)
class DistributionSampler:
    """Named distribution from :data:`DISTRIBUTIONS` with fixed arguments.

    Parameters
    ----------
    name : str
        Canonical distribution name.
    args : tuple[float, ...]
        Positional distribution arguments.
    """

    name: str
    args: tuple[float, ...]

    def __call__(self, rng: np.random.Generator) -> float:
        return float(DISTRIBUTIONS[self.name](rng, *self.args))


def _truncated_normal(rng: np.random.Generator, mean: float, std: float, lower: float, upper: float) -> float:
    a, b = (lower - mean) / std, (upper - mean) / std
    return float(truncnorm.rvs(a, b, loc=mean, scale=std, random_state=rng))


DISTRIBUTIONS: dict[str, Callable[..., float]] = {
    "uniform": lambda rng, low, high: rng.uniform(low, high),
    "normal": lambda rng, mean, std: rng.normal(mean, std),
    "lognormal": lambda rng, mean_log, std_log: rng.lognormal(mean_log, std_log),
    "beta": lambda rng, a, b: rng.beta(a, b),
    "gamma": lambda rng, shape, scale: rng.gamma(shape, scale),
    "exponential": lambda rng, scale: rng.exponential(scale),
    "truncnormal": _truncated_normal,
}

DISTRIBUTION_ALIASES: dict[str, str] = {
    "unif": "uniform",
    "unifrnd": "uniform",
    "norm": "normal",
    "normrnd": "normal",
    "lognrnd": "lognormal",
    "betarnd": "beta",
    "gamrnd": "gamma",
    "exprnd": "exponential",
}

_DISTRIBUTION_PATTERN = re.compile(r"^\s*(?:@\(\)\s*)?([A-Za-z_][A-Za-z0-9_]*)\s*\((.*)\)\s*$")


def parse_distribution(text: str) -> DistributionSampler:
    """Parse a distribution string such as ``"uniform(0, 1)"``.

    Parameters
    ----------
    text : str
        Distribution call with numeric arguments. A leading ``@()`` is
        tolerated for configs written for older tooling.

    Returns
    -------
    DistributionSampler
        Picklable sampler.

    Raises
    ------
    UnsupportedParameterType
        If the string does not name a known distribution with numeric
        arguments, or the arguments are degenerate (non-positive
        ``std``, ``lower >= upper``).
    """

    match = _DISTRIBUTION_PATTERN.match(text)
    if match is None:
        raise UnsupportedParameterType(f"cannot interpret {text!r} as a distribution")

    raw_name, raw_args = match.groups()
    name = DISTRIBUTION_ALIASES.get(raw_name.lower(), raw_name.lower())
    if name not in DISTRIBUTIONS:
        raise UnsupportedParameterType(
            f"unknown distribution {raw_name!r}; expected one of {sorted(DISTRIBUTIONS)}"
        )

    try:
        args = tuple(float(item) for item in raw_args.split(",") if item.strip())
    except ValueError as exc:
        raise UnsupportedParameterType(f"non-numeric arguments in distribution {text!r}") from exc

    expected = len(inspect.signature(DISTRIBUTIONS[name]).parameters) - 1
    if len(args) != expected:
        raise UnsupportedParameterType(
            f"distribution {name!r} expects {expected} arguments, got {len(args)}"
        )
    _check_distribution_args(name, args)
    return DistributionSampler(name=name, args=args)


def _check_distribution_args(name: str, args: tuple[float, ...]) -> None:
    if name in ("normal", "lognormal", "truncnormal") and not args[1] > 0.0:
        raise UnsupportedParameterType(f"distribution {name!r} needs a positive std, got {args[1]}")
    if name in ("uniform", "truncnormal") and not args[-2] < args[-1]:
        raise UnsupportedParameterType(
            f"distribution {name!r} needs lower < upper, got {args[-2]} and {args[-1]}"
        )


def _callable_takes_rng(func: Callable[..., Any]) -> bool:
    """Return whether ``func`` accepts one positional argument."""

    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return False
    positional = [
        param
        for param in signature.parameters.values()
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD)
        and param.default is param.empty
    ]
    return len(positional) >= 1


def build_prior_tree(prior: Mapping[str, Any] | ParamNode) -> Group:
    """Convert a raw sampling-prior mapping into typed nodes.

    Parameters
    ----------
    prior : Mapping[str, Any] | ParamNode
        Mapping whose leaves are numbers (or numeric arrays), callables,
        distribution strings, nested mappings, or already-built nodes.

    Returns
    -------
    Group
        Root node.

    Raises
    ------
    UnsupportedParameterType
        If a leaf has an unsupported type.
    """

    if isinstance(prior, Group):
        return prior
    if not isinstance(prior, Mapping):
        raise UnsupportedParameterType(
            f"prior root must be a mapping, got {type(prior).__name__}"
        )
    return Group(children={str(key): _build_node(value, path=str(key)) for key, value in prior.items()})


def _build_node(value: Any, *, path: str) -> ParamNode:
    if isinstance(value, (Constant, Sampler, Group)):
        return value
    if isinstance(value, Mapping):
        return Group(
            children={
                str(key): _build_node(child, path=f"{path}.{key}")
                for key, child in value.items()
            }
        )
    if isinstance(value, (bool, np.bool_)):
        raise UnsupportedParameterType(f"parameter {path!r} is boolean; expected a number")
    if isinstance(value, (int, float, np.number)):
        return Constant(float(value))
    if isinstance(value, (list, tuple, np.ndarray)):
        array = np.asarray(value)
        if array.dtype.kind not in "iuf":
            raise UnsupportedParameterType(f"parameter {path!r} is a non-numeric array")
        return Constant(array.astype(float))
    if isinstance(value, str):
        return Sampler(draw=parse_distribution(value), takes_rng=True)
    if callable(value):
        return Sampler(draw=value, takes_rng=_callable_takes_rng(value))
    raise UnsupportedParameterType(
        f"unsupported type of parameter {path!r}: {type(value).__name__}"
    )


def sample_params(prior: Mapping[str, Any] | Group, rng: np.random.Generator) -> dict[str, Any]:
    """Draw one parameter set from a sampling prior.

    Parameters
    ----------
    prior : Mapping[str, Any] | Group
        Sampling prior (raw mapping or pre-built tree).
    rng : numpy.random.Generator
        Random source used by every distribution leaf.

    Returns
    -------
    dict[str, Any]
        Nested mapping mirroring ``prior`` where constants are copied and
        samplers are replaced by one draw each.

    Raises
    ------
    UnsupportedParameterType
        If ``prior`` contains an unsupported leaf.
    """

    return _sample_group(build_prior_tree(prior), rng)


def _sample_group(group: Group, rng: np.random.Generator) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, node in group.children.items():
        if isinstance(node, Group):
            out[name] = _sample_group(node, rng)
        elif isinstance(node, Sampler):
            out[name] = _coerce_sample(node.sample(rng))
        else:
            value = node.value
            out[name] = value.copy() if isinstance(value, np.ndarray) else float(value)
    return out


def _coerce_sample(value: Any) -> float | np.ndarray:
    array = np.asarray(value, dtype=float)
    if array.ndim == 0:
        return float(array)
    return array


# ---------------------------------------------------------------------------
# Fitting priors and vector codecs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FitParamSpec:
    """One free parameter of a fitting model.

    Parameters
    ----------
    name : str
        Parameter name as used by the model functions.
    log_prior : Callable[[float], float]
        Scalar log-density of the parameter prior.
    lower : float
        Lower optimization bound (may be ``-inf``).
    upper : float
        Upper optimization bound (may be ``inf``).
    init : float | None, optional
        Fixed initial value for every restart. ``None`` or NaN means "draw
        uniformly within bounds".
    group : ParamGroup | str | None, optional
        Parameter group (``"evo"``, ``"obs"``, or unset).
    """

    name: str
    log_prior: Callable[[float], float]
    lower: float
    upper: float
    init: float | None = None
    group: ParamGroup = ParamGroup.OTHER

    def __post_init__(self) -> None:
        if not str(self.name):
            raise ValueError("parameter name must be non-empty")
        object.__setattr__(self, "group", ParamGroup.parse(self.group))
        object.__setattr__(self, "lower", float(self.lower))
        object.__setattr__(self, "upper", float(self.upper))
        if np.isnan(self.lower) or np.isnan(self.upper):
            raise ValueError(f"bounds of {self.name!r} must not be NaN")
        if self.lower > self.upper:
            raise ValueError(
                f"invalid bounds for {self.name!r}: lower ({self.lower}) > upper ({self.upper})"
            )
        if self.init is not None:
            init = float(self.init)
            object.__setattr__(self, "init", None if np.isnan(init) else init)

    @property
    def key(self) -> tuple[ParamGroup, str]:
        """Return the ``(group, name)`` identity of this parameter."""

        return (self.group, self.name)

    @property
    def label(self) -> str:
        """Return a dotted label such as ``"evo.alphaInit"``."""

        if self.group is ParamGroup.OTHER:
            return self.name
        return f"{self.group.value}.{self.name}"


def validate_fit_param_specs(param_specs: Sequence[FitParamSpec]) -> tuple[FitParamSpec, ...]:
    """Validate a fitting prior and return it as a tuple.

    Raises
    ------
    ValueError
        If a ``(group, name)`` pair occurs more than once.
    """

    specs = tuple(param_specs)
    seen: set[tuple[ParamGroup, str]] = set()
    for spec in specs:
        if spec.key in seen:
            raise ValueError(f"duplicate fitting parameter {spec.label!r}")
        seen.add(spec.key)
    return specs


def find_param_index(
    param_specs: Sequence[FitParamSpec],
    name: str,
    group: ParamGroup | str | None = None,
) -> int:
    """Return the packed-vector index of a named parameter.

    Parameters
    ----------
    param_specs : Sequence[FitParamSpec]
        Fitting prior.
    name : str
        Parameter name.
    group : ParamGroup | str | None, optional
        Parameter group. When omitted, the name alone must be unambiguous.

    Raises
    ------
    ParameterNotFound
        If no parameter matches.
    ValueError
        If ``group`` is omitted and several groups use ``name``.
    """

    wanted_group = ParamGroup.parse(group) if group not in (None, "") else None
    matches = [
        index
        for index, spec in enumerate(param_specs)
        if spec.name == name and (wanted_group is None or spec.group is wanted_group)
    ]
    if not matches:
        label = name if wanted_group is None else f"{wanted_group.value}.{name}"
        available = [spec.label for spec in param_specs]
        raise ParameterNotFound(f"parameter {label!r} not found in fitting prior {available}")
    if len(matches) > 1:
        raise ValueError(f"parameter name {name!r} is ambiguous; specify its group")
    return matches[0]


def get_param_value(params: Mapping[str, Any], name: str, group: ParamGroup | str | None = None) -> Any:
    """Read ``params[group][name]`` (or ``params[name]`` for ungrouped values).

    Raises
    ------
    ParameterNotFound
        If the value is missing.
    """

    tag = ParamGroup.parse(group)
    container: Any = params
    if tag is not ParamGroup.OTHER:
        container = params.get(tag.value)
    if not isinstance(container, Mapping) or name not in container:
        label = name if tag is ParamGroup.OTHER else f"{tag.value}.{name}"
        raise ParameterNotFound(f"parameter {label!r} not found in parameter set")
    return container[name]


def pack_params(params: Mapping[str, Any]) -> np.ndarray:
    """Flatten nested parameters depth-first in mapping order.

    Parameters
    ----------
    params : Mapping[str, Any]
        Nested parameter mapping with numeric leaves.

    Returns
    -------
    numpy.ndarray
        One-dimensional float vector.
    """

    parts: list[np.ndarray] = []
    for value in params.values():
        if isinstance(value, Mapping):
            parts.append(pack_params(value))
        else:
            parts.append(np.atleast_1d(np.asarray(value, dtype=float)).ravel())
    if not parts:
        return np.zeros(0, dtype=float)
    return np.concatenate(parts)


def pack_params_ordered(params: Mapping[str, Any], param_specs: Sequence[FitParamSpec]) -> np.ndarray:
    """Flatten the parameters named by ``param_specs``, in that order.

    Leaves are matched by ``(group, name)`` rather than by position, so the
    result always lines up with :func:`unpack_params`.

    Raises
    ------
    ParameterNotFound
        If a named parameter is missing from ``params``.
    ValueError
        If a named leaf is not scalar.
    """

    values = np.empty(len(param_specs), dtype=float)
    for index, spec in enumerate(param_specs):
        value = np.asarray(get_param_value(params, spec.name, spec.group), dtype=float)
        if value.size != 1:
            raise ValueError(f"parameter {spec.label!r} must be scalar to be packed")
        values[index] = float(value.reshape(-1)[0])
    return values


def unpack_params(packed: Sequence[float] | np.ndarray, param_specs: Sequence[FitParamSpec]) -> dict[str, Any]:
    """Build a nested parameter mapping from a packed vector.

    Parameters
    ----------
    packed : Sequence[float] | numpy.ndarray
        Packed values, one per entry of ``param_specs``.
    param_specs : Sequence[FitParamSpec]
        Fitting prior describing names and groups.

    Returns
    -------
    dict[str, Any]
        ``{group: {name: value}}`` for grouped parameters and ``{name: value}``
        for ungrouped ones.

    Raises
    ------
    ValueError
        If vector length and prior length differ.
    """

    vector = np.asarray(packed, dtype=float).reshape(-1)
    if vector.shape[0] != len(param_specs):
        raise ValueError(
            f"packed vector has {vector.shape[0]} values but fitting prior has {len(param_specs)} parameters"
        )

    out: dict[str, Any] = {}
    for value, spec in zip(vector, param_specs):
        if spec.group is ParamGroup.OTHER:
            out[spec.name] = float(value)
        else:
            out.setdefault(spec.group.value, {})[spec.name] = float(value)
    return out


def merge_params(*param_structs: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge parameter structures, later structures winning on conflicts.

    ``"evo"`` and ``"obs"`` sub-mappings are merged key by key; every other
    top-level key is replaced wholesale. ``None`` entries are skipped.

    Returns
    -------
    dict[str, Any]
        Merged structure. Inputs are not modified.
    """

    merged: dict[str, Any] = {}
    for params in param_structs:
        if params is None:
            continue
        for key, value in params.items():
            if key in NESTED_GROUPS and isinstance(value, Mapping):
                target = merged.get(key)
                merged[key] = {**(dict(target) if isinstance(target, Mapping) else {}), **dict(value)}
            else:
                merged[key] = value
    return merged


__all__ = [
    "Constant",
    "DISTRIBUTIONS",
    "DistributionSampler",
    "FitParamSpec",
    "Group",
    "NESTED_GROUPS",
    "ParamGroup",
    "ParamNode",
    "Sampler",
    "build_prior_tree",
    "find_param_index",
    "get_param_value",
    "merge_params",
    "pack_params",
    "pack_params_ordered",
    "parse_distribution",
    "sample_params",
    "unpack_params",
    "validate_fit_param_specs",
]
