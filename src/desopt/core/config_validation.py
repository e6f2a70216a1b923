"""Strict validation and coercion helpers for declarative configs.

Every helper takes a ``field_name`` used verbatim in error messages, e.g.
``"model_space[1].prior_fit[0].lb"``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any


def validate_allowed_keys(
    mapping: Mapping[str, Any],
    *,
    field_name: str,
    allowed_keys: Iterable[str],
) -> None:
    """Reject keys outside ``allowed_keys``.

    Raises
    ------
    ValueError
        If unknown keys are present.
    """

    allowed = {str(key) for key in allowed_keys}
    unknown = sorted(str(key) for key in mapping if str(key) not in allowed)
    if unknown:
        raise ValueError(f"{field_name} has unknown keys: {unknown}")


def validate_required_keys(
    mapping: Mapping[str, Any],
    *,
    field_name: str,
    required_keys: Iterable[str],
) -> None:
    """Require every key of ``required_keys``.

    Raises
    ------
    ValueError
        If required keys are missing.
    """

    missing = sorted(str(key) for key in required_keys if key not in mapping)
    if missing:
        raise ValueError(f"{field_name} is missing required keys: {missing}")


def require_mapping(raw: Any, *, field_name: str) -> dict[str, Any]:
    """Return ``raw`` if it is a mapping, else raise ``ValueError``."""

    if not isinstance(raw, Mapping):
        raise ValueError(f"{field_name} must be an object")
    return dict(raw)


def require_sequence(raw: Any, *, field_name: str) -> list[Any]:
    """Return ``raw`` as a list if it is a list or tuple."""

    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"{field_name} must be an array")
    return list(raw)


def coerce_non_empty_str(raw: Any, *, field_name: str) -> str:
    """Coerce a non-empty, stripped string."""

    value = "" if raw is None else str(raw).strip()
    if not value:
        raise ValueError(f"{field_name} must be a non-empty string")
    return value


def coerce_positive_int(raw: Any, *, field_name: str) -> int:
    """Coerce a strictly positive integer."""

    if raw is None or isinstance(raw, bool):
        raise ValueError(f"{field_name} must be a positive integer")
    value = int(raw)
    if value != float(raw) or value <= 0:
        raise ValueError(f"{field_name} must be a positive integer")
    return value


def coerce_bool(raw: Any, *, field_name: str, default: bool) -> bool:
    """Coerce an optional boolean flag (``None`` means ``default``)."""

    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    raise ValueError(f"{field_name} must be a boolean")


def coerce_bound(raw: Any, *, field_name: str, default: float) -> float:
    """Coerce an optimization bound; strings like ``"inf"`` are accepted.

    Empty values (``None`` or ``[]``) map to ``default``.
    """

    if raw is None or (isinstance(raw, (list, tuple)) and len(raw) == 0):
        return float(default)
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be a number or 'inf'/'-inf'") from exc
    if value != value:
        raise ValueError(f"{field_name} must not be NaN")
    return value


__all__ = [
    "coerce_bool",
    "coerce_bound",
    "coerce_non_empty_str",
    "coerce_positive_int",
    "require_mapping",
    "require_sequence",
    "validate_allowed_keys",
    "validate_required_keys",
]
