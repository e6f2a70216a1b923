"""Load declarative evaluation/optimization configs from JSON or YAML files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

SUPPORTED_CONFIG_SUFFIXES: tuple[str, ...] = (".json", ".yaml", ".yml")


def load_config_mapping(path: str | Path) -> dict[str, Any]:
    """Load one config file whose root is a mapping.

    Parameters
    ----------
    path : str | pathlib.Path
        Config file path. Supported suffixes are ``.json``, ``.yaml``, and
        ``.yml``.

    Returns
    -------
    dict[str, Any]
        Parsed config mapping.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    ValueError
        If the suffix is unsupported or the root is not a mapping.
    """

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        supported = ", ".join(SUPPORTED_CONFIG_SUFFIXES)
        raise ValueError(
            f"unsupported config file extension {suffix!r}; expected one of {supported}"
        )
    if not config_path.is_file():
        raise FileNotFoundError(f"config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        if suffix == ".json":
            raw = json.load(handle)
        else:
            raw = yaml.safe_load(handle)

    if not isinstance(raw, dict):
        raise ValueError("config root must be a JSON/YAML object")
    return raw


def dump_config_mapping(config: dict[str, Any], path: str | Path) -> Path:
    """Write ``config`` next to evaluation outputs for provenance.

    The format follows the suffix of ``path`` (JSON or YAML).
    """

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix == ".json":
        config_path.write_text(json.dumps(config, indent=2, sort_keys=True, default=str), encoding="utf-8")
    elif suffix in {".yaml", ".yml"}:
        config_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    else:
        raise ValueError(f"unsupported config file extension {suffix!r}")
    return config_path


__all__ = ["SUPPORTED_CONFIG_SUFFIXES", "dump_config_mapping", "load_config_mapping"]
