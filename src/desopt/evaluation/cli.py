"""CLI for config-driven design evaluation."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from desopt.core.config_loading import dump_config_mapping, load_config_mapping

from .config import DesignStudyConfig, parse_design_config
from .criteria import ModelSelectionInfo, ParamEstInfo
from .objective import DesignObjective, run_design_evaluation
from .serialization import (
    confusion_records,
    evaluation_summary,
    model_selection_case_records,
    paramest_records,
    subject_fit_records,
    write_records_csv,
)

logger = logging.getLogger(__name__)


def run_evaluation_cli(argv: Sequence[str] | None = None) -> int:
    """Evaluate one design from a JSON or YAML config path.

    Evaluation configs are run as is. Optimization configs need the point of
    the search box via repeated ``--point name=value`` arguments.

    Parameters
    ----------
    argv : Sequence[str] | None, optional
        CLI argument list. When ``None``, process arguments are used.

    Returns
    -------
    int
        Exit code (``0`` on success, ``2`` on configuration errors).
    """

    parser = argparse.ArgumentParser(description="Evaluate an experimental design from a JSON or YAML config.")
    parser.add_argument("--config", required=True, help="Path to design JSON or YAML config.")
    parser.add_argument("--output-dir", default=".", help="Directory for CSV and JSON outputs.")
    parser.add_argument("--prefix", default="design", help="Output filename prefix.")
    parser.add_argument(
        "--point",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Design-variable value for optimization configs (repeatable).",
    )
    parser.add_argument("--seed", type=int, default=None, help="Override sim_run.rng_seed.")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level.",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        raw_config = load_config_mapping(args.config)
        study = dataclasses.replace(parse_design_config(raw_config), keep_outputs=True)
        point = _parse_point(args.point)
        loss, _, outputs = _evaluate(study, point=point, seed=args.seed)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        logger.error("design evaluation failed: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    prefix = str(args.prefix)
    sim_names = [entry.model.name for entry in study.models_sim]
    fit_names = [entry.model.name for entry in study.models_fit]

    written: list[Path] = [
        write_records_csv(
            subject_fit_records(
                outputs,
                study.fit_priors,
                sim_model_names=sim_names,
                fit_model_names=fit_names,
            ),
            output_dir / f"{prefix}_fits.csv",
        )
    ]
    if isinstance(outputs.loss_info, ParamEstInfo):
        written.append(write_records_csv(paramest_records(outputs.loss_info), output_dir / f"{prefix}_paramest.csv"))
    elif isinstance(outputs.loss_info, ModelSelectionInfo):
        criterion = str(study.criterion_options.get("criterion") or "bic").lower()
        written.append(
            write_records_csv(
                model_selection_case_records(
                    outputs,
                    criterion=criterion,
                    sim_model_names=sim_names,
                    fit_model_names=fit_names,
                ),
                output_dir / f"{prefix}_modsel_cases.csv",
            )
        )
        written.append(
            write_records_csv(
                confusion_records(outputs.loss_info, sim_model_names=sim_names, fit_model_names=fit_names),
                output_dir / f"{prefix}_confusion.csv",
            )
        )

    summary = evaluation_summary(
        loss,
        outputs.loss_info,
        criterion_name=study.criterion.name,
        desvars=outputs.desvars,
    )
    summary["name"] = study.name
    summary["n_exp"] = study.n_exp
    summary["n_sub"] = study.n_sub
    written.append(_write_json_summary(output_dir / f"{prefix}_summary.json", summary))
    written.append(dump_config_mapping(raw_config, output_dir / f"{prefix}_config.json"))

    print(f"Design evaluation complete: criterion={study.criterion.name}, loss={loss:.6g}")
    for path in written:
        print(f"Wrote: {path}")
    return 0


def _evaluate(study: DesignStudyConfig, *, point: dict[str, float], seed: int | None) -> tuple[float, None, Any]:
    if study.is_optimization:
        return DesignObjective(study, seed=seed)(point)
    if point:
        raise ValueError("--point is only valid for configs with desvars_optim")
    if seed is not None:
        study = dataclasses.replace(study, rng_seed=seed)
    return run_design_evaluation(study)


def _parse_point(items: Sequence[str]) -> dict[str, float]:
    point: dict[str, float] = {}
    for item in items:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"--point must look like NAME=VALUE, got {item!r}")
        try:
            point[name.strip()] = float(value)
        except ValueError as exc:
            raise ValueError(f"--point value for {name.strip()!r} is not a number: {value!r}") from exc
    return point


def _write_json_summary(path: Path, payload: dict[str, Any]) -> Path:
    """Write summary JSON payload to disk."""

    path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return path


def main(argv: Sequence[str] | None = None) -> None:
    """Execute the design-evaluation CLI and exit with its code."""

    raise SystemExit(run_evaluation_cli(argv))


if __name__ == "__main__":
    main()


__all__ = ["main", "run_evaluation_cli"]
