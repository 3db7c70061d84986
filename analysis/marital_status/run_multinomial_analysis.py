#!/usr/bin/env python3
"""
Multinomial Logistic Regression of Marital Status on Census Attributes

Pipeline summary
----------------
- Load the cleaned census CSV; coerce categorical columns to fixed label sets.
- Exploratory boxplots of age per categorical attribute.
- Fit a reduced and a full multinomial logit against an explicit reference level;
  compare them with a likelihood-ratio test.
- Evaluate both on the training rows (confusion matrix, accuracy). There is no
  held-out split.
- Score one synthetic record with the full model.
- Diagnostics: residual plot, binned-residual plot, generalized VIF check.

Outputs (output_dir)
--------------------
- age_boxplots.png
- coefficients_reduced.parquet / coefficients_full.parquet
- model_summaries.txt
- confusion_matrix_full.csv
- residuals.png / binned_residuals.png
- gvif.csv
- interpretation_guide.md
- analysis_report.txt
- analysis_diagnostics.json
- analysis_manifest.json
- run.log
- analysis_failure.json (only on failure; partial diagnostics)

Usage:
    python analysis/marital_status/run_multinomial_analysis.py \\
        --data data/census_clean.csv \\
        --output-dir data/marital_status/results
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import matplotlib

matplotlib.use("Agg")

from marital_status_analysis.collinearity import check_multicollinearity
from marital_status_analysis.config import AnalysisSettings, get_analysis_settings, load_config
from marital_status_analysis.data_loader import load_dataset, summarize_dataset
from marital_status_analysis.diagnostics import (
    binned_residuals_by_level,
    plot_binned_residuals,
    plot_residuals,
    response_residuals,
    share_outside_bounds,
)
from marital_status_analysis.errors import AnalysisError, MulticollinearityError
from marital_status_analysis.evaluation import evaluate_training_fit, predict_record
from marital_status_analysis.exploration import plot_age_boxplots
from marital_status_analysis.multinomial import fit_multinomial_logit, likelihood_ratio_test
from marital_status_analysis.report import (
    build_report,
    write_coefficient_table,
    write_interpretation_guide,
    write_report,
)
from marital_status_analysis.run_manifest import utc_now_iso, write_analysis_manifest

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config" / "analysis.yaml"


# ----------------------------
# Utilities: logging + errors
# ----------------------------


def _configure_logging(output_dir: Path) -> Path:
    """Log to stdout and output_dir/run.log."""
    output_dir.mkdir(parents=True, exist_ok=True)
    log_path = output_dir / "run.log"

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    # Avoid duplicate handlers across repeated invocations
    existing = {(type(h), getattr(h, "baseFilename", None)) for h in root.handlers}
    fmt = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    if (logging.StreamHandler, None) not in existing:
        sh = logging.StreamHandler(sys.stdout)
        sh.setLevel(logging.INFO)
        sh.setFormatter(fmt)
        root.addHandler(sh)

    if (logging.FileHandler, str(log_path.resolve())) not in existing:
        fh = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        fh.setLevel(logging.INFO)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    return log_path


def _write_failure_json(output_dir: Path, diagnostics_partial: dict[str, Any]) -> None:
    try:
        out = output_dir / "analysis_failure.json"
        out.write_text(json.dumps(diagnostics_partial, indent=2, sort_keys=True, default=str) + "\n", encoding="utf-8")
    except OSError as e:
        # Do not mask the root error
        logger.debug("Failed to write failure JSON: %s", e, exc_info=True)


def _resolve_settings(args: argparse.Namespace) -> AnalysisSettings:
    config_path = args.config
    if config_path is None and DEFAULT_CONFIG.exists():
        config_path = DEFAULT_CONFIG
    settings = get_analysis_settings(load_config(config_path)) if config_path else AnalysisSettings()

    return settings.with_overrides(
        data_path=args.data,
        output_dir=args.output_dir,
        reference=args.reference,
        vif_threshold=args.vif_threshold,
        binned_residual_bins=args.bins,
    )


# ----------------------------
# Pipeline
# ----------------------------


def run_analysis(settings: AnalysisSettings, diagnostics_partial: dict[str, Any]) -> dict[str, Path]:
    """Run every step; returns the written output paths."""
    out_dir = settings.output_dir
    outputs: dict[str, Path] = {}

    if settings.data_path is None:
        raise AnalysisError("No input data file given", hint="Pass --data or set data_path in the config.")

    # ---- Load + coerce ----
    dataset = load_dataset(settings.data_path, settings.schema)
    dataset_summary = summarize_dataset(dataset)
    diagnostics_partial["dataset"] = dataset_summary

    # ---- Exploration ----
    categorical_predictors = [p for p in settings.full_predictors if settings.schema.is_categorical(p)]
    outputs["age_boxplots"] = out_dir / "age_boxplots.png"
    plot_age_boxplots(dataset, [*categorical_predictors, settings.outcome], outputs["age_boxplots"])

    # ---- Fit ----
    fits = {}
    for name, predictors in (("reduced", settings.reduced_predictors), ("full", settings.full_predictors)):
        fits[name] = fit_multinomial_logit(
            dataset,
            predictors,
            settings.reference,
            outcome=settings.outcome,
            predictor_references=settings.predictor_references,
            maxiter=settings.maxiter,
        )
        diagnostics_partial[f"fit_{name}"] = fits[name].fit_meta()
    reduced, full = fits["reduced"], fits["full"]

    lr_test = likelihood_ratio_test(reduced, full)
    diagnostics_partial["lr_test"] = lr_test

    for name, fit in fits.items():
        outputs[f"coefficients_{name}"] = out_dir / f"coefficients_{name}.parquet"
        write_coefficient_table(outputs[f"coefficients_{name}"], fit=fit, model_name=name)

    outputs["model_summaries"] = out_dir / "model_summaries.txt"
    outputs["model_summaries"].write_text(
        "\n\n".join(full.summary_text(lv) for lv in full.non_reference_levels) + "\n",
        encoding="utf-8",
    )

    # ---- Evaluate (training rows) ----
    confusion_reduced = evaluate_training_fit(reduced, dataset)
    confusion_full = evaluate_training_fit(full, dataset)
    outputs["confusion_matrix_full"] = out_dir / "confusion_matrix_full.csv"
    confusion_full.table.to_csv(outputs["confusion_matrix_full"])
    diagnostics_partial["accuracy"] = {"reduced": confusion_reduced.accuracy, "full": confusion_full.accuracy}

    # ---- Single record ----
    example_probs = predict_record(full, settings.example_record)
    diagnostics_partial["example_record"] = {"record": settings.example_record, "probabilities": example_probs}

    # ---- Residuals ----
    resid = response_residuals(full, dataset)
    binned = binned_residuals_by_level(resid, settings.binned_residual_bins)
    outputs["residuals"] = out_dir / "residuals.png"
    outputs["binned_residuals"] = out_dir / "binned_residuals.png"
    plot_residuals(resid, outputs["residuals"])
    plot_binned_residuals(binned, outputs["binned_residuals"])
    binned_outside = {lv: share_outside_bounds(b) for lv, b in binned.items()}
    diagnostics_partial["binned_residuals_share_outside"] = binned_outside

    # ---- Multicollinearity ----
    vif_table = None
    if len(settings.full_predictors) < 2:
        msg = f"GVIF needs at least 2 predictor terms; full model has {settings.full_predictors}"
        logger.info("Skipping GVIF check: %s", msg)
        diagnostics_partial["gvif_skipped"] = msg
    else:
        try:
            vif_table = check_multicollinearity(
                dataset,
                settings.full_predictors,
                settings.reference,
                outcome=settings.outcome,
                predictor_references=settings.predictor_references,
                threshold=settings.vif_threshold,
            )
            outputs["gvif"] = out_dir / "gvif.csv"
            vif_table.to_csv(outputs["gvif"])
            diagnostics_partial["gvif"] = vif_table.reset_index().to_dict(orient="records")
        except MulticollinearityError as e:
            logger.warning("GVIF check failed: %s", e)
            diagnostics_partial["gvif_error"] = str(e)

    # ---- Report ----
    outputs["interpretation_guide"] = out_dir / "interpretation_guide.md"
    write_interpretation_guide(outputs["interpretation_guide"], outcome=settings.outcome, reference=settings.reference)

    report_text = build_report(
        dataset_summary=dataset_summary,
        reduced=reduced,
        full=full,
        lr_test=lr_test,
        confusion_reduced=confusion_reduced,
        confusion_full=confusion_full,
        example_record=settings.example_record,
        example_probabilities=example_probs,
        vif_table=vif_table,
        vif_threshold=settings.vif_threshold,
        binned_outside=binned_outside,
    )
    outputs["report"] = out_dir / "analysis_report.txt"
    write_report(outputs["report"], report_text)
    print("\n" + report_text)

    diagnostics_partial["n_rows"] = dataset.height
    return outputs


# ----------------------------
# CLI
# ----------------------------


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Multinomial logit of marital status on census attributes.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--data", type=Path, default=None, help="Cleaned census CSV")
    parser.add_argument("--output-dir", type=Path, default=None, help="Output directory for artifacts")
    parser.add_argument("--config", type=Path, default=None, help="YAML config (default: config/analysis.yaml)")
    parser.add_argument("--reference", type=str, default=None, help="Reference level of the outcome")
    parser.add_argument("--vif-threshold", type=float, default=None, help="Flag GVIF^(1/df) at or above this")
    parser.add_argument("--bins", type=int, default=None, help="Bins for the binned residual plot")
    args = parser.parse_args()

    settings = _resolve_settings(args)
    settings.output_dir.mkdir(parents=True, exist_ok=True)
    run_log_path = _configure_logging(settings.output_dir)
    logger.info("Command: %s", " ".join(sys.argv))

    diagnostics_partial: dict[str, Any] = {
        "status": "started",
        "created_utc": utc_now_iso(),
        "command": " ".join(sys.argv),
        "parameters": {
            "outcome": settings.outcome,
            "reference": settings.reference,
            "reduced_predictors": settings.reduced_predictors,
            "full_predictors": settings.full_predictors,
            "predictor_references": settings.predictor_references,
            "vif_threshold": settings.vif_threshold,
        },
        "paths": {
            "data": str(settings.data_path),
            "output_dir": str(settings.output_dir),
            "run_log": str(run_log_path),
        },
    }

    try:
        outputs = run_analysis(settings, diagnostics_partial)

        diagnostics_partial["status"] = "ok"
        diagnostics_path = settings.output_dir / "analysis_diagnostics.json"
        diagnostics_path.write_text(
            json.dumps(diagnostics_partial, indent=2, sort_keys=True, default=str) + "\n",
            encoding="utf-8",
        )
        outputs["diagnostics"] = diagnostics_path

        write_analysis_manifest(
            output_dir=settings.output_dir,
            command=" ".join(sys.argv),
            repo_root=".",
            data_path=settings.data_path,  # type: ignore[arg-type]
            config_path=args.config,
            outcome=settings.outcome,
            reference_level=settings.reference,
            reduced_predictors=settings.reduced_predictors,
            full_predictors=settings.full_predictors,
            predictor_references=settings.predictor_references,
            vif_threshold=settings.vif_threshold,
            n_rows=int(diagnostics_partial["n_rows"]),
            outputs=outputs,
            run_log_path=run_log_path,
        )
        logger.info("Analysis complete: outputs in %s", settings.output_dir)
        return 0

    except Exception as e:
        logger.exception("Analysis failed with error.")
        diagnostics_partial["status"] = "failed"
        diagnostics_partial["error"] = {
            "type": type(e).__name__,
            "message": str(e),
        }
        _write_failure_json(settings.output_dir, diagnostics_partial)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
