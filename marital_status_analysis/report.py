# marital_status_analysis/report.py
"""Human-readable outputs: coefficient table, interpretation guide, text report."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pandas as pd
import polars as pl

from marital_status_analysis.evaluation import ConfusionSummary
from marital_status_analysis.multinomial import MultinomialFit

logger = logging.getLogger(__name__)


def write_coefficient_table(out_path: Path, *, fit: MultinomialFit, model_name: str) -> None:
    df_long = fit.coefficients_long()
    df_long["model"] = model_name
    df_long["nobs"] = fit.nobs
    df_long["deviance"] = fit.deviance
    df_long["aic"] = fit.aic
    df_long["converged"] = fit.converged

    pl.DataFrame(df_long.to_dict(orient="list")).write_parquet(out_path)
    logger.info("Wrote coefficient table: %s", out_path)


def write_interpretation_guide(out_path: Path, *, outcome: str, reference: str) -> None:
    md = f"""# How to Read the {outcome} Coefficients (Multinomial Logit)

## Model
For each non-reference level q of {outcome}:

log(P({outcome} = q) / P({outcome} = {reference})) = b0_q + b_q · X

Reference level: **{reference}**

## Interpretation
- Continuous predictor (age): one more year changes the log-odds of q versus
  {reference} by b_k; exp(b_k) is the odds-ratio multiplier.
- Categorical predictor: each dummy compares that level with the predictor's own
  reference level, holding the other predictors fixed.
- Choosing another reference level changes the signs and sizes of coefficients,
  not the fitted probabilities. Coefficients against level r are b_q - b_r.

## Evaluation caveat
Accuracy and the confusion matrix are computed on the training rows. There is no
held-out split, so they overstate out-of-sample performance.

## Statistical Method
- Maximum likelihood (statsmodels MNLogit, Newton-Raphson)
- Wald z-statistics from the inverse observed information
- Generalized VIF from an auxiliary binomial GLM; GVIF^(1/df) >= 5 is flagged
"""
    out_path.write_text(md + "\n", encoding="utf-8")
    logger.info("Wrote interpretation guide: %s", out_path)


def _fit_block(name: str, fit: MultinomialFit) -> list[str]:
    return [
        f"{name} model: {fit.outcome} ~ {' + '.join(fit.predictors) or '1'}",
        f"  Observations:        {fit.nobs:,}",
        f"  Parameters:          {fit.k_params}",
        f"  Residual deviance:   {fit.deviance:.2f}",
        f"  AIC:                 {fit.aic:.2f}",
        f"  BIC:                 {fit.bic:.2f}",
        f"  Pseudo R-squared:    {fit.prsquared:.4f}",
        f"  Converged:           {fit.converged} ({fit.method}, {fit.n_iterations} iterations)",
        *[f"  Warning: {w}" for w in fit.warnings],
    ]


def build_report(
    *,
    dataset_summary: Mapping[str, Any],
    reduced: MultinomialFit,
    full: MultinomialFit,
    lr_test: Mapping[str, Any],
    confusion_reduced: ConfusionSummary,
    confusion_full: ConfusionSummary,
    example_record: Mapping[str, Any],
    example_probabilities: Mapping[str, float],
    vif_table: pd.DataFrame | None,  # type: ignore[no-any-unimported]
    vif_threshold: float,
    binned_outside: Mapping[str, float] | None = None,
) -> str:
    lines = [
        "=" * 78,
        f"MULTINOMIAL LOGIT: {full.outcome.upper()} (reference = {full.reference})",
        "=" * 78,
        "",
        "DATA",
        "-" * 78,
        f"Rows: {dataset_summary['n_rows']:,}",
    ]
    for col, s in dataset_summary.get("continuous", {}).items():
        lines.append(f"{col}: mean {s['mean']:.1f}, sd {s['std']:.1f}, range {s['min']:.0f}-{s['max']:.0f}")
    for col, counts in dataset_summary.get("levels", {}).items():
        lines.append(f"{col}: " + ", ".join(f"{lv}={n:,}" for lv, n in counts.items()))

    lines.extend(["", "MODEL COMPARISON", "-" * 78])
    lines.extend(_fit_block("Reduced", reduced))
    lines.append("")
    lines.extend(_fit_block("Full", full))
    lines.extend([
        "",
        f"Likelihood-ratio test: chi2 = {lr_test['statistic']:.2f} on {lr_test['df']} df, p = {lr_test['p_value']:.3g}",
        "",
        "FULL MODEL COEFFICIENTS",
        "-" * 78,
    ])
    for lv in full.non_reference_levels:
        lines.append(full.summary_text(lv))
        lines.append("")

    lines.extend([
        "IN-SAMPLE EVALUATION (training data; no held-out split)",
        "-" * 78,
        "Reduced model:",
        confusion_reduced.to_text(),
        "",
        "Full model:",
        confusion_full.to_text(),
        "",
        "SINGLE-RECORD PREDICTION (full model)",
        "-" * 78,
        "Record: " + ", ".join(f"{k}={v}" for k, v in example_record.items()),
    ])
    for lv, p in example_probabilities.items():
        lines.append(f"  P({lv}) = {p:.4f}")
    lines.append(f"  Sum = {sum(example_probabilities.values()):.6f}")

    lines.extend(["", f"MULTICOLLINEARITY (GVIF, flag at GVIF^(1/df) >= {vif_threshold:g})", "-" * 78])
    if vif_table is None:
        lines.append("GVIF not computed (see run.log)")
    else:
        lines.append(vif_table.to_string(float_format=lambda v: f"{v:.3f}"))

    if binned_outside:
        lines.extend(["", "BINNED RESIDUALS (share of bins outside +/- 2 SE)", "-" * 78])
        for lv, share in binned_outside.items():
            lines.append(f"  {lv}: {share:.1%}")

    lines.extend(["", "=" * 78])
    return "\n".join(lines)


def write_report(out_path: Path, report_text: str) -> None:
    out_path.write_text(report_text + "\n", encoding="utf-8")
    logger.info("Report saved to %s", out_path)
