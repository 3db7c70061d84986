# marital_status_analysis/diagnostics.py
"""
Residual diagnostics for a fitted multinomial logit.

Residuals are response residuals per outcome level: 1[y == level] - p_hat(level).
Binned residuals follow Gelman & Hill: records are sorted by fitted probability,
cut into roughly equal-count bins, and each bin's mean residual is compared with
its +/- 2 standard-error band.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from marital_status_analysis.data_loader import CensusDataset
from marital_status_analysis.errors import AnalysisError
from marital_status_analysis.multinomial import MultinomialFit

logger = logging.getLogger(__name__)


def response_residuals(fit: MultinomialFit, dataset: CensusDataset) -> pd.DataFrame:  # type: ignore[no-any-unimported]
    """
    Long table of residuals: one row per (record, outcome level).

    Columns: row, level, observed, fitted, residual
    """
    probs = fit.predict_proba(dataset)
    actual = np.asarray(dataset.column_values(fit.outcome), dtype=object)

    frames = []
    for lv in fit.outcome_levels:
        observed = (actual == lv).astype(np.float64)
        fitted = probs[lv].to_numpy()
        frames.append(
            pd.DataFrame({
                "row": np.arange(len(actual)),
                "level": lv,
                "observed": observed,
                "fitted": fitted,
                "residual": observed - fitted,
            })
        )
    return pd.concat(frames, ignore_index=True)


def default_bin_count(n: int) -> int:
    if n >= 100:
        return int(math.floor(math.sqrt(n)))
    if n > 10:
        return 10
    return max(int(math.floor(n / 2)), 1)


def binned_residuals(
    fitted: np.ndarray,
    residuals: np.ndarray,
    n_bins: int | None = None,
) -> pd.DataFrame:  # type: ignore[no-any-unimported]
    """
    Average residuals within quantile bins of the fitted values.

    Returns:
        DataFrame with columns bin, n, fitted_mean, fitted_min, fitted_max,
        resid_mean, resid_se2 (two standard errors), outside (|resid_mean| > resid_se2)
    """
    fitted = np.asarray(fitted, dtype=np.float64)
    residuals = np.asarray(residuals, dtype=np.float64)
    if fitted.shape != residuals.shape:
        raise AnalysisError(f"fitted {fitted.shape} and residuals {residuals.shape} differ in shape")
    n = fitted.size
    if n < 2:
        raise AnalysisError("Need at least 2 observations for binned residuals")

    n_bins = default_bin_count(n) if n_bins is None else int(n_bins)
    if not 1 <= n_bins <= n:
        raise AnalysisError(f"n_bins must be between 1 and {n}, got {n_bins}")

    order = np.argsort(fitted, kind="mergesort")
    rows = []
    for b, idx in enumerate(np.array_split(order, n_bins)):
        r = residuals[idx]
        f = fitted[idx]
        se2 = 2.0 * float(np.std(r, ddof=1)) / math.sqrt(len(r)) if len(r) > 1 else float("nan")
        rows.append({
            "bin": b,
            "n": int(len(idx)),
            "fitted_mean": float(f.mean()),
            "fitted_min": float(f.min()),
            "fitted_max": float(f.max()),
            "resid_mean": float(r.mean()),
            "resid_se2": se2,
        })
    out = pd.DataFrame(rows)
    out["outside"] = out["resid_mean"].abs() > out["resid_se2"]
    return out


def binned_residuals_by_level(
    residuals_long: pd.DataFrame,  # type: ignore[no-any-unimported]
    n_bins: int | None = None,
) -> dict[str, pd.DataFrame]:  # type: ignore[no-any-unimported]
    out = {}
    for lv, grp in residuals_long.groupby("level", sort=False):
        out[str(lv)] = binned_residuals(grp["fitted"].to_numpy(), grp["residual"].to_numpy(), n_bins)
    return out


def share_outside_bounds(binned: pd.DataFrame) -> float:  # type: ignore[no-any-unimported]
    """Fraction of bins whose mean residual falls outside +/- 2 SE (about 5% if well calibrated)."""
    if binned.empty:
        return float("nan")
    return float(binned["outside"].mean())


def plot_residuals(
    residuals_long: pd.DataFrame,  # type: ignore[no-any-unimported]
    out_path: Path,
    *,
    title: str = "Response residuals vs fitted",
) -> None:
    levels = list(dict.fromkeys(residuals_long["level"]))
    fig, axes = plt.subplots(1, len(levels), figsize=(4.5 * len(levels), 4), squeeze=False)

    for ax, lv in zip(axes[0], levels):
        grp = residuals_long[residuals_long["level"] == lv]
        ax.scatter(grp["fitted"], grp["residual"], s=6, alpha=0.4)
        ax.axhline(0.0, linestyle="--", linewidth=1, color="black")
        ax.set_title(lv)
        ax.set_xlabel("Fitted probability")
        ax.set_ylabel("Residual")

    fig.suptitle(title)
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    logger.info("Wrote residual plot: %s", out_path)


def plot_binned_residuals(
    binned: dict[str, pd.DataFrame],  # type: ignore[no-any-unimported]
    out_path: Path,
    *,
    title: str = "Binned residual plot",
) -> None:
    levels = list(binned)
    fig, axes = plt.subplots(1, len(levels), figsize=(4.5 * len(levels), 4), squeeze=False)

    for ax, lv in zip(axes[0], levels):
        b = binned[lv]
        ax.scatter(b["fitted_mean"], b["resid_mean"], s=12)
        ax.plot(b["fitted_mean"], b["resid_se2"], color="grey", linewidth=1)
        ax.plot(b["fitted_mean"], -b["resid_se2"], color="grey", linewidth=1)
        ax.axhline(0.0, linestyle="--", linewidth=1, color="black")
        ax.set_title(f"{lv} ({share_outside_bounds(b):.0%} bins outside)")
        ax.set_xlabel("Average fitted probability")
        ax.set_ylabel("Average residual")

    fig.suptitle(title)
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    logger.info("Wrote binned residual plot: %s", out_path)
