# marital_status_analysis/exploration.py
"""Exploratory views of age across the categorical attributes."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import polars as pl
import seaborn as sns

from marital_status_analysis.data_loader import CensusDataset

logger = logging.getLogger(__name__)

sns.set_style("whitegrid")


def age_by_level(dataset: CensusDataset, column: str, value: str = "age") -> pl.DataFrame:
    """Count, mean and quartiles of `value` for each observed level of `column`."""
    levels = dataset.observed_levels(column)
    stats = (
        dataset.frame.group_by(pl.col(column).cast(pl.Utf8))
        .agg(
            pl.len().alias("n"),
            pl.col(value).mean().alias("mean"),
            pl.col(value).quantile(0.25).alias("q1"),
            pl.col(value).median().alias("median"),
            pl.col(value).quantile(0.75).alias("q3"),
        )
    )
    order = pl.DataFrame({column: levels, "_order": list(range(len(levels)))})
    return order.join(stats, on=column, how="left").sort("_order").drop("_order")


def plot_age_boxplots(
    dataset: CensusDataset,
    columns: Sequence[str],
    out_path: Path,
    *,
    value: str = "age",
) -> None:
    """One boxplot panel per categorical column, age on the y axis."""
    columns = list(columns)
    n_cols = min(3, len(columns))
    n_rows = int(np.ceil(len(columns) / n_cols))
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(5.5 * n_cols, 4.5 * n_rows), squeeze=False)
    y = dataset.frame.get_column(value).to_numpy()

    for ax, col in zip(axes.flat, columns):
        levels = dataset.observed_levels(col)
        sns.boxplot(x=dataset.column_values(col), y=y, order=levels, color="#8fb3d9", fliersize=2, ax=ax)
        ax.set_xticks(range(len(levels)))
        ax.set_xticklabels(levels, rotation=30, ha="right", fontsize=8)
        ax.set_title(f"{value} by {col}")
        ax.set_xlabel("")
        ax.set_ylabel(value)

    for ax in list(axes.flat)[len(columns) :]:
        ax.set_axis_off()

    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    logger.info("Wrote boxplots: %s", out_path)
