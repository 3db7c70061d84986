# marital_status_analysis/data_loader.py
"""
Load the cleaned census extract and coerce its categorical columns.

The loaded data is returned as an immutable CensusDataset value that every
downstream stage receives explicitly. Malformed input fails loudly with a
DatasetError; nothing is repaired silently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
import polars as pl

from marital_status_analysis.errors import DatasetError
from marital_status_analysis.variables import DEFAULT_SCHEMA, DatasetSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CensusDataset:
    """Loaded observations plus the schema they were validated against."""

    frame: pl.DataFrame
    schema: DatasetSchema
    source: Path | None = None

    @property
    def height(self) -> int:
        return int(self.frame.height)

    def observed_levels(self, column: str) -> list[str]:
        """Levels of `column` present in the data, in declared order."""
        present = set(self.frame.get_column(column).cast(pl.Utf8).unique().to_list())
        return [lv for lv in self.schema.levels(column) if lv in present]

    def level_counts(self, column: str) -> pl.DataFrame:
        """Frequency table for one categorical column (declared order, zeros kept)."""
        counts = self.frame.group_by(pl.col(column).cast(pl.Utf8)).agg(pl.len().alias("n"))
        lookup = dict(zip(counts.get_column(column).to_list(), counts.get_column("n").to_list()))
        levels = self.schema.levels(column)
        n = [int(lookup.get(lv, 0)) for lv in levels]
        total = max(sum(n), 1)
        return pl.DataFrame({
            column: levels,
            "n": n,
            "pct": [100.0 * k / total for k in n],
        })

    def column_values(self, column: str) -> list[Any]:
        col = self.frame.get_column(column)
        if self.schema.is_categorical(column):
            col = col.cast(pl.Utf8)
        return col.to_list()

    def to_pandas(self) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        """pandas view with categorical columns as ordered-by-declaration Categoricals."""
        data: dict[str, Any] = {}
        for c in self.schema.columns:
            if self.schema.is_categorical(c):
                data[c] = pd.Categorical(self.column_values(c), categories=self.schema.levels(c))
            else:
                data[c] = self.frame.get_column(c).to_numpy()
        return pd.DataFrame(data)


# ---------------------------------------------------------------------------
# Validation + coercion
# ---------------------------------------------------------------------------


def _check_required_columns(df: pl.DataFrame, schema: DatasetSchema, path: Path) -> None:
    missing = [c for c in schema.columns if c not in df.columns]
    if missing:
        raise DatasetError(
            f"{path}: missing required columns {missing}",
            hint=f"Expected header with columns {schema.columns}; found {df.columns}",
        )


def _coerce_continuous(df: pl.DataFrame, schema: DatasetSchema) -> pl.DataFrame:
    for c in schema.continuous:
        col = df.get_column(c)
        if col.dtype.is_numeric():
            df = df.with_columns(pl.col(c).cast(pl.Float64))
            continue
        casted = col.cast(pl.Utf8).str.strip_chars().cast(pl.Float64, strict=False)
        bad = df.filter(col.is_not_null() & casted.is_null()).get_column(c).head(5).to_list()
        if bad:
            raise DatasetError(
                f"Column '{c}' must be numeric; found non-numeric values such as {bad}",
            )
        df = df.with_columns(casted.alias(c))
    return df


def coerce_categoricals(frame: pl.DataFrame, schema: DatasetSchema) -> pl.DataFrame:
    """
    Cast every categorical column of `schema` to a pl.Enum of its declared levels.

    Values are whitespace-stripped first. Any value outside the declared label set
    raises DatasetError naming the offending values and their counts.

    Returns:
        New DataFrame; `frame` is left untouched.
    """
    out = frame
    for c, levels in schema.categorical.items():
        stripped = out.get_column(c).cast(pl.Utf8).str.strip_chars()
        unknown = (
            stripped.filter(stripped.is_not_null() & ~stripped.is_in(list(levels)))
            .value_counts(sort=True)
            .head(10)
        )
        if unknown.height > 0:
            found = {row[c]: int(row["count"]) for row in unknown.iter_rows(named=True)}
            raise DatasetError(
                f"Column '{c}' has values outside its label set: {found}",
                hint=f"Allowed levels: {list(levels)}. Override them under `levels:` in the config if intended.",
            )
        out = out.with_columns(stripped.cast(pl.Enum(list(levels))).alias(c))
    return out


def _check_no_nulls(df: pl.DataFrame, schema: DatasetSchema) -> None:
    nulls = {c: int(df.get_column(c).null_count()) for c in schema.columns}
    nulls = {c: n for c, n in nulls.items() if n > 0}
    if nulls:
        raise DatasetError(
            f"Null values in required columns: {nulls}",
            hint="The analysis expects a pre-cleaned file; drop or impute missing rows upstream.",
        )


def load_dataset(path: Path | str, schema: DatasetSchema = DEFAULT_SCHEMA) -> CensusDataset:
    """
    Read the cleaned census CSV and return an immutable CensusDataset.

    Args:
        path: Comma-separated file with header row
        schema: Expected columns and label sets

    Returns:
        CensusDataset restricted to the schema columns, categorical columns as pl.Enum

    Raises:
        DatasetError: If the file is missing, unparseable, or violates the schema
    """
    path = Path(path)
    logger.info("Loading dataset from %s", path)

    if not path.exists():
        raise DatasetError(f"Data file not found: {path}")

    try:
        raw = pl.read_csv(
            path,
            infer_schema_length=10000,
            schema_overrides=dict.fromkeys(schema.categorical, pl.Utf8),
            null_values=["", "NA", "?"],
        )
    except (pl.exceptions.PolarsError, OSError) as e:
        raise DatasetError(f"Could not parse {path} as CSV: {e}") from e

    if raw.height == 0:
        raise DatasetError(f"{path} contains a header but no rows")

    _check_required_columns(raw, schema, path)

    extra = [c for c in raw.columns if c not in schema.columns]
    if extra:
        logger.info("  Ignoring %d extra columns: %s", len(extra), extra)

    df = raw.select(schema.columns)
    _check_no_nulls(df, schema)
    df = _coerce_continuous(df, schema)
    df = coerce_categoricals(df, schema)

    logger.info("  %s rows, %d columns", f"{df.height:,}", len(df.columns))
    return CensusDataset(frame=df, schema=schema, source=path)


def summarize_dataset(dataset: CensusDataset) -> dict[str, Any]:
    """Row count, continuous summaries and level counts for the report."""
    summary: dict[str, Any] = {"n_rows": dataset.height, "continuous": {}, "levels": {}}

    for c in dataset.schema.continuous:
        col = dataset.frame.get_column(c)
        summary["continuous"][c] = {
            "mean": float(col.mean()),  # type: ignore[arg-type]
            "std": float(col.std()),  # type: ignore[arg-type]
            "min": float(col.min()),  # type: ignore[arg-type]
            "median": float(col.median()),  # type: ignore[arg-type]
            "max": float(col.max()),  # type: ignore[arg-type]
        }

    for c in dataset.schema.categorical:
        counts = dataset.level_counts(c)
        summary["levels"][c] = dict(zip(counts.get_column(c).to_list(), counts.get_column("n").to_list()))
        empty = [lv for lv, n in summary["levels"][c].items() if n == 0]
        if empty:
            logger.warning("  %s: declared levels with no observations: %s", c, empty)

    logger.info(
        "Dataset: %s rows, age mean %.1f (sd %.1f)",
        f"{dataset.height:,}",
        summary["continuous"].get("age", {}).get("mean", float("nan")),
        summary["continuous"].get("age", {}).get("std", float("nan")),
    )
    return summary
