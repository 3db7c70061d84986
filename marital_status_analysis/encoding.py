# marital_status_analysis/encoding.py
"""
Treatment (dummy) encoding with explicit reference levels.

A DesignSpec is frozen at fit time from the training data and reused for every
later prediction, so new records are encoded exactly like training rows.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import numpy as np
import pandas as pd
import polars as pl

from marital_status_analysis.data_loader import CensusDataset
from marital_status_analysis.errors import AnalysisError, UnseenLevelError

INTERCEPT = "const"


def dummy_name(column: str, level: str) -> str:
    return f"{column}[T.{level}]"


def dummy_encode(
    values: Iterable[Any],
    levels: Sequence[str],
    reference: str,
    name: str,
) -> tuple[np.ndarray, list[str]]:
    """
    Encode one categorical column as L-1 indicator columns.

    Args:
        values: Category labels, one per record
        levels: Full level set, in column order
        reference: Level that gets no column (all-zero row)
        name: Column name used in the dummy names

    Returns:
        (indicator matrix of shape (n, L-1), dummy column names)

    Raises:
        UnseenLevelError: If a value is not in `levels`
    """
    levels = list(levels)
    if reference not in levels:
        raise AnalysisError(
            f"Reference level '{reference}' not among levels of '{name}': {levels}",
            hint="Pick a reference level that occurs in the training data.",
        )
    non_ref = [lv for lv in levels if lv != reference]
    index = {lv: j for j, lv in enumerate(non_ref)}

    vals = [str(v) if v is not None else None for v in values]
    out = np.zeros((len(vals), len(non_ref)), dtype=np.float64)
    for i, v in enumerate(vals):
        if v == reference:
            continue
        j = index.get(v)  # type: ignore[arg-type]
        if j is None:
            raise UnseenLevelError(name, v, levels)
        out[i, j] = 1.0

    return out, [dummy_name(name, lv) for lv in non_ref]


def _as_columns(data: Any, columns: Sequence[str]) -> tuple[dict[str, list[Any]], int]:
    """Normalize a dataset, frame, record, or list of records to (column lists, row count)."""
    if isinstance(data, CensusDataset):
        return {c: data.column_values(c) for c in columns}, data.height
    if isinstance(data, pl.DataFrame):
        missing = [c for c in columns if c not in data.columns]
        if missing:
            raise AnalysisError(f"Missing predictor columns: {missing}")
        return {c: data.get_column(c).to_list() if data.get_column(c).dtype.is_numeric()
                else data.get_column(c).cast(pl.Utf8).to_list() for c in columns}, data.height
    if isinstance(data, pd.DataFrame):
        missing = [c for c in columns if c not in data.columns]
        if missing:
            raise AnalysisError(f"Missing predictor columns: {missing}")
        return {c: data[c].tolist() for c in columns}, len(data)
    if isinstance(data, Mapping):
        data = [data]
    records = list(data)
    out: dict[str, list[Any]] = {c: [] for c in columns}
    for i, rec in enumerate(records):
        missing = [c for c in columns if c not in rec]
        if missing:
            raise AnalysisError(f"Record {i} is missing predictor values: {missing}")
        for c in columns:
            out[c].append(rec[c])
    return out, len(records)


@dataclass(frozen=True)
class DesignSpec:
    """Column layout of a model's design matrix."""

    predictors: tuple[str, ...]
    continuous: frozenset[str]
    levels: Mapping[str, tuple[str, ...]]
    references: Mapping[str, str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "predictors", tuple(self.predictors))
        object.__setattr__(self, "continuous", frozenset(self.continuous))
        object.__setattr__(self, "levels", MappingProxyType({k: tuple(v) for k, v in self.levels.items()}))
        object.__setattr__(self, "references", MappingProxyType(dict(self.references)))

        for p in self.predictors:
            if p in self.continuous:
                continue
            if p not in self.levels:
                raise AnalysisError(f"Predictor '{p}' is neither continuous nor has declared levels")
            if self.references.get(p) not in self.levels[p]:
                raise AnalysisError(
                    f"Reference level '{self.references.get(p)}' not among levels of '{p}': {list(self.levels[p])}",
                    hint="Pick a reference level that occurs in the training data.",
                )

    @classmethod
    def from_dataset(
        cls,
        dataset: CensusDataset,
        predictors: Sequence[str],
        references: Mapping[str, str] | None = None,
    ) -> DesignSpec:
        """
        Freeze the encoding from training data.

        Categorical levels are those observed in `dataset` (declared order). The
        reference level defaults to the first observed level.
        """
        references = dict(references or {})
        unknown = [p for p in predictors if p not in dataset.schema.columns]
        if unknown:
            raise AnalysisError(
                f"Unknown predictors: {unknown}",
                hint=f"Available columns: {dataset.schema.columns}",
            )

        continuous = [p for p in predictors if not dataset.schema.is_categorical(p)]
        levels: dict[str, list[str]] = {}
        refs: dict[str, str] = {}
        for p in predictors:
            if p in continuous:
                continue
            observed = dataset.observed_levels(p)
            levels[p] = observed
            refs[p] = references.get(p, observed[0])

        return cls(predictors=tuple(predictors), continuous=frozenset(continuous), levels=levels, references=refs)

    @property
    def column_names(self) -> list[str]:
        names = [INTERCEPT]
        for p in self.predictors:
            if p in self.continuous:
                names.append(p)
            else:
                names.extend(dummy_name(p, lv) for lv in self.levels[p] if lv != self.references[p])
        return names

    def term_columns(self) -> dict[str, list[int]]:
        """Predictor -> indices of its design columns (intercept excluded)."""
        out: dict[str, list[int]] = {}
        j = 1
        for p in self.predictors:
            width = 1 if p in self.continuous else len(self.levels[p]) - 1
            out[p] = list(range(j, j + width))
            j += width
        return out

    def transform(self, data: Any) -> np.ndarray:
        """
        Build the design matrix (intercept first) for `data`.

        Accepts a CensusDataset, polars/pandas DataFrame, a single record mapping,
        or an iterable of record mappings.

        Raises:
            UnseenLevelError: If a categorical value was not seen at fit time
            AnalysisError: If a predictor is missing or a continuous value is not numeric
        """
        cols, n = _as_columns(data, self.predictors)

        blocks: list[np.ndarray] = [np.ones((n, 1), dtype=np.float64)]
        for p in self.predictors:
            if p in self.continuous:
                try:
                    x = np.asarray(cols[p], dtype=np.float64).reshape(n, 1)
                except (TypeError, ValueError) as e:
                    raise AnalysisError(f"Predictor '{p}' must be numeric: {e}") from e
                if not np.isfinite(x).all():
                    raise AnalysisError(f"Predictor '{p}' has missing or non-finite values")
                blocks.append(x)
            else:
                dummies, _names = dummy_encode(cols[p], self.levels[p], self.references[p], p)
                blocks.append(dummies)

        return np.hstack(blocks)
