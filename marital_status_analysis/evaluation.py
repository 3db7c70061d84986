# marital_status_analysis/evaluation.py
"""
In-sample evaluation of a fitted multinomial logit.

Evaluation runs on the training rows themselves: there is no held-out split or
cross-validation, so accuracy here is optimistic.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix as sk_confusion_matrix

from marital_status_analysis.data_loader import CensusDataset
from marital_status_analysis.errors import AnalysisError
from marital_status_analysis.multinomial import MultinomialFit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfusionSummary:
    """Counts indexed by (true level, predicted level)."""

    table: pd.DataFrame  # type: ignore[no-any-unimported]
    levels: list[str]

    @property
    def total(self) -> int:
        return int(self.table.to_numpy().sum())

    @property
    def correct(self) -> int:
        return int(np.trace(self.table.to_numpy()))

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total > 0 else float("nan")

    def true_counts(self) -> pd.Series:  # type: ignore[no-any-unimported]
        return self.table.sum(axis=1)

    def predicted_counts(self) -> pd.Series:  # type: ignore[no-any-unimported]
        return self.table.sum(axis=0)

    def per_class_recall(self) -> dict[str, float]:
        counts = self.table.to_numpy()
        out: dict[str, float] = {}
        for i, lv in enumerate(self.levels):
            n_true = counts[i].sum()
            out[lv] = float(counts[i, i] / n_true) if n_true > 0 else float("nan")
        return out

    def to_text(self) -> str:
        lines = [
            "Confusion matrix (rows = actual, columns = predicted)",
            self.table.to_string(),
            "",
            f"Accuracy: {self.accuracy:.4f} ({self.correct:,} / {self.total:,})",
        ]
        return "\n".join(lines)


def confusion_matrix(
    actual: Sequence[str],
    predicted: Sequence[str],
    levels: Sequence[str],
) -> ConfusionSummary:
    """
    Cross-tabulate actual against predicted labels over a fixed level order.

    Levels that never occur still get a row and a column of zeros.
    """
    if len(actual) != len(predicted):
        raise AnalysisError(f"Length mismatch: {len(actual)} actual vs {len(predicted)} predicted labels")
    levels = list(levels)
    stray = sorted({str(v) for v in (*actual, *predicted)} - set(levels))
    if stray:
        raise AnalysisError(f"Labels outside the level set {levels}: {stray}")

    counts = sk_confusion_matrix(list(actual), list(predicted), labels=levels)
    table = pd.DataFrame(
        counts,
        index=pd.Index(levels, name="actual"),
        columns=pd.Index(levels, name="predicted"),
    )
    return ConfusionSummary(table=table, levels=levels)


def evaluate_training_fit(fit: MultinomialFit, dataset: CensusDataset) -> ConfusionSummary:
    """Predict every training row and tabulate against the observed outcome."""
    actual = dataset.column_values(fit.outcome)
    predicted = fit.predict(dataset)
    summary = confusion_matrix(actual, predicted, fit.outcome_levels)

    logger.info(
        "In-sample accuracy (%s): %.4f on %s rows (no held-out split)",
        " + ".join(fit.predictors),
        summary.accuracy,
        f"{summary.total:,}",
    )
    never = [lv for lv, n in summary.predicted_counts().items() if n == 0]
    if never:
        logger.info("  Levels never predicted: %s", never)
    return summary


def predict_record(fit: MultinomialFit, record: Mapping[str, Any]) -> dict[str, float]:
    """
    Class probabilities for a single record.

    Raises:
        UnseenLevelError: If a categorical value was not seen during fitting
        AnalysisError: If a predictor is missing from the record
    """
    missing = [p for p in fit.predictors if p not in record]
    if missing:
        raise AnalysisError(
            f"Record is missing predictors {missing}",
            hint=f"The model uses {fit.predictors}",
        )
    probs = fit.predict_proba(dict(record)).iloc[0]
    out = {str(lv): float(probs[lv]) for lv in fit.outcome_levels}
    logger.info(
        "Record %s -> %s",
        {p: record[p] for p in fit.predictors},
        ", ".join(f"{lv}={p:.3f}" for lv, p in out.items()),
    )
    return out
