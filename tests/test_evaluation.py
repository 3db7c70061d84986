"""Tests for confusion matrices and single-record scoring"""

import numpy as np
import pytest

from marital_status_analysis.errors import AnalysisError, UnseenLevelError
from marital_status_analysis.evaluation import confusion_matrix, evaluate_training_fit, predict_record
from marital_status_analysis.variables import EXAMPLE_RECORD

LEVELS = ["Married", "Never-married", "Divorced", "Widowed"]


def test_confusion_matrix_counts():
    actual = ["Married", "Married", "Divorced", "Never-married", "Married"]
    predicted = ["Married", "Divorced", "Divorced", "Married", "Married"]
    summary = confusion_matrix(actual, predicted, LEVELS)

    assert list(summary.table.index) == LEVELS
    assert list(summary.table.columns) == LEVELS
    assert summary.table.loc["Married", "Married"] == 2
    assert summary.table.loc["Married", "Divorced"] == 1
    assert summary.table.loc["Never-married", "Married"] == 1
    assert summary.total == 5
    assert summary.correct == 3
    assert summary.accuracy == pytest.approx(0.6)
    assert summary.true_counts().to_dict() == {"Married": 3, "Never-married": 1, "Divorced": 1, "Widowed": 0}
    assert summary.predicted_counts()["Married"] == 3


def test_absent_level_keeps_zero_row():
    summary = confusion_matrix(["Married"], ["Married"], LEVELS)
    assert (summary.table.loc["Widowed"] == 0).all()
    assert (summary.table["Widowed"] == 0).all()
    recall = summary.per_class_recall()
    assert recall["Married"] == 1.0
    assert np.isnan(recall["Widowed"])


def test_confusion_matrix_rejects_bad_input():
    with pytest.raises(AnalysisError, match="Length mismatch"):
        confusion_matrix(["Married"], ["Married", "Widowed"], LEVELS)
    with pytest.raises(AnalysisError, match="Separated"):
        confusion_matrix(["Married"], ["Separated"], LEVELS)


def test_to_text_mentions_accuracy():
    text = confusion_matrix(["Married", "Widowed"], ["Married", "Married"], LEVELS).to_text()
    assert "Accuracy: 0.5000" in text


def test_evaluate_training_fit(full_fit, dataset):
    summary = evaluate_training_fit(full_fit, dataset)
    assert summary.total == dataset.height
    assert summary.levels == full_fit.outcome_levels
    counts = dataset.level_counts("maritalstatus")
    assert summary.true_counts().to_dict() == dict(zip(counts["maritalstatus"], counts["n"]))
    assert summary.accuracy == pytest.approx(summary.correct / summary.total)
    # beats always guessing the majority level
    assert summary.accuracy >= counts["n"].max() / dataset.height


def test_predict_record(full_fit):
    probs = predict_record(full_fit, EXAMPLE_RECORD)
    assert list(probs) == full_fit.outcome_levels
    assert sum(probs.values()) == pytest.approx(1.0, abs=1e-6)
    assert all(0.0 <= p <= 1.0 for p in probs.values())


def test_predict_record_matches_predict_proba(full_fit):
    probs = predict_record(full_fit, EXAMPLE_RECORD)
    row = full_fit.predict_proba(EXAMPLE_RECORD).iloc[0]
    for lv, p in probs.items():
        assert p == pytest.approx(row[lv])


def test_predict_record_unseen_level(full_fit):
    with pytest.raises(UnseenLevelError) as exc:
        predict_record(full_fit, {**EXAMPLE_RECORD, "workclass": "Never-worked"})
    assert exc.value.column == "workclass"


def test_predict_record_missing_predictor(full_fit):
    record = {k: v for k, v in EXAMPLE_RECORD.items() if k != "education"}
    with pytest.raises(AnalysisError, match="education"):
        predict_record(full_fit, record)
