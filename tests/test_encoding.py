"""Tests for dummy encoding and the frozen design layout"""

import numpy as np
import pytest

from marital_status_analysis.encoding import DesignSpec, dummy_encode
from marital_status_analysis.errors import AnalysisError, UnseenLevelError
from marital_status_analysis.variables import DEFAULT_SCHEMA, EXAMPLE_RECORD, FULL_PREDICTORS


@pytest.mark.parametrize("column", list(DEFAULT_SCHEMA.categorical))
def test_dummy_encode_produces_l_minus_one_columns(column):
    levels = DEFAULT_SCHEMA.levels(column)
    for reference in levels:
        X, names = dummy_encode(levels, levels, reference, column)
        assert X.shape == (len(levels), len(levels) - 1)
        assert len(names) == len(levels) - 1
        assert f"{column}[T.{reference}]" not in names
        # the reference row is all zeros, every other row has exactly one indicator
        row_sums = X.sum(axis=1)
        assert row_sums[levels.index(reference)] == 0
        assert sorted(row_sums.tolist()) == [0.0] + [1.0] * (len(levels) - 1)


def test_dummy_encode_unseen_level():
    with pytest.raises(UnseenLevelError) as exc:
        dummy_encode(["Female", "Nonbinary"], ["Female", "Male"], "Female", "sex")
    assert exc.value.column == "sex"
    assert exc.value.value == "Nonbinary"


def test_dummy_encode_bad_reference():
    with pytest.raises(AnalysisError, match="Reference level"):
        dummy_encode(["Female"], ["Female", "Male"], "Other", "sex")


def test_design_spec_column_names(dataset):
    spec = DesignSpec.from_dataset(dataset, ["age", "sex", "race"], {"race": "Black"})
    assert spec.column_names == [
        "const",
        "age",
        "sex[T.Male]",
        "race[T.White]",
        "race[T.Asian-Pac-Islander]",
        "race[T.Amer-Indian-Eskimo]",
        "race[T.Other]",
    ]
    assert spec.term_columns() == {"age": [1], "sex": [2], "race": [3, 4, 5, 6]}


def test_design_spec_width(dataset):
    spec = DesignSpec.from_dataset(dataset, FULL_PREDICTORS)
    expected = 1 + 1 + sum(len(dataset.observed_levels(p)) - 1 for p in FULL_PREDICTORS if p != "age")
    assert len(spec.column_names) == expected
    assert spec.transform(dataset).shape == (dataset.height, expected)


def test_record_encoded_like_training_row(dataset):
    spec = DesignSpec.from_dataset(dataset, FULL_PREDICTORS)
    X_train = spec.transform(dataset)
    first = {p: dataset.column_values(p)[0] for p in FULL_PREDICTORS}
    np.testing.assert_array_equal(spec.transform(first)[0], X_train[0])


def test_transform_single_record(dataset):
    spec = DesignSpec.from_dataset(dataset, FULL_PREDICTORS)
    X = spec.transform(EXAMPLE_RECORD)
    assert X.shape == (1, len(spec.column_names))
    assert X[0, 0] == 1.0
    assert X[0, spec.column_names.index("age")] == 30.0
    assert X[0, spec.column_names.index("education[T.Bachelors]")] == 1.0


def test_transform_rejects_unseen_and_missing(dataset):
    spec = DesignSpec.from_dataset(dataset, FULL_PREDICTORS)
    with pytest.raises(UnseenLevelError):
        spec.transform({**EXAMPLE_RECORD, "workclass": "Never-worked"})
    with pytest.raises(AnalysisError, match="missing"):
        spec.transform({k: v for k, v in EXAMPLE_RECORD.items() if k != "age"})


def test_unknown_predictor(dataset):
    with pytest.raises(AnalysisError, match="Unknown predictors"):
        DesignSpec.from_dataset(dataset, ["age", "income"])


def test_intercept_only_design_keeps_row_count(dataset):
    spec = DesignSpec.from_dataset(dataset, [])
    assert spec.column_names == ["const"]
    X = spec.transform(dataset)
    assert X.shape == (dataset.height, 1)
    assert (X == 1.0).all()
    assert spec.transform(EXAMPLE_RECORD).shape == (1, 1)
    assert spec.transform([EXAMPLE_RECORD, EXAMPLE_RECORD]).shape == (2, 1)
    assert spec.transform(dataset.frame).shape == (dataset.height, 1)
