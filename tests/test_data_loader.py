"""Tests for loading and coercing the census extract"""

from dataclasses import FrozenInstanceError

import polars as pl
import pytest

from marital_status_analysis.data_loader import (
    coerce_categoricals,
    load_dataset,
    summarize_dataset,
)
from marital_status_analysis.errors import DatasetError
from marital_status_analysis.variables import DEFAULT_SCHEMA, MARITALSTATUS_LEVELS

HEADER = "age,workclass,education,race,sex,maritalstatus"


def _write(tmp_path, *rows, header=HEADER):
    path = tmp_path / "census.csv"
    path.write_text("\n".join([header, *rows]) + "\n")
    return path


def test_load_sample(dataset):
    """Test that the synthetic extract loads with Enum categoricals"""
    assert dataset.height == 4000
    assert dataset.frame.columns == DEFAULT_SCHEMA.columns
    assert dataset.frame["age"].dtype == pl.Float64
    for col in DEFAULT_SCHEMA.categorical:
        assert dataset.frame[col].dtype == pl.Enum(DEFAULT_SCHEMA.levels(col))


def test_dataset_is_immutable(dataset):
    with pytest.raises(FrozenInstanceError):
        dataset.frame = pl.DataFrame()  # type: ignore[misc]


def test_level_counts_sum_to_rows(dataset):
    counts = dataset.level_counts("maritalstatus")
    assert counts["maritalstatus"].to_list() == MARITALSTATUS_LEVELS
    assert counts["n"].sum() == dataset.height
    assert counts["pct"].sum() == pytest.approx(100.0)


def test_observed_levels_follow_declared_order(tmp_path):
    path = _write(
        tmp_path,
        "40,State-gov,HS-grad,White,Male,Widowed",
        "25,Private,Bachelors,Black,Female,Married",
    )
    ds = load_dataset(path)
    assert ds.observed_levels("workclass") == ["Private", "State-gov"]
    assert ds.observed_levels("maritalstatus") == ["Married", "Widowed"]


def test_whitespace_is_stripped(tmp_path):
    path = _write(tmp_path, "39, Private, Bachelors, White, Male, Never-married")
    ds = load_dataset(path)
    assert ds.column_values("workclass") == ["Private"]
    assert ds.column_values("maritalstatus") == ["Never-married"]


def test_extra_columns_are_dropped(tmp_path):
    path = _write(
        tmp_path,
        "39,Private,Bachelors,White,Male,Married,77516",
        header=HEADER + ",fnlwgt",
    )
    ds = load_dataset(path)
    assert "fnlwgt" not in ds.frame.columns


def test_missing_file(tmp_path):
    with pytest.raises(DatasetError, match="not found"):
        load_dataset(tmp_path / "nope.csv")


def test_missing_column(tmp_path):
    path = _write(tmp_path, "39,Private,Bachelors,White,Male", header="age,workclass,education,race,sex")
    with pytest.raises(DatasetError, match="maritalstatus"):
        load_dataset(path)


def test_unknown_level(tmp_path):
    path = _write(tmp_path, "39,Private,Bachelors,White,Male,Engaged")
    with pytest.raises(DatasetError, match="Engaged"):
        load_dataset(path)


def test_non_numeric_age(tmp_path):
    path = _write(tmp_path, "thirty,Private,Bachelors,White,Male,Married")
    with pytest.raises(DatasetError, match="numeric"):
        load_dataset(path)


def test_null_cells(tmp_path):
    path = _write(tmp_path, "39,,Bachelors,White,Male,Married")
    with pytest.raises(DatasetError, match="Null"):
        load_dataset(path)


def test_header_only(tmp_path):
    path = _write(tmp_path)
    with pytest.raises(DatasetError):
        load_dataset(path)


def test_coerce_categoricals_returns_new_frame():
    raw = pl.DataFrame({
        "age": [30.0],
        "workclass": ["Private"],
        "education": ["HS-grad"],
        "race": ["White"],
        "sex": ["Female"],
        "maritalstatus": ["Married"],
    })
    out = coerce_categoricals(raw, DEFAULT_SCHEMA)
    assert raw["sex"].dtype == pl.Utf8
    assert out["sex"].dtype == pl.Enum(["Female", "Male"])


def test_summarize_dataset(dataset):
    summary = summarize_dataset(dataset)
    assert summary["n_rows"] == dataset.height
    assert 18 <= summary["continuous"]["age"]["min"] <= summary["continuous"]["age"]["max"] <= 90
    assert sum(summary["levels"]["sex"].values()) == dataset.height


def test_to_pandas_keeps_categories(dataset):
    pdf = dataset.to_pandas()
    assert list(pdf["race"].cat.categories) == DEFAULT_SCHEMA.levels("race")
    assert len(pdf) == dataset.height
