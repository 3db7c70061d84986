"""Tests for the synthetic census generator"""

from marital_status_analysis.data_loader import load_dataset
from marital_status_analysis.sample_data import generate_sample_dataset, write_sample_csv
from marital_status_analysis.variables import DEFAULT_SCHEMA


def test_generate_is_deterministic():
    a = generate_sample_dataset(n_rows=200, seed=5)
    b = generate_sample_dataset(n_rows=200, seed=5)
    assert a.equals(b)
    assert not a.equals(generate_sample_dataset(n_rows=200, seed=6))


def test_generated_values_are_valid():
    frame = generate_sample_dataset(n_rows=500, seed=1)
    assert frame.columns == DEFAULT_SCHEMA.columns
    assert frame["age"].min() >= 18
    assert frame["age"].max() <= 90
    for col in DEFAULT_SCHEMA.categorical:
        assert set(frame[col].unique().to_list()) <= set(DEFAULT_SCHEMA.levels(col))


def test_written_csv_loads(tmp_path):
    path = write_sample_csv(tmp_path / "nested" / "sample.csv", n_rows=300, seed=2)
    ds = load_dataset(path)
    assert ds.height == 300
