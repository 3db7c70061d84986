"""Tests for YAML config loading and settings resolution"""

from pathlib import Path

import pytest

from marital_status_analysis.config import AnalysisSettings, get_analysis_settings, load_config


def _write_yaml(tmp_path, text):
    path = tmp_path / "analysis.yaml"
    path.write_text(text)
    return path


def test_default_config_loads(monkeypatch):
    monkeypatch.delenv("CENSUS_DATA_PATH", raising=False)
    settings = get_analysis_settings(load_config())
    assert settings.outcome == "maritalstatus"
    assert settings.reference == "Married"
    assert settings.reduced_predictors == ["age", "sex"]
    assert settings.full_predictors == ["age", "workclass", "education", "race", "sex"]
    assert settings.vif_threshold == 5.0
    assert settings.binned_residual_bins is None
    assert settings.predictor_references["workclass"] == "Private"
    # unset env var leaves no data path
    assert settings.data_path is None


def test_env_var_substitution(tmp_path, monkeypatch):
    monkeypatch.setenv("CENSUS_DATA_PATH", "/data/census.csv")
    path = _write_yaml(tmp_path, "data_path: ${CENSUS_DATA_PATH}\n")
    config = load_config(path)
    assert config["data_path"] == "/data/census.csv"
    assert get_analysis_settings(config).data_path == Path("/data/census.csv")


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_non_mapping_root(tmp_path):
    path = _write_yaml(tmp_path, "- a\n- b\n")
    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


def test_empty_file_gives_defaults(tmp_path):
    settings = get_analysis_settings(load_config(_write_yaml(tmp_path, "")))
    assert settings == AnalysisSettings()


def test_invalid_reference(tmp_path):
    path = _write_yaml(tmp_path, "model:\n  reference: Separated\n")
    with pytest.raises(ValueError, match="Separated"):
        get_analysis_settings(load_config(path))


def test_reduced_must_nest_in_full():
    with pytest.raises(ValueError, match="subset"):
        get_analysis_settings({"model": {"reduced_predictors": ["age", "race"], "full_predictors": ["age", "sex"]}})


def test_non_positive_threshold():
    with pytest.raises(ValueError, match="vif_threshold"):
        get_analysis_settings({"diagnostics": {"vif_threshold": 0}})


def test_level_overrides_extend_schema():
    settings = get_analysis_settings({
        "levels": {"maritalstatus": ["Married", "Never-married", "Divorced", "Widowed", "Separated"]},
        "model": {"reference": "Separated"},
    })
    assert settings.reference == "Separated"
    assert "Separated" in settings.schema.levels("maritalstatus")


def test_with_overrides_ignores_none():
    base = AnalysisSettings()
    out = base.with_overrides(reference="Widowed", vif_threshold=None)
    assert out.reference == "Widowed"
    assert out.vif_threshold == base.vif_threshold
