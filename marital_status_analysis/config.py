"""
Configuration loader for marital-status analysis runs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, cast

import yaml

from marital_status_analysis.variables import (
    DEFAULT_REFERENCE,
    DEFAULT_SCHEMA,
    EXAMPLE_RECORD,
    FULL_PREDICTORS,
    OUTCOME,
    REDUCED_PREDICTORS,
    DatasetSchema,
)


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """
    Load configuration from YAML file with environment variable substitution.

    Args:
        config_path: Path to config file. If None, uses default config/analysis.yaml

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the YAML root is not a mapping
    """
    if config_path is None:
        # Default to config/analysis.yaml relative to project root
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config" / "analysis.yaml"

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        config: dict[str, Any] = {}
    elif not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping, got {type(data).__name__}")
    else:
        config = cast(dict[str, Any], data)

    return cast(dict[str, Any], _substitute_env_vars(config))


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute ${VAR} patterns with environment variables."""
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    if isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
        var_name = obj[2:-1]
        return os.getenv(var_name, obj)  # fall back to original if unset
    return obj


@dataclass(frozen=True)
class AnalysisSettings:
    """Resolved parameters for one analysis run."""

    data_path: Path | None = None
    output_dir: Path = Path("data/marital_status/results")
    outcome: str = OUTCOME
    reference: str = DEFAULT_REFERENCE
    reduced_predictors: list[str] = field(default_factory=lambda: list(REDUCED_PREDICTORS))
    full_predictors: list[str] = field(default_factory=lambda: list(FULL_PREDICTORS))
    predictor_references: dict[str, str] = field(default_factory=dict)
    vif_threshold: float = 5.0
    binned_residual_bins: int | None = None
    maxiter: int = 100
    example_record: dict[str, Any] = field(default_factory=lambda: dict(EXAMPLE_RECORD))
    schema: DatasetSchema = DEFAULT_SCHEMA

    def with_overrides(self, **overrides: Any) -> AnalysisSettings:
        """Apply non-None overrides (CLI flags take precedence over YAML)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def get_analysis_settings(config: dict[str, Any] | None = None) -> AnalysisSettings:
    """
    Build AnalysisSettings from a config dict.

    Args:
        config: Config dict. If None, loads default config.

    Returns:
        AnalysisSettings with defaults filled in for absent keys
    """
    if config is None:
        config = load_config()

    model = config.get("model", {}) or {}
    diagnostics = config.get("diagnostics", {}) or {}

    schema = DEFAULT_SCHEMA
    level_overrides = config.get("levels") or {}
    if level_overrides:
        schema = schema.with_levels({k: list(v) for k, v in level_overrides.items()})

    data_path = config.get("data_path")
    if isinstance(data_path, str) and data_path.startswith("${"):
        data_path = None  # env var unset

    settings = AnalysisSettings(
        data_path=Path(data_path) if data_path else None,
        output_dir=Path(config.get("output_dir", "data/marital_status/results")),
        outcome=str(model.get("outcome", OUTCOME)),
        reference=str(model.get("reference", DEFAULT_REFERENCE)),
        reduced_predictors=list(model.get("reduced_predictors", REDUCED_PREDICTORS)),
        full_predictors=list(model.get("full_predictors", FULL_PREDICTORS)),
        predictor_references={str(k): str(v) for k, v in (model.get("predictor_references") or {}).items()},
        vif_threshold=float(diagnostics.get("vif_threshold", 5.0)),
        binned_residual_bins=(
            int(diagnostics["binned_residual_bins"]) if diagnostics.get("binned_residual_bins") else None
        ),
        maxiter=int(model.get("maxiter", 100)),
        example_record=dict(config.get("example_record", EXAMPLE_RECORD)),
        schema=schema,
    )

    if settings.outcome not in settings.schema.categorical:
        raise ValueError(f"Outcome '{settings.outcome}' must be a categorical column")
    if settings.reference not in settings.schema.levels(settings.outcome):
        raise ValueError(
            f"Reference level '{settings.reference}' not in {settings.outcome} levels "
            f"{settings.schema.levels(settings.outcome)}"
        )
    missing = set(settings.reduced_predictors) - set(settings.full_predictors)
    if missing:
        raise ValueError(f"Reduced predictors must be a subset of the full set; extra: {sorted(missing)}")
    if settings.vif_threshold <= 0:
        raise ValueError(f"vif_threshold must be positive, got {settings.vif_threshold}")

    return settings
