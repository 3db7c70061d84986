# marital_status_analysis/sample_data.py
"""
Synthetic census-like records for local runs and tests.

Marital status is drawn from a known multinomial logit in age, sex and education
(reference level Married), so fitted coefficients have a ground truth to compare
against. Label sets match DEFAULT_SCHEMA.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import polars as pl

from marital_status_analysis.variables import (
    EDUCATION_LEVELS,
    MARITALSTATUS_LEVELS,
    RACE_LEVELS,
    SEX_LEVELS,
    WORKCLASS_LEVELS,
)

WORKCLASS_PROBS = [0.68, 0.09, 0.05, 0.04, 0.07, 0.07]
EDUCATION_PROBS = [0.12, 0.30, 0.22, 0.09, 0.17, 0.10]
RACE_PROBS = [0.75, 0.10, 0.07, 0.04, 0.04]
SEX_PROBS = [0.45, 0.55]

# log-odds vs Married: intercept, age, female, bachelors-or-higher
TRUE_COEFFICIENTS: dict[str, tuple[float, float, float, float]] = {
    "Never-married": (3.2, -0.10, 0.30, 0.20),
    "Divorced": (-1.6, 0.01, 0.55, -0.20),
    "Widowed": (-6.5, 0.075, 1.10, -0.10),
}


@dataclass(frozen=True)
class GenerationConfig:
    n_rows: int = 2000
    seed: int | None = 42
    age_min: int = 18
    age_max: int = 90


def generate_sample_dataset(n_rows: int = 2000, seed: int | None = 42) -> pl.DataFrame:
    """Draw `n_rows` records with columns age, workclass, education, race, sex, maritalstatus."""
    cfg = GenerationConfig(n_rows=n_rows, seed=seed)
    rng = np.random.default_rng(cfg.seed)

    age = np.clip(np.round(rng.normal(44.0, 16.0, size=cfg.n_rows)), cfg.age_min, cfg.age_max)
    workclass = rng.choice(WORKCLASS_LEVELS, size=cfg.n_rows, p=WORKCLASS_PROBS)
    education = rng.choice(EDUCATION_LEVELS, size=cfg.n_rows, p=EDUCATION_PROBS)
    race = rng.choice(RACE_LEVELS, size=cfg.n_rows, p=RACE_PROBS)
    sex = rng.choice(SEX_LEVELS, size=cfg.n_rows, p=SEX_PROBS)

    female = (sex == "Female").astype(np.float64)
    degree = np.isin(education, ["Bachelors", "Graduate"]).astype(np.float64)

    # Married is the zero column
    eta = np.zeros((cfg.n_rows, len(MARITALSTATUS_LEVELS)))
    for j, lv in enumerate(MARITALSTATUS_LEVELS):
        if lv in TRUE_COEFFICIENTS:
            b0, b_age, b_female, b_degree = TRUE_COEFFICIENTS[lv]
            eta[:, j] = b0 + b_age * age + b_female * female + b_degree * degree

    eta -= eta.max(axis=1, keepdims=True)
    probs = np.exp(eta)
    probs /= probs.sum(axis=1, keepdims=True)

    u = rng.random(cfg.n_rows)[:, None]
    idx = (u > np.cumsum(probs, axis=1)).sum(axis=1)
    idx = np.minimum(idx, len(MARITALSTATUS_LEVELS) - 1)
    marital = np.asarray(MARITALSTATUS_LEVELS)[idx]

    return pl.DataFrame({
        "age": age.astype(np.int64),
        "workclass": workclass.tolist(),
        "education": education.tolist(),
        "race": race.tolist(),
        "sex": sex.tolist(),
        "maritalstatus": marital.tolist(),
    })


def write_sample_csv(out_path: Path, n_rows: int = 2000, seed: int | None = 42) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    generate_sample_dataset(n_rows=n_rows, seed=seed).write_csv(out_path)
    return out_path
