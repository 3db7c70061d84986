"""Shared fixtures: one synthetic census extract and the two fitted models."""

from pathlib import Path

import matplotlib
import pytest

from marital_status_analysis.data_loader import CensusDataset, load_dataset
from marital_status_analysis.multinomial import MultinomialFit, fit_multinomial_logit
from marital_status_analysis.sample_data import write_sample_csv
from marital_status_analysis.variables import FULL_PREDICTORS, REDUCED_PREDICTORS

matplotlib.use("Agg")


@pytest.fixture(scope="session")
def sample_csv(tmp_path_factory) -> Path:
    return write_sample_csv(tmp_path_factory.mktemp("data") / "census.csv", n_rows=4000, seed=7)


@pytest.fixture(scope="session")
def dataset(sample_csv) -> CensusDataset:
    return load_dataset(sample_csv)


@pytest.fixture(scope="session")
def full_fit(dataset) -> MultinomialFit:
    return fit_multinomial_logit(dataset, FULL_PREDICTORS, "Married")


@pytest.fixture(scope="session")
def reduced_fit(dataset) -> MultinomialFit:
    return fit_multinomial_logit(dataset, REDUCED_PREDICTORS, "Married")
