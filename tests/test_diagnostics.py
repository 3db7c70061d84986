"""Tests for response and binned residuals"""

import numpy as np
import pytest

from marital_status_analysis.diagnostics import (
    binned_residuals,
    binned_residuals_by_level,
    default_bin_count,
    plot_binned_residuals,
    plot_residuals,
    response_residuals,
    share_outside_bounds,
)
from marital_status_analysis.errors import AnalysisError


@pytest.mark.parametrize(("n", "expected"), [(4, 2), (10, 5), (11, 10), (99, 10), (100, 10), (4000, 63)])
def test_default_bin_count(n, expected):
    assert default_bin_count(n) == expected


def test_response_residuals_layout(full_fit, dataset):
    resid = response_residuals(full_fit, dataset)
    assert list(resid.columns) == ["row", "level", "observed", "fitted", "residual"]
    assert len(resid) == dataset.height * len(full_fit.outcome_levels)
    np.testing.assert_allclose(resid["residual"], resid["observed"] - resid["fitted"])

    # each record observes exactly one level and its probabilities sum to one
    per_row = resid.groupby("row")[["observed", "fitted", "residual"]].sum()
    np.testing.assert_allclose(per_row["observed"], 1.0)
    np.testing.assert_allclose(per_row["fitted"], 1.0, atol=1e-9)
    np.testing.assert_allclose(per_row["residual"], 0.0, atol=1e-9)


def test_binned_residuals_partition():
    rng = np.random.default_rng(1)
    fitted = rng.uniform(0.05, 0.95, size=500)
    observed = (rng.uniform(size=500) < fitted).astype(float)
    binned = binned_residuals(fitted, observed - fitted)

    assert len(binned) == default_bin_count(500)
    assert binned["n"].sum() == 500
    assert binned["n"].max() - binned["n"].min() <= 1
    # bins are ordered by fitted value
    assert (binned["fitted_max"].to_numpy()[:-1] <= binned["fitted_min"].to_numpy()[1:]).all()
    assert (binned["resid_se2"] > 0).all()
    assert binned["outside"].dtype == bool


def test_binned_residuals_explicit_bins():
    fitted = np.linspace(0.1, 0.9, 40)
    binned = binned_residuals(fitted, np.zeros(40), n_bins=4)
    assert binned["n"].tolist() == [10, 10, 10, 10]
    assert not binned["outside"].any()


def test_binned_residuals_rejects_bad_input():
    with pytest.raises(AnalysisError, match="shape"):
        binned_residuals(np.zeros(5), np.zeros(4))
    with pytest.raises(AnalysisError, match="at least 2"):
        binned_residuals(np.zeros(1), np.zeros(1))
    with pytest.raises(AnalysisError, match="n_bins"):
        binned_residuals(np.zeros(5), np.zeros(5), n_bins=6)


def test_share_outside_bounds_for_fitted_model(full_fit, dataset):
    binned = binned_residuals_by_level(response_residuals(full_fit, dataset))
    assert list(binned) == full_fit.outcome_levels
    for b in binned.values():
        assert 0.0 <= share_outside_bounds(b) <= 1.0


def test_plots_are_written(full_fit, dataset, tmp_path):
    resid = response_residuals(full_fit, dataset)
    plot_residuals(resid, tmp_path / "residuals.png")
    plot_binned_residuals(binned_residuals_by_level(resid, 20), tmp_path / "binned.png")
    assert (tmp_path / "residuals.png").stat().st_size > 0
    assert (tmp_path / "binned.png").stat().st_size > 0
