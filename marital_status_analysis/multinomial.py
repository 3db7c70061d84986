# marital_status_analysis/multinomial.py
"""
Multinomial logit of a categorical outcome on census predictors.

- Fitting is delegated to statsmodels MNLogit (Newton-Raphson MLE).
- The response is integer-coded with the caller's reference level as code 0, so
  every non-reference level's coefficients are log-odds against that level.
- Library warnings (non-convergence, separation, Hessian inversion) are captured,
  re-logged, and kept on the fit; the best available coefficients are returned.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats as scipy_stats
from statsmodels.tools.sm_exceptions import PerfectSeparationError

from marital_status_analysis.data_loader import CensusDataset
from marital_status_analysis.encoding import INTERCEPT, DesignSpec
from marital_status_analysis.errors import AnalysisError
from marital_status_analysis.variables import OUTCOME

logger = logging.getLogger(__name__)


def _relay_warnings(caught: list[warnings.WarningMessage], sink: list[str]) -> None:
    seen: set[str] = set()
    for w in caught:
        msg = f"{w.category.__name__}: {w.message}"
        if msg in seen:
            continue
        seen.add(msg)
        sink.append(msg)
        logger.warning("  %s", msg)


def _safe_bse(result: Any, shape: tuple[int, int]) -> np.ndarray:
    """Standard errors, or NaN when the covariance could not be formed."""
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            bse = np.asarray(result.bse, dtype=np.float64)
    except (ValueError, np.linalg.LinAlgError):
        return np.full(shape, np.nan)
    return bse.reshape(shape)


class MultinomialFit:
    """Fitted multinomial logit (reference-level parameterization)."""

    def __init__(
        self,
        *,
        result: Any,
        spec: DesignSpec,
        outcome: str,
        outcome_levels: list[str],
        method: str,
        fit_warnings: list[str],
        design_rank: int,
    ):
        self.result = result
        self.spec = spec
        self.outcome = outcome
        self.outcome_levels = list(outcome_levels)  # reference first
        self.reference = self.outcome_levels[0]
        self.method = method
        self.warnings = list(fit_warnings)
        self.design_rank = int(design_rank)

        self.param_names = spec.column_names
        self.p = len(self.param_names)
        self.J = len(self.outcome_levels) - 1
        self.k_params = self.J * self.p

        # statsmodels stores params as (p, J); rows of coefficient_matrix are outcome levels
        self.params = np.asarray(result.params, dtype=np.float64).reshape(self.p, self.J).T
        self.bse = _safe_bse(result, (self.p, self.J)).T

        retvals = getattr(result, "mle_retvals", {}) or {}
        self.converged = bool(retvals.get("converged", False))
        self.n_iterations = int(retvals.get("iterations", -1))
        self.nobs = int(result.nobs)

        self.loglike = float(result.llf)
        self.loglike_null = float(result.llnull)
        self.deviance = -2.0 * self.loglike
        self.df_llr = int(self.k_params - self.J)
        self.llr = 2.0 * (self.loglike - self.loglike_null)
        self.llr_pvalue = float(scipy_stats.chi2.sf(self.llr, self.df_llr)) if self.df_llr > 0 else float("nan")
        self.prsquared = float(1.0 - self.loglike / self.loglike_null) if self.loglike_null != 0 else float("nan")
        self.aic = float(-2.0 * self.loglike + 2.0 * self.k_params)
        self.bic = float(-2.0 * self.loglike + self.k_params * np.log(max(self.nobs, 1)))

        with np.errstate(divide="ignore", invalid="ignore"):
            self.zvalues = self.params / self.bse
        self.pvalues = 2.0 * scipy_stats.norm.sf(np.abs(self.zvalues))

    @property
    def non_reference_levels(self) -> list[str]:
        return self.outcome_levels[1:]

    @property
    def predictors(self) -> list[str]:
        return list(self.spec.predictors)

    # ------------------------------------------------------------------
    # Coefficient tables
    # ------------------------------------------------------------------

    def _matrix(self, values: np.ndarray) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        return pd.DataFrame(values, index=self.non_reference_levels, columns=self.param_names)

    @property
    def coefficient_matrix(self) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        """(levels-1) x (predictors+1) log-odds against the reference level."""
        return self._matrix(self.params)

    @property
    def standard_errors(self) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        return self._matrix(self.bse)

    @property
    def z_values(self) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        return self._matrix(self.zvalues)

    @property
    def p_values(self) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        return self._matrix(self.pvalues)

    @property
    def odds_ratios(self) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        return self._matrix(np.exp(self.params))

    def confidence_intervals(self, alpha: float = 0.05) -> dict[str, pd.DataFrame]:  # type: ignore[no-any-unimported]
        q = float(scipy_stats.norm.ppf(1.0 - alpha / 2.0))
        return {
            "lower": self._matrix(self.params - q * self.bse),
            "upper": self._matrix(self.params + q * self.bse),
        }

    def coefficients_relative_to(self, level: str) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        """
        Re-express the coefficients against another reference level.

        With the current reference at zero, beta'_j = beta_j - beta_level for every
        outcome j; the fitted probabilities are unchanged.
        """
        if level not in self.outcome_levels:
            raise AnalysisError(f"Unknown outcome level '{level}'; levels are {self.outcome_levels}")
        full = np.vstack([np.zeros((1, self.p)), self.params])  # (K, p), reference row zero
        shifted = full - full[self.outcome_levels.index(level)]
        keep = [i for i, lv in enumerate(self.outcome_levels) if lv != level]
        return pd.DataFrame(
            shifted[keep],
            index=[self.outcome_levels[i] for i in keep],
            columns=self.param_names,
        )

    def outcome_table(self, level: str) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        j = self.non_reference_levels.index(level)
        coef = self.params[j]
        ci = self.confidence_intervals(0.05)
        return pd.DataFrame(
            {
                "coef": coef,
                "std err": self.bse[j],
                "z": self.zvalues[j],
                "P>|z|": self.pvalues[j],
                "[0.025": ci["lower"].loc[level].to_numpy(),
                "0.975]": ci["upper"].loc[level].to_numpy(),
                "odds ratio": np.exp(coef),
            },
            index=self.param_names,
        )

    def coefficients_long(self) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        rows: list[dict[str, Any]] = []
        for j, level in enumerate(self.non_reference_levels):
            for name, coef, se, z, pv in zip(
                self.param_names, self.params[j], self.bse[j], self.zvalues[j], self.pvalues[j]
            ):
                rows.append({
                    "outcome_level": level,
                    "reference_level": self.reference,
                    "predictor": str(name),
                    "coefficient": float(coef),
                    "std_error": float(se) if np.isfinite(se) else float("nan"),
                    "z_stat": float(z) if np.isfinite(z) else float("nan"),
                    "p_value": float(pv) if np.isfinite(pv) else float("nan"),
                    "odds_ratio": float(np.exp(coef)),
                })
        return pd.DataFrame(rows)

    def summary_text(self, level: str) -> str:
        lines: list[str] = []
        lines.append("=" * 78)
        lines.append(f"Multinomial Logit: log-odds({level} vs {self.reference})")
        lines.append("=" * 78)
        lines.append(f"  Predictors:              {', '.join(self.predictors)}")
        lines.append(f"  No. Observations:        {self.nobs:>10,}")
        lines.append(f"  Parameters:              {self.k_params:>10}")
        lines.append(f"  Df (LLR):                {self.df_llr:>10}")
        lines.append(f"  Log-Likelihood:          {self.loglike:>10.2f}")
        lines.append(f"  LL-Null:                 {self.loglike_null:>10.2f}")
        lines.append(f"  Residual deviance:       {self.deviance:>10.2f}")
        lines.append(f"  AIC:                     {self.aic:>10.2f}")
        lines.append(f"  Pseudo R-squared:        {self.prsquared:>10.4f}")
        lines.append(f"  Converged:               {self.converged!s:>10}")
        lines.append("=" * 78)
        lines.append(self.outcome_table(level).to_string(float_format=lambda v: f"{v:.4f}"))
        lines.append("=" * 78)
        return "\n".join(lines)

    def fit_meta(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome,
            "reference": self.reference,
            "outcome_levels": self.outcome_levels,
            "predictors": self.predictors,
            "method": self.method,
            "converged": self.converged,
            "n_iterations": self.n_iterations,
            "nobs": self.nobs,
            "k_params": self.k_params,
            "design_columns": self.p,
            "design_rank": self.design_rank,
            "loglike": self.loglike,
            "loglike_null": self.loglike_null,
            "deviance": self.deviance,
            "aic": self.aic,
            "bic": self.bic,
            "prsquared": self.prsquared,
            "llr": self.llr,
            "llr_pvalue": self.llr_pvalue,
            "df_llr": self.df_llr,
            "warnings": self.warnings,
        }

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict_proba(self, data: Any) -> pd.DataFrame:  # type: ignore[no-any-unimported]
        """Class probabilities (softmax of linear predictors); columns reference-first."""
        X = self.spec.transform(data)
        probs = np.asarray(self.result.model.predict(self.result.params, exog=X), dtype=np.float64)
        return pd.DataFrame(probs.reshape(X.shape[0], -1), columns=self.outcome_levels)

    def predict(self, data: Any) -> list[str]:
        """Most probable outcome level per record."""
        probs = self.predict_proba(data).to_numpy()
        return [self.outcome_levels[i] for i in np.argmax(probs, axis=1)]


def separated_levels(probs: np.ndarray, levels: Sequence[str], eps: float = 1e-8) -> dict[str, int]:
    """Outcome levels with fitted probabilities within `eps` of 0 or 1, and how many rows."""
    extreme = (probs < eps) | (probs > 1.0 - eps)
    return {str(lv): int(n) for lv, n in zip(levels, extreme.sum(axis=0)) if n > 0}


def encode_outcome(values: Sequence[str], levels: list[str]) -> np.ndarray:
    code = {lv: i for i, lv in enumerate(levels)}
    return np.array([code[v] for v in values], dtype=np.int64)


def fit_multinomial_logit(
    dataset: CensusDataset,
    predictors: Sequence[str],
    reference: str,
    *,
    outcome: str = OUTCOME,
    predictor_references: Mapping[str, str] | None = None,
    maxiter: int = 100,
) -> MultinomialFit:
    """
    Fit maritalstatus-style multinomial logit with an explicit reference level.

    Args:
        dataset: Loaded observations
        predictors: Predictor columns (continuous and categorical)
        reference: Outcome level all other levels are compared against
        outcome: Outcome column
        predictor_references: Dummy-encoding baseline per categorical predictor
        maxiter: Newton iterations before giving up (estimates are still returned)

    Returns:
        MultinomialFit
    """
    if outcome in predictors:
        raise AnalysisError(f"Outcome '{outcome}' cannot also be a predictor")

    observed = dataset.observed_levels(outcome)
    if reference not in observed:
        raise AnalysisError(
            f"Reference level '{reference}' not found in '{outcome}' levels: {observed}",
            hint="Pass a reference level that occurs in the data.",
        )
    if len(observed) < 2:
        raise AnalysisError(f"Need at least 2 outcome levels for multinomial logit, found {observed}")

    outcome_levels = [reference, *[lv for lv in observed if lv != reference]]

    spec = DesignSpec.from_dataset(dataset, predictors, predictor_references)
    X = spec.transform(dataset)
    y = encode_outcome(dataset.column_values(outcome), outcome_levels)

    logger.info(
        "Fitting multinomial logit: %s ~ %s (K=%d, p=%d incl intercept, n=%s, reference=%s)",
        outcome,
        " + ".join(predictors) if predictors else "1",
        len(outcome_levels),
        X.shape[1],
        f"{X.shape[0]:,}",
        reference,
    )

    fit_warnings: list[str] = []
    rank = int(np.linalg.matrix_rank(X))
    if rank < X.shape[1]:
        msg = f"Design matrix is rank deficient (rank {rank} < {X.shape[1]} columns); coefficients are not identified"
        logger.warning("  %s", msg)
        fit_warnings.append(msg)

    model = sm.MNLogit(y, X)
    method = "newton"
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            result = model.fit(method="newton", maxiter=maxiter, disp=False)
        except (np.linalg.LinAlgError, PerfectSeparationError) as e:
            msg = f"Newton fit failed ({type(e).__name__}: {e}); refitting with BFGS"
            logger.warning("  %s", msg)
            fit_warnings.append(msg)
            model.raise_on_perfect_prediction = False
            method = "bfgs"
            result = model.fit(method="bfgs", maxiter=max(maxiter, 1000), disp=False)

        fit = MultinomialFit(
            result=result,
            spec=spec,
            outcome=outcome,
            outcome_levels=outcome_levels,
            method=method,
            fit_warnings=fit_warnings,
            design_rank=rank,
        )
    _relay_warnings(list(caught), fit.warnings)

    probs = np.asarray(result.model.predict(result.params, exog=X), dtype=np.float64).reshape(X.shape[0], -1)
    extreme = separated_levels(probs, outcome_levels)
    if extreme:
        msg = (
            "Possible perfect separation: fitted probabilities of 0 or 1 for "
            + ", ".join(f"{lv} ({n:,} rows)" for lv, n in extreme.items())
            + "; coefficients for these levels are unreliable"
        )
        logger.warning("  %s", msg)
        fit.warnings.append(msg)

    if not fit.converged:
        logger.warning(
            "  Optimizer did not converge after %d iterations; returning last estimates",
            fit.n_iterations,
        )
    logger.info(
        "  Residual deviance %.2f, AIC %.2f, pseudo R2 %.4f", fit.deviance, fit.aic, fit.prsquared
    )
    return fit


def likelihood_ratio_test(reduced: MultinomialFit, full: MultinomialFit) -> dict[str, Any]:
    """
    Likelihood-ratio test of nested multinomial fits (deviance difference).

    Returns:
        Dict with statistic, df, p_value and both deviances
    """
    if reduced.outcome_levels != full.outcome_levels or reduced.nobs != full.nobs:
        raise AnalysisError(
            "Models are not comparable: outcome levels or number of observations differ",
            hint="Fit both models on the same dataset with the same reference level.",
        )
    if not set(reduced.predictors) <= set(full.predictors):
        raise AnalysisError(
            f"Reduced predictors {reduced.predictors} are not nested in {full.predictors}",
        )

    df = int(full.k_params - reduced.k_params)
    if df <= 0:
        raise AnalysisError("Full model must have more parameters than the reduced model")

    stat = float(max(2.0 * (full.loglike - reduced.loglike), 0.0))
    p_value = float(scipy_stats.chi2.sf(stat, df))
    logger.info("LR test: chi2=%.2f on %d df (p=%.3g)", stat, df, p_value)

    return {
        "statistic": stat,
        "df": df,
        "p_value": p_value,
        "deviance_reduced": reduced.deviance,
        "deviance_full": full.deviance,
        "aic_reduced": reduced.aic,
        "aic_full": full.aic,
    }


__all__ = [
    "INTERCEPT",
    "MultinomialFit",
    "encode_outcome",
    "separated_levels",
    "fit_multinomial_logit",
    "likelihood_ratio_test",
]
