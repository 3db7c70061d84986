# marital_status_analysis/collinearity.py
"""
Generalized variance-inflation factors (Fox & Monette 1992).

An auxiliary two-class logit (outcome != reference) is fitted over the same
predictors as the multinomial model; GVIFs are computed per predictor term from
the correlation matrix of its coefficient estimates. Flags are reported only;
predictors are never dropped automatically.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
import pandas as pd
import statsmodels.api as sm

from marital_status_analysis.data_loader import CensusDataset
from marital_status_analysis.encoding import DesignSpec
from marital_status_analysis.errors import AnalysisError, MulticollinearityError
from marital_status_analysis.variables import OUTCOME

logger = logging.getLogger(__name__)

VIF_THRESHOLD = 5.0


def aliased_columns(X: np.ndarray, names: Sequence[str], tol: float | None = None) -> list[str]:
    """Columns that are exact linear combinations of the columns before them."""
    aliased: list[str] = []
    kept: list[int] = []
    for j in range(X.shape[1]):
        cand = [*kept, j]
        if np.linalg.matrix_rank(X[:, cand], tol=tol) == len(cand):
            kept.append(j)
        else:
            aliased.append(str(names[j]))
    return aliased


def fit_auxiliary_logit(
    dataset: CensusDataset,
    predictors: Sequence[str],
    reference: str,
    *,
    outcome: str = OUTCOME,
    predictor_references: Mapping[str, str] | None = None,
) -> tuple[Any, DesignSpec]:
    """
    Fit binomial GLM of 1[outcome != reference] on the predictors.

    Raises:
        MulticollinearityError: If the design matrix has aliased columns
    """
    spec = DesignSpec.from_dataset(dataset, predictors, predictor_references)
    X = spec.transform(dataset)

    aliased = aliased_columns(X, spec.column_names)
    if aliased:
        raise MulticollinearityError(
            f"There are aliased coefficients in the model: {aliased}",
            hint="A predictor is an exact linear combination of others; drop or merge it before computing VIFs.",
        )

    y = np.array([0.0 if v == reference else 1.0 for v in dataset.column_values(outcome)])
    if y.min() == y.max():
        raise AnalysisError(
            f"Auxiliary response is constant: every row is {'not ' if y[0] else ''}'{reference}'",
        )

    logger.info("Fitting auxiliary binomial GLM: 1[%s != %s] ~ %s", outcome, reference, " + ".join(predictors))
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = sm.GLM(y, X, family=sm.families.Binomial()).fit()
    for w in caught:
        logger.warning("  %s: %s", w.category.__name__, w.message)

    return result, spec


def generalized_vif(cov: np.ndarray, spec: DesignSpec) -> pd.DataFrame:  # type: ignore[no-any-unimported]
    """
    GVIF per predictor term from a coefficient covariance matrix (intercept first).

    GVIF_t = det(R_tt) * det(R_oo) / det(R), with R the coefficient correlation matrix
    without the intercept, t the term's columns and o the others. The adjusted value
    GVIF^(1/(2*df)) is comparable across terms with different df.
    """
    terms = spec.term_columns()
    if len(terms) < 2:
        raise AnalysisError("GVIF needs at least 2 predictor terms")

    v = np.asarray(cov, dtype=np.float64)[1:, 1:]
    sd = np.sqrt(np.diag(v))
    if not np.all(np.isfinite(sd)) or np.any(sd <= 0):
        raise MulticollinearityError("Coefficient covariance has non-positive or non-finite variances")
    R = v / np.outer(sd, sd)
    det_R = float(np.linalg.det(R))
    if not np.isfinite(det_R) or det_R <= 0:
        raise MulticollinearityError(
            f"Coefficient correlation matrix is singular (det={det_R:.3e})",
            hint="Predictors are (near-)exactly collinear.",
        )

    n = R.shape[0]
    rows: list[dict[str, Any]] = []
    for term, cols in terms.items():
        idx = [c - 1 for c in cols]
        rest = [i for i in range(n) if i not in idx]
        det_t = float(np.linalg.det(R[np.ix_(idx, idx)]))
        det_o = float(np.linalg.det(R[np.ix_(rest, rest)])) if rest else 1.0
        gvif = det_t * det_o / det_R
        df = len(idx)
        adjusted = gvif ** (1.0 / (2.0 * df))
        rows.append({
            "term": term,
            "gvif": gvif,
            "df": df,
            "adjusted_gvif": adjusted,
            "vif_scale": adjusted**2,
        })
    return pd.DataFrame(rows).set_index("term")


def check_multicollinearity(
    dataset: CensusDataset,
    predictors: Sequence[str],
    reference: str,
    *,
    outcome: str = OUTCOME,
    predictor_references: Mapping[str, str] | None = None,
    threshold: float = VIF_THRESHOLD,
) -> pd.DataFrame:  # type: ignore[no-any-unimported]
    """
    GVIF table for the predictors with a `flagged` column (vif_scale >= threshold).

    vif_scale is GVIF^(1/df), which equals the ordinary VIF for 1-df terms.
    """
    result, spec = fit_auxiliary_logit(
        dataset,
        predictors,
        reference,
        outcome=outcome,
        predictor_references=predictor_references,
    )
    table = generalized_vif(np.asarray(result.cov_params()), spec)
    table["flagged"] = table["vif_scale"] >= threshold

    for term, row in table.iterrows():
        if row["flagged"]:
            logger.warning(
                "  %s: GVIF=%.2f (df=%d, GVIF^(1/df)=%.2f >= %.1f) suggests problematic collinearity",
                term,
                row["gvif"],
                row["df"],
                row["vif_scale"],
                threshold,
            )
    if not table["flagged"].any():
        logger.info("  No predictor reaches the VIF threshold of %.1f", threshold)
    return table
