#!/usr/bin/env python3
"""
ORR regression on tumor-type aggregates
=======================================
Ordinary least squares of objective response rate on one predictor at a time
(median APS, median nTMB, median TIGS), and prediction of ORR with a
confidence interval for a new predictor value.

Missing values are excluded row-wise before fitting, never imputed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats

from core.statistics import apply_fdr_correction
from tigs.constants import REGRESSION_PREDICTORS

logger = logging.getLogger(__name__)

MIN_OBSERVATIONS = 3


@dataclass
class RegressionFit:
    """
    ORR ~ predictor linear fit.

    Attributes:
        predictor: Name of the predictor column
        slope: Fitted slope
        intercept: Fitted intercept
        pearson_r: Pearson correlation of predictor and ORR
        r_squared: Coefficient of determination
        p_value: Two-sided p-value of the slope
        n: Observations used after the missing-value filter
        excluded: Row labels removed by the filter
    """
    predictor: str
    slope: float
    intercept: float
    pearson_r: float
    r_squared: float
    p_value: float
    n: int
    excluded: list = field(default_factory=list)
    model: Optional[Any] = field(default=None, repr=False)

    def as_row(self) -> dict:
        return {
            'predictor': self.predictor,
            'slope': self.slope,
            'intercept': self.intercept,
            'pearson_r': self.pearson_r,
            'r_squared': self.r_squared,
            'p_value': self.p_value,
            'n': self.n,
        }


@dataclass(frozen=True)
class OrrPrediction:
    """Predicted ORR at one predictor value with its confidence interval"""
    value: float
    predicted: float
    lower: float
    upper: float
    confidence: float = 0.95


def fit_orr_model(table: pd.DataFrame, predictor: str,
                  response: str = 'ORR') -> RegressionFit:
    """
    Fit ORR = intercept + slope * predictor by OLS.

    Rows with a missing predictor or response are dropped first; the reported
    ``n`` counts only the rows used.

    Raises:
        ValueError: if a column is missing, fewer than 3 rows remain, or the
            predictor is constant
    """
    for col in (predictor, response):
        if col not in table.columns:
            raise ValueError(f"Regression table is missing column '{col}'")

    data = table[[predictor, response]].apply(pd.to_numeric, errors='coerce')
    usable = data.notna().all(axis=1) & np.isfinite(data).all(axis=1)
    excluded = list(data.index[~usable])
    data = data[usable]
    if excluded:
        logger.info(f"{predictor}: excluded {len(excluded)} rows with missing values: {excluded}")
    if len(data) < MIN_OBSERVATIONS:
        raise ValueError(
            f"{predictor}: {len(data)} complete rows, need at least {MIN_OBSERVATIONS}"
        )
    if data[predictor].nunique() < 2:
        raise ValueError(f"{predictor}: predictor is constant")

    X = sm.add_constant(data[predictor].to_numpy(dtype=float))
    y = data[response].to_numpy(dtype=float)
    model = sm.OLS(y, X).fit()
    pearson_r = float(stats.pearsonr(data[predictor], data[response])[0])

    return RegressionFit(
        predictor=predictor,
        slope=float(model.params[1]),
        intercept=float(model.params[0]),
        pearson_r=pearson_r,
        r_squared=float(model.rsquared),
        p_value=float(model.pvalues[1]),
        n=int(model.nobs),
        excluded=excluded,
        model=model,
    )


def fit_all_predictors(table: pd.DataFrame,
                       predictors: Sequence[str] = REGRESSION_PREDICTORS,
                       response: str = 'ORR') -> pd.DataFrame:
    """
    Fit one ORR model per predictor.

    Predictors that cannot be fitted are reported with NaN statistics and a
    warning. Benjamini-Hochberg adjusted p-values are added as ``p_adj``.
    """
    rows = []
    for predictor in predictors:
        try:
            rows.append(fit_orr_model(table, predictor, response).as_row())
        except ValueError as e:
            logger.warning(f"Skipping {predictor}: {e}")
            rows.append({
                'predictor': predictor, 'slope': np.nan, 'intercept': np.nan,
                'pearson_r': np.nan, 'r_squared': np.nan, 'p_value': np.nan, 'n': 0,
            })
    results = pd.DataFrame(rows)
    results['p_adj'], _ = apply_fdr_correction(results['p_value'].tolist())
    return results


def predict_orr(fit: RegressionFit, value: float, confidence: float = 0.95) -> OrrPrediction:
    """
    Predicted mean ORR at ``value`` with a confidence interval.

    The interval covers the mean response (not a new observation).
    """
    if fit.model is None:
        raise ValueError("RegressionFit carries no fitted model")
    exog = np.array([[1.0, float(value)]])
    frame = fit.model.get_prediction(exog).summary_frame(alpha=1 - confidence)
    return OrrPrediction(
        value=float(value),
        predicted=float(frame['mean'].iloc[0]),
        lower=float(frame['mean_ci_lower'].iloc[0]),
        upper=float(frame['mean_ci_upper'].iloc[0]),
        confidence=confidence,
    )
