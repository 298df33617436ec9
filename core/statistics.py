"""
Statistical Methods for the TIGS Toolkit
========================================
Rank correlation with explicit undefined handling, the exclude-on-failure
mean, confidence intervals, paired tests and FDR correction.
"""

import numpy as np
import pandas as pd
from typing import Iterable, List, Tuple
from scipy import stats
from statsmodels.stats.multitest import multipletests


def n_distinct_finite(values) -> int:
    """Number of distinct finite values in ``values``"""
    arr = np.asarray(values, dtype=float)
    return len(np.unique(arr[np.isfinite(arr)]))


def spearman_or_nan(x, y) -> float:
    """
    Spearman rank correlation that returns NaN when undefined.

    Pairs where either value is missing are dropped first. The correlation is
    undefined (NaN) when fewer than 2 pairs remain or when either side has
    fewer than 2 distinct values.

    Args:
        x: First variable (sequence or pandas Series)
        y: Second variable, same length as ``x``

    Returns:
        Spearman rho in [-1, 1], or NaN
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"Length mismatch: {x.shape} vs {y.shape}")

    keep = np.isfinite(x) & np.isfinite(y)
    x, y = x[keep], y[keep]
    if len(x) < 2 or n_distinct_finite(x) < 2 or n_distinct_finite(y) < 2:
        return float('nan')

    rho = stats.spearmanr(x, y)[0]
    return float(rho)


def mean_of_valid(values: Iterable[float]) -> Tuple[float, int]:
    """
    Arithmetic mean over the finite entries only.

    Failed or undefined entries (None, NaN, inf) are excluded from both the
    numerator and the denominator.

    Returns:
        Tuple of (mean, n_valid); mean is NaN when n_valid == 0
    """
    valid = [float(v) for v in values if v is not None and np.isfinite(v)]
    if not valid:
        return float('nan'), 0
    return float(np.mean(valid)), len(valid)


def compute_confidence_interval(values: List[float],
                                confidence: float = 0.95) -> Tuple[float, float]:
    """
    Compute confidence interval of the mean using the t-distribution.

    Non-finite values are ignored.

    Args:
        values: Sample values
        confidence: Confidence level (default 0.95 for 95% CI)

    Returns:
        Tuple of (lower_bound, upper_bound); NaN bounds for empty input
    """
    arr = np.asarray(values, dtype=float)
    arr = arr[np.isfinite(arr)]
    if len(arr) == 0:
        return (float('nan'), float('nan'))
    if len(arr) < 2:
        mean = float(arr[0])
        return (mean, mean)

    n = len(arr)
    mean = np.mean(arr)
    se = stats.sem(arr)

    alpha = 1 - confidence
    t_crit = stats.t.ppf(1 - alpha / 2, df=n - 1)

    margin = t_crit * se
    return (float(mean - margin), float(mean + margin))


def paired_wilcoxon(x, y) -> Tuple[float, float]:
    """
    Wilcoxon signed-rank test of paired samples.

    Pairs with a missing value are dropped. Returns (NaN, NaN) when fewer than
    2 pairs remain or all differences are zero.

    Returns:
        Tuple of (statistic, p_value)
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    keep = np.isfinite(x) & np.isfinite(y)
    diff = x[keep] - y[keep]
    if len(diff) < 2 or np.all(diff == 0):
        return float('nan'), float('nan')
    res = stats.wilcoxon(x[keep], y[keep])
    return float(res.statistic), float(res.pvalue)


def apply_fdr_correction(p_values: List[float],
                         method: str = 'fdr_bh',
                         alpha: float = 0.05) -> Tuple[List[float], List[bool]]:
    """
    Apply False Discovery Rate (FDR) correction for multiple hypothesis testing.

    NaN p-values are passed through as NaN and never rejected.

    Args:
        p_values: List of raw p-values
        method: Correction method ('fdr_bh' for Benjamini-Hochberg,
                'bonferroni', 'holm', 'fdr_by')
        alpha: Significance level (default 0.05)

    Returns:
        Tuple of (adjusted_pvalues, reject_null_hypothesis)

    Example:
        >>> adj_p, significant = apply_fdr_correction([0.001, 0.04, 0.3])
    """
    p = np.asarray(p_values, dtype=float)
    adjusted = np.full(len(p), np.nan)
    reject = np.zeros(len(p), dtype=bool)
    finite = np.isfinite(p)
    if finite.any():
        rej, corrected, _, _ = multipletests(p[finite], alpha=alpha, method=method)
        adjusted[finite] = corrected
        reject[finite] = rej
    return list(adjusted), [bool(r) for r in reject]


def describe_column(values: pd.Series, confidence: float = 0.95) -> dict:
    """Mean, median, CI and valid count of one numeric column"""
    arr = pd.to_numeric(values, errors='coerce').astype(float)
    valid = arr[np.isfinite(arr)]
    lower, upper = compute_confidence_interval(list(valid), confidence=confidence)
    return {
        'mean': float(valid.mean()) if len(valid) else float('nan'),
        'median': float(valid.median()) if len(valid) else float('nan'),
        'ci_lower': lower,
        'ci_upper': upper,
        'n_valid': int(len(valid)),
    }
