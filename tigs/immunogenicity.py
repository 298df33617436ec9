#!/usr/bin/env python3
"""
Tumor Immunogenicity Score (TIGS)
=================================
Per-patient TIGS and the per-tumor-type summary table used for ORR regression.

    nTMB = TMB_NonsynVariants / 38
    nAPM = min-max normalized APM score (per cohort)
    TIGS = log(nTMB + 1) * nAPM
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from tigs.constants import (
    APS_COLUMN,
    SUMMARY_COLUMNS,
    TMB_COLUMN,
    TMB_EXOME_SIZE_MB,
    TUMOR_TYPE_COLUMN,
)

logger = logging.getLogger(__name__)


def normalize_tmb(tmb_nonsyn_variants, exome_size_mb: float = TMB_EXOME_SIZE_MB):
    """Nonsynonymous variant count per megabase"""
    if exome_size_mb <= 0:
        raise ValueError(f"exome_size_mb must be positive, got {exome_size_mb}")
    if isinstance(tmb_nonsyn_variants, pd.Series):
        return tmb_nonsyn_variants.astype(float) / exome_size_mb
    return np.asarray(tmb_nonsyn_variants, dtype=float) / exome_size_mb


def minmax_normalize(values: pd.Series) -> pd.Series:
    """
    Scale to [0, 1] using the observed range.

    Missing values stay missing; a constant series has no range and maps to NaN.
    """
    values = pd.to_numeric(pd.Series(values), errors='coerce').astype(float)
    lo, hi = values.min(), values.max()
    if not np.isfinite(lo) or not np.isfinite(hi) or hi == lo:
        logger.warning("Cannot min-max normalize a constant or empty series")
        return pd.Series(np.nan, index=values.index)
    return (values - lo) / (hi - lo)


def compute_tigs(ntmb, napm):
    """TIGS = log(nTMB + 1) * nAPM"""
    return np.log(ntmb + 1) * napm


def compute_patient_tigs(patients: pd.DataFrame,
                         tmb_column: str = TMB_COLUMN,
                         aps_column: str = APS_COLUMN,
                         cohort_column: Optional[str] = None) -> pd.DataFrame:
    """
    Add nTMB, nAPM and TIGS columns to a per-patient table.

    Args:
        patients: One row per patient with nonsynonymous variant counts and APS
        tmb_column: Column holding TMB_NonsynVariants
        aps_column: Column holding the APM score
        cohort_column: Normalize APM within each value of this column; None
            treats the whole table as one cohort

    Returns:
        Copy of ``patients`` with the three new columns
    """
    for col in (tmb_column, aps_column):
        if col not in patients.columns:
            raise ValueError(f"Patient table is missing column '{col}'")

    out = patients.copy()
    out['nTMB'] = normalize_tmb(pd.to_numeric(out[tmb_column], errors='coerce'))
    aps = pd.to_numeric(out[aps_column], errors='coerce')
    if cohort_column is None:
        out['nAPM'] = minmax_normalize(aps)
    else:
        out['nAPM'] = aps.groupby(out[cohort_column]).transform(minmax_normalize)
    out['TIGS'] = compute_tigs(out['nTMB'], out['nAPM'])
    return out


def summarize_by_tumor_type(patients: pd.DataFrame,
                            tumor_column: str = TUMOR_TYPE_COLUMN,
                            aps_column: str = APS_COLUMN) -> pd.DataFrame:
    """
    Median TIGS, APS and nTMB per tumor type with non-missing patient counts.

    Expects the output of compute_patient_tigs. The TMB column of the summary
    holds the median normalized TMB.

    Returns:
        DataFrame indexed by tumor type with columns
        Patients_TIGS, TIGS, Patients_APS, APS, Patients_TMB, TMB
    """
    if tumor_column not in patients.columns:
        raise ValueError(f"Patient table is missing column '{tumor_column}'")
    sources = {'TIGS': 'TIGS', 'APS': aps_column, 'TMB': 'nTMB'}
    grouped = patients.groupby(tumor_column)

    summary = pd.DataFrame(index=sorted(patients[tumor_column].dropna().unique()))
    summary.index.name = tumor_column
    for stat, source in sources.items():
        summary[SUMMARY_COLUMNS[stat]] = grouped[source].count()
        summary[stat] = grouped[source].median()
    summary = summary.fillna({SUMMARY_COLUMNS[s]: 0 for s in sources})
    for s in sources:
        summary[SUMMARY_COLUMNS[s]] = summary[SUMMARY_COLUMNS[s]].astype(int)
    return summary


def merge_orr(summary: pd.DataFrame, orr_table: pd.DataFrame,
              tumor_column: str = TUMOR_TYPE_COLUMN) -> pd.DataFrame:
    """
    Join the tumor-type summary with curated ORR values.

    Outer join on tumor type: a tumor type present in only one table keeps a
    row with the other table's columns missing, to be removed by the
    regression's missing-value filter.
    """
    orr = orr_table.copy()
    if tumor_column in orr.columns:
        orr = orr.set_index(tumor_column)
    for col in ('ORR', 'Patients_ORR'):
        if col not in orr.columns:
            raise ValueError(f"ORR table is missing column '{col}'")
    orr.index.name = tumor_column

    merged = summary.join(orr[['ORR', 'Patients_ORR']], how='outer')
    merged.index.name = tumor_column

    only_summary = sorted(set(summary.index) - set(orr.index))
    only_orr = sorted(set(orr.index) - set(summary.index))
    if only_summary:
        logger.warning(f"No ORR value for {len(only_summary)} tumor types: {only_summary}")
    if only_orr:
        logger.warning(f"ORR value without cohort summary for {len(only_orr)} tumor types: {only_orr}")
    return merged
