#!/usr/bin/env python3
"""
Gene-set scoring functions
==========================
Each scorer maps an expression subset (samples x genes) and a PanelPair to a
frame with one row per sample and columns ``APM`` and ``IIS``.

- mean_expression_score: mean expression of the panel genes
- zscore_mean_score: per-gene z-score across samples, then mean
- ssgsea_score: single-sample GSEA normalized enrichment score (gseapy)

Scorers may raise; the simulation engine records the failure and moves on.
"""

import logging
from typing import Callable, Dict

import numpy as np
import pandas as pd
import gseapy as gp

from core.data_structures import PanelPair

logger = logging.getLogger(__name__)

ScoreFunction = Callable[[pd.DataFrame, PanelPair], pd.DataFrame]


def _panel_columns(expression: pd.DataFrame, genes) -> list:
    present = [g for g in sorted(genes) if g in expression.columns]
    if not present:
        raise ValueError("None of the panel genes are present in the expression subset")
    return present


def mean_expression_score(expression: pd.DataFrame, panels: PanelPair) -> pd.DataFrame:
    """Mean expression of each panel's genes per sample"""
    return pd.DataFrame({
        'APM': expression[_panel_columns(expression, panels.apm.genes)].mean(axis=1),
        'IIS': expression[_panel_columns(expression, panels.iis.genes)].mean(axis=1),
    }, index=expression.index)


def zscore_mean_score(expression: pd.DataFrame, panels: PanelPair) -> pd.DataFrame:
    """
    Mean of per-gene z-scores.

    Genes with zero variance in the subset carry no ranking information and
    are dropped; a panel left without genes raises ValueError.
    """
    sd = expression.std(axis=0, ddof=1)
    informative = sd[(sd > 0) & np.isfinite(sd)].index
    z = (expression[informative] - expression[informative].mean(axis=0)) / sd[informative]
    return pd.DataFrame({
        'APM': z[_panel_columns(z, panels.apm.genes)].mean(axis=1),
        'IIS': z[_panel_columns(z, panels.iis.genes)].mean(axis=1),
    }, index=expression.index)


def ssgsea_score(expression: pd.DataFrame, panels: PanelPair,
                 sample_norm_method: str = 'rank', seed: int = 123) -> pd.DataFrame:
    """
    Single-sample GSEA normalized enrichment scores.

    Each sample is ranked over every gene in ``expression``; the panels only
    define the gene sets. Pass the full expression subset, not just the panel
    genes: with nothing but the two panels in the ranking, the APM and IIS
    enrichments become mirror images of each other.
    """
    gene_sets = {
        'APM': _panel_columns(expression, panels.apm.genes),
        'IIS': _panel_columns(expression, panels.iis.genes),
    }
    data = expression.T
    data.columns = data.columns.astype(str)
    ss = gp.ssgsea(
        data=data,
        gene_sets=gene_sets,
        outdir=None,
        sample_norm_method=sample_norm_method,
        min_size=1,
        max_size=max(len(g) for g in gene_sets.values()),
        no_plot=True,
        threads=1,
        seed=seed,
        verbose=False,
    )
    nes = ss.res2d.pivot(index='Name', columns='Term', values='NES')
    nes.index = nes.index.astype(str)
    nes = nes.reindex(index=data.columns, columns=['APM', 'IIS']).astype(float)
    nes.index = expression.index
    return nes


SCORERS: Dict[str, ScoreFunction] = {
    'mean': mean_expression_score,
    'zscore': zscore_mean_score,
    'ssgsea': ssgsea_score,
}


def get_scorer(name: str) -> ScoreFunction:
    try:
        return SCORERS[name]
    except KeyError:
        raise ValueError(f"Unknown scorer '{name}'. Choose from {sorted(SCORERS)}") from None
