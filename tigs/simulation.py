#!/usr/bin/env python3
"""
Random selection of APM/IIS genes
=================================
Monte-Carlo robustness check for the APM-IIS association.

Protocol: for each of R repetitions, draw a fixed number of patients without
replacement and score them with the canonical APM and IIS panels ("normal").
Then draw K random panel pairs from the gene universe, each panel matching
the size of its canonical counterpart, and score the same patients with them.
Random panels may overlap the canonical genes. Random trial j is a single
score table used both as the random-IIS and as the random-APM substitute.

Scoring failures are recorded per trial (TrialOutcome.skipped) and never
abort the run. Aggregation into correlations lives in tigs.aggregation.
"""

import logging
from typing import Callable, List, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from core.data_structures import (
    GenePanel,
    PanelPair,
    RepetitionScores,
    ScoreTable,
    SimulationResult,
    TrialOutcome,
)
from tigs.constants import (
    DEFAULT_RANDOMIZATIONS,
    DEFAULT_REPETITIONS,
    DEFAULT_SAMPLE_SIZE,
)
from tigs.scoring import ScoreFunction, mean_expression_score
from tigs.utils import RandomSource, make_rng

logger = logging.getLogger(__name__)

NORMAL_TRIAL = 0


def _validate_inputs(expression: pd.DataFrame, apm_genes: Sequence[str],
                     iis_genes: Sequence[str], gene_universe: Sequence[str],
                     repetitions: int, sample_size: int,
                     randomizations_per_repetition: int) -> None:
    for name, value in (('repetitions', repetitions), ('sample_size', sample_size),
                        ('randomizations_per_repetition', randomizations_per_repetition)):
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")
    if sample_size > expression.shape[0]:
        raise ValueError(
            f"sample_size={sample_size} exceeds cohort size {expression.shape[0]}"
        )
    if expression.index.duplicated().any():
        raise ValueError("Expression matrix has duplicated sample ids")
    columns = set(expression.columns)
    for label, genes in (('APM', apm_genes), ('IIS', iis_genes), ('universe', gene_universe)):
        missing = [g for g in genes if g not in columns]
        if missing:
            raise ValueError(
                f"{len(missing)} {label} genes absent from the expression matrix: {missing[:5]}"
            )
    if len(set(gene_universe)) != len(gene_universe):
        raise ValueError("Gene universe contains duplicate genes")
    for label, genes in (('APM', apm_genes), ('IIS', iis_genes)):
        if len(genes) > len(gene_universe):
            raise ValueError(
                f"{label} panel ({len(genes)} genes) is larger than the gene universe "
                f"({len(gene_universe)} genes)"
            )


def draw_random_panels(gene_universe: Sequence[str], panels: PanelPair, rng) -> PanelPair:
    """
    Draw one random panel pair matching the canonical cardinalities.

    Each role is drawn independently, uniformly without replacement from the
    universe; canonical genes are not excluded.
    """
    universe = np.asarray(gene_universe, dtype=object)
    apm_idx = rng.choice(len(universe), size=len(panels.apm), replace=False)
    iis_idx = rng.choice(len(universe), size=len(panels.iis), replace=False)
    return PanelPair(
        apm=GenePanel.from_genes('random_APM', universe[apm_idx].tolist()),
        iis=GenePanel.from_genes('random_IIS', universe[iis_idx].tolist()),
    )


def score_panels(subset: pd.DataFrame, panels: PanelPair,
                 score_function: ScoreFunction, trial: int) -> TrialOutcome:
    """
    Score ``subset`` with one PanelPair.

    The scorer receives every gene of the subset as background and computes
    each score over its panel genes only.

    Any exception raised by the scorer, or a result that is not a valid
    score table for the same samples, turns into a skipped outcome.
    """
    try:
        result = score_function(subset, panels)
        scores = result if isinstance(result, ScoreTable) else ScoreTable.from_frame(result)
        if len(scores) != len(subset):
            raise ValueError(
                f"scorer returned {len(scores)} rows for {len(subset)} samples"
            )
    except Exception as e:
        logger.warning(f"Scoring failed for trial {trial}: {e}")
        return TrialOutcome.skipped(trial, f"{type(e).__name__}: {e}", panels=panels)
    return TrialOutcome(trial=trial, scores=scores, panels=panels)


def run_repetition(expression: pd.DataFrame, panels: PanelPair,
                   gene_universe: Sequence[str], sample_size: int,
                   randomizations_per_repetition: int, rng,
                   score_function: ScoreFunction = mean_expression_score,
                   repetition: int = 1) -> RepetitionScores:
    """One repetition: fresh patient subset, normal trial and K random trials"""
    rows = rng.choice(expression.shape[0], size=sample_size, replace=False)
    subset = expression.iloc[np.sort(rows)]

    normal = score_panels(subset, panels, score_function, NORMAL_TRIAL)
    random_trials = []
    for j in range(1, randomizations_per_repetition + 1):
        random_panels = draw_random_panels(gene_universe, panels, rng)
        random_trials.append(score_panels(subset, random_panels, score_function, j))

    return RepetitionScores(
        repetition=repetition,
        sample_ids=tuple(subset.index),
        normal=normal,
        random=random_trials,
    )


def run_simulation(expression: pd.DataFrame,
                   apm_genes: Sequence[str],
                   iis_genes: Sequence[str],
                   gene_universe: Optional[Sequence[str]] = None,
                   repetitions: int = DEFAULT_REPETITIONS,
                   sample_size: int = DEFAULT_SAMPLE_SIZE,
                   randomizations_per_repetition: int = DEFAULT_RANDOMIZATIONS,
                   rng: RandomSource = None,
                   score_function: ScoreFunction = mean_expression_score,
                   callback: Optional[Callable[[RepetitionScores], None]] = None,
                   progress: bool = False) -> SimulationResult:
    """
    Run the random-gene robustness simulation.

    Args:
        expression: Cohort expression matrix, samples x genes
        apm_genes: Canonical APM panel
        iis_genes: Canonical IIS panel
        gene_universe: Genes random panels are drawn from (default: all
            expression columns, in column order)
        repetitions: Number of repetitions R
        sample_size: Patients drawn per repetition
        randomizations_per_repetition: Random panel pairs per repetition K
        rng: numpy Generator / RandomState, or an int seed. Runs are only
            reproducible when this is seeded by the caller.
        score_function: Scorer mapping (subset, PanelPair) to APM/IIS scores
        callback: Called with each RepetitionScores as soon as it is complete
        progress: Show a tqdm progress bar

    Returns:
        SimulationResult with R RepetitionScores in repetition order

    Raises:
        ValueError: on inconsistent inputs (checked before any scoring)
    """
    apm_genes = list(apm_genes)
    iis_genes = list(iis_genes)
    gene_universe = list(expression.columns) if gene_universe is None else list(gene_universe)
    _validate_inputs(expression, apm_genes, iis_genes, gene_universe,
                     repetitions, sample_size, randomizations_per_repetition)

    panels = PanelPair(
        apm=GenePanel.from_genes('APM', apm_genes),
        iis=GenePanel.from_genes('IIS', iis_genes),
    )
    rng = make_rng(rng)

    logger.info(
        f"Random-gene simulation: {repetitions} repetitions x {randomizations_per_repetition} "
        f"random panels, {sample_size}/{expression.shape[0]} samples, "
        f"|APM|={len(panels.apm)}, |IIS|={len(panels.iis)}, universe={len(gene_universe)}"
    )

    results: List[RepetitionScores] = []
    for r in tqdm(range(1, repetitions + 1), desc='Repetitions', disable=not progress):
        rep = run_repetition(expression, panels, gene_universe, sample_size,
                             randomizations_per_repetition, rng,
                             score_function=score_function, repetition=r)
        if not rep.normal.ok:
            logger.warning(f"Repetition {r}: canonical panels could not be scored")
        results.append(rep)
        if callback is not None:
            callback(rep)

    sim = SimulationResult(
        repetitions=results,
        sample_size=sample_size,
        randomizations_per_repetition=randomizations_per_repetition,
    )
    if sim.n_failed_trials:
        logger.info(
            f"{sim.n_failed_trials} of {repetitions * randomizations_per_repetition} "
            f"random trials failed and were skipped"
        )
    return sim
