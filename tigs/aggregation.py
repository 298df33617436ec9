#!/usr/bin/env python3
"""
Correlation aggregation for the random-gene simulation
======================================================
Turns per-repetition score tables into one CorrelationRecord per repetition:

    normal      rho(normal APM, normal IIS)
    random_IIS  mean_j rho(normal APM, random_j IIS)
    random_APS  mean_j rho(random_j APM, normal IIS)

Undefined correlations and failed trials are excluded from the means
(core.statistics.mean_of_valid). Also reads and writes the flat result table.
"""

import json
import math
import logging
from pathlib import Path
from typing import Dict, List

import pandas as pd

from core.data_structures import (
    CorrelationRecord,
    RepetitionScores,
    ResultSet,
    RESULT_COLUMNS,
    ScoreTable,
    SimulationResult,
)
from core.statistics import describe_column, mean_of_valid, paired_wilcoxon, spearman_or_nan
from tigs.utils import separator_for

logger = logging.getLogger(__name__)

NAN = float('nan')


def _aligned_rho(x: pd.Series, y: pd.Series) -> float:
    """Spearman rho of two score columns aligned on sample id"""
    joined = pd.concat([x.rename('x'), y.rename('y')], axis=1, join='inner')
    return spearman_or_nan(joined['x'], joined['y'])


def aggregate_repetition(rep: RepetitionScores) -> CorrelationRecord:
    """Correlation record of one repetition"""
    if not rep.normal.ok:
        return CorrelationRecord(normal=NAN, random_iis=NAN, random_aps=NAN,
                                 n_random_iis=0, n_random_aps=0)

    normal: ScoreTable = rep.normal.scores
    rho_normal = _aligned_rho(normal.apm, normal.iis)

    rho_iis = []
    rho_aps = []
    for trial in rep.random:
        if not trial.ok:
            continue
        rho_iis.append(_aligned_rho(normal.apm, trial.scores.iis))
        rho_aps.append(_aligned_rho(trial.scores.apm, normal.iis))

    random_iis, n_iis = mean_of_valid(rho_iis)
    random_aps, n_aps = mean_of_valid(rho_aps)
    if n_iis < len(rep.random) or n_aps < len(rep.random):
        logger.debug(
            f"Repetition {rep.repetition}: {n_iis}/{len(rep.random)} valid IIS trials, "
            f"{n_aps}/{len(rep.random)} valid APS trials"
        )
    return CorrelationRecord(
        normal=rho_normal,
        random_iis=random_iis,
        random_aps=random_aps,
        n_random_iis=n_iis,
        n_random_aps=n_aps,
    )


def aggregate(simulation_result: SimulationResult) -> ResultSet:
    """One CorrelationRecord per repetition, in repetition order"""
    records = tuple(aggregate_repetition(rep) for rep in simulation_result)
    result_set = ResultSet(
        records=records,
        randomizations_per_repetition=simulation_result.randomizations_per_repetition,
    )
    if result_set.n_excluded_iis or result_set.n_excluded_aps:
        logger.info(
            f"Excluded trials: random_IIS={result_set.n_excluded_iis}, "
            f"random_APS={result_set.n_excluded_aps}"
        )
    return result_set


# ============================================================================
# FLAT TABLE I/O
# ============================================================================

FLOAT_FORMAT = '%.17g'


def write_result_set(result_set: ResultSet, path) -> Path:
    """
    Write the result set as a flat table (header normal,random_IIS,random_APS).

    The table is written to a sibling temporary file and moved into place so
    a reader never sees a partially written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + '.tmp')
    try:
        result_set.to_frame().to_csv(tmp, sep=separator_for(path), index=False,
                                     float_format=FLOAT_FORMAT)
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    logger.info(f"Wrote {len(result_set)} correlation records to {path}")
    return path


def append_record(record: CorrelationRecord, path) -> None:
    """Append one record, writing the header when the file is new"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_header = not path.exists() or path.stat().st_size == 0
    row = pd.DataFrame([record.as_row()], columns=list(RESULT_COLUMNS), dtype=float)
    row.to_csv(path, sep=separator_for(path), index=False, header=write_header,
               mode='a', float_format=FLOAT_FORMAT)


def read_result_set(path) -> ResultSet:
    """Read a result table written by write_result_set or append_record"""
    path = Path(path)
    frame = pd.read_csv(path, sep=separator_for(path))
    return ResultSet.from_frame(frame)


# ============================================================================
# SUMMARY
# ============================================================================

def summarize_result_set(result_set: ResultSet, confidence: float = 0.95) -> Dict[str, Dict]:
    """
    Describe each column and test normal against each random column.

    Returns:
        Dict with one entry per result column (mean, median, CI, n_valid) and
        a 'tests' entry holding paired Wilcoxon results of normal vs random.
    """
    frame = result_set.to_frame()
    summary: Dict[str, Dict] = {col: describe_column(frame[col], confidence) for col in RESULT_COLUMNS}

    tests: List[Dict] = []
    for col in ('random_IIS', 'random_APS'):
        stat, p = paired_wilcoxon(frame['normal'], frame[col])
        tests.append({'comparison': f'normal_vs_{col}', 'statistic': stat, 'p_value': p})
    summary['tests'] = {t['comparison']: t for t in tests}
    return summary


def _json_ready(value):
    if isinstance(value, dict):
        return {k: _json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_ready(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def write_summary(summary: Dict, path) -> Path:
    """Write a summary dict as strict JSON; NaN and inf become null"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(_json_ready(summary), f, indent=2, allow_nan=False)
    return path
