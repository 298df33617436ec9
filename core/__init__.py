"""
TIGS Toolkit Core Modules
=========================
Shared components for the tumor immunogenicity analyses.

This package contains:
- data_structures: Core data classes (GenePanel, ScoreTable, TrialOutcome, ResultSet, etc.)
- statistics: Rank correlation, exclude-on-failure means, confidence intervals, FDR
"""

from .data_structures import (
    GenePanel,
    PanelPair,
    ScoreTable,
    TrialOutcome,
    RepetitionScores,
    SimulationResult,
    CorrelationRecord,
    ResultSet,
    SimulationConfig,
    RESULT_COLUMNS,
)

from .statistics import (
    spearman_or_nan,
    mean_of_valid,
    compute_confidence_interval,
    paired_wilcoxon,
    apply_fdr_correction,
)

__all__ = [
    # Data structures
    'GenePanel',
    'PanelPair',
    'ScoreTable',
    'TrialOutcome',
    'RepetitionScores',
    'SimulationResult',
    'CorrelationRecord',
    'ResultSet',
    'SimulationConfig',
    'RESULT_COLUMNS',
    # Statistics
    'spearman_or_nan',
    'mean_of_valid',
    'compute_confidence_interval',
    'paired_wilcoxon',
    'apply_fdr_correction',
]

__version__ = '1.0.0'
