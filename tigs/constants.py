#!/usr/bin/env python3
"""
Canonical constants for the TIGS toolkit
========================================
Single source of truth for the canonical gene panels, numeric contracts,
simulation defaults and table column names. All other modules should
import from here instead of maintaining their own copies.
"""

from typing import Dict, List, Tuple

# ---------------------------------------------------------------------------
# CANONICAL GENE PANELS
# ---------------------------------------------------------------------------

# Antigen presentation machinery (MHC class I pathway)
APM_GENES: List[str] = [
    'HLA-A', 'HLA-B', 'HLA-C', 'B2M',
    'TAP1', 'TAP2', 'TAPBP',
    'PSMB5', 'PSMB6', 'PSMB7', 'PSMB8', 'PSMB9', 'PSMB10',
    'PSME1', 'PSME2',
    'ERAP1', 'ERAP2',
    'CALR', 'CANX', 'PDIA3',
    'NLRC5',
]

# Immune infiltration markers (cytotoxic T, T, B, NK cells and macrophages)
IIS_GENES: List[str] = [
    'CD8A', 'CD8B', 'GZMA', 'GZMB', 'GZMH', 'GZMK', 'PRF1',
    'CD3D', 'CD3E', 'CD3G', 'CD2', 'CD247', 'LCK',
    'CD19', 'MS4A1', 'CD79A', 'CD79B',
    'NKG7', 'KLRD1', 'KLRK1',
    'CD68', 'CD163', 'CSF1R',
]

PANEL_NAMES: Tuple[str, str] = ('APM', 'IIS')

# ---------------------------------------------------------------------------
# NUMERIC CONTRACTS
# ---------------------------------------------------------------------------

# Exome size in megabases used to turn nonsynonymous variant counts into TMB
TMB_EXOME_SIZE_MB: float = 38.0

# ---------------------------------------------------------------------------
# SIMULATION DEFAULTS
# ---------------------------------------------------------------------------

DEFAULT_REPETITIONS: int = 100
DEFAULT_SAMPLE_SIZE: int = 500
DEFAULT_RANDOMIZATIONS: int = 10
DEFAULT_SEED: int = 42

# ---------------------------------------------------------------------------
# TABLE COLUMNS
# ---------------------------------------------------------------------------

TUMOR_TYPE_COLUMN: str = 'Tumor_Type'
TMB_COLUMN: str = 'TMB_NonsynVariants'
APS_COLUMN: str = 'APS'

# Per-tumor-type regression table: statistic column -> patient count column
SUMMARY_COLUMNS: Dict[str, str] = {
    'TIGS': 'Patients_TIGS',
    'APS': 'Patients_APS',
    'TMB': 'Patients_TMB',
    'ORR': 'Patients_ORR',
}

REGRESSION_PREDICTORS: Tuple[str, ...] = ('APS', 'TMB', 'TIGS')

# ---------------------------------------------------------------------------
# OUTPUT PATHS
# ---------------------------------------------------------------------------

RESULTS_DIR: str = 'results'
RANDOM_GENES_RESULT: str = 'random_genes_correlation.csv'
ORR_REGRESSION_RESULT: str = 'orr_regression.csv'
TUMOR_SUMMARY_RESULT: str = 'tumor_type_summary.csv'
FIGURES_DIR: str = 'figures'
