"""
TIGS: Tumor Immunogenicity Score toolkit
=========================================
Gene-set immune scores (APM/APS, IIS), the random-gene robustness
simulation, and ORR regression on TIGS = log(nTMB + 1) * nAPM.
"""

from tigs.utils import sanitize_name, load_expression_matrix, load_gene_panel

__all__ = [
    "sanitize_name",
    "load_expression_matrix",
    "load_gene_panel",
]

# Submodules
# - tigs.simulation: run_simulation
# - tigs.aggregation: aggregate, write_result_set, read_result_set
# - tigs.scoring: mean_expression_score, zscore_mean_score, ssgsea_score
# - tigs.immunogenicity: compute_patient_tigs, summarize_by_tumor_type, merge_orr
# - tigs.regression: fit_orr_model, fit_all_predictors, predict_orr
