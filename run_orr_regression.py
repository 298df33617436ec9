#!/usr/bin/env python3
"""
Regress objective response rate on tumor-type median APS, TMB and TIGS.

Either build the regression table from a per-patient table
(Tumor_Type, TMB_NonsynVariants, APS) plus a curated ORR table
(Tumor_Type, ORR, Patients_ORR), or pass a ready regression table with
--table. Tumor types without ORR (or without patients) are kept in the
saved summary and excluded from the fits.

Saves:
  results/tumor_type_summary.csv  merged per-tumor-type table
  results/orr_regression.csv      one row per predictor

Usage:
    python run_orr_regression.py --patients tcga_patients.csv --orr orr_literature.csv --predict 0.35
"""
import sys
import logging
import argparse
from pathlib import Path

import pandas as pd

from tigs.constants import (
    ORR_REGRESSION_RESULT,
    REGRESSION_PREDICTORS,
    RESULTS_DIR,
    TUMOR_SUMMARY_RESULT,
    TUMOR_TYPE_COLUMN,
)
from tigs.utils import separator_for


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='ORR regression on TIGS, APS and TMB')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--patients', help='Per-patient table with TMB_NonsynVariants and APS')
    source.add_argument('--table', help='Ready per-tumor-type regression table')
    parser.add_argument('--orr', help='Curated ORR table (required with --patients)')
    parser.add_argument('--cohort-column', default=None,
                        help='Min-max normalize APS within each value of this column')
    parser.add_argument('--predict', type=float, nargs='*', default=[],
                        help='TIGS values to predict ORR for')
    parser.add_argument('--output-dir', default=RESULTS_DIR)
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    return parser.parse_args(argv)


def _read_table(path) -> pd.DataFrame:
    path = Path(path)
    return pd.read_csv(path, sep=separator_for(path))


def build_regression_table(args) -> pd.DataFrame:
    from tigs.immunogenicity import compute_patient_tigs, merge_orr, summarize_by_tumor_type

    if args.table:
        return _read_table(args.table).set_index(TUMOR_TYPE_COLUMN)
    if not args.orr:
        raise ValueError("--orr is required together with --patients")
    patients = compute_patient_tigs(_read_table(args.patients), cohort_column=args.cohort_column)
    summary = summarize_by_tumor_type(patients)
    return merge_orr(summary, _read_table(args.orr))


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s:%(name)s:%(message)s')

    from tigs.regression import fit_all_predictors, fit_orr_model, predict_orr

    try:
        table = build_regression_table(args)
    except (OSError, KeyError, ValueError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    table.to_csv(output_dir / TUMOR_SUMMARY_RESULT)

    results = fit_all_predictors(table, REGRESSION_PREDICTORS)
    results.to_csv(output_dir / ORR_REGRESSION_RESULT, index=False)

    print(f"\n{'='*70}")
    print(f"  ORR REGRESSION ({len(table)} tumor types)")
    print(f"{'='*70}")
    print(f"  {'Predictor':<10} {'Slope':>9} {'Intercept':>10} {'r':>7} {'R2':>7} {'p':>9} {'p_adj':>9} {'n':>4}")
    print(f"  {'-'*70}")
    for row in results.itertuples(index=False):
        print(f"  {row.predictor:<10} {row.slope:>9.3f} {row.intercept:>10.3f} {row.pearson_r:>7.3f} "
              f"{row.r_squared:>7.3f} {row.p_value:>9.2g} {row.p_adj:>9.2g} {row.n:>4}")

    if args.predict:
        try:
            fit = fit_orr_model(table, 'TIGS')
        except ValueError as e:
            print(f"ERROR: cannot predict ORR: {e}")
            sys.exit(1)
        print("\n  Predicted ORR from TIGS (95% CI of the mean):")
        for value in args.predict:
            pred = predict_orr(fit, value)
            print(f"    TIGS={pred.value:.3f}  ORR={pred.predicted:.3f}  [{pred.lower:.3f}, {pred.upper:.3f}]")

    print(f"\nSaved to {output_dir / TUMOR_SUMMARY_RESULT} and {output_dir / ORR_REGRESSION_RESULT}")


if __name__ == '__main__':
    main()
