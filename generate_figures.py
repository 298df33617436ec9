#!/usr/bin/env python3
"""Generate figures for the TIGS report: random-gene robustness and ORR regressions."""

import argparse
import logging
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from tigs.aggregation import read_result_set
from tigs.constants import (
    FIGURES_DIR,
    RANDOM_GENES_RESULT,
    REGRESSION_PREDICTORS,
    RESULTS_DIR,
    SUMMARY_COLUMNS,
    TUMOR_SUMMARY_RESULT,
    TUMOR_TYPE_COLUMN,
)
from tigs.regression import fit_orr_model, predict_orr
from tigs.utils import sanitize_name

logger = logging.getLogger(__name__)

# ── Style ────────────────────────────────────────────────────────────────────
plt.rcParams.update({
    'font.family': 'sans-serif',
    'font.sans-serif': ['Arial', 'Helvetica', 'DejaVu Sans'],
    'font.size': 9,
    'axes.titlesize': 10,
    'axes.labelsize': 9,
    'xtick.labelsize': 7.5,
    'ytick.labelsize': 7.5,
    'legend.fontsize': 7.5,
    'figure.dpi': 300,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
    'axes.spines.top': False,
    'axes.spines.right': False,
})

COLUMN_LABELS = {
    'normal': 'APM vs IIS',
    'random_IIS': 'APM vs random IIS',
    'random_APS': 'random APM vs IIS',
}
COLUMN_COLORS = {
    'normal': '#d62728',
    'random_IIS': '#7f7f7f',
    'random_APS': '#bcbcbc',
}


# ═══════════════════════════════════════════════════════════════════════════════
# Random-gene robustness boxplot
# ═══════════════════════════════════════════════════════════════════════════════
def fig_random_genes(result_path: Path, out_dir: Path) -> Path:
    """Spearman rho per repetition, canonical vs random panels"""
    frame = read_result_set(result_path).to_frame()
    cols = list(COLUMN_LABELS)
    data = [frame[c].dropna().to_numpy() for c in cols]

    fig, ax = plt.subplots(figsize=(3.4, 3.0))
    bp = ax.boxplot(data, patch_artist=True, widths=0.6, showfliers=False)
    for patch, col in zip(bp['boxes'], cols):
        patch.set_facecolor(COLUMN_COLORS[col])
        patch.set_alpha(0.8)
    rng = np.random.default_rng(0)
    for i, values in enumerate(data, 1):
        ax.scatter(i + rng.uniform(-0.15, 0.15, len(values)), values, s=4, color='black', alpha=0.4, zorder=3)
    ax.set_xticks(range(1, len(cols) + 1))
    ax.set_xticklabels([COLUMN_LABELS[c] for c in cols], rotation=20, ha='right')
    ax.set_ylabel("Spearman's rho")
    ax.axhline(0, color='grey', lw=0.6, ls='--')
    ax.set_title(f'Random gene selection ({len(frame)} repetitions)')

    out = out_dir / 'random_genes_correlation.pdf'
    fig.savefig(out)
    plt.close(fig)
    return out


# ═══════════════════════════════════════════════════════════════════════════════
# ORR vs predictor scatter with fitted line and 95% CI band
# ═══════════════════════════════════════════════════════════════════════════════
def fig_orr_regression(table: pd.DataFrame, predictor: str, out_dir: Path) -> Path:
    fit = fit_orr_model(table, predictor)
    data = table[[predictor, 'ORR']].dropna()

    grid = np.linspace(data[predictor].min(), data[predictor].max(), 50)
    preds = [predict_orr(fit, v) for v in grid]

    fig, ax = plt.subplots(figsize=(3.4, 3.0))
    # Marker area follows the number of ORR patients when known
    sizes = 20
    if SUMMARY_COLUMNS['ORR'] in table.columns:
        sizes = np.sqrt(table.loc[data.index, SUMMARY_COLUMNS['ORR']].fillna(40).to_numpy(dtype=float)) * 3
    ax.scatter(data[predictor], data['ORR'], s=sizes,
               color='#1f77b4', alpha=0.7, edgecolor='white', lw=0.5)
    ax.plot(grid, [p.predicted for p in preds], color='black', lw=1)
    ax.fill_between(grid, [p.lower for p in preds], [p.upper for p in preds], color='grey', alpha=0.2)
    for label, row in data.iterrows():
        ax.annotate(str(label), (row[predictor], row['ORR']), fontsize=5, xytext=(2, 2),
                    textcoords='offset points')
    ax.set_xlabel(f'Median {predictor}')
    ax.set_ylabel('Objective response rate')
    ax.set_title(f'r = {fit.pearson_r:.2f}, R² = {fit.r_squared:.2f}, n = {fit.n}')

    out = out_dir / f'orr_vs_{sanitize_name(predictor)}.pdf'
    fig.savefig(out)
    plt.close(fig)
    return out


def main(argv=None):
    parser = argparse.ArgumentParser(description='Generate TIGS report figures')
    parser.add_argument('--results-dir', default=RESULTS_DIR)
    parser.add_argument('--out', default=FIGURES_DIR)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(levelname)s:%(name)s:%(message)s')

    results_dir = Path(args.results_dir)
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    random_path = results_dir / RANDOM_GENES_RESULT
    if random_path.exists():
        print(f"Saved {fig_random_genes(random_path, out_dir)}")
    else:
        print(f"Skipping random-gene figure: {random_path} not found")

    summary_path = results_dir / TUMOR_SUMMARY_RESULT
    if summary_path.exists():
        table = pd.read_csv(summary_path, index_col=TUMOR_TYPE_COLUMN)
        for predictor in REGRESSION_PREDICTORS:
            try:
                print(f"Saved {fig_orr_regression(table, predictor, out_dir)}")
            except ValueError as e:
                logger.warning(f"Skipping ORR vs {predictor}: {e}")
    else:
        print(f"Skipping ORR figures: {summary_path} not found")


if __name__ == '__main__':
    main()
