#!/usr/bin/env python3
"""
Random selection of APM/IIS genes: robustness of the APM-IIS correlation.

Protocol: for each repetition, draw 500 patients without replacement, score
them with the canonical APM and IIS panels and with 10 random panel pairs of
the same sizes, and record the Spearman correlations:

    normal      APM vs IIS
    random_IIS  APM vs random-gene IIS (mean over random panels)
    random_APS  random-gene APM vs IIS (mean over random panels)

Each repetition's record is appended to <output>.partial as soon as it is
computed, so an interrupted run keeps its completed repetitions.

Usage:
    python run_random_gene_simulation.py --expression tcga_expression.tsv
"""
import sys
import time
import logging
import argparse
from pathlib import Path

from core.data_structures import SimulationConfig
from tigs.constants import (
    APM_GENES,
    IIS_GENES,
    DEFAULT_RANDOMIZATIONS,
    DEFAULT_REPETITIONS,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SEED,
    RESULTS_DIR,
    RANDOM_GENES_RESULT,
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Random APM/IIS gene robustness simulation')
    parser.add_argument('--expression', required=True,
                        help='Expression matrix (CSV/TSV; samples x genes or genes x samples)')
    parser.add_argument('--orientation', choices=['auto', 'genes-x-samples', 'samples-x-genes'],
                        default='auto', help='Layout of the expression file (default: guess)')
    parser.add_argument('--apm-genes', help='APM panel file (default: built-in panel)')
    parser.add_argument('--iis-genes', help='IIS panel file (default: built-in panel)')
    parser.add_argument('--universe', help='Gene universe file (default: all expressed genes)')
    parser.add_argument('--config', help='JSON file with SimulationConfig fields')
    parser.add_argument('--repetitions', type=int, default=None)
    parser.add_argument('--sample-size', type=int, default=None)
    parser.add_argument('--randomizations', type=int, default=None)
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--scorer', choices=['mean', 'zscore', 'ssgsea'], default=None)
    parser.add_argument('--output', default=str(Path(RESULTS_DIR) / RANDOM_GENES_RESULT))
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    return parser.parse_args(argv)


def build_config(args) -> SimulationConfig:
    """Defaults, then the JSON config, then explicit command-line flags"""
    if args.config:
        config = SimulationConfig.from_json(args.config)
    else:
        config = SimulationConfig(
            repetitions=DEFAULT_REPETITIONS,
            sample_size=DEFAULT_SAMPLE_SIZE,
            randomizations_per_repetition=DEFAULT_RANDOMIZATIONS,
            seed=DEFAULT_SEED,
        )
    overrides = {
        'repetitions': args.repetitions,
        'sample_size': args.sample_size,
        'randomizations_per_repetition': args.randomizations,
        'seed': args.seed,
        'scorer': args.scorer,
    }
    data = config.to_dict()
    data.update({k: v for k, v in overrides.items() if v is not None})
    return SimulationConfig(**data)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s:%(name)s:%(message)s')

    from tigs.utils import load_expression_matrix, load_gene_panel, make_rng
    from tigs.scoring import get_scorer
    from tigs.simulation import run_simulation
    from tigs.aggregation import (
        aggregate,
        aggregate_repetition,
        append_record,
        summarize_result_set,
        write_result_set,
        write_summary,
    )

    try:
        config = build_config(args)
        scorer = get_scorer(config.scorer)
        genes_as_rows = {'auto': None, 'genes-x-samples': True, 'samples-x-genes': False}[args.orientation]
        expression = load_expression_matrix(args.expression, genes_as_rows=genes_as_rows)
        apm_genes = load_gene_panel(args.apm_genes) if args.apm_genes else APM_GENES
        iis_genes = load_gene_panel(args.iis_genes) if args.iis_genes else IIS_GENES
        universe = load_gene_panel(args.universe) if args.universe else None
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    # Built-in panels are trimmed to the assayed genes; user panels must match exactly
    if not args.apm_genes:
        apm_genes = [g for g in apm_genes if g in expression.columns]
    if not args.iis_genes:
        iis_genes = [g for g in iis_genes if g in expression.columns]

    output = Path(args.output)
    partial = output.with_name(output.name + '.partial')
    if partial.exists():
        partial.unlink()

    print(f"Running {config.repetitions} repetitions x {config.randomizations_per_repetition} "
          f"random panels (scorer={config.scorer}, seed={config.seed})...", flush=True)
    t0 = time.time()
    try:
        sim = run_simulation(
            expression, apm_genes, iis_genes,
            gene_universe=universe,
            repetitions=config.repetitions,
            sample_size=config.sample_size,
            randomizations_per_repetition=config.randomizations_per_repetition,
            rng=make_rng(config.seed),
            score_function=scorer,
            callback=lambda rep: append_record(aggregate_repetition(rep), partial),
            progress=True,
        )
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    result_set = aggregate(sim)
    write_result_set(result_set, output)
    partial.unlink()

    summary = summarize_result_set(result_set)
    summary['config'] = config.to_dict()
    summary['n_failed_trials'] = sim.n_failed_trials
    summary['n_failed_normal'] = sim.n_failed_normal
    summary_path = output.with_suffix('.summary.json')
    write_summary(summary, summary_path)

    print(f"\n{'='*70}")
    print(f"  RANDOM GENE SIMULATION ({len(result_set)} repetitions, {time.time()-t0:.1f}s)")
    print(f"{'='*70}")
    print(f"  {'Column':<12} {'Mean':>8} {'Median':>8} {'95% CI':>20} {'n':>5}")
    print(f"  {'-'*56}")
    for col in ('normal', 'random_IIS', 'random_APS'):
        s = summary[col]
        ci = f"[{s['ci_lower']:.3f}, {s['ci_upper']:.3f}]"
        print(f"  {col:<12} {s['mean']:>8.3f} {s['median']:>8.3f} {ci:>20} {s['n_valid']:>5}")
    print(f"  Failed random trials: {sim.n_failed_trials}")
    print(f"\nSaved to {output} and {summary_path}")


if __name__ == '__main__':
    main()
