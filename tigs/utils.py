#!/usr/bin/env python3
"""
Shared utilities for the TIGS toolkit.
Cohort loading, gene panel parsing and RNG construction.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

RandomSource = Union[None, int, np.random.Generator, np.random.RandomState]


def sanitize_name(name: str, max_len: Optional[int] = None) -> str:
    """
    Sanitize a tumor type or panel name for safe use in filenames.
    Replaces non-word chars (except hyphen) with underscore.
    """
    safe = re.sub(r'[^\w\-]', '_', name)
    if max_len is not None:
        safe = safe[:max_len]
    return safe


def separator_for(path: Path) -> str:
    """Tab for .tsv/.txt files, comma otherwise"""
    return '\t' if path.suffix.lower() in ('.tsv', '.txt') else ','


def load_expression_matrix(path, genes_as_rows: Optional[bool] = None) -> pd.DataFrame:
    """
    Load an expression matrix as samples x genes.

    Expected format:
        - CSV, or tab-separated for .tsv/.txt
        - First column is the row index (sample or gene identifiers)

    Args:
        path: Matrix file
        genes_as_rows: Orientation of the file. None guesses: files with more
            rows than columns are taken to be genes x samples (the usual
            layout of UCSC Xena and GEO series matrices) and transposed.

    Returns:
        DataFrame with samples as rows, gene symbols as columns
    """
    path = Path(path)
    df = pd.read_csv(path, sep=separator_for(path), index_col=0)
    if genes_as_rows is None:
        genes_as_rows = df.shape[0] > df.shape[1]
    if genes_as_rows:
        df = df.T
    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)

    if df.columns.duplicated().any():
        n_dup = int(df.columns.duplicated().sum())
        logger.warning(f"{path.name}: averaging {n_dup} duplicated gene columns")
        df = df.T.groupby(level=0).mean().T

    df = df.apply(pd.to_numeric, errors='coerce')
    logger.info(f"Loaded expression matrix {path.name}: {df.shape[0]} samples x {df.shape[1]} genes")
    return df


def load_gene_panel(path) -> List[str]:
    """
    Read a gene panel file.

    Accepts one gene per line, or a single GMT line
    (``name<TAB>description<TAB>gene1<TAB>gene2...``). Blank lines and
    lines starting with '#' are ignored; duplicates are dropped keeping order.
    """
    path = Path(path)
    lines = [l.strip() for l in path.read_text().splitlines()]
    lines = [l for l in lines if l and not l.startswith('#')]
    if len(lines) == 1 and '\t' in lines[0]:
        genes = [g for g in lines[0].split('\t')[2:] if g]
    else:
        genes = lines
    genes = list(dict.fromkeys(genes))
    if not genes:
        raise ValueError(f"No genes found in panel file {path}")
    return genes


def make_rng(random_state: RandomSource = None):
    """
    Return a numpy random source.

    Generators and RandomState instances are passed through unchanged so the
    caller keeps control of the stream; ints seed a new Generator.
    """
    if isinstance(random_state, (np.random.Generator, np.random.RandomState)):
        return random_state
    return np.random.default_rng(random_state)
