"""
Core Data Structures for the TIGS Toolkit
=========================================
Dataclasses representing gene panels, score tables, per-trial outcomes,
simulation results and correlation records.
"""

import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class GenePanel:
    """Named set of gene identifiers (order irrelevant)"""
    name: str
    genes: FrozenSet[str]

    @classmethod
    def from_genes(cls, name: str, genes) -> 'GenePanel':
        genes = list(genes)
        if len(set(genes)) != len(genes):
            raise ValueError(f"Gene panel '{name}' contains duplicate genes")
        if not genes:
            raise ValueError(f"Gene panel '{name}' is empty")
        return cls(name=name, genes=frozenset(genes))

    def __len__(self):
        return len(self.genes)

    def __contains__(self, gene: str) -> bool:
        return gene in self.genes

    def sorted_genes(self) -> List[str]:
        return sorted(self.genes)


@dataclass(frozen=True)
class PanelPair:
    """The two panels scored together: antigen presentation and infiltration"""
    apm: GenePanel
    iis: GenePanel

    @property
    def genes(self) -> List[str]:
        """Union of both panels, sorted"""
        return sorted(self.apm.genes | self.iis.genes)


@dataclass
class ScoreTable:
    """
    Per-sample APM and IIS scores.

    Attributes:
        apm: APM score per sample (index = sample id)
        iis: IIS score per sample (index = sample id)
    """
    apm: pd.Series
    iis: pd.Series

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> 'ScoreTable':
        """
        Build a ScoreTable from a frame with ``APM`` and ``IIS`` columns.

        Raises:
            ValueError: if a column is missing or holds non-numeric values
        """
        missing = [c for c in ('APM', 'IIS') if c not in frame.columns]
        if missing:
            raise ValueError(f"Score table is missing columns: {missing}")
        try:
            apm = pd.to_numeric(frame['APM'], errors='raise').astype(float)
            iis = pd.to_numeric(frame['IIS'], errors='raise').astype(float)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Score table holds non-numeric values: {e}") from e
        return cls(apm=apm, iis=iis)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({'APM': self.apm, 'IIS': self.iis})

    def __len__(self):
        return len(self.apm)


@dataclass
class TrialOutcome:
    """
    Result-or-skip outcome of scoring one panel pair.

    Exactly one of ``scores`` and ``error`` is set.
    """
    trial: int
    scores: Optional[ScoreTable] = None
    error: Optional[str] = None
    panels: Optional[PanelPair] = None

    @property
    def ok(self) -> bool:
        return self.scores is not None

    @classmethod
    def skipped(cls, trial: int, error: str,
                panels: Optional[PanelPair] = None) -> 'TrialOutcome':
        return cls(trial=trial, scores=None, error=error, panels=panels)


@dataclass
class RepetitionScores:
    """Normal and randomized score tables for one simulation repetition"""
    repetition: int
    sample_ids: Tuple[str, ...]
    normal: TrialOutcome
    random: List[TrialOutcome] = field(default_factory=list)

    @property
    def n_failed_trials(self) -> int:
        return sum(1 for t in self.random if not t.ok)


@dataclass
class SimulationResult:
    """Ordered per-repetition scores of one random-gene simulation run"""
    repetitions: List[RepetitionScores]
    sample_size: int
    randomizations_per_repetition: int

    def __len__(self):
        return len(self.repetitions)

    def __iter__(self) -> Iterator[RepetitionScores]:
        return iter(self.repetitions)

    @property
    def n_failed_trials(self) -> int:
        """Randomized trials whose scoring failed, over all repetitions"""
        return sum(r.n_failed_trials for r in self.repetitions)

    @property
    def n_failed_normal(self) -> int:
        return sum(1 for r in self.repetitions if not r.normal.ok)


@dataclass(frozen=True)
class CorrelationRecord:
    """
    Correlation summary of one repetition.

    Attributes:
        normal: Spearman rho between canonical APM and canonical IIS
        random_iis: Mean rho between canonical APM and random-panel IIS
        random_aps: Mean rho between random-panel APM and canonical IIS
        n_random_iis: Valid trials behind random_iis (None when read back from disk)
        n_random_aps: Valid trials behind random_aps (None when read back from disk)
    """
    normal: float
    random_iis: float
    random_aps: float
    n_random_iis: Optional[int] = None
    n_random_aps: Optional[int] = None

    def as_row(self) -> Dict[str, float]:
        return {
            'normal': self.normal,
            'random_IIS': self.random_iis,
            'random_APS': self.random_aps,
        }


RESULT_COLUMNS = ('normal', 'random_IIS', 'random_APS')


@dataclass(frozen=True)
class ResultSet:
    """Ordered correlation records, one per repetition"""
    records: Tuple[CorrelationRecord, ...]
    randomizations_per_repetition: Optional[int] = None

    def __len__(self):
        return len(self.records)

    def __iter__(self) -> Iterator[CorrelationRecord]:
        return iter(self.records)

    def __getitem__(self, i: int) -> CorrelationRecord:
        return self.records[i]

    def _n_excluded(self, attr: str) -> Optional[int]:
        k = self.randomizations_per_repetition
        counts = [getattr(r, attr) for r in self.records]
        if k is None or any(c is None for c in counts):
            return None
        return sum(k - c for c in counts)

    @property
    def n_excluded_iis(self) -> Optional[int]:
        """Trials excluded from random_IIS means (None if counts are unknown)"""
        return self._n_excluded('n_random_iis')

    @property
    def n_excluded_aps(self) -> Optional[int]:
        """Trials excluded from random_APS means (None if counts are unknown)"""
        return self._n_excluded('n_random_aps')

    def to_frame(self) -> pd.DataFrame:
        """Rows in repetition order with the persisted column header"""
        return pd.DataFrame([r.as_row() for r in self.records],
                            columns=list(RESULT_COLUMNS), dtype=float)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> 'ResultSet':
        missing = [c for c in RESULT_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(f"Result table is missing columns: {missing}")
        values = frame[list(RESULT_COLUMNS)].apply(pd.to_numeric, errors='raise').astype(float)
        records = tuple(
            CorrelationRecord(
                normal=float(row.normal),
                random_iis=float(row.random_IIS),
                random_aps=float(row.random_APS),
            )
            for row in values.itertuples(index=False)
        )
        return cls(records=records)


@dataclass
class SimulationConfig:
    """
    Parameters of a random-gene simulation run.

    Attributes:
        repetitions: Number of independent repetitions (R)
        sample_size: Patients drawn per repetition
        randomizations_per_repetition: Random panels per repetition (K)
        seed: Seed for the injected RNG (None = fresh entropy)
        scorer: Name of the scoring function ('mean', 'zscore', 'ssgsea')
    """
    repetitions: int = 100
    sample_size: int = 500
    randomizations_per_repetition: int = 10
    seed: Optional[int] = 42
    scorer: str = 'mean'

    def __post_init__(self):
        for name in ('repetitions', 'sample_size', 'randomizations_per_repetition'):
            value = getattr(self, name)
            if not isinstance(value, (int, np.integer)) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @classmethod
    def from_json(cls, path) -> 'SimulationConfig':
        with open(Path(path)) as f:
            data: Dict[str, Any] = json.load(f)
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown simulation config keys: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
