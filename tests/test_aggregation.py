"""
Unit Tests for Correlation Aggregation
======================================
Per-repetition correlation records, exclusion of failed trials, the flat
result table and its summary.
"""

import json
import math

import pytest
import numpy as np
import pandas as pd
from scipy import stats

from core.data_structures import (
    CorrelationRecord,
    RepetitionScores,
    ResultSet,
    ScoreTable,
    SimulationResult,
    TrialOutcome,
)
from tigs.aggregation import (
    aggregate,
    aggregate_repetition,
    append_record,
    read_result_set,
    summarize_result_set,
    write_result_set,
    write_summary,
)


def make_table(apm, iis, index=None) -> ScoreTable:
    index = index if index is not None else [f's{i}' for i in range(len(apm))]
    return ScoreTable.from_frame(pd.DataFrame({'APM': apm, 'IIS': iis}, index=index))


def make_repetition(normal: ScoreTable, random_tables, repetition=1) -> RepetitionScores:
    trials = []
    for j, table in enumerate(random_tables, 1):
        if table is None:
            trials.append(TrialOutcome.skipped(j, 'ValueError: failed'))
        else:
            trials.append(TrialOutcome(trial=j, scores=table))
    return RepetitionScores(
        repetition=repetition,
        sample_ids=tuple(normal.apm.index),
        normal=TrialOutcome(trial=0, scores=normal),
        random=trials,
    )


rng = np.random.default_rng(42)
NORMAL = make_table(rng.normal(size=30), rng.normal(size=30))
RANDOM_A = make_table(rng.normal(size=30), rng.normal(size=30))
RANDOM_B = make_table(rng.normal(size=30), rng.normal(size=30))


class TestAggregateRepetition:

    def test_normal_correlation(self):
        rec = aggregate_repetition(make_repetition(NORMAL, [RANDOM_A]))
        expected = stats.spearmanr(NORMAL.apm, NORMAL.iis)[0]
        assert rec.normal == pytest.approx(expected)
        assert -1 <= rec.normal <= 1

    def test_random_means(self):
        rec = aggregate_repetition(make_repetition(NORMAL, [RANDOM_A, RANDOM_B]))
        iis = [stats.spearmanr(NORMAL.apm, t.iis)[0] for t in (RANDOM_A, RANDOM_B)]
        aps = [stats.spearmanr(t.apm, NORMAL.iis)[0] for t in (RANDOM_A, RANDOM_B)]
        assert rec.random_iis == pytest.approx(np.mean(iis))
        assert rec.random_aps == pytest.approx(np.mean(aps))
        assert rec.n_random_iis == 2
        assert rec.n_random_aps == 2

    def test_degenerate_randomization_equals_normal(self):
        """A random trial identical to the normal scores contributes exactly `normal`"""
        rec = aggregate_repetition(make_repetition(NORMAL, [NORMAL]))
        assert rec.random_iis == rec.normal
        assert rec.random_aps == rec.normal

    def test_failed_trials_excluded(self):
        """Failed trials leave the mean over the remaining trials"""
        with_failure = aggregate_repetition(make_repetition(NORMAL, [RANDOM_A, None, None]))
        only_valid = aggregate_repetition(make_repetition(NORMAL, [RANDOM_A]))
        assert with_failure.random_iis == only_valid.random_iis
        assert with_failure.random_aps == only_valid.random_aps
        assert with_failure.n_random_iis == 1

    def test_undefined_correlation_excluded(self):
        """A constant random IIS column gives an undefined rho that is dropped"""
        constant_iis = make_table(RANDOM_A.apm.to_numpy(), np.ones(30))
        rec = aggregate_repetition(make_repetition(NORMAL, [constant_iis, RANDOM_B]))
        assert rec.n_random_iis == 1
        assert rec.random_iis == pytest.approx(stats.spearmanr(NORMAL.apm, RANDOM_B.iis)[0])
        # The APM side of the same trial is still valid
        assert rec.n_random_aps == 2

    def test_all_trials_failed_is_nan(self):
        rec = aggregate_repetition(make_repetition(NORMAL, [None, None]))
        assert math.isnan(rec.random_iis)
        assert math.isnan(rec.random_aps)
        assert rec.n_random_iis == 0
        assert not math.isnan(rec.normal)

    def test_constant_normal_column(self):
        flat = make_table(np.ones(30), NORMAL.iis.to_numpy())
        rec = aggregate_repetition(make_repetition(flat, [RANDOM_A]))
        assert math.isnan(rec.normal)
        assert math.isnan(rec.random_iis)

    def test_failed_normal_gives_nan_record(self):
        rep = make_repetition(NORMAL, [RANDOM_A])
        rep.normal = TrialOutcome.skipped(0, 'RuntimeError: crashed')
        rec = aggregate_repetition(rep)
        assert math.isnan(rec.normal)
        assert math.isnan(rec.random_iis)
        assert math.isnan(rec.random_aps)

    def test_alignment_on_sample_id(self):
        """Random scores in a different row order are matched by sample id"""
        shuffled = RANDOM_A.to_frame().iloc[::-1]
        rec_shuffled = aggregate_repetition(make_repetition(NORMAL, [ScoreTable.from_frame(shuffled)]))
        rec = aggregate_repetition(make_repetition(NORMAL, [RANDOM_A]))
        assert rec_shuffled.random_iis == pytest.approx(rec.random_iis)


class TestAggregate:

    def test_one_record_per_repetition_in_order(self):
        reps = [
            make_repetition(NORMAL, [RANDOM_A], repetition=1),
            make_repetition(RANDOM_B, [RANDOM_A], repetition=2),
        ]
        sim = SimulationResult(repetitions=reps, sample_size=30, randomizations_per_repetition=1)
        rs = aggregate(sim)
        assert len(rs) == 2
        assert rs[0] == aggregate_repetition(reps[0])
        assert rs[1] == aggregate_repetition(reps[1])
        assert rs.randomizations_per_repetition == 1

    def test_excluded_diagnostics(self):
        reps = [make_repetition(NORMAL, [RANDOM_A, None, RANDOM_B])]
        sim = SimulationResult(repetitions=reps, sample_size=30, randomizations_per_repetition=3)
        rs = aggregate(sim)
        assert rs.n_excluded_iis == 1
        assert rs.n_excluded_aps == 1


class TestResultTableIO:

    def make_result_set(self):
        return ResultSet(records=(
            CorrelationRecord(0.41234567890123456, 0.01, -0.02),
            CorrelationRecord(1 / 3, float('nan'), 2 / 7),
            CorrelationRecord(-0.999999999999, 1e-12, 0.0),
        ))

    @pytest.mark.parametrize('name', ['result.csv', 'result.tsv'])
    def test_round_trip(self, tmp_path, name):
        rs = self.make_result_set()
        path = write_result_set(rs, tmp_path / name)
        back = read_result_set(path)
        assert len(back) == len(rs)
        for a, b in zip(rs, back):
            for attr in ('normal', 'random_iis', 'random_aps'):
                x, y = getattr(a, attr), getattr(b, attr)
                if math.isnan(x):
                    assert math.isnan(y)
                else:
                    assert y == pytest.approx(x, abs=1e-9)

    def test_header(self, tmp_path):
        path = write_result_set(self.make_result_set(), tmp_path / 'r.csv')
        assert path.read_text().splitlines()[0] == 'normal,random_IIS,random_APS'

    def test_no_temp_file_left(self, tmp_path):
        write_result_set(self.make_result_set(), tmp_path / 'r.csv')
        assert sorted(p.name for p in tmp_path.iterdir()) == ['r.csv']

    def test_failed_write_removes_temp_file(self, tmp_path, monkeypatch):
        def broken_to_csv(self, path, *args, **kwargs):
            with open(path, 'w') as f:
                f.write('normal,')
            raise OSError('disk full')

        monkeypatch.setattr(pd.DataFrame, 'to_csv', broken_to_csv)
        with pytest.raises(OSError, match='disk full'):
            write_result_set(self.make_result_set(), tmp_path / 'r.csv')
        assert list(tmp_path.iterdir()) == []

    def test_append_matches_write(self, tmp_path):
        rs = self.make_result_set()
        for rec in rs:
            append_record(rec, tmp_path / 'partial.csv')
        write_result_set(rs, tmp_path / 'full.csv')
        assert (tmp_path / 'partial.csv').read_text() == (tmp_path / 'full.csv').read_text()


class TestSummary:

    def test_summary_columns(self):
        rs = ResultSet(records=tuple(
            CorrelationRecord(0.5 + 0.01 * i, 0.01 * (i % 3), -0.01 * (i % 4)) for i in range(20)
        ))
        summary = summarize_result_set(rs)
        assert set(summary) == {'normal', 'random_IIS', 'random_APS', 'tests'}
        assert summary['normal']['n_valid'] == 20
        assert summary['normal']['mean'] > summary['random_IIS']['mean']
        assert summary['tests']['normal_vs_random_IIS']['p_value'] < 0.001

    def test_summary_json_is_strict(self, tmp_path):
        """Columns without valid values are written as null, never NaN"""
        rs = ResultSet(records=(
            CorrelationRecord(0.3, float('nan'), float('nan')),
            CorrelationRecord(0.2, float('nan'), float('nan')),
        ))
        path = write_summary(summarize_result_set(rs), tmp_path / 'out' / 'summary.json')
        text = path.read_text()
        assert 'NaN' not in text
        data = json.loads(text)
        assert data['random_IIS']['mean'] is None
        assert data['random_IIS']['n_valid'] == 0
        assert data['tests']['normal_vs_random_APS']['p_value'] is None
        assert data['normal']['mean'] == pytest.approx(0.25)
