"""
Unit Tests for ORR Regression
=============================
Filter-then-fit OLS, per-predictor table and ORR prediction intervals.
"""

import math

import pytest
import numpy as np
import pandas as pd

from tigs.regression import fit_all_predictors, fit_orr_model, predict_orr


def make_table(n=12, seed=0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    tigs = rng.uniform(0, 1, n)
    aps = rng.uniform(0, 1, n)
    tmb = rng.uniform(0, 5, n)
    orr = 0.05 + 0.4 * tigs + rng.normal(0, 0.03, n)
    return pd.DataFrame(
        {'TIGS': tigs, 'APS': aps, 'TMB': tmb, 'ORR': orr, 'Patients_ORR': rng.integers(20, 500, n)},
        index=pd.Index([f'T{i:02d}' for i in range(n)], name='Tumor_Type'),
    )


class TestFitOrrModel:

    def test_matches_polyfit(self):
        table = make_table()
        fit = fit_orr_model(table, 'TIGS')
        slope, intercept = np.polyfit(table['TIGS'], table['ORR'], 1)
        assert fit.slope == pytest.approx(slope)
        assert fit.intercept == pytest.approx(intercept)
        assert fit.n == len(table)

    def test_r_squared_is_r_squared(self):
        fit = fit_orr_model(make_table(), 'TIGS')
        assert fit.r_squared == pytest.approx(fit.pearson_r ** 2)
        assert fit.pearson_r > 0.9
        assert fit.p_value < 0.001

    def test_missing_rows_excluded(self):
        """Rows with NaN ORR are dropped from the fit and from n"""
        table = make_table()
        table.loc[['T01', 'T05'], 'ORR'] = np.nan
        fit = fit_orr_model(table, 'TIGS')
        complete = table.dropna(subset=['ORR'])
        expected = fit_orr_model(complete, 'TIGS')
        assert fit.n == len(table) - 2
        assert fit.excluded == ['T01', 'T05']
        assert fit.slope == pytest.approx(expected.slope)
        assert fit.intercept == pytest.approx(expected.intercept)

    def test_missing_predictor_excluded(self):
        table = make_table()
        table.loc['T03', 'TIGS'] = np.nan
        assert fit_orr_model(table, 'TIGS').n == len(table) - 1

    def test_too_few_rows(self):
        table = make_table(n=4)
        table.loc[['T00', 'T01'], 'ORR'] = np.nan
        with pytest.raises(ValueError, match='need at least'):
            fit_orr_model(table, 'TIGS')

    def test_constant_predictor(self):
        table = make_table()
        table['TIGS'] = 0.3
        with pytest.raises(ValueError, match='constant'):
            fit_orr_model(table, 'TIGS')

    def test_missing_column(self):
        with pytest.raises(ValueError, match='missing column'):
            fit_orr_model(make_table().drop(columns='APS'), 'APS')


class TestFitAllPredictors:

    def test_one_row_per_predictor(self):
        results = fit_all_predictors(make_table())
        assert list(results['predictor']) == ['APS', 'TMB', 'TIGS']
        assert {'slope', 'intercept', 'pearson_r', 'r_squared', 'p_value', 'p_adj', 'n'} <= set(results.columns)
        assert (results['p_adj'] >= results['p_value']).all()

    def test_unfittable_predictor_reported(self):
        table = make_table()
        table['APS'] = np.nan
        results = fit_all_predictors(table).set_index('predictor')
        assert results.loc['APS', 'n'] == 0
        assert math.isnan(results.loc['APS', 'slope'])
        assert math.isnan(results.loc['APS', 'p_adj'])
        assert results.loc['TIGS', 'n'] == len(table)


class TestPredictOrr:

    def test_point_prediction_on_line(self):
        fit = fit_orr_model(make_table(), 'TIGS')
        pred = predict_orr(fit, 0.5)
        assert pred.predicted == pytest.approx(fit.intercept + 0.5 * fit.slope)
        assert pred.lower < pred.predicted < pred.upper

    def test_interval_widens_away_from_data(self):
        fit = fit_orr_model(make_table(), 'TIGS')
        near = predict_orr(fit, 0.5)
        far = predict_orr(fit, 3.0)
        assert (far.upper - far.lower) > (near.upper - near.lower)

    def test_higher_confidence_wider(self):
        fit = fit_orr_model(make_table(), 'TIGS')
        p90 = predict_orr(fit, 0.5, confidence=0.90)
        p99 = predict_orr(fit, 0.5, confidence=0.99)
        assert (p99.upper - p99.lower) > (p90.upper - p90.lower)
