"""
Tests for the factor analysis wrapper and training artifact reading.
"""

import h5py
import numpy as np
import pandas as pd
import pytest

from multiomics_lab.exceptions import ArtifactIOError, ConfigurationError
from multiomics_lab.methods import (
    FactorAnalysis,
    check_convergence,
    load_factor_result,
    run_factor_analysis
)


def write_artifact(path, n_factors=2, with_r2=True, elbo=(-1000.0, -950.0, -949.9)):
    """Write a minimal training artifact with the layout mofapy2 uses."""
    rng = np.random.default_rng(1)
    samples = [f'S{i}' for i in range(1, 7)]
    features = {'rna': ['g1', 'g2', 'g3', 'g4'], 'protein': ['p1', 'p2', 'p3']}

    with h5py.File(path, 'w') as hf:
        hf.create_group('views').create_dataset('views', data=np.array(list(features), dtype='S'))
        hf.create_group('groups').create_dataset('groups', data=np.array(['group1'], dtype='S'))
        hf.create_group('samples').create_dataset('group1', data=np.array(samples, dtype='S'))
        feat = hf.create_group('features')
        for view, names in features.items():
            feat.create_dataset(view, data=np.array(names, dtype='S'))

        expectations = hf.create_group('expectations')
        expectations.create_group('Z').create_dataset(
            'group1', data=rng.normal(size=(n_factors, len(samples))))
        w = expectations.create_group('W')
        for view, names in features.items():
            w.create_dataset(view, data=rng.normal(size=(n_factors, len(names))))

        if with_r2:
            ve = hf.create_group('variance_explained')
            ve.create_group('r2_per_factor').create_dataset(
                'group1', data=np.array([[30.0, 5.0], [10.0, 20.0]])[:, :n_factors])
            ve.create_group('r2_total').create_dataset('group1', data=np.array([35.0, 30.0]))

        hf.create_group('training_stats').create_dataset('elbo', data=np.array(elbo))
    return samples, features


class TestCheckConvergence:

    def test_stopped_before_maxiter(self):
        assert check_convergence(np.array([-1000.0, -900.0, -800.0]), maxiter=100, tolerance=0.0005)

    def test_ran_to_maxiter_with_small_changes(self):
        elbo = np.array([-1000.0, -900.0, -900.000001, -900.000002, -900.000003])
        assert check_convergence(elbo, maxiter=5, tolerance=0.0005)

    def test_single_small_change_is_not_enough(self):
        elbo = np.array([-1000.0, -950.0, -900.0, -850.0, -850.000001])
        assert not check_convergence(elbo, maxiter=5, tolerance=0.0005)

    def test_too_few_recorded_values_at_maxiter(self):
        elbo = np.array([-1000.0, -1000.000001, -1000.000002])
        assert not check_convergence(elbo, maxiter=3, tolerance=0.0005)

    def test_ran_to_maxiter_with_large_change(self):
        elbo = np.array([-1000.0, -900.0, -800.0])
        assert not check_convergence(elbo, maxiter=3, tolerance=0.0005)

    def test_uncomputed_iterations_are_skipped(self):
        elbo = np.array([np.nan, -1000.0, np.nan, -900.0])
        assert not check_convergence(elbo, maxiter=4, tolerance=0.0005)

    def test_empty_trace(self):
        assert check_convergence(np.array([]), maxiter=10, tolerance=0.0005)

    def test_single_value_at_maxiter(self):
        assert not check_convergence(np.array([-5.0]), maxiter=1, tolerance=0.0005)


class TestLoadFactorResult:

    def test_reads_scores_weights_and_r2(self, tmp_path):
        path = tmp_path / 'model.hdf5'
        samples, features = write_artifact(path)

        result = load_factor_result(path)

        assert result.group == 'group1'
        assert result.factors.shape == (6, 2)
        assert list(result.factors.index) == samples
        assert result.factor_names == ['Factor1', 'Factor2']
        assert result.views == ['rna', 'protein']
        assert list(result.weights['rna'].index) == features['rna']
        assert result.variance_explained.shape == (2, 2)
        assert result.variance_explained.loc['Factor1', 'rna'] == 30.0
        assert result.variance_explained.loc['Factor2', 'rna'] == 5.0
        assert result.variance_explained_total['protein'] == 30.0
        assert len(result.elbo) == 3
        assert result.artifact_path == str(path)

    def test_without_variance_explained(self, tmp_path):
        path = tmp_path / 'model.hdf5'
        write_artifact(path, with_r2=False)
        result = load_factor_result(path)
        assert result.variance_explained.isna().all().all()

    def test_unknown_group(self, tmp_path):
        path = tmp_path / 'model.hdf5'
        write_artifact(path)
        with pytest.raises(KeyError):
            load_factor_result(path, group='group2')

    def test_missing_file(self, tmp_path):
        with pytest.raises(ArtifactIOError, match='not found'):
            load_factor_result(tmp_path / 'missing.hdf5')

    def test_malformed_file(self, tmp_path):
        path = tmp_path / 'bad.hdf5'
        with h5py.File(path, 'w') as hf:
            hf.create_group('other')
        with pytest.raises(ArtifactIOError, match='missing'):
            load_factor_result(path)


class TestFactorResult:

    def test_top_weights(self, factor_result):
        top = factor_result.top_weights('B', factor=2, n=3)
        assert len(top) == 3
        assert list(top.columns) == ['Feature', 'Weight', 'View']
        assert top['Weight'].abs().is_monotonic_decreasing

    def test_top_weights_by_name(self, factor_result):
        assert len(factor_result.top_weights('A', factor='Factor3', n=2)) == 2

    def test_unknown_factor(self, factor_result):
        with pytest.raises(KeyError):
            factor_result.top_weights('A', factor=7)

    def test_factor_correlations(self, factor_result):
        corr = factor_result.factor_correlations()
        assert corr.shape == (3, 3)
        np.testing.assert_allclose(np.diag(corr), 1.0)


class TestFactorAnalysisConfig:

    def test_unknown_convergence_mode(self):
        with pytest.raises(ConfigurationError, match='convergence_mode'):
            FactorAnalysis({'convergence_mode': 'fastest'})

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            FactorAnalysis({'n_factors': 3})

    def test_zero_factors(self):
        with pytest.raises(ConfigurationError):
            FactorAnalysis({'factors': 0})

    def test_more_factors_than_samples(self, cohort, tmp_path):
        with pytest.raises(ConfigurationError, match='factors'):
            FactorAnalysis({'factors': 20}).fit(cohort, tmp_path / 'model.hdf5')


class TestFactorTraining:

    @pytest.fixture(autouse=True)
    def _mofapy2(self):
        pytest.importorskip('mofapy2')

    def _blocks(self):
        rng = np.random.default_rng(3)
        samples = [f'S{i}' for i in range(1, 31)]
        z = rng.normal(size=(30, 2))
        blocks = {}
        for view, n in (('rna', 20), ('protein', 12)):
            w = rng.normal(size=(2, n))
            blocks[view] = pd.DataFrame(z @ w + 0.3 * rng.normal(size=(30, n)), index=samples,
                                        columns=[f'{view}_{j}' for j in range(n)])
        return blocks

    def test_train_writes_artifact(self, tmp_path):
        outfile = tmp_path / 'out' / 'model.hdf5'
        result = run_factor_analysis(self._blocks(), outfile, factors=2, maxiter=200,
                                     require_convergence=False)
        assert outfile.exists()
        assert result.factors.shape[0] == 30
        assert set(result.views) == {'rna', 'protein'}

    def test_same_seed_same_result(self, tmp_path):
        blocks = self._blocks()
        first = run_factor_analysis(blocks, tmp_path / 'a.hdf5', factors=2, maxiter=100,
                                    seed=7, require_convergence=False)
        second = run_factor_analysis(blocks, tmp_path / 'b.hdf5', factors=2, maxiter=100,
                                     seed=7, require_convergence=False)
        pd.testing.assert_frame_equal(first.factors, second.factors)
