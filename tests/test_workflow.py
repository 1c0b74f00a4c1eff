"""
Tests for the report workflows.
"""

import matplotlib.pyplot as plt
import pytest

from multiomics_lab.exceptions import ConfigurationError
from multiomics_lab.workflows import DiscriminantReport, FactorReport


class TestDiscriminantReport:

    def test_full_report(self, cohort, sparse_keepx, capsys):
        report = DiscriminantReport()
        results = report.run_full_report(cohort=cohort, keepX=sparse_keepx)

        assert 'model' in results and 'sparse_model' in results
        assert results['sparse_model'].is_sparse
        assert not results['model'].is_sparse
        top = results['top_features']
        assert len(top[(top['Block'] == 'B') & (top['Component'] == 1)]) == 3
        assert 'indiv' in report.figures()
        assert 'sparse_loadings_B' in report.figures()

        out = capsys.readouterr().out
        assert 'FITTING SPARSE BLOCK PLS-DA' in out
        assert 'DISCRIMINANT REPORT COMPLETE' in out
        report.close()

    def test_keepx_from_config(self, cohort, sparse_keepx):
        report = DiscriminantReport({'diablo': {'keepX': sparse_keepx}})
        results = report.run_full_report(cohort=cohort)
        assert 'sparse_model' in results
        report.close()

    def test_close_releases_figures(self, cohort):
        report = DiscriminantReport()
        report.run_full_report(cohort=cohort)
        numbers = [fig.number for fig in report.figures().values()]
        assert all(plt.fignum_exists(n) for n in numbers)
        report.close()
        assert not any(plt.fignum_exists(n) for n in numbers)

    def test_no_sparse_model_without_keepx(self, cohort):
        results = DiscriminantReport().run_full_report(cohort=cohort)
        assert 'sparse_model' not in results

    def test_save_results(self, cohort, sparse_keepx, tmp_path):
        report = DiscriminantReport()
        report.run_full_report(cohort=cohort, keepX=sparse_keepx)
        report.save_results(tmp_path)

        assert (tmp_path / 'model' / 'loadings_A.csv').exists()
        assert (tmp_path / 'sparse_model' / 'projection.csv').exists()
        assert (tmp_path / 'top_features.csv').exists()
        assert (tmp_path / 'indiv.png').exists()
        report.close()

    def test_load_from_directory(self, cohort, tmp_path):
        for name in cohort.block_names:
            cohort.get_block(name).to_csv(tmp_path / f'block_{name}.csv')
        cohort.labels.to_frame('label').to_csv(tmp_path / 'labels.csv')

        data = DiscriminantReport().load(directory=tmp_path)
        assert data.block_names == ['A', 'B', 'C']

    def test_load_requires_input(self):
        with pytest.raises(ValueError):
            DiscriminantReport().load()

    def test_reports_do_not_share_results(self, cohort):
        first = DiscriminantReport()
        first.run_full_report(cohort=cohort)
        second = DiscriminantReport()
        assert second.results == {}

    def test_unknown_config_section(self):
        with pytest.raises(ConfigurationError):
            DiscriminantReport({'plots': {}})


class TestFactorReport:

    def test_join_and_render(self, factor_result, clinical_table, capsys):
        report = FactorReport()
        join = report.join(factor_result, clinical_table, id_column='bcr_patient_barcode',
                           pattern='suffix')
        figures = report.render(factor_result, metadata=join.table, color_by='subtype',
                                covariate='age')

        assert join.unmatched == ['S9', 'S10']
        assert {'variance_explained', 'factor_values', 'factors_1_2',
                'factor1_vs_age', 'weights_A', 'weights_B'} <= set(figures)
        assert '8/10 samples matched' in capsys.readouterr().out
        report.close()

    def test_save_results(self, factor_result, clinical_table, tmp_path):
        report = FactorReport()
        report.results['model'] = factor_result
        report.join(factor_result, clinical_table, id_column='bcr_patient_barcode',
                    pattern='suffix')
        report.save_results(tmp_path)

        assert (tmp_path / 'factors.csv').exists()
        assert (tmp_path / 'weights_B.csv').exists()
        assert (tmp_path / 'factors_clinical.csv').exists()
        clinical = (tmp_path / 'clinical.csv').read_text().splitlines()
        assert len(clinical) == 9

    def test_full_report(self, cohort, clinical_table, tmp_path):
        pytest.importorskip('mofapy2')
        report = FactorReport({'mofa': {'factors': 2, 'maxiter': 100,
                                        'require_convergence': False}})
        results = report.run_full_report(tmp_path, cohort=cohort, clinical=clinical_table,
                                         id_column='bcr_patient_barcode', pattern='suffix',
                                         color_by='subtype')

        assert (tmp_path / 'model.hdf5').exists()
        assert (tmp_path / 'model.joblib').exists()
        assert results['model'].n_factors <= 2
        assert len(results['join'].table) == 10
        report.close()

    def test_covariates_need_clinical_data(self, cohort, tmp_path):
        pytest.importorskip('mofapy2')
        report = FactorReport({'mofa': {'factors': 2, 'maxiter': 20,
                                        'require_convergence': False}})
        with pytest.raises(ValueError, match='Clinical data'):
            report.run_full_report(tmp_path, cohort=cohort, color_by='subtype')
