"""
Tests for joining analysis outputs with clinical metadata.
"""

import pandas as pd
import pytest

from multiomics_lab.exceptions import DataAlignmentError
from multiomics_lab.io import read_table
from multiomics_lab.join import clean_clinical, export_clinical_subset, join_clinical


class TestCleanClinical:

    def test_normalises_id_column(self, clinical_table):
        cleaned = clean_clinical(clinical_table, id_column='bcr_patient_barcode', pattern='suffix')
        assert cleaned.index.name == 'sample'
        assert cleaned.index[0] == 'S1'
        assert 'bcr_patient_barcode' not in cleaned.columns

    def test_keeps_duplicates(self, clinical_table):
        cleaned = clean_clinical(clinical_table, id_column='bcr_patient_barcode', pattern='suffix')
        assert (cleaned.index == 'S3').sum() == 2

    def test_column_subset(self, clinical_table):
        cleaned = clean_clinical(clinical_table, id_column='bcr_patient_barcode',
                                 pattern='suffix', columns=['age'])
        assert list(cleaned.columns) == ['age']

    def test_unknown_columns(self, clinical_table):
        with pytest.raises(KeyError):
            clean_clinical(clinical_table, id_column='bcr_patient_barcode', columns=['stage'])

    def test_unknown_id_column(self, clinical_table):
        with pytest.raises(KeyError):
            clean_clinical(clinical_table, id_column='patient')


class TestJoinClinical:

    def test_left_join_keeps_every_sample(self, factor_result, clinical_table):
        report = join_clinical(factor_result.factors, clinical_table,
                               id_column='bcr_patient_barcode', pattern='suffix')

        assert len(report.table) == 10
        assert list(report.table.index) == list(factor_result.factors.index)
        assert report.unmatched == ['S9', 'S10']
        assert not report.all_matched
        assert report.n_matched == 8
        assert report.table.loc['S9', 'subtype'] != report.table.loc['S9', 'subtype']

    def test_duplicated_key_flagged_first_record_kept(self, factor_result, clinical_table):
        report = join_clinical(factor_result.factors, clinical_table,
                               id_column='bcr_patient_barcode', pattern='suffix')

        assert report.duplicated_keys == ['S3']
        assert not report.keys_unique
        assert report.table.loc['S3', 'ambiguous']
        assert report.table.loc['S3', 'subtype'] == 'Her2'
        assert report.table['ambiguous'].sum() == 1

    def test_require_complete(self, factor_result, clinical_table):
        report = join_clinical(factor_result.factors, clinical_table,
                               id_column='bcr_patient_barcode', pattern='suffix')
        with pytest.raises(DataAlignmentError, match='incomplete'):
            report.require_complete()

    def test_complete_join(self, factor_result):
        clinical = pd.DataFrame({'age': range(10)}, index=[f'S{i}' for i in range(1, 11)])
        report = join_clinical(factor_result.factors, clinical)
        assert report.require_complete() is report
        assert report.summary().startswith('10/10 samples matched')

    def test_series_scores(self, clinical_table):
        labels = pd.Series(['a', 'b'], index=['S1', 'S2'], name='label')
        report = join_clinical(labels, clinical_table, id_column='bcr_patient_barcode',
                               pattern='suffix')
        assert list(report.table.columns[:1]) == ['label']
        assert report.all_matched

    def test_normalised_score_ids(self, clinical_table):
        scores = pd.DataFrame({'Factor1': [0.1, 0.2]}, index=['TCGA-AA-S1', 'TCGA-AA-S2'])
        report = join_clinical(scores, clinical_table, id_column='bcr_patient_barcode',
                               pattern='suffix', normalize_scores=True)
        assert list(report.table.index) == ['S1', 'S2']
        assert report.all_matched

    def test_duplicated_score_ids_rejected(self, clinical_table):
        scores = pd.DataFrame({'Factor1': [0.1, 0.2]}, index=['S1', 'S1'])
        with pytest.raises(DataAlignmentError, match='duplicated'):
            join_clinical(scores, clinical_table, id_column='bcr_patient_barcode', pattern='suffix')

    def test_overlapping_columns_are_suffixed(self, clinical_table):
        scores = pd.DataFrame({'age': [1.0]}, index=['S1'])
        report = join_clinical(scores, clinical_table, id_column='bcr_patient_barcode',
                               pattern='suffix')
        assert report.table.loc['S1', 'age'] == 1.0
        assert report.table.loc['S1', 'age_clinical'] == 45

    def test_inputs_not_mutated(self, factor_result, clinical_table):
        before = clinical_table.copy()
        join_clinical(factor_result.factors, clinical_table,
                      id_column='bcr_patient_barcode', pattern='suffix')
        pd.testing.assert_frame_equal(clinical_table, before)


class TestExportClinicalSubset:

    def test_writes_deduplicated_table(self, clinical_table, tmp_path):
        path = tmp_path / 'clinical' / 'subset.csv'
        written = export_clinical_subset(clinical_table, path, id_column='bcr_patient_barcode',
                                         pattern='suffix', columns=['subtype'])
        assert path.exists()
        assert len(written) == 8
        reread = read_table(path)
        assert list(reread.columns) == ['subtype']
        assert reread.loc['S3', 'subtype'] == 'Her2'
