"""
Tests for multi-block alignment and the MultiBlockData container.
"""

import numpy as np
import pandas as pd
import pytest

from multiomics_lab.data import MultiBlockData, align_blocks, validate_alignment
from multiomics_lab.exceptions import DataAlignmentError


def _block(ids, n_features=3, prefix='f'):
    return pd.DataFrame(np.arange(len(ids) * n_features, dtype=float).reshape(len(ids), n_features),
                        index=ids, columns=[f'{prefix}{j}' for j in range(n_features)])


class TestValidateAlignment:

    def test_aligned_blocks_pass(self):
        ids = ['S1', 'S2', 'S3']
        index = validate_alignment({'A': _block(ids), 'B': _block(ids)})
        assert list(index) == ids

    def test_no_blocks(self):
        with pytest.raises(DataAlignmentError, match='No blocks'):
            validate_alignment({})

    def test_count_mismatch(self):
        with pytest.raises(DataAlignmentError, match='same number of samples'):
            validate_alignment({'A': _block(['S1', 'S2', 'S3']), 'B': _block(['S1', 'S2'])})

    def test_order_mismatch(self):
        with pytest.raises(DataAlignmentError, match='different order'):
            validate_alignment({'A': _block(['S1', 'S2', 'S3']), 'B': _block(['S3', 'S2', 'S1'])})

    def test_id_mismatch(self):
        with pytest.raises(DataAlignmentError, match='differ'):
            validate_alignment({'A': _block(['S1', 'S2', 'S3']), 'B': _block(['S1', 'S2', 'S4'])})

    def test_duplicated_ids(self):
        with pytest.raises(DataAlignmentError, match='duplicated'):
            validate_alignment({'A': _block(['S1', 'S1', 'S2'])})

    def test_label_length_mismatch(self):
        ids = ['S1', 'S2', 'S3']
        labels = pd.Series(['a', 'b'], index=['S1', 'S2'])
        with pytest.raises(DataAlignmentError, match='Label vector'):
            validate_alignment({'A': _block(ids)}, labels)

    def test_label_order_mismatch(self):
        ids = ['S1', 'S2', 'S3']
        labels = pd.Series(['a', 'b', 'a'], index=['S2', 'S1', 'S3'])
        with pytest.raises(DataAlignmentError, match='Label index'):
            validate_alignment({'A': _block(ids)}, labels)


class TestAlignBlocks:

    def test_intersects_and_keeps_first_block_order(self):
        blocks = {
            'A': _block(['S3', 'S1', 'S2', 'S4']),
            'B': _block(['S1', 'S2', 'S3']),
        }
        aligned, labels = align_blocks(blocks, verbose=False)
        assert labels is None
        assert list(aligned['A'].index) == ['S3', 'S1', 'S2']
        assert list(aligned['B'].index) == ['S3', 'S1', 'S2']

    def test_aligns_labels(self):
        blocks = {'A': _block(['S1', 'S2', 'S3'])}
        labels = pd.Series(['x', 'y'], index=['S2', 'S1'])
        aligned, aligned_labels = align_blocks(blocks, labels, verbose=False)
        assert list(aligned['A'].index) == ['S1', 'S2']
        assert list(aligned_labels) == ['y', 'x']

    def test_no_shared_samples(self):
        with pytest.raises(DataAlignmentError, match='No samples'):
            align_blocks({'A': _block(['S1']), 'B': _block(['S2'])}, verbose=False)

    def test_already_aligned_is_unchanged(self, cohort):
        aligned, labels = align_blocks(cohort.blocks, cohort.labels, verbose=False)
        for name in cohort.block_names:
            pd.testing.assert_frame_equal(aligned[name], cohort.get_block(name))
        pd.testing.assert_series_equal(labels, cohort.labels)


class TestMultiBlockData:

    def test_properties(self, cohort):
        assert cohort.block_names == ['A', 'B', 'C']
        assert cohort.n_samples == 10
        assert list(cohort.sample_ids) == [f'S{i}' for i in range(1, 11)]
        assert cohort.feature_names('C') == ['C_f1', 'C_f2', 'C_f3']

    def test_array_labels_take_block_index(self):
        data = MultiBlockData(blocks={'A': _block(['S1', 'S2'])}, labels=['a', 'b'])
        assert list(data.labels.index) == ['S1', 'S2']

    def test_array_labels_wrong_length(self):
        with pytest.raises(DataAlignmentError):
            MultiBlockData(blocks={'A': _block(['S1', 'S2'])}, labels=['a'])

    def test_rejects_misaligned_blocks(self):
        with pytest.raises(DataAlignmentError):
            MultiBlockData(blocks={'A': _block(['S1', 'S2']), 'B': _block(['S2', 'S1'])})

    def test_get_block_unknown(self, cohort):
        with pytest.raises(KeyError):
            cohort.get_block('Z')

    def test_subset(self, cohort):
        sub = cohort.subset(['A', 'C'])
        assert sub.block_names == ['A', 'C']
        assert sub.labels is cohort.labels

    def test_transposed(self, cohort):
        transposed = cohort.transposed()
        assert transposed['B'].shape == (8, 10)

    def test_summary(self, cohort):
        summary = cohort.get_summary()
        assert list(summary['Block']) == ['A', 'B', 'C']
        assert list(summary['Features']) == [5, 8, 3]
        assert (summary['Missing_Values'] == 0).all()

    def test_frozen(self, cohort):
        with pytest.raises(AttributeError):
            cohort.name = 'other'
