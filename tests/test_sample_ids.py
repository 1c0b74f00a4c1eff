"""
Tests for sample identifier normalisation.
"""

import re

import pandas as pd
import pytest

from multiomics_lab.data import SAMPLE_ID_PATTERNS, normalize_sample_id, normalize_sample_ids


class TestNormalizeSampleId:

    def test_suffix_pattern_takes_last_token(self):
        assert normalize_sample_id('TCGA-A2-A0T2') == 'A0T2'
        assert normalize_sample_id('batch1.sampleX') == 'sampleX'
        assert normalize_sample_id('run_7') == '7'

    def test_tcga_patient_pattern(self):
        assert normalize_sample_id('TCGA-A2-A0T2-01A-11R', 'tcga_patient') == 'A0T2'
        assert normalize_sample_id('TCGA.A2.A0T2.01A', 'tcga_patient') == 'A0T2'

    def test_tcga_barcode_pattern(self):
        assert normalize_sample_id('TCGA-A2-A0T2-01A-11R', 'tcga_barcode') == 'TCGA-A2-A0T2'

    def test_unmatched_value_is_unchanged(self):
        assert normalize_sample_id('A0T2', 'tcga_patient') == 'A0T2'

    def test_whitespace_is_stripped(self):
        assert normalize_sample_id('  TCGA-A2-A0T2 ') == 'A0T2'

    def test_non_string_values(self):
        assert normalize_sample_id(1234) == '1234'

    @pytest.mark.parametrize('pattern', sorted(SAMPLE_ID_PATTERNS))
    def test_idempotent(self, pattern):
        raw = ['TCGA-A2-A0T2-01A', 'TCGA.BH.A18V', 'A0T2', 'sample_12', 'x']
        once = [normalize_sample_id(v, pattern) for v in raw]
        twice = [normalize_sample_id(v, pattern) for v in once]
        assert once == twice

    def test_custom_regex(self):
        assert normalize_sample_id('patient-007-visit2', r'patient-(\d+)') == '007'
        assert normalize_sample_id('x', re.compile(r'(\w)')) == 'x'

    def test_pattern_without_group_rejected(self):
        with pytest.raises(ValueError, match='capture group'):
            normalize_sample_id('TCGA-A2-A0T2', r'TCGA-\w+')


class TestNormalizeSampleIds:

    def test_returns_string_index(self):
        result = normalize_sample_ids(pd.Series(['TCGA-A2-A0T2', 'TCGA-BH-A18V']))
        assert isinstance(result, pd.Index)
        assert list(result) == ['A0T2', 'A18V']
        assert result.dtype == object

    def test_empty_input(self):
        assert len(normalize_sample_ids([])) == 0
