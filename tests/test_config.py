"""
Tests for configuration defaults, merging and loading.
"""

import json

import pytest

from multiomics_lab.config import (
    DEFAULT_DIABLO_CONFIG,
    DEFAULT_MOFA_CONFIG,
    load_config,
    merge_config
)
from multiomics_lab.exceptions import ConfigurationError


class TestMergeConfig:

    def test_no_overrides_returns_copy(self):
        config = merge_config(DEFAULT_DIABLO_CONFIG)
        assert config == DEFAULT_DIABLO_CONFIG
        config['n_components'] = 5
        assert DEFAULT_DIABLO_CONFIG['n_components'] == 2

    def test_overrides_applied(self):
        config = merge_config(DEFAULT_MOFA_CONFIG, {'factors': 3, 'seed': 7})
        assert config['factors'] == 3
        assert config['seed'] == 7
        assert config['convergence_mode'] == DEFAULT_MOFA_CONFIG['convergence_mode']

    def test_override_values_are_copied(self):
        keepx = {'A': [2, 2]}
        config = merge_config(DEFAULT_DIABLO_CONFIG, {'keepX': keepx})
        keepx['A'].append(1)
        assert config['keepX'] == {'A': [2, 2]}

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match='Unknown'):
            merge_config(DEFAULT_DIABLO_CONFIG, {'ncomp': 2})


class TestLoadConfig:

    def test_partial_file(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'diablo': {'keepX': {'A': [2, 2]}}, 'mofa': {'factors': 4}}))

        config = load_config(path)

        assert set(config) == {'preprocessing', 'diablo', 'mofa'}
        assert config['diablo']['keepX'] == {'A': [2, 2]}
        assert config['diablo']['design'] == 0.1
        assert config['mofa']['factors'] == 4

    def test_unknown_section(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'plots': {}}))
        with pytest.raises(ConfigurationError, match='sections'):
            load_config(path)

    def test_non_object_root(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text('[1, 2]')
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_config('nonexistent.json')
