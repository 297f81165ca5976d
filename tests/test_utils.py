"""Tests for lfqpipe.utils module."""

import os

import pytest
import yaml

from lfqpipe.utils import (
    _create_output_dirs,
    _load_config,
    _match_condition_columns,
    _validate_config,
    load_data,
    save_data,
)


def _minimal_config(**overrides):
    config = {
        'conditions': ['A', 'B'],
        'data_columns': {'raw_prefix': 'LFQ intensity '},
    }
    config.update(overrides)
    return config


class TestLoadConfig:
    def test_loads_valid_yaml(self, tmp_path):
        config = {'experiment': {'name': 'test'}, 'conditions': ['Ctrl', 'Trt']}
        path = str(tmp_path / 'config.yaml')
        with open(path, 'w') as f:
            yaml.dump(config, f)

        result = _load_config(path)
        assert result['experiment']['name'] == 'test'
        assert result['conditions'] == ['Ctrl', 'Trt']

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            _load_config('/nonexistent/config.yaml')


class TestValidateConfig:
    def test_fills_defaults(self):
        config = _validate_config(_minimal_config())

        assert config['conditions'] == [
            {'name': 'A', 'match': 'A'},
            {'name': 'B', 'match': 'B'},
        ]
        assert config['data_columns']['log_prefix'] == 'log2 LFQ intensity '
        assert config['data_columns']['imputed_prefix'] == 'Imputed '
        assert config['filtering'] == {'min_valid': [0, 0], 'at_least_one': False}
        assert config['imputation']['width'] == 0.3
        assert config['imputation']['downshift'] == 1.8
        assert config['imputation']['seed'] is None

    def test_does_not_mutate_input(self):
        raw = _minimal_config()
        _validate_config(raw)
        assert raw['conditions'] == ['A', 'B']
        assert 'filtering' not in raw

    def test_single_min_valid_is_broadcast(self):
        config = _validate_config(_minimal_config(filtering={'min_valid': 2}))
        assert config['filtering']['min_valid'] == [2, 2]

    def test_min_valid_length_mismatch_raises(self):
        with pytest.raises(ValueError, match='min_valid'):
            _validate_config(_minimal_config(filtering={'min_valid': [1, 2, 3]}))

    def test_negative_min_valid_raises(self):
        with pytest.raises(ValueError):
            _validate_config(_minimal_config(filtering={'min_valid': [-1, 2]}))

    def test_no_conditions_raises(self):
        with pytest.raises(ValueError, match='condition'):
            _validate_config(_minimal_config(conditions=[]))

    def test_duplicate_conditions_raise(self):
        with pytest.raises(ValueError, match='Duplicate'):
            _validate_config(_minimal_config(conditions=['A', 'A']))

    def test_match_and_pattern_raise(self):
        conditions = [{'name': 'A', 'match': 'A', 'pattern': 'A'}]
        with pytest.raises(ValueError, match='both'):
            _validate_config(_minimal_config(conditions=conditions))

    def test_invalid_pattern_raises(self):
        conditions = [{'name': 'A', 'pattern': '('}]
        with pytest.raises(ValueError, match='invalid pattern'):
            _validate_config(_minimal_config(conditions=conditions))

    def test_missing_raw_prefix_raises(self):
        with pytest.raises(ValueError, match='raw_prefix'):
            _validate_config(_minimal_config(data_columns={}))

    def test_non_positive_width_raises(self):
        with pytest.raises(ValueError, match='width'):
            _validate_config(_minimal_config(imputation={'width': 0}))


class TestMatchConditionColumns:
    columns = ['log2 A_1', 'log2 A_2', 'log2 B_1', 'log2 B_2', 'log2 AB_1']

    def test_substring_match(self):
        matched = _match_condition_columns(self.columns, [{'name': 'A', 'match': 'A_'}])
        assert matched == {'A': ['log2 A_1', 'log2 A_2']}

    def test_pattern_match(self):
        matched = _match_condition_columns(self.columns, [{'name': 'B', 'pattern': r'\bB_\d$'}])
        assert matched == {'B': ['log2 B_1', 'log2 B_2']}

    def test_no_match_gives_empty_list(self):
        matched = _match_condition_columns(self.columns, [{'name': 'C', 'match': 'C_'}])
        assert matched == {'C': []}

    def test_prefix_is_not_matched(self):
        conditions = [{'name': 'log2', 'match': 'log2'}, {'name': 'B', 'pattern': r'^B_\d$'}]
        matched = _match_condition_columns(self.columns, conditions, prefix='log2 ')

        assert matched == {'log2': [], 'B': ['log2 B_1', 'log2 B_2']}

    def test_preserves_condition_order(self):
        conditions = [{'name': 'B', 'match': 'B_'}, {'name': 'A', 'match': 'A_'}]
        matched = _match_condition_columns(self.columns, conditions)
        assert list(matched) == ['B', 'A']


class TestCreateOutputDirs:
    def test_creates_all_directories(self, tmp_path):
        base = str(tmp_path / 'output')
        dirs = _create_output_dirs(base)

        assert os.path.isdir(dirs['base'])
        assert os.path.isdir(dirs['tables'])
        assert os.path.isdir(dirs['checkpoints'])

    def test_idempotent(self, tmp_path):
        base = str(tmp_path / 'output')
        dirs1 = _create_output_dirs(base)
        dirs2 = _create_output_dirs(base)
        assert dirs1 == dirs2


class TestSaveLoadData:
    def test_roundtrip(self, tmp_path):
        data = {
            'config': {'data_paths': {'output_dir': str(tmp_path)}},
            'metadata': {'n_proteins': 100, 'n_samples': 6, 'conditions': ['Ctrl', 'Trt']},
            'df': 'placeholder',
        }
        path = str(tmp_path / 'test.pkl')
        save_data(data, path)

        loaded = load_data(path)
        assert loaded['metadata']['n_proteins'] == 100
        assert loaded['df'] == 'placeholder'

    def test_load_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_data('/nonexistent/data.pkl')

    def test_save_default_path(self, tmp_path):
        data = {
            'config': {'data_paths': {'output_dir': str(tmp_path)}},
            'metadata': {'n_proteins': 50, 'n_samples': 6, 'conditions': ['Ctrl']},
        }
        result_path = save_data(data)
        assert os.path.exists(result_path)
        assert 'data_checkpoint.pkl' in result_path

    def test_save_without_output_dir_raises(self):
        data = {'config': {'data_paths': {}}}
        with pytest.raises(ValueError, match='output_dir'):
            save_data(data)
