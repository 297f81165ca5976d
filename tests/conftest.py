"""Shared test fixtures for LFQ pipeline tests."""

import numpy as np
import pandas as pd
import pytest
import yaml


N_PROTEINS = 60
N_REPLICATES = 3


def _raw_table():
    """Synthetic MaxQuant-style protein-group table."""
    np.random.seed(42)

    ctrl_cols = [f"LFQ intensity Ctrl_{i}" for i in range(1, N_REPLICATES + 1)]
    trt_cols = [f"LFQ intensity Trt_{i}" for i in range(1, N_REPLICATES + 1)]

    data = {
        'Protein IDs': [f'P{str(i).zfill(5)};P{str(i).zfill(5)}-2' for i in range(N_PROTEINS)],
        'Gene names': [f'GENE{i};GENE{i}B' for i in range(N_PROTEINS)],
        'Protein names': [f'Protein {i}' for i in range(N_PROTEINS)],
        'Peptides': np.random.randint(1, 20, N_PROTEINS),
        'Reverse': [''] * N_PROTEINS,
        'Potential contaminant': [''] * N_PROTEINS,
    }

    for col in ctrl_cols + trt_cols:
        values = np.random.lognormal(mean=20, sigma=1.5, size=N_PROTEINS)
        # ~20% not quantified
        mask = np.random.random(N_PROTEINS) < 0.2
        values[mask] = 0.0
        data[col] = values

    # Never quantified
    for col in ctrl_cols + trt_cols:
        data[col][10] = 0.0

    # Only quantified in control
    for col in ctrl_cols:
        data[col][11] = 2.0 ** 25
    for col in trt_cols:
        data[col][11] = 0.0

    data['Reverse'][58] = '+'
    data['Potential contaminant'][59] = '+'

    return pd.DataFrame(data)


@pytest.fixture
def raw_table():
    return _raw_table()


@pytest.fixture
def config_dict(tmp_path):
    return {
        'experiment': {
            'name': 'Test_Experiment',
            'description': 'Unit test experiment',
        },
        'conditions': [
            {'name': 'Ctrl', 'match': 'Ctrl_'},
            {'name': 'Trt', 'pattern': r'Trt_\d'},
        ],
        'data_columns': {
            'protein_id': 'Protein IDs',
            'gene_id': 'Gene names',
            'protein_name': 'Protein names',
            'raw_prefix': 'LFQ intensity ',
            'log_prefix': 'log2 LFQ intensity ',
        },
        'data_paths': {
            'output_dir': str(tmp_path / 'results'),
        },
        'filtering': {
            'min_valid': [2, 2],
            'at_least_one': True,
        },
        'imputation': {
            'width': 0.3,
            'downshift': 1.8,
            'seed': 1234,
        },
    }


@pytest.fixture
def sample_config(tmp_path, raw_table, config_dict):
    """Write the table as TSV and a matching YAML config."""
    tsv_path = str(tmp_path / 'proteinGroups.txt')
    raw_table.to_csv(tsv_path, sep='\t', index=False)

    config_dict['data_paths']['input_file'] = tsv_path

    config_path = str(tmp_path / 'test_config.yaml')
    with open(config_path, 'w') as f:
        yaml.dump(config_dict, f)

    return config_path, tmp_path


@pytest.fixture
def prepped_data(sample_config):
    """Run prep_lfq and return the result for downstream tests."""
    from lfqpipe import prep_lfq

    config_path, tmp_path = sample_config
    return prep_lfq(config_path)


@pytest.fixture
def filtered_data(prepped_data):
    from lfqpipe import drop_filtered, filter_lfq

    return drop_filtered(filter_lfq(prepped_data))


@pytest.fixture
def normed_data(filtered_data):
    from lfqpipe import norm_lfq

    return norm_lfq(filtered_data)
