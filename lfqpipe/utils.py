"""
Utility functions for the LFQ pipeline.

Internal helpers for configuration loading and validation, directory
management, and data serialization.
"""

import copy
import os
import pickle
import re

import yaml


KEEP_COL = 'KEEP'

DEFAULT_FLAG_COLUMNS = ['Reverse', 'Potential contaminant', 'Only identified by site']


def _load_config(config_path):
    """Load YAML config file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f)


def _validate_config(config):
    """
    Check a loaded configuration and fill in defaults.

    Conditions are normalized to a list of dicts with ``name`` and exactly
    one of ``match`` (substring) or ``pattern`` (regular expression). A bare
    string entry is shorthand for ``{'name': s, 'match': s}``.

    Parameters
    ----------
    config : dict
        Configuration as loaded from YAML.

    Returns
    -------
    dict
        A validated deep copy of the configuration.

    Raises
    ------
    ValueError
        If the configuration is structurally invalid.
    """
    if not isinstance(config, dict):
        raise ValueError("Configuration must be a mapping")

    config = copy.deepcopy(config)

    raw_conditions = config.get('conditions')
    if not raw_conditions:
        raise ValueError("Configuration must define at least one condition")

    conditions = []
    for entry in raw_conditions:
        if isinstance(entry, str):
            entry = {'name': entry}
        if not isinstance(entry, dict) or not entry.get('name'):
            raise ValueError(f"Invalid condition entry: {entry!r}")

        name = str(entry['name'])
        if 'match' in entry and 'pattern' in entry:
            raise ValueError(f"Condition '{name}' defines both 'match' and 'pattern'")

        if 'pattern' in entry:
            try:
                re.compile(entry['pattern'])
            except re.error as e:
                raise ValueError(f"Condition '{name}' has an invalid pattern: {e}")
            conditions.append({'name': name, 'pattern': entry['pattern']})
        else:
            conditions.append({'name': name, 'match': str(entry.get('match', name))})

    names = [c['name'] for c in conditions]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate condition names: {names}")
    config['conditions'] = conditions

    data_columns = config.setdefault('data_columns', {})
    if not data_columns.get('raw_prefix'):
        raise ValueError("data_columns.raw_prefix is required")
    data_columns.setdefault('protein_id', 'Protein IDs')
    data_columns.setdefault('gene_id', 'Gene names')
    data_columns.setdefault('protein_name', 'Protein names')
    data_columns.setdefault('log_prefix', 'log2 ' + data_columns['raw_prefix'])
    data_columns.setdefault('imputed_prefix', 'Imputed ')
    data_columns.setdefault('flag_columns', list(DEFAULT_FLAG_COLUMNS))

    if data_columns['log_prefix'] == data_columns['raw_prefix']:
        raise ValueError("data_columns.log_prefix must differ from raw_prefix")

    filtering = config.setdefault('filtering', {})
    filtering['min_valid'] = _expand_min_valid(filtering.get('min_valid', 0), len(conditions))
    filtering['at_least_one'] = bool(filtering.get('at_least_one', False))

    imputation = config.setdefault('imputation', {})
    imputation.setdefault('width', 0.3)
    imputation.setdefault('downshift', 1.8)
    imputation.setdefault('seed', None)
    if float(imputation['width']) <= 0:
        raise ValueError(f"imputation.width must be positive, got {imputation['width']}")

    config.setdefault('data_paths', {})
    config.setdefault('experiment', {'name': 'LFQ experiment'})

    return config


def _expand_min_valid(min_valid, n_conditions):
    """Broadcast a single minimum count to every condition and check the list."""
    if isinstance(min_valid, int):
        min_valid = [min_valid] * n_conditions

    min_valid = list(min_valid)
    if len(min_valid) != n_conditions:
        raise ValueError(
            f"min_valid has {len(min_valid)} entries but there are {n_conditions} conditions"
        )
    for count in min_valid:
        if int(count) != count or count < 0:
            raise ValueError(f"min_valid entries must be non-negative integers, got {count!r}")

    return [int(c) for c in min_valid]


def _match_condition_columns(columns, conditions, prefix=''):
    """
    Assign log-intensity columns to conditions.

    Matchers see only the sample part of each column name, with ``prefix``
    removed, so a condition cannot match through the shared column prefix.

    Returns an ordered dict of condition name to sorted list of matching
    columns. A condition without matches maps to an empty list.
    """
    samples = {c: c[len(prefix):] if c.startswith(prefix) else c for c in columns}

    matched = {}
    for condition in conditions:
        if 'pattern' in condition:
            regex = re.compile(condition['pattern'])
            cols = [c for c, sample in samples.items() if regex.search(sample)]
        else:
            cols = [c for c, sample in samples.items() if condition['match'] in sample]
        matched[condition['name']] = sorted(cols)

    return matched


def _all_sample_cols(data):
    """Log-intensity columns of every sample, in table order."""
    return list(data['sample_cols'])


def _imputed_col(log_col, data_columns):
    """Name of the IMPUTED flag column belonging to a log-intensity column."""
    sample = log_col[len(data_columns['log_prefix']):]
    return f"{data_columns['imputed_prefix']}{sample}"


def _create_output_dirs(base_dir):
    """Create organized output directory structure."""
    dirs = {
        'base': base_dir,
        'tables': f"{base_dir}/tables",
        'checkpoints': f"{base_dir}/checkpoints"
    }

    for dir_path in dirs.values():
        os.makedirs(dir_path, exist_ok=True)

    return dirs


def _checkpoint(data, name):
    """Auto-save a stage checkpoint when an output directory is configured."""
    if not data.get('output_dirs'):
        return None

    save_path = os.path.join(data['output_dirs']['checkpoints'], f'data_after_{name}.pkl')
    return save_data(data, save_path)


def save_data(data, filename=None):
    """
    Save pipeline data to pickle file for sequential workflow.

    Parameters
    ----------
    data : dict
        Pipeline data dictionary (output from prep_lfq, norm_lfq, etc.)
    filename : str, optional
        Custom filename. If None, uses default based on output_dir in config.

    Returns
    -------
    str
        Path where data was saved.

    Example
    -------
    >>> data = prep_lfq('config/experiment.yaml')
    >>> save_data(data)  # Saves to results/data_checkpoint.pkl
    """
    if filename is None:
        output_dir = data['config']['data_paths'].get('output_dir')
        if not output_dir:
            raise ValueError("No filename given and no data_paths.output_dir configured")
        os.makedirs(output_dir, exist_ok=True)
        filename = os.path.join(output_dir, 'data_checkpoint.pkl')

    with open(filename, 'wb') as f:
        pickle.dump(data, f)

    size_mb = os.path.getsize(filename) / (1024 * 1024)

    print(f"\n> Data saved: {filename} ({size_mb:.1f} MB)")
    print(f"  Reload with: load_data('{filename}')")

    return filename


def load_data(filepath):
    """
    Load pipeline data from pickle file.

    Parameters
    ----------
    filepath : str
        Path to saved pickle file.

    Returns
    -------
    dict
        Pipeline data dictionary.

    Example
    -------
    >>> from lfqpipe import load_data
    >>> data = load_data('results/checkpoints/data_after_filter.pkl')
    >>> data = drop_filtered(data)  # Continue from where you left off
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Data file not found: {filepath}")

    print(f"\n{'='*80}")
    print(f"LOADING DATA")
    print(f"{'='*80}")

    with open(filepath, 'rb') as f:
        data = pickle.load(f)

    size_mb = os.path.getsize(filepath) / (1024 * 1024)

    print(f"Location: {filepath}")
    print(f"Size: {size_mb:.1f} MB")

    if 'metadata' in data:
        print(f"\nData contains:")
        print(f"  Proteins: {data['metadata']['n_proteins']}")
        print(f"  Samples: {data['metadata']['n_samples']}")
        print(f"  Conditions: {data['metadata']['conditions']}")

    print(f"{'='*80}\n")

    return data
