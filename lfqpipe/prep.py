"""
Data preparation functions for the LFQ pipeline.

Handles loading the protein-group table, removing flagged rows, cleaning
identifiers, selecting intensity columns, log2 transformation and the
assignment of sample columns to experimental conditions.
"""

import os

import numpy as np
import pandas as pd

from .utils import (
    _checkpoint,
    _create_output_dirs,
    _load_config,
    _match_condition_columns,
    _validate_config,
)


def prep_lfq(config, df=None):
    """
    Load and prepare an LFQ protein-group table for filtering.

    This function:
    1. Loads and validates the YAML configuration
    2. Reads the protein-group table (unless a DataFrame is given)
    3. Removes reverse hits, contaminants and site-only identifications
    4. Keeps only the first entry of semicolon-separated identifiers
    5. Selects identifier, raw intensity and log2 intensity columns
    6. Assigns sample columns to conditions
    7. Creates the output directory structure

    Parameters
    ----------
    config : str or dict
        Path to YAML configuration file, or an already loaded configuration.
    df : pd.DataFrame, optional
        Protein-group table. If None, read from ``data_paths.input_file``.

    Returns
    -------
    dict
        Dictionary containing:
        - 'df': pd.DataFrame with identifier, raw and log2 intensity columns
        - 'config': validated configuration dictionary
        - 'raw_cols': maps condition names to raw intensity column names
        - 'log_cols': maps condition names to log2 intensity column names
        - 'sample_cols': every log2 intensity column, in table order
        - 'metadata': summary statistics about the data
        - 'output_dirs': paths to output directories (None if not configured)

    Example
    -------
    >>> data = prep_lfq('config/experiment.yaml')
    >>> print(f"Loaded {len(data['df'])} protein groups")
    >>> print(f"Conditions: {list(data['log_cols'].keys())}")
    """

    # =========================================================================
    # 1. LOAD CONFIGURATION
    # =========================================================================
    print("\n" + "="*80)
    print("STEP 1: LOADING DATA AND CONFIGURATION")
    print("="*80)

    if isinstance(config, (str, os.PathLike)):
        config = _load_config(config)
    config = _validate_config(config)

    data_columns = config['data_columns']

    print(f"\n> Configuration loaded")
    print(f"  Experiment: {config['experiment'].get('name', '')}")
    print(f"  Conditions: {', '.join(c['name'] for c in config['conditions'])}")

    # =========================================================================
    # 2. LOAD PROTEIN GROUPS
    # =========================================================================
    print(f"\n[1/5] Loading protein groups...")

    if df is None:
        input_file = config['data_paths'].get('input_file')
        if not input_file:
            raise ValueError("No DataFrame given and no data_paths.input_file configured")
        df = read_table(input_file)
    else:
        df = df.copy()

    initial_protein_count = len(df)
    print(f"  > Loaded {df.shape[0]} protein groups, {df.shape[1]} columns")

    # =========================================================================
    # 3. REMOVE FLAGGED PROTEIN GROUPS
    # =========================================================================
    print(f"\n[2/5] Removing flagged protein groups...")

    df = remove_flagged(df, data_columns['flag_columns'])

    # =========================================================================
    # 4. CLEAN IDENTIFIERS
    # =========================================================================
    print(f"\n[3/5] Cleaning identifiers...")

    id_cols = [data_columns[k] for k in ('protein_id', 'gene_id', 'protein_name')
               if data_columns[k] in df.columns]
    for col in id_cols:
        df[col] = first_token(df[col])
    print(f"  > Kept first entry of {len(id_cols)} identifier column(s)")

    missing_ids = [data_columns[k] for k in ('protein_id', 'gene_id', 'protein_name')
                   if data_columns[k] not in df.columns]
    for col in missing_ids:
        print(f"  Warning: Identifier column '{col}' not found")

    # =========================================================================
    # 5. SELECT INTENSITY COLUMNS
    # =========================================================================
    print(f"\n[4/5] Selecting intensity columns...")

    df, raw_by_sample, log_by_sample = select_columns(
        df,
        id_cols,
        raw_prefix=data_columns['raw_prefix'],
        log_prefix=data_columns['log_prefix'],
    )
    sample_cols = list(log_by_sample.values())

    print(f"  > {len(sample_cols)} samples, {df.shape[1]} columns kept")

    # =========================================================================
    # 6. ASSIGN CONDITIONS
    # =========================================================================
    print(f"\n[5/5] Assigning samples to conditions...")

    log_cols = _match_condition_columns(sample_cols, config['conditions'],
                                        prefix=data_columns['log_prefix'])
    raw_of = {log: raw_by_sample[sample] for sample, log in log_by_sample.items()}
    raw_cols = {name: [raw_of[c] for c in cols] for name, cols in log_cols.items()}

    for condition, cols in log_cols.items():
        print(f"  {condition}: {len(cols)} replicates")
        if not cols:
            print(f"  Warning: No columns match condition '{condition}'")

    assigned = [c for cols in log_cols.values() for c in cols]
    for col in sample_cols:
        n_claims = assigned.count(col)
        if n_claims == 0:
            print(f"  Warning: '{col}' is not assigned to any condition")
        elif n_claims > 1:
            print(f"  Warning: '{col}' matches {n_claims} conditions")

    # =========================================================================
    # 7. CHECK DATA QUALITY
    # =========================================================================
    print(f"\nData quality summary...")

    print(f"\n  Missing values by condition:")
    for condition, cols in log_cols.items():
        if not cols:
            continue
        total_values = len(df) * len(cols)
        missing = (~np.isfinite(df[cols])).sum().sum()
        pct_missing = (missing / total_values) * 100 if total_values else 0.0
        print(f"    {condition}: {pct_missing:.1f}% missing")

    # =========================================================================
    # 8. CREATE OUTPUT DIRECTORIES
    # =========================================================================
    output_dir = config['data_paths'].get('output_dir')
    output_dirs = None
    if output_dir:
        output_dirs = _create_output_dirs(output_dir)
        print(f"\n> Output directories created at: {output_dir}")

    metadata = {
        'n_proteins': len(df),
        'n_samples': len(sample_cols),
        'n_conditions': len(log_cols),
        'proteins_removed': initial_protein_count - len(df),
        'conditions': list(log_cols.keys()),
        'replicates_per_condition': {k: len(v) for k, v in log_cols.items()}
    }

    print("\n" + "="*80)
    print("DATA PREPARATION COMPLETE")
    print("="*80)
    print(f"\nInitial protein groups:  {initial_protein_count}")
    print(f"Final protein groups:    {len(df)}")
    print(f"Protein groups removed:  {metadata['proteins_removed']}")
    print(f"\nConditions:              {', '.join(metadata['conditions'])}")
    print(f"Total samples:           {metadata['n_samples']}")
    print("\n" + "="*80 + "\n")

    return_data = {
        'df': df,
        'config': config,
        'raw_cols': raw_cols,
        'log_cols': log_cols,
        'sample_cols': sample_cols,
        'metadata': metadata,
        'output_dirs': output_dirs
    }

    _checkpoint(return_data, 'prep')

    return return_data


def read_table(path):
    """
    Read a protein-group table.

    Tab-separated for ``.tsv``/``.txt``, comma-separated for ``.csv``, and
    Excel for ``.xlsx``/``.xls``.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext in ('.tsv', '.txt'):
        return pd.read_csv(path, sep='\t', low_memory=False)
    if ext == '.csv':
        return pd.read_csv(path, low_memory=False)
    if ext in ('.xlsx', '.xls'):
        return pd.read_excel(path)

    raise ValueError(f"Unsupported input file type: {ext}")


def remove_flagged(df, flag_columns):
    """Drop rows marked '+' in any of the flag columns present in df."""
    before = len(df)

    remove_mask = pd.Series(False, index=df.index)
    for col in flag_columns:
        if col not in df.columns:
            continue
        flagged = df[col].astype(str).str.strip() == '+'
        if flagged.any():
            print(f"    Found {flagged.sum()} protein groups flagged in '{col}'")
        remove_mask = remove_mask | flagged

    df = df[~remove_mask].copy()

    removed = before - len(df)
    print(f"  > Removed {removed} flagged protein groups")
    print(f"    Remaining: {len(df)} protein groups")

    return df


def first_token(series, sep=';'):
    """Keep the first entry of a delimited identifier list."""
    return series.where(series.isna(), series.astype(str).str.split(sep).str[0].str.strip())


def log2_intensity(raw):
    """log2 of raw intensities; zero and blank values become -inf."""
    values = pd.to_numeric(raw, errors='coerce').fillna(0).astype(float)
    with np.errstate(divide='ignore', invalid='ignore'):
        return np.log2(values)


def select_columns(df, id_cols, raw_prefix, log_prefix):
    """
    Narrow a table to identifier and intensity columns.

    Samples are discovered from columns starting with ``raw_prefix``. Missing
    log2 columns are derived from the raw columns. Log2 columns are coerced to
    float so that blank cells count as missing.

    Returns
    -------
    tuple
        (selected DataFrame, {sample: raw column}, {sample: log column})
    """
    raw_by_sample = {}
    for col in df.columns:
        if col.startswith(raw_prefix) and not col.startswith(log_prefix):
            raw_by_sample[col[len(raw_prefix):]] = col

    if not raw_by_sample:
        raise ValueError(f"No intensity columns found with prefix '{raw_prefix}'")

    df = df.copy()
    log_by_sample = {}
    derived = 0
    for sample, raw_col in raw_by_sample.items():
        log_col = f"{log_prefix}{sample}"
        if log_col in df.columns:
            df[log_col] = pd.to_numeric(df[log_col], errors='coerce').astype(float)
        else:
            df[log_col] = log2_intensity(df[raw_col])
            derived += 1
        log_by_sample[sample] = log_col

    if derived:
        print(f"  > Derived {derived} log2 intensity columns")

    keep = list(id_cols) + list(raw_by_sample.values()) + list(log_by_sample.values())

    return df[keep], raw_by_sample, log_by_sample
