"""
Valid-value filtering for the LFQ pipeline.

Flags protein groups with enough finite log2 intensities per condition and,
in a separate step, drops the protein groups that fail.
"""

import copy

import numpy as np
import pandas as pd

from .utils import KEEP_COL, _checkpoint, _expand_min_valid


def compute_keep(df, condition_cols, min_valid, at_least_one=False):
    """
    Evaluate the minimum-valid-value rule for every row.

    A condition is satisfied by a row when at least ``min_valid`` of its
    columns hold a finite value. A condition without columns has a valid
    count of 0 and is therefore never satisfied if its minimum is positive.

    Parameters
    ----------
    df : pd.DataFrame
        Table with log2 intensity columns (-inf or NaN for missing).
    condition_cols : dict
        Ordered mapping of condition name to its log2 intensity columns.
    min_valid : list of int
        Minimum number of valid values, one per condition in order.
    at_least_one : bool, optional
        If True a row is kept when any condition is satisfied, otherwise all
        conditions must be satisfied (default: False).

    Returns
    -------
    tuple
        (pd.Series of bool named KEEP, dict of condition -> satisfied mask)
    """
    min_valid = _expand_min_valid(min_valid, len(condition_cols))

    satisfied = {}
    for (condition, cols), min_count in zip(condition_cols.items(), min_valid):
        if cols:
            valid_count = np.isfinite(df[cols].to_numpy(dtype=float)).sum(axis=1)
        else:
            valid_count = np.zeros(len(df), dtype=int)
        satisfied[condition] = pd.Series(valid_count >= min_count, index=df.index)

    masks = list(satisfied.values())
    if at_least_one:
        keep = np.logical_or.reduce(masks)
    else:
        keep = np.logical_and.reduce(masks)

    return pd.Series(keep, index=df.index, name=KEEP_COL, dtype=bool), satisfied


def filter_lfq(data, min_valid=None, at_least_one=None):
    """
    Flag protein groups that pass the minimum-valid-value rule.

    Adds a boolean KEEP column. No rows are removed; call drop_filtered()
    to commit the filter after inspecting its effect.

    Parameters
    ----------
    data : dict
        Output from prep_lfq().
    min_valid : int or list of int, optional
        Minimum valid values per condition. Defaults to the config value.
    at_least_one : bool, optional
        OR (True) vs AND (False) across conditions. Defaults to the config value.

    Returns
    -------
    dict
        Updated data dictionary with the KEEP column and a 'filtering' record.

    Example
    -------
    >>> data = filter_lfq(data, min_valid=[2, 2], at_least_one=True)
    >>> data['df']['KEEP'].sum()
    >>> data = drop_filtered(data)
    """

    print("\n" + "="*80)
    print("VALID VALUE FILTER")
    print("="*80)

    df = data['df'].copy()
    config = data['config']
    log_cols = data['log_cols']

    if min_valid is None:
        min_valid = config['filtering']['min_valid']
    if at_least_one is None:
        at_least_one = config['filtering']['at_least_one']
    min_valid = _expand_min_valid(min_valid, len(log_cols))

    mode = 'at least one condition' if at_least_one else 'all conditions'
    print(f"\nRule: minimum valid values {dict(zip(log_cols, min_valid))} in {mode}")

    keep, satisfied = compute_keep(df, log_cols, min_valid, at_least_one)
    df[KEEP_COL] = keep

    print(f"\nProtein groups passing per condition:")
    for (condition, cols), min_count in zip(log_cols.items(), min_valid):
        n_passing = int(satisfied[condition].sum())
        print(f"  {condition}: {n_passing} have >={min_count}/{len(cols)} valid values")
        if not cols and min_count > 0:
            print(f"  Warning: '{condition}' has no columns and can never be satisfied")

    n_keep = int(keep.sum())
    print(f"\n  > {n_keep} of {len(df)} protein groups flagged KEEP")

    data_updated = copy.copy(data)
    data_updated['df'] = df
    data_updated['filtering'] = {
        'min_valid': min_valid,
        'at_least_one': bool(at_least_one),
        'n_keep': n_keep,
        'n_total': len(df),
        'passing_per_condition': {k: int(v.sum()) for k, v in satisfied.items()}
    }

    _checkpoint(data_updated, 'filter')

    return data_updated


def drop_filtered(data):
    """
    Drop protein groups whose KEEP flag is False.

    Parameters
    ----------
    data : dict
        Output from filter_lfq().

    Returns
    -------
    dict
        Updated data dictionary with only KEEP rows, order preserved.
    """
    df = data['df']
    if KEEP_COL not in df.columns:
        raise ValueError(f"No '{KEEP_COL}' column found. Run filter_lfq() first.")

    before = len(df)
    df = df[df[KEEP_COL].astype(bool)].copy()
    removed = before - len(df)

    print(f"\n> Removed {removed} protein groups failing the valid value filter")
    print(f"  Remaining: {len(df)} protein groups")

    data_updated = copy.copy(data)
    data_updated['df'] = df
    data_updated['metadata'] = dict(data['metadata'])
    data_updated['metadata']['n_proteins'] = len(df)
    data_updated['metadata']['proteins_removed'] = data['metadata'].get('proteins_removed', 0) + removed

    filtering = dict(data.get('filtering', {}))
    filtering['n_removed'] = removed
    data_updated['filtering'] = filtering

    _checkpoint(data_updated, 'drop')

    return data_updated
