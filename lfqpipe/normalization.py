"""
Median normalization for the LFQ pipeline.

Centers every sample's log2 intensities on zero by subtracting the median
of its finite values. Missing values stay missing.
"""

import copy

import numpy as np
import pandas as pd

from .utils import _all_sample_cols, _checkpoint


def median_normalize(df, cols):
    """
    Subtract each column's finite-value median from the column.

    Non-finite values are excluded from the median and pass through the
    subtraction unchanged (-inf stays -inf). A column without finite values
    is left as is and gets a NaN median.

    Parameters
    ----------
    df : pd.DataFrame
        Table with log2 intensity columns.
    cols : list of str
        Columns to normalize, each independently.

    Returns
    -------
    tuple
        (normalized copy of df, pd.Series of subtracted medians by column)
    """
    df = df.copy()
    medians = {}

    for col in cols:
        values = df[col].to_numpy(dtype=float)
        finite = np.isfinite(values)

        if not finite.any():
            medians[col] = np.nan
            continue

        median = np.median(values[finite])
        medians[col] = median
        df[col] = values - median

    return df, pd.Series(medians, dtype=float)


def norm_lfq(data):
    """
    Median-normalize every sample's log2 intensities.

    Parameters
    ----------
    data : dict
        Output from drop_filtered() (or filter_lfq()).

    Returns
    -------
    dict
        Updated data dictionary with normalized log2 intensities and a
        'normalization' record holding the subtracted medians.

    Example
    -------
    >>> data = drop_filtered(filter_lfq(prep_lfq('config/experiment.yaml')))
    >>> data = norm_lfq(data)
    """

    print("\n" + "="*80)
    print("MEDIAN NORMALIZATION")
    print("="*80)

    sample_cols = _all_sample_cols(data)
    df_before = data['df']

    print(f"\nProcessing {len(df_before)} protein groups across {len(sample_cols)} samples")

    # =========================================================================
    # 1. CHECK DATA BEFORE NORMALIZATION
    # =========================================================================
    print(f"\n[1/2] Data before normalization:")

    for condition, cols in data['log_cols'].items():
        if not cols:
            continue
        values = df_before[cols].to_numpy(dtype=float).flatten()
        values = values[np.isfinite(values)]
        if len(values) == 0:
            print(f"  {condition}: no finite values")
            continue
        print(f"  {condition}:")
        print(f"    Range: {values.min():.1f} to {values.max():.1f}")
        print(f"    Median: {np.median(values):.1f}")

    # =========================================================================
    # 2. NORMALIZATION
    # =========================================================================
    print(f"\n[2/2] Subtracting sample medians...")

    df, medians = median_normalize(df_before, sample_cols)

    for col in medians[medians.isna()].index:
        print(f"  Warning: '{col}' has no finite values, left unchanged")

    print(f"  > Median normalization applied")
    print(f"    Medians ranged from {medians.min():.2f} to {medians.max():.2f}")

    data_updated = copy.copy(data)
    data_updated['df'] = df
    data_updated['normalization'] = {
        'method': 'median',
        'medians': medians
    }

    _checkpoint(data_updated, 'norm')

    print("\n" + "="*80)
    print("NORMALIZATION COMPLETE")
    print("="*80)
    print(f"\nNext step: impute_lfq() to replace missing values")
    print("="*80 + "\n")

    return data_updated
