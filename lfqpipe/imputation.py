"""
Missing value imputation for the LFQ pipeline.

Replaces missing log2 intensities with draws from a normal distribution that
is shifted down and narrowed relative to each sample's observed values,
assuming values are missing because they fall below the detection limit.
Every replaced cell is flagged in a per-sample IMPUTED column.
"""

import copy
import zlib

import numpy as np
import pandas as pd

from .utils import KEEP_COL, _all_sample_cols, _checkpoint, _imputed_col


class InsufficientDataError(ValueError):
    """Raised when a column has too few observed values to impute from."""

    def __init__(self, columns):
        self.columns = list(columns)
        names = ', '.join(f"'{c}'" for c in self.columns)
        super().__init__(f"Insufficient data for imputation on column(s) {names}: "
                         f"fewer than 2 observed finite values")


def column_rng(seed, column):
    """Random generator for one column, derived from the run seed and the column name."""
    return np.random.default_rng([seed, zlib.crc32(str(column).encode('utf-8'))])


def impute_normal_shift(df, cols, width=0.3, downshift=1.8, seed=None, keep=None,
                        imputed_names=None):
    """
    Replace non-finite values by down-shifted normal draws, column by column.

    For each column the mean and standard deviation (ddof=1) of the finite
    values in ``keep`` rows define the imputation distribution
    N(mean - downshift * sd, width * sd). Every non-finite cell is replaced
    by one draw; finite cells are untouched.

    Parameters
    ----------
    df : pd.DataFrame
        Table with log2 intensity columns.
    cols : list of str
        Columns to impute.
    width : float, optional
        Spread of the imputation distribution in units of the observed sd.
    downshift : float, optional
        Shift of the imputation mean below the observed mean, in sd units.
    seed : int
        Run seed. Each column draws from its own generator seeded with the
        run seed and the column name.
    keep : array-like of bool, optional
        Rows allowed to inform the distribution. Defaults to all rows.
    imputed_names : dict, optional
        Flag column name per column. Defaults to 'Imputed <col>'.

    Returns
    -------
    tuple
        (imputed copy of df with flag columns, pd.DataFrame of per-column
        parameters: n_observed, n_imputed, mean, sd, impute_mean, impute_sd)

    Raises
    ------
    InsufficientDataError
        If a column with missing values has fewer than 2 observed values.
        No column is modified in that case.
    """
    if width <= 0:
        raise ValueError(f"width must be positive, got {width}")
    if seed is None:
        raise ValueError("An explicit seed is required")

    if imputed_names is None:
        imputed_names = {col: f"Imputed {col}" for col in cols}

    if keep is None:
        keep = np.ones(len(df), dtype=bool)
    else:
        keep = np.asarray(keep, dtype=bool)

    # All parameters are checked before any column is substituted
    params = {}
    missing = {}
    insufficient = []
    for col in cols:
        values = df[col].to_numpy(dtype=float)
        is_missing = ~np.isfinite(values)
        observed = values[keep & ~is_missing]

        mean_obs = observed.mean() if len(observed) > 0 else np.nan
        sd_obs = observed.std(ddof=1) if len(observed) > 1 else np.nan

        if is_missing.any() and len(observed) < 2:
            insufficient.append(col)

        missing[col] = is_missing
        params[col] = {
            'n_observed': len(observed),
            'n_imputed': int(is_missing.sum()),
            'mean': mean_obs,
            'sd': sd_obs,
            'impute_mean': mean_obs - downshift * sd_obs,
            'impute_sd': width * sd_obs,
        }

    if insufficient:
        raise InsufficientDataError(insufficient)

    df = df.copy()
    for col in cols:
        is_missing = missing[col]
        df[imputed_names[col]] = is_missing

        n_missing = int(is_missing.sum())
        if n_missing == 0:
            continue

        values = df[col].to_numpy(dtype=float, copy=True)
        rng = column_rng(seed, col)
        values[is_missing] = rng.normal(
            loc=params[col]['impute_mean'],
            scale=params[col]['impute_sd'],
            size=n_missing
        )
        df[col] = values

    return df, pd.DataFrame.from_dict(params, orient='index')


def impute_lfq(data, width=None, downshift=None, seed=None):
    """
    Impute missing log2 intensities and flag imputed cells.

    Parameters
    ----------
    data : dict
        Output from norm_lfq().
    width : float, optional
        Spread factor (default from config, 0.3).
    downshift : float, optional
        Mean shift in standard deviations (default from config, 1.8).
    seed : int, optional
        Run seed. Defaults to the config value; if that is also unset, fresh
        entropy is drawn and recorded so the run can be replayed.

    Returns
    -------
    dict
        Updated data dictionary with complete log2 intensities, one IMPUTED
        column per sample, and an 'imputation' record.

    Raises
    ------
    ValueError
        If data already carries IMPUTED flags from an earlier impute_lfq().

    Example
    -------
    >>> data = impute_lfq(data, width=0.3, downshift=1.8, seed=1234)
    >>> data['imputation']['params']
    """

    print("\n" + "="*80)
    print("MISSING VALUE IMPUTATION")
    print("="*80)

    config = data['config']
    settings = config['imputation']

    if width is None:
        width = float(settings['width'])
    if downshift is None:
        downshift = float(settings['downshift'])
    if seed is None:
        seed = settings.get('seed')
    if seed is None:
        seed = np.random.SeedSequence().entropy
        print(f"\n  Warning: No seed configured, using generated seed {seed}")

    sample_cols = _all_sample_cols(data)
    df = data['df']

    imputed_names = {col: _imputed_col(col, config['data_columns']) for col in sample_cols}
    existing = [name for name in imputed_names.values() if name in df.columns]
    if 'imputed_cols' in data or existing:
        raise ValueError("Data has already been imputed; imputing again would overwrite "
                         "the flags marking imputed values. Start from norm_lfq() output.")

    print(f"\nWidth: {width}")
    print(f"Downshift: {downshift}")
    print(f"Seed: {seed}")
    print(f"Processing {len(df)} protein groups across {len(sample_cols)} samples")

    keep = None
    if KEEP_COL in df.columns:
        keep = df[KEEP_COL].to_numpy(dtype=bool)
        if not keep.all():
            print(f"  Warning: {int((~keep).sum())} rows are not flagged KEEP; "
                  f"they are imputed but do not inform the distribution")

    missing_before = int((~np.isfinite(df[sample_cols].to_numpy(dtype=float))).sum())

    df, params = impute_normal_shift(
        df,
        sample_cols,
        width=width,
        downshift=downshift,
        seed=seed,
        keep=keep,
        imputed_names=imputed_names
    )

    missing_after = int((~np.isfinite(df[sample_cols].to_numpy(dtype=float))).sum())
    print(f"\n  > Imputed {missing_before} values")
    print(f"    Missing values: {missing_before} -> {missing_after}")

    for col in params.index[params['n_imputed'] > 0]:
        p = params.loc[col]
        print(f"    {col}: {int(p['n_imputed'])} values from "
              f"N({p['impute_mean']:.2f}, {p['impute_sd']:.2f})")

    data_updated = copy.copy(data)
    data_updated['df'] = df
    data_updated['imputed_cols'] = imputed_names
    data_updated['imputation'] = {
        'method': 'normal_shift',
        'width': width,
        'downshift': downshift,
        'seed': seed,
        'params': params
    }

    _checkpoint(data_updated, 'impute')

    print("\n" + "="*80)
    print("IMPUTATION COMPLETE")
    print("="*80)
    print(f"\nNext step: export_lfq() to write the table for differential testing")
    print("="*80 + "\n")

    return data_updated
