"""
End-to-end runner and export for the LFQ pipeline.
"""

import os

from .filtering import drop_filtered, filter_lfq
from .imputation import impute_lfq
from .normalization import norm_lfq
from .prep import prep_lfq
from .utils import KEEP_COL, _all_sample_cols


def export_lfq(data, filename=None):
    """
    Write the imputed table for downstream differential testing.

    The file holds identifier columns, the complete log2 intensities and the
    IMPUTED flag of every sample, tab-separated.

    Parameters
    ----------
    data : dict
        Output from impute_lfq().
    filename : str, optional
        Output path. Defaults to tables/imputed_protein_groups.tsv in the
        output directory.

    Returns
    -------
    str
        Path of the written file.
    """
    if 'imputed_cols' not in data:
        raise ValueError("No imputation results found. Run impute_lfq() first.")

    if filename is None:
        if not data.get('output_dirs'):
            raise ValueError("No filename given and no data_paths.output_dir configured")
        filename = os.path.join(data['output_dirs']['tables'], 'imputed_protein_groups.tsv')

    data_columns = data['config']['data_columns']
    df = data['df']

    id_cols = [data_columns[k] for k in ('protein_id', 'gene_id', 'protein_name')
               if data_columns[k] in df.columns]
    sample_cols = _all_sample_cols(data)
    flag_cols = [data['imputed_cols'][c] for c in sample_cols]

    out_cols = id_cols + sample_cols + flag_cols
    if KEEP_COL in df.columns and not df[KEEP_COL].all():
        out_cols.append(KEEP_COL)

    df[out_cols].to_csv(filename, sep='\t', index=False)

    print(f"  > Saved: {os.path.basename(filename)}")
    print(f"    Location: {os.path.dirname(filename) or '.'}")
    print(f"    {len(df)} protein groups x {len(out_cols)} columns")

    return filename


def run_lfq(config, df=None, drop=True):
    """
    Run prep, filter, normalization, imputation and export in one go.

    Parameters
    ----------
    config : str or dict
        Path to YAML configuration file, or a loaded configuration.
    df : pd.DataFrame, optional
        Protein-group table, instead of data_paths.input_file.
    drop : bool, optional
        Drop protein groups failing the filter before normalization
        (default: True). If False, they are normalized and imputed but do not
        inform the imputation distribution.

    Returns
    -------
    dict
        Final data dictionary; 'export_path' is set when an output directory
        is configured.

    Example
    -------
    >>> data = run_lfq('config/experiment.yaml')
    >>> data['df'].head()
    """
    data = prep_lfq(config, df=df)
    data = filter_lfq(data)
    if drop:
        data = drop_filtered(data)
    data = norm_lfq(data)
    data = impute_lfq(data)

    if data.get('output_dirs'):
        data['export_path'] = export_lfq(data)

    return data
