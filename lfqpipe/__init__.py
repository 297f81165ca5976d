"""
LFQ Pipeline
============

A small, reusable package that prepares label-free quantification (LFQ)
protein-group tables for differential expression testing.

Main Functions
--------------
prep_lfq()       - Load the protein-group table and select intensity columns
filter_lfq()     - Flag protein groups with enough valid values (KEEP)
drop_filtered()  - Remove protein groups not flagged KEEP
norm_lfq()       - Median-normalize each sample
impute_lfq()     - Impute missing values from a down-shifted normal distribution
export_lfq()     - Write the table for downstream testing
run_lfq()        - Run every step in order
save_data()      - Save pipeline data for later
load_data()      - Load saved pipeline data

Example Workflow
----------------
>>> from lfqpipe import prep_lfq, filter_lfq, drop_filtered, norm_lfq, impute_lfq
>>>
>>> data = prep_lfq('config/experiment.yaml')
>>> data = filter_lfq(data)
>>> data = drop_filtered(data)
>>> data = norm_lfq(data)
>>> data = impute_lfq(data, seed=1234)
"""

from .prep import prep_lfq
from .filtering import filter_lfq, drop_filtered, compute_keep
from .normalization import norm_lfq, median_normalize
from .imputation import impute_lfq, impute_normal_shift, InsufficientDataError
from .pipeline import export_lfq, run_lfq
from .utils import save_data, load_data


__version__ = "0.1.0"
__author__ = "Richard Cassidy"

__all__ = [
    'prep_lfq',
    'filter_lfq',
    'drop_filtered',
    'compute_keep',
    'norm_lfq',
    'median_normalize',
    'impute_lfq',
    'impute_normal_shift',
    'InsufficientDataError',
    'export_lfq',
    'run_lfq',
    'save_data',
    'load_data',
]
