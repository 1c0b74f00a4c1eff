"""
Sample identifier normalisation.

Clinical tables and assay tables rarely agree on identifiers: a TCGA
clinical file keys patients by ``TCGA-A2-A0T2`` while an expression matrix
may use ``A0T2`` or a full aliquot barcode. The helpers here pull the shared
part out with a regular expression before any join.
"""

import re
from typing import Iterable, Pattern, Union

import pandas as pd


SAMPLE_ID_PATTERNS = {
    # Last token after '-', '.' or '_'
    'suffix': r'([^-._]+)$',
    # TCGA-XX-YYYY[-...] -> YYYY
    'tcga_patient': r'^TCGA[-.][A-Za-z0-9]{2}[-.]([A-Za-z0-9]{4})',
    # TCGA-XX-YYYY[-...] -> TCGA-XX-YYYY
    'tcga_barcode': r'^(TCGA[-.][A-Za-z0-9]{2}[-.][A-Za-z0-9]{4})',
}

DEFAULT_PATTERN = 'suffix'


def _compile(pattern: Union[str, Pattern]) -> Pattern:
    if isinstance(pattern, re.Pattern):
        regex = pattern
    else:
        regex = re.compile(SAMPLE_ID_PATTERNS.get(pattern, pattern))
    if regex.groups < 1:
        raise ValueError(
            f"Sample id pattern must contain a capture group: {regex.pattern!r}"
        )
    return regex


def normalize_sample_id(value, pattern: Union[str, Pattern] = DEFAULT_PATTERN) -> str:
    """
    Extract the shared part of a composite sample identifier.

    Parameters
    ----------
    value : str
        Raw identifier
    pattern : str or compiled regex
        Name from SAMPLE_ID_PATTERNS or a regex with one capture group

    Returns
    -------
    str
        First captured group, or ``value`` unchanged when nothing matches.
        Applying this twice gives the same result as applying it once.
    """
    value = str(value).strip()
    match = _compile(pattern).search(value)
    if match is None or match.group(1) is None:
        return value
    return match.group(1)


def normalize_sample_ids(values: Iterable,
                         pattern: Union[str, Pattern] = DEFAULT_PATTERN) -> pd.Index:
    """Vectorised :func:`normalize_sample_id` returning a string Index."""
    regex = _compile(pattern)
    return pd.Index([normalize_sample_id(v, regex) for v in values], dtype=object)
