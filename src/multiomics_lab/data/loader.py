"""
Loading of assay tables, labels and sample metadata.

Sources can be local paths or URLs; pandas handles both.
"""

import os
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd

from multiomics_lab.data.multiblock import MultiBlockData, align_blocks
from multiomics_lab.exceptions import DataAlignmentError
from multiomics_lab.io.persistence import write_table


ORIENTATIONS = ('samples_as_rows', 'features_as_rows')


def load_assay_table(source: Union[str, Path],
                     orientation: str = 'samples_as_rows',
                     sep: str = ',',
                     index_col: int = 0) -> pd.DataFrame:
    """
    Load one assay table with samples as rows.

    Parameters
    ----------
    source : str or Path
        Local path or URL of a delimited file
    orientation : str
        'samples_as_rows' or 'features_as_rows' (transposed on load)
    sep : str
        Field delimiter
    index_col : int
        Column holding the row identifiers

    Returns
    -------
    pd.DataFrame
        Numeric table, samples x features, string index
    """
    if orientation not in ORIENTATIONS:
        raise ValueError(f"Unknown orientation: {orientation}. Use one of {ORIENTATIONS}")

    df = pd.read_csv(source, sep=sep, index_col=index_col)
    if orientation == 'features_as_rows':
        df = df.T

    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)

    non_numeric = df.select_dtypes(exclude='number').columns.tolist()
    if non_numeric:
        raise ValueError(
            f"Assay table {source} has non-numeric columns: {non_numeric[:10]}"
        )

    return df


def load_labels(source: Union[str, Path],
                column: str = 'label',
                sep: str = ',') -> pd.Series:
    """Load an outcome label table into a Series indexed by sample id."""
    df = pd.read_csv(source, sep=sep, index_col=0)
    if column not in df.columns:
        raise ValueError(f"Label column '{column}' not found in {source}: {list(df.columns)}")
    labels = df[column]
    labels.index = labels.index.astype(str)
    return labels


def load_cohort(directory: Union[str, Path],
                label_file: str = 'labels.csv',
                label_column: str = 'label',
                align: bool = False) -> MultiBlockData:
    """
    Load a cohort directory of ``block_<name>.csv`` files plus labels.

    Parameters
    ----------
    directory : str or Path
        Directory holding the block and label files
    label_file : str
        Label file name inside ``directory`` (skipped if absent)
    label_column : str
        Column holding the outcome
    align : bool
        Subset to the samples shared by every block instead of failing

    Returns
    -------
    MultiBlockData
        Validated multi-block container
    """
    directory = Path(directory)
    blocks = {}
    for f in sorted(os.listdir(directory)):
        if f.startswith('block_') and f.endswith('.csv'):
            block_name = f[len('block_'):-len('.csv')]
            blocks[block_name] = load_assay_table(directory / f)

    if not blocks:
        raise FileNotFoundError(f"No block_*.csv files found in {directory}")

    labels = None
    if (directory / label_file).exists():
        labels = load_labels(directory / label_file, column=label_column)

    if align:
        blocks, labels = align_blocks(blocks, labels)

    return MultiBlockData(blocks=blocks, labels=labels, name=directory.name)


def fetch_table(url: str,
                destination: Optional[Union[str, Path]] = None,
                sep: str = '\t') -> pd.DataFrame:
    """
    Fetch a delimited table (clinical or sample metadata) by URL.

    Parameters
    ----------
    url : str
        Remote location (or local path)
    destination : str or Path, optional
        Where to keep a local copy; reused on later calls if it exists
    sep : str
        Field delimiter of the remote file

    Returns
    -------
    pd.DataFrame
        The fetched table
    """
    if destination is not None and Path(destination).exists():
        return pd.read_csv(destination, sep=sep)

    df = pd.read_csv(url, sep=sep)

    if destination is not None:
        write_table(df, destination, sep=sep, index=False)

    return df


def blocks_from_frames(frames: Dict[str, pd.DataFrame],
                       labels: Optional[pd.Series] = None,
                       orientation: str = 'samples_as_rows') -> MultiBlockData:
    """Build a MultiBlockData from in-memory tables, transposing if needed."""
    if orientation not in ORIENTATIONS:
        raise ValueError(f"Unknown orientation: {orientation}. Use one of {ORIENTATIONS}")
    if orientation == 'features_as_rows':
        frames = {name: df.T for name, df in frames.items()}
    try:
        return MultiBlockData(blocks=dict(frames), labels=labels)
    except DataAlignmentError:
        print("Blocks are not aligned; use align_blocks() to subset to shared samples")
        raise
