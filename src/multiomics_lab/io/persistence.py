"""
Persistence boundary.

Every artifact a report writes or reads goes through one function here:
delimited tables, the factor training HDF5 file, and the serialised factor
model. Failures are re-raised as ArtifactIOError naming the path.
"""

import os
from pathlib import Path
from typing import Any, Dict, Union

import h5py
import joblib
import numpy as np
import pandas as pd

from multiomics_lab.exceptions import ArtifactIOError


PathLike = Union[str, Path]


def _ensure_parent(path: PathLike):
    parent = Path(path).parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArtifactIOError(f"Cannot create directory {parent}: {e}") from e


def write_table(df: pd.DataFrame, path: PathLike, sep: str = ',', index: bool = True):
    """Write a DataFrame as a delimited text file."""
    _ensure_parent(path)
    try:
        with open(path, 'w', newline='') as f:
            df.to_csv(f, sep=sep, index=index)
    except OSError as e:
        raise ArtifactIOError(f"Cannot write table {path}: {e}") from e


def read_table(path: PathLike, sep: str = ',', index_col=0) -> pd.DataFrame:
    """Read a delimited text file written by :func:`write_table`."""
    try:
        with open(path) as f:
            return pd.read_csv(f, sep=sep, index_col=index_col)
    except OSError as e:
        raise ArtifactIOError(f"Cannot read table {path}: {e}") from e


def write_clinical_table(df: pd.DataFrame, path: PathLike):
    """Write the cleaned clinical subset as CSV, keeping the sample id index."""
    write_table(df, path, sep=',', index=True)


def save_factor_model(model: Any, path: PathLike) -> str:
    """
    Serialise a fitted factor model object with joblib.

    Returns
    -------
    str
        Path written
    """
    _ensure_parent(path)
    try:
        with open(path, 'wb') as f:
            joblib.dump(model, f)
    except OSError as e:
        raise ArtifactIOError(f"Cannot write factor model {path}: {e}") from e
    return str(path)


def load_factor_model(path: PathLike) -> Any:
    """Load a model written by :func:`save_factor_model`."""
    try:
        with open(path, 'rb') as f:
            return joblib.load(f)
    except OSError as e:
        raise ArtifactIOError(f"Cannot read factor model {path}: {e}") from e


def _decode(values) -> list:
    return [v.decode('utf-8') if isinstance(v, bytes) else str(v) for v in values]


def read_factor_artifact(path: PathLike) -> Dict[str, Any]:
    """
    Read the HDF5 file written by factor training.

    Returns
    -------
    dict
        'views', 'groups', 'samples' {group: [ids]}, 'features' {view: [ids]},
        'Z' {group: factors x samples}, 'W' {view: factors x features},
        'r2_per_factor' {group: views x factors} and 'r2_total'
        {group: views} (if present),
        'elbo' (1-D array, may be empty)
    """
    if not os.path.exists(path):
        raise ArtifactIOError(f"Factor training artifact not found: {path}")

    try:
        with h5py.File(path, 'r') as hf:
            views = _decode(hf['views']['views'][()])
            groups = _decode(hf['groups']['groups'][()])

            artifact = {
                'views': views,
                'groups': groups,
                'samples': {g: _decode(hf['samples'][g][()]) for g in groups},
                'features': {v: _decode(hf['features'][v][()]) for v in views},
                'Z': {g: np.asarray(hf['expectations']['Z'][g][()]) for g in groups},
                'W': {v: np.asarray(hf['expectations']['W'][v][()]) for v in views},
                'r2_per_factor': {},
                'r2_total': {},
                'elbo': np.array([]),
            }

            r2_path = 'variance_explained/r2_per_factor'
            if r2_path in hf:
                artifact['r2_per_factor'] = {
                    g: np.asarray(hf[r2_path][g][()]) for g in groups if g in hf[r2_path]
                }

            total_path = 'variance_explained/r2_total'
            if total_path in hf:
                artifact['r2_total'] = {
                    g: np.asarray(hf[total_path][g][()]) for g in groups if g in hf[total_path]
                }

            if 'training_stats/elbo' in hf:
                artifact['elbo'] = np.asarray(hf['training_stats/elbo'][()], dtype=float)
    except KeyError as e:
        raise ArtifactIOError(f"Factor training artifact {path} is missing {e}") from e
    except OSError as e:
        raise ArtifactIOError(f"Cannot read factor training artifact {path}: {e}") from e

    return artifact


def save_discriminant_tables(result, output_dir: PathLike) -> Dict[str, str]:
    """
    Write loadings, variates and the consensus projection of a
    discriminant result as CSV files.

    Returns
    -------
    dict
        {table_name: path}
    """
    output_dir = Path(output_dir)
    written = {}

    for block_name, df in result.loadings.items():
        path = output_dir / f'loadings_{block_name}.csv'
        write_table(df, path)
        written[f'loadings_{block_name}'] = str(path)

    for block_name, df in result.variates.items():
        path = output_dir / f'variates_{block_name}.csv'
        write_table(df, path)
        written[f'variates_{block_name}'] = str(path)

    path = output_dir / 'projection.csv'
    write_table(result.projection, path)
    written['projection'] = str(path)

    return written
