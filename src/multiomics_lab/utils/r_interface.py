"""
Simple interface for calling R's mixOmics block.(s)plsda.
"""

import json
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from multiomics_lab.exceptions import RBackendError


def get_r_script_path() -> str:
    """Get path to run_block_splsda.R shipped with the package."""
    script_path = Path(__file__).resolve().parent.parent / 'r' / 'run_block_splsda.R'

    if not script_path.exists():
        raise FileNotFoundError(f"R script not found: {script_path}")

    return str(script_path)


def rscript_available() -> bool:
    """True when an Rscript executable is on PATH."""
    return shutil.which('Rscript') is not None


def run_block_splsda_r(data_blocks: Dict[str, pd.DataFrame],
                       y: np.ndarray,
                       sample_ids: List[str],
                       n_components: int = 2,
                       keepX: Optional[Dict[str, List[int]]] = None,
                       design: Optional[float] = 0.1,
                       output_dir: Optional[str] = None,
                       timeout: int = 300) -> Dict:
    """
    Run block PLS-DA / sparse block PLS-DA using R's mixOmics package.

    Parameters
    ----------
    data_blocks : dict
        {block_name: DataFrame} - samples x features
    y : np.ndarray
        Group labels
    sample_ids : list
        Sample identifiers
    n_components : int
        Number of components
    keepX : dict, optional
        {block_name: [features per component]}; None runs block.plsda
    design : float, optional
        Off-diagonal design value between X blocks
    output_dir : str, optional
        Where to exchange files (temporary directory if None)
    timeout : int
        Max execution time in seconds

    Returns
    -------
    dict
        'summary', 'variates', 'loadings' keyed by block
    """
    if not rscript_available():
        raise RBackendError("Rscript not found on PATH; install R with mixOmics or use backend='python'")

    cleanup = output_dir is None
    if cleanup:
        output_dir = tempfile.mkdtemp(prefix='block_splsda_')

    try:
        input_dir = os.path.join(output_dir, 'input')
        os.makedirs(input_dir, exist_ok=True)

        # Save blocks as CSV
        for block_name, df in data_blocks.items():
            df_copy = df.copy()
            df_copy.index = sample_ids
            df_copy.to_csv(os.path.join(input_dir, f"block_{block_name}.csv"))

        # Save labels
        y_df = pd.DataFrame({'label': y}, index=sample_ids)
        y_df.to_csv(os.path.join(input_dir, 'labels.csv'))

        with open(os.path.join(input_dir, 'config.json'), 'w') as f:
            json.dump({
                'ncomp': int(n_components),
                'keepX': keepX,
                'design': design,
            }, f)

        r_output_dir = os.path.join(output_dir, 'output')
        os.makedirs(r_output_dir, exist_ok=True)

        cmd = ['Rscript', get_r_script_path(), input_dir, r_output_dir]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise RBackendError(f"mixOmics R script exceeded {timeout}s") from e

        if result.returncode != 0:
            raise RBackendError(
                f"mixOmics R script failed:\n{result.stderr}"
            )

        return _load_results(r_output_dir)
    finally:
        if cleanup:
            shutil.rmtree(output_dir, ignore_errors=True)


def _load_results(results_dir: str) -> Dict:
    """Load block PLS-DA results from R output directory."""
    results = {}

    summary_file = os.path.join(results_dir, 'model_summary.json')
    if os.path.exists(summary_file):
        with open(summary_file) as f:
            results['summary'] = json.load(f)

    for prefix in ['variates', 'loadings']:
        results[prefix] = {}
        for f in os.listdir(results_dir):
            if f.startswith(f'{prefix}_') and f.endswith('.csv'):
                block_name = f[len(prefix) + 1:-len('.csv')]
                df = pd.read_csv(os.path.join(results_dir, f), index_col=0)
                df.index = df.index.astype(str)
                df.columns = [f'comp{i + 1}' for i in range(df.shape[1])]
                results[prefix][block_name] = df

    return results
