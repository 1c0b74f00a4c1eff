"""
Multi-Omics Factor Analysis (MOFA+) via mofapy2.

Unsupervised decomposition of several views sharing one sample axis into
latent factors. Training writes an HDF5 artifact which is read back into a
FactorResult.

MOFA+ reference: Argelaguet et al. (2020)
"""

import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from multiomics_lab.config import DEFAULT_MOFA_CONFIG, merge_config
from multiomics_lab.data.multiblock import MultiBlockData
from multiomics_lab.exceptions import ArtifactIOError, ConfigurationError, ConvergenceError
from multiomics_lab.io.persistence import read_factor_artifact


# Relative ELBO change (percent of the first recorded ELBO) accepted as
# converged for each mofapy2 convergence mode
CONVERGENCE_TOLERANCES = {
    'fast': 0.0005,
    'medium': 0.00005,
    'slow': 0.000005,
}

# Consecutive small ELBO changes required at maxiter
CONVERGENCE_WINDOW = 3


@dataclass(frozen=True, eq=False)
class FactorResult:
    """
    Fitted factor model.

    Attributes
    ----------
    factors : pd.DataFrame
        Samples x factors scores (Z)
    weights : dict
        {view: DataFrame features x factors} (W)
    variance_explained : pd.DataFrame
        Factors x views, R2 as stored by mofapy2
    variance_explained_total : pd.Series
        Total R2 per view
    elbo : np.ndarray
        ELBO trace recorded during training (NaN where not computed)
    group : str
        Sample group the scores belong to
    artifact_path : str
        HDF5 file the result was read from
    """

    factors: pd.DataFrame
    weights: Dict[str, pd.DataFrame]
    variance_explained: pd.DataFrame
    variance_explained_total: pd.Series
    elbo: np.ndarray
    group: str
    artifact_path: str = ''

    @property
    def views(self) -> List[str]:
        return list(self.weights.keys())

    @property
    def factor_names(self) -> List[str]:
        return list(self.factors.columns)

    @property
    def n_factors(self) -> int:
        return self.factors.shape[1]

    def factor_correlations(self) -> pd.DataFrame:
        """Pearson correlation between factor scores."""
        return self.factors.corr()

    def top_weights(self, view: str, factor: Union[int, str] = 1, n: int = 10) -> pd.DataFrame:
        """
        Features of ``view`` ranked by absolute weight on ``factor``.

        Parameters
        ----------
        view : str
            View name
        factor : int or str
            1-indexed factor number or factor column name
        n : int
            Number of features

        Returns
        -------
        pd.DataFrame
            Columns Feature, Weight, View
        """
        name = _factor_name(self, factor)
        w = self.weights[view][name]
        order = w.abs().sort_values(ascending=False).index[:n]
        return pd.DataFrame({
            'Feature': list(order),
            'Weight': w.loc[order].to_numpy(),
            'View': view
        })


def _factor_name(result: FactorResult, factor: Union[int, str]) -> str:
    if isinstance(factor, str):
        if factor not in result.factor_names:
            raise KeyError(f"Unknown factor {factor}. Available: {result.factor_names}")
        return factor
    if factor < 1 or factor > result.n_factors:
        raise KeyError(f"Factor index {factor} out of range 1..{result.n_factors}")
    return result.factor_names[factor - 1]


def check_convergence(elbo: np.ndarray, maxiter: int, tolerance: float) -> bool:
    """
    Decide from an ELBO trace whether training converged.

    Training that stopped before ``maxiter`` converged. Training that ran to
    ``maxiter`` converged only if each of the last ``CONVERGENCE_WINDOW``
    recorded ELBO changes, as a percentage of the first recorded ELBO, is
    below ``tolerance``. mofapy2 stops on the same number of consecutive
    small changes.
    """
    elbo = np.asarray(elbo, dtype=float)
    recorded = np.flatnonzero(~np.isnan(elbo))
    if len(recorded) == 0:
        return True

    if recorded[-1] + 1 < maxiter:
        return True

    if len(recorded) < CONVERGENCE_WINDOW + 1:
        return False

    values = elbo[recorded]
    deltas = np.abs(np.diff(values[-(CONVERGENCE_WINDOW + 1):]))
    first = values[0]
    if first == 0:
        return bool(np.all(deltas == 0))
    return bool(np.all(100 * deltas / abs(first) < tolerance))


def load_factor_result(path: Union[str, Path], group: Optional[str] = None) -> FactorResult:
    """
    Read a mofapy2 HDF5 artifact into a FactorResult.

    Parameters
    ----------
    path : str or Path
        HDF5 file written by training
    group : str, optional
        Sample group to read (default: first group)
    """
    artifact = read_factor_artifact(path)

    group = group or artifact['groups'][0]
    if group not in artifact['groups']:
        raise KeyError(f"Group '{group}' not in artifact groups {artifact['groups']}")

    Z = artifact['Z'][group]
    n_factors = Z.shape[0]
    factor_names = [f'Factor{i + 1}' for i in range(n_factors)]

    factors = pd.DataFrame(Z.T, index=artifact['samples'][group], columns=factor_names)
    factors.index.name = 'sample'

    weights = {
        view: pd.DataFrame(artifact['W'][view].T,
                           index=artifact['features'][view],
                           columns=factor_names)
        for view in artifact['views']
    }

    if group in artifact['r2_per_factor']:
        r2 = pd.DataFrame(artifact['r2_per_factor'][group].T,
                          index=factor_names, columns=artifact['views'])
    else:
        r2 = pd.DataFrame(np.nan, index=factor_names, columns=artifact['views'])

    if group in artifact.get('r2_total', {}):
        r2_total = pd.Series(artifact['r2_total'][group], index=artifact['views'])
    else:
        r2_total = r2.sum(axis=0)

    return FactorResult(
        factors=factors,
        weights=weights,
        variance_explained=r2,
        variance_explained_total=r2_total,
        elbo=artifact['elbo'],
        group=group,
        artifact_path=str(path),
    )


class FactorAnalysis:
    """
    MOFA+ factor decomposition.

    Features:
    - Any number of views sharing samples
    - Tolerates missing values inside views
    - Seeded, reproducible training
    - Variance explained per view and factor
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize factor analysis.

        Parameters
        ----------
        config : dict, optional
            Overrides for DEFAULT_MOFA_CONFIG (factors, scale_views,
            convergence_mode, seed, maxiter, ...)
        """
        self.config = merge_config(DEFAULT_MOFA_CONFIG, config)
        if self.config['convergence_mode'] not in CONVERGENCE_TOLERANCES:
            raise ConfigurationError(
                f"Unknown convergence_mode: {self.config['convergence_mode']}. "
                f"Use one of {sorted(CONVERGENCE_TOLERANCES)}"
            )
        if self.config['factors'] < 1:
            raise ConfigurationError(f"factors must be >= 1, got {self.config['factors']}")
        self.result_ = None

    def _build_entry_point(self, data: MultiBlockData):
        from mofapy2.run.entry_point import entry_point

        cfg = self.config
        views = data.block_names
        matrices = [[data.get_block(v).to_numpy(dtype=float)] for v in views]

        ent = entry_point()
        ent.set_data_options(scale_views=cfg['scale_views'])
        ent.set_data_matrix(
            matrices,
            views_names=views,
            groups_names=[cfg['group_name']],
            samples_names=[[str(s) for s in data.sample_ids]],
            features_names=[data.feature_names(v) for v in views]
        )
        ent.set_model_options(
            factors=cfg['factors'],
            spikeslab_weights=cfg['spikeslab_weights'],
            ard_weights=cfg['ard_weights'],
            ard_factors=cfg['ard_factors']
        )
        ent.set_train_options(
            iter=cfg['maxiter'],
            convergence_mode=cfg['convergence_mode'],
            dropR2=cfg['dropR2'],
            startELBO=cfg['startELBO'],
            freqELBO=cfg['freqELBO'],
            gpu_mode=cfg['gpu_mode'],
            seed=cfg['seed'],
            verbose=cfg['verbose']
        )
        return ent

    def fit(self,
            blocks: Union[MultiBlockData, Mapping[str, pd.DataFrame]],
            outfile: Union[str, Path]) -> FactorResult:
        """
        Train the model and write the HDF5 training artifact.

        Parameters
        ----------
        blocks : MultiBlockData or dict
            {view_name: DataFrame samples x features}
        outfile : str or Path
            HDF5 path for the training artifact

        Returns
        -------
        FactorResult
            Scores, weights and variance explained read back from ``outfile``

        Raises
        ------
        ArtifactIOError
            If the artifact cannot be written
        ConvergenceError
            If training hit maxiter without converging and
            ``require_convergence`` is set
        """
        if isinstance(blocks, MultiBlockData):
            data = blocks
        else:
            data = MultiBlockData(blocks=dict(blocks))

        if self.config['factors'] > data.n_samples:
            raise ConfigurationError(
                f"Requested {self.config['factors']} factors for {data.n_samples} samples"
            )

        outfile = Path(outfile)
        try:
            outfile.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactIOError(f"Cannot create directory {outfile.parent}: {e}") from e

        ent = self._build_entry_point(data)
        ent.build()
        ent.run()

        try:
            ent.save(str(outfile), save_data=False)
        except OSError as e:
            raise ArtifactIOError(f"Cannot write factor training artifact {outfile}: {e}") from e

        if not os.path.exists(outfile):
            raise ArtifactIOError(f"Factor training artifact was not written: {outfile}")

        result = load_factor_result(outfile, group=self.config['group_name'])

        tolerance = CONVERGENCE_TOLERANCES[self.config['convergence_mode']]
        if not check_convergence(result.elbo, self.config['maxiter'], tolerance):
            message = (f"Factor training did not converge within {self.config['maxiter']} "
                       f"iterations (mode '{self.config['convergence_mode']}')")
            if self.config['require_convergence']:
                raise ConvergenceError(message)
            warnings.warn(message)

        self.result_ = result
        return result


def run_factor_analysis(blocks: Union[MultiBlockData, Mapping[str, pd.DataFrame]],
                        outfile: Union[str, Path],
                        **config) -> FactorResult:
    """Train MOFA+ with ``config`` overrides; see :class:`FactorAnalysis`."""
    return FactorAnalysis(config).fit(blocks, outfile)
