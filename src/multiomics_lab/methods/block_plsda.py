"""
Multi-block (sparse) PLS-DA, the DIABLO framework.

Supervised integration of several omics blocks against one outcome. The
native backend follows the mixOmics block.(s)plsda recipe: regularised
generalised CCA with the outcome dummy matrix as an extra block, Horst
scheme, and per-block soft-thresholding of the loading vectors in sparse
mode. The 'mixomics' backend hands the same inputs to R.
"""

import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from multiomics_lab.config import DEFAULT_DIABLO_CONFIG, merge_config
from multiomics_lab.data.multiblock import MultiBlockData, validate_alignment
from multiomics_lab.exceptions import ConfigurationError
from multiomics_lab.utils.r_interface import run_block_splsda_r


BACKENDS = ('python', 'mixomics')


@dataclass(frozen=True, eq=False)
class DiscriminantResult:
    """
    Fitted multi-block discriminant model.

    Attributes
    ----------
    loadings : dict
        {block: DataFrame features x components}
    variates : dict
        {block: DataFrame samples x components}
    projection : pd.DataFrame
        Consensus coordinates (mean of the block variates), samples x components
    selected_features : dict
        {block: {component: [features with non-zero loading]}}
    explained_variance : dict
        {block: Series per component}
    feature_correlations : dict
        {block: DataFrame features x components}, correlation of each
        feature with its block variate (correlation circle coordinates)
    class_means : dict
        {block: DataFrame features x classes}, per-class feature means
    labels : pd.Series
        Outcome per sample
    classes : np.ndarray
        Sorted class labels
    keepX : dict or None
        Requested features per block per component
    n_iterations : list
        Iterations used per component
    backend : str
        Which backend produced the model
    """

    loadings: Dict[str, pd.DataFrame]
    variates: Dict[str, pd.DataFrame]
    projection: pd.DataFrame
    selected_features: Dict[str, Dict[int, List[str]]]
    explained_variance: Dict[str, pd.Series]
    feature_correlations: Dict[str, pd.DataFrame]
    class_means: Dict[str, pd.DataFrame]
    labels: pd.Series
    classes: np.ndarray
    keepX: Optional[Dict[str, List[int]]] = None
    n_iterations: List[int] = field(default_factory=list)
    backend: str = 'python'
    center: Optional[Dict[str, pd.Series]] = None
    scale: Optional[Dict[str, pd.Series]] = None
    weights_star: Optional[Dict[str, pd.DataFrame]] = None

    @property
    def block_names(self) -> List[str]:
        return list(self.loadings.keys())

    @property
    def n_components(self) -> int:
        return self.projection.shape[1]

    @property
    def is_sparse(self) -> bool:
        return self.keepX is not None

    def top_features(self, block: str, comp: int = 1, n: int = 10) -> pd.DataFrame:
        """
        Features of ``block`` ranked by absolute loading on ``comp`` (1-indexed).

        Returns
        -------
        pd.DataFrame
            Columns Feature, Loading, Block; only non-zero loadings
        """
        loadings = self.loadings[block].iloc[:, comp - 1]
        loadings = loadings[loadings != 0]
        order = loadings.abs().sort_values(ascending=False).index[:n]
        return pd.DataFrame({
            'Feature': list(order),
            'Loading': loadings.loc[order].to_numpy(),
            'Block': block
        })

    def block_correlations(self, comp: int = 1) -> pd.DataFrame:
        """
        Correlations between block variates on one component.

        Returns
        -------
        pd.DataFrame
            Block x block correlation matrix
        """
        scores = pd.DataFrame({name: df.iloc[:, comp - 1]
                               for name, df in self.variates.items()})
        return scores.corr()

    def variable_correlations(self,
                              blocks: Optional[List[str]] = None,
                              comp_x: int = 1,
                              comp_y: int = 2) -> pd.DataFrame:
        """
        Correlation circle coordinates of the selected features.

        Parameters
        ----------
        blocks : list, optional
            Blocks to include (default: all)
        comp_x, comp_y : int
            Components (1-indexed)

        Returns
        -------
        pd.DataFrame
            Columns Feature, Block, x, y; one row per feature selected on
            either component
        """
        frames = []
        for block in blocks or self.block_names:
            cor = self.feature_correlations[block]
            selected = set(self.selected_features[block][comp_x]) | \
                set(self.selected_features[block][comp_y])
            coords = cor.loc[[f for f in cor.index if f in selected]]
            frames.append(pd.DataFrame({
                'Feature': list(coords.index),
                'Block': block,
                'x': coords.iloc[:, comp_x - 1].to_numpy(),
                'y': coords.iloc[:, comp_y - 1].to_numpy(),
            }))
        return pd.concat(frames, ignore_index=True)

    def predict(self, blocks: Mapping[str, pd.DataFrame]) -> pd.Series:
        """
        Predict classes of new samples by nearest class centroid in the
        consensus space (mixOmics ``centroids.dist``).

        Parameters
        ----------
        blocks : dict
            {block: DataFrame samples x features}, same features as training

        Returns
        -------
        pd.Series
            Predicted class per sample

        Raises
        ------
        DataAlignmentError
            If the blocks do not share one ordered sample axis
        """
        if self.weights_star is None:
            raise ValueError(f"predict() is not available for the '{self.backend}' backend")

        missing = [name for name in self.block_names if name not in blocks]
        if missing:
            raise ConfigurationError(f"Blocks missing for prediction: {missing}")
        validate_alignment({name: blocks[name] for name in self.block_names})

        projections = []
        sample_index = None
        for name in self.block_names:
            features = self.loadings[name].index
            X = blocks[name].loc[:, features]
            if sample_index is None:
                sample_index = X.index
            X_scaled = (X - self.center[name]) / self.scale[name]
            projections.append(X_scaled.to_numpy() @ self.weights_star[name].to_numpy())
        consensus = np.mean(projections, axis=0)

        train = self.projection.to_numpy()
        centroids = np.array([train[(self.labels == c).to_numpy()].mean(axis=0)
                              for c in self.classes])
        dist = ((consensus[:, None, :] - centroids[None, :, :]) ** 2).sum(axis=2)
        return pd.Series(self.classes[np.argmin(dist, axis=1)], index=sample_index,
                         name='predicted')


def _sparsify(a: np.ndarray, keep: Optional[int]) -> np.ndarray:
    """
    Keep exactly ``keep`` entries of ``a``.

    Soft-thresholds at the (keep+1)-th largest magnitude; when ties would
    zero a selected entry the top entries are kept unshrunk instead.
    """
    if keep is None or keep >= len(a):
        return a

    abs_a = np.abs(a)
    order = np.argsort(-abs_a, kind='stable')
    selected = order[:keep]
    threshold = abs_a[order[keep]]
    shrunk = abs_a[selected] - threshold

    out = np.zeros_like(a)
    if np.all(shrunk > 0):
        out[selected] = np.sign(a[selected]) * shrunk
    else:
        out[selected] = a[selected]
    return out


def _normalize(a: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(a)
    if norm == 0:
        return a
    return a / norm


def _first_singular_vector(X: np.ndarray) -> np.ndarray:
    if X.shape[1] == 1:
        return np.ones(1)
    _, _, vt = np.linalg.svd(X, full_matrices=False)
    v = vt[0]
    # Deterministic sign: largest entry positive
    if v[np.argmax(np.abs(v))] < 0:
        v = -v
    return v


class BlockPLSDA:
    """
    Multi-block PLS-DA / sparse PLS-DA (DIABLO).

    Features:
    - Integrates multiple omics blocks sharing one sample axis
    - Supervised discrimination against a categorical outcome
    - Block correlation maximization via a design matrix
    - Fixed per-block, per-component feature selection (keepX)
    """

    def __init__(self,
                 n_components: int = 2,
                 keepX: Optional[Dict[str, List[int]]] = None,
                 design: Union[float, np.ndarray] = 0.1,
                 scale: bool = True,
                 max_iter: int = 100,
                 tol: float = 1e-6,
                 backend: str = 'python',
                 timeout: int = 300,
                 verbose: bool = False):
        """
        Initialize the model.

        Parameters
        ----------
        n_components : int
            Number of components to extract
        keepX : dict, optional
            {block: [features to keep on each component]}; None keeps all
        design : float or np.ndarray
            Link weight between X blocks, or a full (n_blocks x n_blocks)
            matrix; each X block is always linked to the outcome with 1
        scale : bool
            Scale each feature to unit variance
        max_iter : int
            Maximum iterations per component
        tol : float
            Convergence tolerance on the loading vectors
        backend : str
            'python' (native) or 'mixomics' (R via Rscript)
        timeout : int
            Seconds allowed for the R process
        verbose : bool
            Print progress
        """
        self.n_components = n_components
        self.keepX = keepX
        self.design = design
        self.scale = scale
        self.max_iter = max_iter
        self.tol = tol
        self.backend = backend
        self.timeout = timeout
        self.verbose = verbose
        self.result_ = None

    @classmethod
    def from_config(cls, config: Optional[Dict] = None) -> 'BlockPLSDA':
        """Build from DEFAULT_DIABLO_CONFIG plus overrides."""
        return cls(**merge_config(DEFAULT_DIABLO_CONFIG, config))

    def _validate(self, data: MultiBlockData) -> Optional[Dict[str, List[int]]]:
        if not isinstance(self.n_components, (int, np.integer)) or self.n_components < 1:
            raise ConfigurationError(f"n_components must be a positive integer, got {self.n_components}")

        if self.max_iter < 1:
            raise ConfigurationError(f"max_iter must be at least 1, got {self.max_iter}")

        if self.backend not in BACKENDS:
            raise ConfigurationError(f"Unknown backend: {self.backend}. Use one of {BACKENDS}")

        if data.labels is None:
            raise ConfigurationError("A label vector is required for discriminant analysis")

        if data.labels.isna().any():
            raise ConfigurationError("Label vector contains missing values")

        if data.labels.nunique() < 2:
            raise ConfigurationError("At least two outcome classes are required")

        for name in data.block_names:
            if data.get_block(name).isna().to_numpy().any():
                raise ConfigurationError(
                    f"Block '{name}' contains missing values; impute before fitting"
                )

        if self.keepX is None:
            return None

        unknown = sorted(set(self.keepX) - set(data.block_names))
        if unknown:
            raise ConfigurationError(f"keepX names unknown blocks: {unknown}")

        keepX = {}
        for name, counts in self.keepX.items():
            counts = list(counts)
            if len(counts) != self.n_components:
                raise ConfigurationError(
                    f"keepX['{name}'] has {len(counts)} entries, expected one per "
                    f"component ({self.n_components})"
                )
            block = data.get_block(name)
            n_features = block.shape[1]
            for c in counts:
                if not isinstance(c, (int, np.integer)) or c < 1 or c > n_features:
                    raise ConfigurationError(
                        f"keepX['{name}'] values must be integers in 1..{n_features}, got {counts}"
                    )
            # Constant features centre to zero and can never carry a loading
            n_variable = int((block.nunique(dropna=True) > 1).sum())
            if max(counts) > n_variable:
                raise ConfigurationError(
                    f"keepX['{name}'] = {counts} exceeds the {n_variable} non-constant "
                    f"features of block '{name}'"
                )
            keepX[name] = [int(c) for c in counts]
        return keepX

    def _design_matrix(self, n_blocks: int) -> np.ndarray:
        """(n_blocks + 1) square design, outcome block last."""
        if np.isscalar(self.design):
            C_x = np.full((n_blocks, n_blocks), float(self.design))
        else:
            C_x = np.asarray(self.design, dtype=float)
            if C_x.shape != (n_blocks, n_blocks):
                raise ConfigurationError(
                    f"design must be {n_blocks}x{n_blocks}, got {C_x.shape}"
                )
        C = np.ones((n_blocks + 1, n_blocks + 1))
        C[:n_blocks, :n_blocks] = C_x
        np.fill_diagonal(C, 0)
        return C

    def fit(self,
            blocks: Union[MultiBlockData, Mapping[str, pd.DataFrame]],
            y=None) -> 'BlockPLSDA':
        """
        Fit the model.

        Parameters
        ----------
        blocks : MultiBlockData or dict
            {block_name: DataFrame samples x features}
        y : array-like or pd.Series, optional
            Outcome per sample; taken from ``blocks.labels`` when omitted

        Returns
        -------
        BlockPLSDA
            self, with ``result_`` set
        """
        if isinstance(blocks, MultiBlockData):
            data = blocks if y is None else MultiBlockData(blocks.blocks, y, blocks.name)
        else:
            data = MultiBlockData(blocks=dict(blocks), labels=y)

        keepX = self._validate(data)

        if self.verbose:
            mode = 'sparse' if keepX else 'full'
            print(f"Fitting block PLS-DA ({mode}, {self.n_components} components, "
                  f"backend={self.backend}) on {data.n_samples} samples")

        if self.backend == 'mixomics':
            self.result_ = self._fit_mixomics(data, keepX)
        else:
            self.result_ = self._fit_python(data, keepX)

        return self

    def _scale_blocks(self, data: MultiBlockData):
        centers, scales, scaled = {}, {}, {}
        for name in data.block_names:
            X = data.get_block(name).astype(float)
            center = X.mean(axis=0)
            if self.scale:
                sd = X.std(axis=0, ddof=1).replace(0, 1.0).fillna(1.0)
            else:
                sd = pd.Series(1.0, index=X.columns)
            centers[name] = center
            scales[name] = sd
            scaled[name] = ((X - center) / sd).to_numpy()
        return centers, scales, scaled

    def _fit_python(self, data: MultiBlockData, keepX) -> DiscriminantResult:
        names = data.block_names
        n_blocks = len(names)
        labels = data.labels
        classes = np.unique(labels.to_numpy())

        centers, scales, scaled = self._scale_blocks(data)

        Y = (labels.to_numpy()[:, None] == classes[None, :]).astype(float)
        Y = Y - Y.mean(axis=0)
        if self.scale:
            sd = Y.std(axis=0, ddof=1)
            sd[sd == 0] = 1.0
            Y = Y / sd

        matrices = [scaled[name].copy() for name in names] + [Y]
        keep = [None if keepX is None else keepX.get(name) for name in names] + [None]
        C = self._design_matrix(n_blocks)
        H = self.n_components

        A = [np.zeros((m.shape[1], H)) for m in matrices]
        T = [np.zeros((data.n_samples, H)) for _ in matrices]
        P = [np.zeros((m.shape[1], H)) for m in matrices]
        n_iterations = []

        for h in range(H):
            comp_keep = [k[h] if k is not None else None for k in keep]

            a = [_normalize(_sparsify(_first_singular_vector(M), comp_keep[q]))
                 for q, M in enumerate(matrices)]
            t = [M @ a[q] for q, M in enumerate(matrices)]

            converged = False
            for iteration in range(1, self.max_iter + 1):
                a_old = [v.copy() for v in a]
                for q, M in enumerate(matrices):
                    z = sum(C[q, j] * t[j] for j in range(len(matrices)) if j != q)
                    candidate = _normalize(_sparsify(M.T @ z, comp_keep[q]))
                    if np.linalg.norm(candidate) > 0:
                        a[q] = candidate
                        t[q] = M @ a[q]
                change = max(np.abs(a[q] - a_old[q]).max() for q in range(len(a)))
                if change < self.tol:
                    converged = True
                    break

            if not converged:
                warnings.warn(
                    f"Component {h + 1} did not converge in {self.max_iter} iterations"
                )
            n_iterations.append(iteration)

            for q, M in enumerate(matrices):
                A[q][:, h] = a[q]
                T[q][:, h] = t[q]
                tt = t[q] @ t[q]
                p = M.T @ t[q] / tt if tt > 0 else np.zeros(M.shape[1])
                P[q][:, h] = p
                matrices[q] = M - np.outer(t[q], p)

        comp_names = [f'comp{h + 1}' for h in range(H)]
        samples = data.sample_ids

        loadings, variates, weights_star = {}, {}, {}
        for q, name in enumerate(names):
            features = data.get_block(name).columns
            loadings[name] = pd.DataFrame(A[q], index=features, columns=comp_names)
            variates[name] = pd.DataFrame(T[q], index=samples, columns=comp_names)
            PtA = P[q].T @ A[q]
            try:
                W_star = A[q] @ np.linalg.inv(PtA)
            except np.linalg.LinAlgError:
                W_star = A[q] @ np.linalg.pinv(PtA)
            weights_star[name] = pd.DataFrame(W_star, index=features, columns=comp_names)

        return self._assemble(data, loadings, variates, keepX, n_iterations,
                              backend='python', center=centers, scale=scales,
                              weights_star=weights_star, scaled=scaled)

    def _fit_mixomics(self, data: MultiBlockData, keepX) -> DiscriminantResult:
        r_results = run_block_splsda_r(
            data_blocks=data.blocks,
            y=data.labels.to_numpy(),
            sample_ids=list(data.sample_ids),
            n_components=self.n_components,
            keepX=keepX,
            design=float(self.design) if np.isscalar(self.design) else None,
            timeout=self.timeout
        )

        # Y block variates/loadings come back too; drop them
        loadings = {name: r_results['loadings'][name] for name in data.block_names}
        variates = {name: r_results['variates'][name] for name in data.block_names}
        _, _, scaled = self._scale_blocks(data)

        return self._assemble(data, loadings, variates, keepX, n_iterations=[],
                              backend='mixomics', scaled=scaled)

    def _assemble(self, data: MultiBlockData, loadings, variates, keepX, n_iterations,
                  backend, scaled, center=None, scale=None, weights_star=None):
        names = data.block_names
        comp_names = list(next(iter(loadings.values())).columns)

        projection = sum(variates[name] for name in names) / len(names)

        selected, explained, feature_cor, class_means = {}, {}, {}, {}
        for q, name in enumerate(names):
            L = loadings[name]
            selected[name] = {
                h + 1: L.index[L.iloc[:, h] != 0].tolist() for h in range(L.shape[1])
            }

            X = scaled[name]
            T = variates[name].to_numpy()
            total = (X ** 2).sum()
            ev = []
            for h in range(T.shape[1]):
                tt = T[:, h] @ T[:, h]
                ev.append(float(np.sum((X.T @ T[:, h]) ** 2) / tt / total)
                          if tt > 0 and total > 0 else 0.0)
            explained[name] = pd.Series(ev, index=comp_names, name=name)

            feature_cor[name] = pd.DataFrame(
                _column_correlations(X, T), index=L.index, columns=comp_names
            )

            raw = data.get_block(name)
            class_means[name] = raw.groupby(data.labels.to_numpy()).mean().T

        return DiscriminantResult(
            loadings=loadings,
            variates=variates,
            projection=projection,
            selected_features=selected,
            explained_variance=explained,
            feature_correlations=feature_cor,
            class_means=class_means,
            labels=data.labels,
            classes=np.unique(data.labels.to_numpy()),
            keepX=keepX,
            n_iterations=list(n_iterations),
            backend=backend,
            center=center,
            scale=scale,
            weights_star=weights_star,
        )


def _column_correlations(X: np.ndarray, T: np.ndarray) -> np.ndarray:
    """Pearson correlation of every column of X with every column of T."""
    Xc = X - X.mean(axis=0)
    Tc = T - T.mean(axis=0)
    x_norm = np.sqrt((Xc ** 2).sum(axis=0))
    t_norm = np.sqrt((Tc ** 2).sum(axis=0))
    denom = np.outer(x_norm, t_norm)
    with np.errstate(divide='ignore', invalid='ignore'):
        cor = (Xc.T @ Tc) / denom
    return np.nan_to_num(cor)


def run_block_plsda(blocks: Union[MultiBlockData, Mapping[str, pd.DataFrame]],
                    y=None,
                    n_components: int = 2,
                    keepX: Optional[Dict[str, List[int]]] = None,
                    **kwargs) -> DiscriminantResult:
    """
    Fit block PLS-DA (or sparse block PLS-DA when ``keepX`` is given).

    Parameters
    ----------
    blocks : MultiBlockData or dict
        {block_name: DataFrame samples x features}
    y : array-like, optional
        Outcome per sample
    n_components : int
        Number of components
    keepX : dict, optional
        {block: [features to keep per component]}
    **kwargs
        Passed to :class:`BlockPLSDA`

    Returns
    -------
    DiscriminantResult
        The fitted model
    """
    model = BlockPLSDA(n_components=n_components, keepX=keepX, **kwargs)
    return model.fit(blocks, y).result_
