"""
Synthetic multi-omics cohorts.

Small deterministic stand-ins for the packaged cancer cohorts, used by the
examples and the test suite.
"""

from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from multiomics_lab.data.multiblock import MultiBlockData


def make_synthetic_cohort(n_samples: int = 10,
                          block_sizes: Optional[Dict[str, int]] = None,
                          n_classes: int = 2,
                          class_names: Optional[Sequence[str]] = None,
                          effect_size: float = 2.0,
                          informative_fraction: float = 0.3,
                          seed: int = 42) -> MultiBlockData:
    """
    Generate a cohort of aligned blocks with a planted class signal.

    Parameters
    ----------
    n_samples : int
        Number of samples (ids S1..Sn)
    block_sizes : dict, optional
        {block_name: n_features}; defaults to three blocks of 5, 8 and 3
    n_classes : int
        Number of outcome classes, assigned round-robin
    class_names : sequence, optional
        Labels for the classes (default: 'class_1', 'class_2', ...)
    effect_size : float
        Mean shift per class in the informative features
    informative_fraction : float
        Share of features per block that carry the class signal
    seed : int
        Random seed

    Returns
    -------
    MultiBlockData
        Blocks and labels sharing sample ids
    """
    if block_sizes is None:
        block_sizes = {'A': 5, 'B': 8, 'C': 3}
    if class_names is None:
        class_names = [f'class_{i + 1}' for i in range(n_classes)]
    if len(class_names) != n_classes:
        raise ValueError(f"Got {len(class_names)} class names for {n_classes} classes")

    rng = np.random.default_rng(seed)
    sample_ids = [f'S{i + 1}' for i in range(n_samples)]
    class_idx = np.arange(n_samples) % n_classes
    labels = pd.Series(np.asarray(class_names, dtype=object)[class_idx],
                       index=sample_ids, name='label')

    # Shared latent signal so blocks correlate with each other
    latent = class_idx - (n_classes - 1) / 2.0

    blocks = {}
    for name, n_features in block_sizes.items():
        X = rng.normal(size=(n_samples, n_features))
        n_informative = max(1, int(round(n_features * informative_fraction)))
        signs = rng.choice([-1.0, 1.0], size=n_informative)
        X[:, :n_informative] += effect_size * np.outer(latent, signs)
        blocks[name] = pd.DataFrame(
            X,
            index=sample_ids,
            columns=[f'{name}_f{j + 1}' for j in range(n_features)]
        )

    return MultiBlockData(blocks=blocks, labels=labels, name='synthetic')
