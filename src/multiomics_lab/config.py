"""
Default analysis configuration.

Every component starts from one of the dictionaries below and applies user
overrides on top, so a report can be reproduced from the overrides alone.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from multiomics_lab.exceptions import ConfigurationError


DEFAULT_PREPROCESSING_CONFIG = {
    'drop_threshold': 0.5,       # Drop features with >50% missing
    'impute': 'median',          # 'median', 'zero' or None
    'transform': None,           # None, 'log' or 'log2'
    'scaling': 'standard',       # 'standard', 'pareto' or 'none'
    'remove_zero_variance': False,
}

DEFAULT_DIABLO_CONFIG = {
    'n_components': 2,
    'keepX': None,               # {block: [n_features per component]} or None
    'design': 0.1,               # Weight between X blocks (Y link is always 1)
    'scale': True,
    'max_iter': 100,
    'tol': 1e-6,
    'backend': 'python',         # 'python' or 'mixomics'
    'timeout': 300,              # Rscript guard, seconds
}

DEFAULT_MOFA_CONFIG = {
    'scale_views': False,
    'factors': 10,
    'convergence_mode': 'fast',
    'seed': 42,
    'maxiter': 1000,
    'dropR2': None,
    'startELBO': 1,
    'freqELBO': 1,
    'spikeslab_weights': True,
    'ard_weights': True,
    'ard_factors': False,
    'gpu_mode': False,
    'verbose': False,
    'group_name': 'group1',
    'require_convergence': True,
}

SECTIONS = {
    'preprocessing': DEFAULT_PREPROCESSING_CONFIG,
    'diablo': DEFAULT_DIABLO_CONFIG,
    'mofa': DEFAULT_MOFA_CONFIG,
}


def merge_config(defaults: Dict[str, Any],
                 overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Return a copy of ``defaults`` updated with ``overrides``.

    Parameters
    ----------
    defaults : dict
        One of the DEFAULT_*_CONFIG dictionaries
    overrides : dict, optional
        User supplied values

    Returns
    -------
    dict
        Merged configuration

    Raises
    ------
    ConfigurationError
        If ``overrides`` contains keys the defaults do not know about
    """
    config = copy.deepcopy(defaults)
    if overrides:
        unknown = sorted(set(overrides) - set(defaults))
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {unknown}. "
                f"Valid keys: {sorted(defaults)}"
            )
        config.update(copy.deepcopy(overrides))
    return config


def load_config(path: Union[str, Path]) -> Dict[str, Dict[str, Any]]:
    """
    Load a JSON configuration file.

    The file may contain any of the sections ``preprocessing``, ``diablo``
    and ``mofa``; missing sections fall back to their defaults.
    """
    with open(path) as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration root must be an object: {path}")

    unknown_sections = sorted(set(raw) - set(SECTIONS))
    if unknown_sections:
        raise ConfigurationError(f"Unknown configuration sections: {unknown_sections}")

    return {name: merge_config(defaults, raw.get(name))
            for name, defaults in SECTIONS.items()}
