# ============================================================================
# src/multiomics_lab/__init__.py
# ============================================================================
"""Multi-omics integration reports: block PLS-DA, MOFA+ and clinical joins."""

__version__ = '0.1.0'

from . import data
from . import preprocessing
from . import methods
from . import join
from . import plotting
from . import io
from . import workflows
from . import utils
from .config import load_config
from .exceptions import (
    ArtifactIOError,
    ConfigurationError,
    ConvergenceError,
    DataAlignmentError,
    RBackendError
)

__all__ = [
    'data',
    'preprocessing',
    'methods',
    'join',
    'plotting',
    'io',
    'workflows',
    'utils',
    'load_config',
    'ArtifactIOError',
    'ConfigurationError',
    'ConvergenceError',
    'DataAlignmentError',
    'RBackendError'
]
