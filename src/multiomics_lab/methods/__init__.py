# ============================================================================
# src/multiomics_lab/methods/__init__.py
# ============================================================================
"""Multi-omics analysis methods."""

from .block_plsda import BlockPLSDA, DiscriminantResult, run_block_plsda
from .factor_analysis import (
    FactorAnalysis,
    FactorResult,
    check_convergence,
    load_factor_result,
    run_factor_analysis
)

__all__ = [
    'BlockPLSDA',
    'DiscriminantResult',
    'run_block_plsda',
    'FactorAnalysis',
    'FactorResult',
    'check_convergence',
    'load_factor_result',
    'run_factor_analysis'
]
