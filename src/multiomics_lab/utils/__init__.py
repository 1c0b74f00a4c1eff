# ============================================================================
# src/multiomics_lab/utils/__init__.py
# ============================================================================
"""Utility modules."""

from .r_interface import rscript_available, run_block_splsda_r
from .visualization import close_figures, save_publication_figure

__all__ = [
    'rscript_available',
    'run_block_splsda_r',
    'close_figures',
    'save_publication_figure'
]
