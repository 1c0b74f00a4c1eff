# ============================================================================
# src/multiomics_lab/plotting/__init__.py
# ============================================================================
"""Plotting layer for discriminant and factor models."""

from .discriminant_plots import (
    plot_block_correlations,
    plot_explained_variance,
    plot_indiv,
    plot_loadings,
    plot_var
)
from .factor_plots import (
    plot_factor,
    plot_factor_cor,
    plot_factor_vs_covariate,
    plot_factors,
    plot_variance_explained,
    plot_weights
)
from multiomics_lab.utils.visualization import save_publication_figure

__all__ = [
    'plot_block_correlations',
    'plot_explained_variance',
    'plot_indiv',
    'plot_loadings',
    'plot_var',
    'plot_factor',
    'plot_factor_cor',
    'plot_factor_vs_covariate',
    'plot_factors',
    'plot_variance_explained',
    'plot_weights',
    'save_publication_figure'
]
