"""
Plots for multi-block discriminant models.

Each function takes a DiscriminantResult and returns (fig, ax).
"""

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib.patches import Circle, Ellipse, Patch
from scipy.stats import chi2

from multiomics_lab.methods.block_plsda import DiscriminantResult


def _check_block(result: DiscriminantResult, block: str):
    if block not in result.loadings:
        raise KeyError(f"Block '{block}' not found. Available: {result.block_names}")


def _check_component(result: DiscriminantResult, comp: int):
    if comp < 1 or comp > result.n_components:
        raise ValueError(f"Component {comp} out of range 1..{result.n_components}")


def plot_loadings(result: DiscriminantResult,
                  block: str,
                  comp: int = 1,
                  top_n: Optional[int] = None,
                  figsize: Tuple[int, int] = (8, 6)):
    """
    Horizontal bar plot of loadings on one component.

    Bars are ranked by absolute loading. Each bar is coloured by the class
    in which the feature has its highest mean; when class means are not
    available bars are coloured by sign.

    Parameters
    ----------
    result : DiscriminantResult
        Fitted model
    block : str
        Block to plot
    comp : int
        Component (1-indexed)
    top_n : int, optional
        Only plot the top features (default: all non-zero loadings)
    figsize : tuple
        Figure size

    Returns
    -------
    fig, ax : matplotlib figure and axis
    """
    _check_block(result, block)
    _check_component(result, comp)

    top = result.top_features(block, comp=comp, n=top_n or len(result.loadings[block]))
    # Largest loading on top
    top = top.iloc[::-1]

    fig, ax = plt.subplots(figsize=figsize)

    means = result.class_means.get(block) if result.class_means else None
    if means is not None and len(top) > 0:
        classes = list(means.columns)
        palette = dict(zip(classes, sns.color_palette('husl', n_colors=len(classes))))
        contrib = means.loc[top['Feature']].idxmax(axis=1)
        colors = [palette[c] for c in contrib]
        handles = [Patch(facecolor=palette[c], edgecolor='black', label=str(c)) for c in classes]
        legend_title = 'Max mean'
    else:
        colors = ['#d62728' if v > 0 else '#1f77b4' for v in top['Loading']]
        handles = [Patch(facecolor='#d62728', label='Positive'),
                   Patch(facecolor='#1f77b4', label='Negative')]
        legend_title = None

    ax.barh(range(len(top)), top['Loading'], color=colors, alpha=0.8,
            edgecolor='black', linewidth=1)
    ax.set_yticks(range(len(top)))
    ax.set_yticklabels(top['Feature'], fontsize=9)
    ax.axvline(x=0, color='black', linewidth=0.8)

    ax.set_xlabel('Loading', fontsize=12, fontweight='bold')
    ax.set_title(f'Loadings on component {comp} ({block})', fontsize=14, fontweight='bold')
    ax.legend(handles=handles, title=legend_title, fontsize=9, loc='lower right')
    ax.grid(axis='x', alpha=0.3)

    plt.tight_layout()
    return fig, ax


def _confidence_ellipse(ax, points: np.ndarray, color, confidence: float = 0.95):
    if len(points) <= 2:
        return
    mean = points.mean(axis=0)
    cov = np.cov(points.T)
    chi2_val = chi2.ppf(confidence, df=2)
    eigenvalues, eigenvectors = np.linalg.eigh(cov)
    eigenvalues = np.clip(eigenvalues, 0, None)
    # eigh sorts ascending; the major axis is the last eigenvector
    angle = np.degrees(np.arctan2(eigenvectors[1, -1], eigenvectors[0, -1]))
    width, height = 2 * np.sqrt(chi2_val * eigenvalues[::-1])
    ax.add_patch(Ellipse(mean, width, height, angle=angle,
                         facecolor='none', edgecolor=color,
                         linewidth=2, linestyle='--', alpha=0.7))


def plot_indiv(result: DiscriminantResult,
               block: Optional[str] = None,
               comp_x: int = 1,
               comp_y: int = 2,
               ellipse: bool = False,
               confidence: float = 0.95,
               figsize: Tuple[int, int] = (10, 8)):
    """
    Sample plot on two components.

    Parameters
    ----------
    result : DiscriminantResult
        Fitted model
    block : str, optional
        Block variates to plot (if None, the consensus projection)
    comp_x, comp_y : int
        Components to plot (1-indexed)
    ellipse : bool
        Draw a confidence ellipse per class
    confidence : float
        Ellipse confidence level
    figsize : tuple
        Figure size

    Returns
    -------
    fig, ax : matplotlib figure and axis
    """
    _check_component(result, comp_x)
    _check_component(result, comp_y)

    if block is None:
        scores = result.projection
        title_suffix = '(Consensus)'
    else:
        _check_block(result, block)
        scores = result.variates[block]
        title_suffix = f'({block})'

    points = scores.iloc[:, [comp_x - 1, comp_y - 1]].to_numpy()
    y = result.labels.loc[scores.index].to_numpy()

    fig, ax = plt.subplots(figsize=figsize)
    colors = sns.color_palette('husl', n_colors=len(result.classes))

    for i, group in enumerate(result.classes):
        mask = y == group
        ax.scatter(points[mask, 0], points[mask, 1],
                   c=[colors[i]], s=150, alpha=0.7,
                   label=str(group), edgecolors='black', linewidth=1.5)
        if ellipse:
            _confidence_ellipse(ax, points[mask], colors[i], confidence)

    ax.axhline(y=0, color='gray', linestyle='--', alpha=0.3, linewidth=1)
    ax.axvline(x=0, color='gray', linestyle='--', alpha=0.3, linewidth=1)

    ax.set_xlabel(f'Component {comp_x}', fontsize=12, fontweight='bold')
    ax.set_ylabel(f'Component {comp_y}', fontsize=12, fontweight='bold')
    ax.set_title(f'Sample Plot {title_suffix}', fontsize=14, fontweight='bold')
    ax.legend(frameon=True, fontsize=11)
    ax.grid(True, alpha=0.2)

    plt.tight_layout()
    return fig, ax


def plot_var(result: DiscriminantResult,
             blocks: Optional[List[str]] = None,
             comp_x: int = 1,
             comp_y: int = 2,
             cutoff: float = 0,
             show_names: bool = False,
             figsize: Tuple[int, int] = (8, 8)):
    """
    Correlation circle plot.

    Each selected feature is placed at its correlation with the block
    variates on the two components. Features whose distance from the
    origin is below ``cutoff`` are hidden.

    Parameters
    ----------
    result : DiscriminantResult
        Fitted model
    blocks : list, optional
        Blocks to show (default: all)
    comp_x, comp_y : int
        Components (1-indexed)
    cutoff : float
        Minimum distance from the origin
    show_names : bool
        Annotate features with their names
    figsize : tuple
        Figure size

    Returns
    -------
    fig, ax : matplotlib figure and axis
    """
    _check_component(result, comp_x)
    _check_component(result, comp_y)
    blocks = blocks or result.block_names
    for block in blocks:
        _check_block(result, block)

    fig, ax = plt.subplots(figsize=figsize)
    colors = sns.color_palette('husl', n_colors=len(blocks))

    for radius in (1.0, 0.5):
        ax.add_patch(Circle((0, 0), radius, facecolor='none', edgecolor='gray',
                            linewidth=1, linestyle='-' if radius == 1.0 else '--'))

    coords = result.variable_correlations(blocks, comp_x=comp_x, comp_y=comp_y)
    coords = coords[np.sqrt(coords['x'] ** 2 + coords['y'] ** 2) >= cutoff]

    for color, block in zip(colors, blocks):
        points = coords[coords['Block'] == block]
        ax.scatter(points['x'], points['y'], c=[color], s=60, alpha=0.8,
                   label=block, edgecolors='black', linewidth=0.5)
        if show_names:
            for feature, x, y in zip(points['Feature'], points['x'], points['y']):
                ax.annotate(feature, (x, y), fontsize=7, alpha=0.8)

    ax.axhline(y=0, color='gray', linestyle='--', alpha=0.3, linewidth=1)
    ax.axvline(x=0, color='gray', linestyle='--', alpha=0.3, linewidth=1)
    ax.set_xlim(-1.05, 1.05)
    ax.set_ylim(-1.05, 1.05)
    ax.set_aspect('equal')

    ax.set_xlabel(f'Component {comp_x}', fontsize=12, fontweight='bold')
    ax.set_ylabel(f'Component {comp_y}', fontsize=12, fontweight='bold')
    ax.set_title('Correlation Circle Plot', fontsize=14, fontweight='bold')
    ax.legend(fontsize=10, loc='upper right')

    plt.tight_layout()
    return fig, ax


def plot_block_correlations(result: DiscriminantResult,
                            comp: int = 1,
                            figsize: Tuple[int, int] = (8, 7)):
    """
    Heatmap of correlations between block variates.

    Returns
    -------
    fig, ax : matplotlib figure and axis
    """
    _check_component(result, comp)
    corr_df = result.block_correlations(comp)

    fig, ax = plt.subplots(figsize=figsize)

    sns.heatmap(corr_df, annot=True, fmt='.3f', cmap='coolwarm',
                vmin=-1, vmax=1, center=0, square=True,
                cbar_kws={'label': 'Correlation'}, ax=ax)

    ax.set_title(f'Block Correlation (Component {comp})', fontsize=14, fontweight='bold')

    plt.tight_layout()
    return fig, ax


def plot_explained_variance(result: DiscriminantResult,
                            figsize: Tuple[int, int] = (8, 5)):
    """Grouped bars of variance explained per block and component."""
    df = pd.DataFrame(result.explained_variance)
    long = df.reset_index().melt(id_vars='index', var_name='Block', value_name='Explained')
    long = long.rename(columns={'index': 'Component'})

    fig, ax = plt.subplots(figsize=figsize)
    sns.barplot(data=long, x='Block', y='Explained', hue='Component',
                palette='husl', edgecolor='black', ax=ax)

    ax.set_ylabel('Proportion of variance', fontsize=12, fontweight='bold')
    ax.set_xlabel('')
    ax.set_title('Variance Explained per Block', fontsize=14, fontweight='bold')
    ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()
    return fig, ax
