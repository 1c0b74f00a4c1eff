"""
Plots for factor models.

Each function takes a FactorResult and returns (fig, ax). Sample
covariates come from a ``metadata`` DataFrame indexed by the same sample
ids as the factor scores (see multiomics_lab.join for matching clinical
tables to scores).
"""

from typing import List, Optional, Sequence, Tuple, Union

import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy.stats import pearsonr

from multiomics_lab.exceptions import DataAlignmentError
from multiomics_lab.methods.factor_analysis import FactorResult, _factor_name


def _scores_with_metadata(result: FactorResult,
                          metadata: Optional[pd.DataFrame],
                          columns: Sequence[Optional[str]]) -> pd.DataFrame:
    """Factor scores with the requested metadata columns attached."""
    scores = result.factors.copy()
    wanted = [c for c in dict.fromkeys(columns) if c is not None]
    if not wanted:
        return scores

    if metadata is None:
        raise ValueError(f"metadata is required to use covariates {wanted}")
    missing = [c for c in wanted if c not in metadata.columns]
    if missing:
        raise KeyError(f"Covariates not found in metadata: {missing}")

    meta = metadata[wanted].copy()
    meta.index = meta.index.astype(str)
    if not scores.index.isin(meta.index).any():
        raise DataAlignmentError("No factor samples found in metadata index")

    renamed = {c: f'{c}_meta' for c in wanted if c in scores.columns}
    meta = meta.rename(columns=renamed)
    return scores.join(meta, how='left')


def plot_variance_explained(result: FactorResult,
                            plot_total: bool = False,
                            figsize: Tuple[int, int] = (8, 6)):
    """
    Variance explained by the factor model.

    Parameters
    ----------
    result : FactorResult
        Fitted model
    plot_total : bool
        Plot total R2 per view as bars instead of the factors x views heatmap
    figsize : tuple
        Figure size

    Returns
    -------
    fig, ax : matplotlib figure and axis
    """
    fig, ax = plt.subplots(figsize=figsize)

    if plot_total:
        total = result.variance_explained_total
        colors = sns.color_palette('husl', n_colors=len(total))
        bars = ax.bar(range(len(total)), total.to_numpy(), color=colors, alpha=0.8,
                      edgecolor='black', linewidth=1.5)
        ax.set_xticks(range(len(total)))
        ax.set_xticklabels(total.index, rotation=45, ha='right')
        ax.set_ylabel('Variance explained (%)', fontsize=12, fontweight='bold')
        ax.set_title('Total Variance Explained per View', fontsize=14, fontweight='bold')
        ax.grid(axis='y', alpha=0.3)
        for bar, val in zip(bars, total.to_numpy()):
            ax.text(bar.get_x() + bar.get_width() / 2., bar.get_height(),
                    f'{val:.1f}', ha='center', va='bottom', fontsize=10)
    else:
        sns.heatmap(result.variance_explained, annot=True, fmt='.1f', cmap='Blues',
                    vmin=0, cbar_kws={'label': 'Variance explained (%)'}, ax=ax)
        ax.set_xlabel('View', fontsize=12, fontweight='bold')
        ax.set_ylabel('Factor', fontsize=12, fontweight='bold')
        ax.set_title(f'Variance Explained ({result.group})', fontsize=14, fontweight='bold')

    plt.tight_layout()
    return fig, ax


def plot_factor_cor(result: FactorResult, figsize: Tuple[int, int] = (8, 7)):
    """Heatmap of correlations between factor scores."""
    corr_df = result.factor_correlations()

    fig, ax = plt.subplots(figsize=figsize)
    sns.heatmap(corr_df, annot=True, fmt='.2f', cmap='coolwarm',
                vmin=-1, vmax=1, center=0, square=True,
                cbar_kws={'label': 'Correlation'}, ax=ax)
    ax.set_title('Factor Correlation', fontsize=14, fontweight='bold')

    plt.tight_layout()
    return fig, ax


def plot_factor(result: FactorResult,
                factors: Union[int, str, List[Union[int, str]]] = 1,
                color_by: Optional[str] = None,
                group_by: Optional[str] = None,
                metadata: Optional[pd.DataFrame] = None,
                dot_size: float = 2,
                dodge: bool = False,
                add_violin: bool = False,
                jitter: float = 0.2,
                figsize: Optional[Tuple[int, int]] = None):
    """
    Factor scores as a strip plot, one panel per factor.

    Parameters
    ----------
    result : FactorResult
        Fitted model
    factors : int, str or list
        Factor(s) to plot, 1-indexed or by name
    color_by : str, optional
        Metadata column used for colour
    group_by : str, optional
        Metadata column used for the x axis
    metadata : pd.DataFrame, optional
        Sample covariates indexed by sample id
    dot_size : float
        Marker size
    dodge : bool
        Separate colour groups along the x axis
    add_violin : bool
        Draw a violin behind the points
    jitter : float
        Horizontal jitter of the points
    figsize : tuple, optional
        Figure size (default scales with the number of factors)

    Returns
    -------
    fig, axes : matplotlib figure and axis (list of axes for several factors)
    """
    if not isinstance(factors, (list, tuple)):
        factors = [factors]
    names = [_factor_name(result, f) for f in factors]

    df = _scores_with_metadata(result, metadata, [color_by, group_by])
    x_col = group_by
    if x_col is None:
        df['_all'] = result.group
        x_col = '_all'
    for col in (x_col, color_by):
        if col is not None:
            df[col] = df[col].astype(object).where(df[col].notna(), 'NA').astype(str)

    figsize = figsize or (4 * len(names) + 1, 5)
    fig, axes = plt.subplots(1, len(names), figsize=figsize, squeeze=False)
    axes = axes[0]

    for ax, name in zip(axes, names):
        if add_violin:
            sns.violinplot(data=df, x=x_col, y=name, color='lightgray',
                           inner=None, cut=0, ax=ax)
        sns.stripplot(data=df, x=x_col, y=name, hue=color_by,
                      palette='husl' if color_by else None,
                      size=dot_size, jitter=jitter, dodge=dodge and color_by is not None,
                      edgecolor='black', linewidth=0.5, ax=ax)
        ax.axhline(y=0, color='gray', linestyle='--', alpha=0.3, linewidth=1)
        ax.set_xlabel(group_by or '', fontsize=12, fontweight='bold')
        ax.set_ylabel('Factor value', fontsize=12, fontweight='bold')
        ax.set_title(name, fontsize=14, fontweight='bold')
        if x_col == '_all':
            ax.set_xticks([])
        ax.grid(axis='y', alpha=0.2)

    plt.tight_layout()
    if len(axes) == 1:
        return fig, axes[0]
    return fig, list(axes)


def plot_factors(result: FactorResult,
                 factor_x: Union[int, str] = 1,
                 factor_y: Union[int, str] = 2,
                 color_by: Optional[str] = None,
                 metadata: Optional[pd.DataFrame] = None,
                 dot_size: float = 2,
                 figsize: Tuple[int, int] = (8, 7)):
    """
    Scatter plot of two factors against each other.

    Returns
    -------
    fig, ax : matplotlib figure and axis
    """
    x_name = _factor_name(result, factor_x)
    y_name = _factor_name(result, factor_y)
    df = _scores_with_metadata(result, metadata, [color_by])

    fig, ax = plt.subplots(figsize=figsize)
    # dot_size is a marker diameter as in stripplot; scatter takes an area
    size = dot_size ** 2 * 10

    if color_by is None:
        ax.scatter(df[x_name], df[y_name], s=size, alpha=0.7,
                   c=[sns.color_palette('husl', 1)[0]], edgecolors='black', linewidth=0.5)
    elif pd.api.types.is_numeric_dtype(df[color_by]):
        points = ax.scatter(df[x_name], df[y_name], c=df[color_by], cmap='viridis',
                            s=size, alpha=0.8, edgecolors='black', linewidth=0.5)
        fig.colorbar(points, ax=ax, label=color_by)
    else:
        groups = df[color_by].astype(object).where(df[color_by].notna(), 'NA').astype(str)
        levels = sorted(groups.unique())
        colors = sns.color_palette('husl', n_colors=len(levels))
        for color, level in zip(colors, levels):
            mask = (groups == level).to_numpy()
            ax.scatter(df.loc[mask, x_name], df.loc[mask, y_name], c=[color], s=size,
                       alpha=0.7, label=level, edgecolors='black', linewidth=0.5)
        ax.legend(title=color_by, fontsize=10)

    ax.axhline(y=0, color='gray', linestyle='--', alpha=0.3, linewidth=1)
    ax.axvline(x=0, color='gray', linestyle='--', alpha=0.3, linewidth=1)
    ax.set_xlabel(x_name, fontsize=12, fontweight='bold')
    ax.set_ylabel(y_name, fontsize=12, fontweight='bold')
    ax.set_title(f'{x_name} vs {y_name}', fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.2)

    plt.tight_layout()
    return fig, ax


def plot_factor_vs_covariate(result: FactorResult,
                             factor: Union[int, str],
                             covariate: str,
                             metadata: pd.DataFrame,
                             dot_size: float = 30,
                             figsize: Tuple[int, int] = (8, 6)):
    """
    Factor scores against a continuous covariate, with Pearson r.

    Samples without a covariate value are left out.

    Returns
    -------
    fig, ax : matplotlib figure and axis
    """
    name = _factor_name(result, factor)
    df = _scores_with_metadata(result, metadata, [covariate])
    df = df[[name, covariate]].apply(pd.to_numeric, errors='coerce').dropna()
    if len(df) < 3:
        raise ValueError(
            f"Need at least 3 samples with numeric '{covariate}', found {len(df)}"
        )

    r, p = pearsonr(df[covariate], df[name])

    fig, ax = plt.subplots(figsize=figsize)
    sns.regplot(data=df, x=covariate, y=name, ax=ax,
                scatter_kws={'s': dot_size, 'alpha': 0.7, 'edgecolor': 'black'},
                line_kws={'color': 'gray', 'linestyle': '--'})

    ax.set_xlabel(covariate, fontsize=12, fontweight='bold')
    ax.set_ylabel(name, fontsize=12, fontweight='bold')
    ax.set_title(f'{name} vs {covariate}', fontsize=14, fontweight='bold')
    ax.text(0.02, 0.98, f'r = {r:.3f}, p = {p:.2g}, n = {len(df)}',
            transform=ax.transAxes, fontsize=10, verticalalignment='top',
            bbox=dict(boxstyle='round', facecolor='white', alpha=0.8))
    ax.grid(alpha=0.2)

    plt.tight_layout()
    return fig, ax


def plot_weights(result: FactorResult,
                 view: str,
                 factor: Union[int, str] = 1,
                 top_n: int = 10,
                 figsize: Tuple[int, int] = (8, 6)):
    """
    Top feature weights of one view on one factor.

    Returns
    -------
    fig, ax : matplotlib figure and axis
    """
    if view not in result.weights:
        raise KeyError(f"View '{view}' not found. Available: {result.views}")

    name = _factor_name(result, factor)
    top = result.top_weights(view, factor=name, n=top_n).iloc[::-1]

    fig, ax = plt.subplots(figsize=figsize)
    colors = ['#d62728' if w > 0 else '#1f77b4' for w in top['Weight']]
    ax.barh(range(len(top)), top['Weight'], color=colors, alpha=0.8,
            edgecolor='black', linewidth=1)
    ax.set_yticks(range(len(top)))
    ax.set_yticklabels(top['Feature'], fontsize=9)
    ax.axvline(x=0, color='black', linewidth=0.8)

    ax.set_xlabel('Weight', fontsize=12, fontweight='bold')
    ax.set_title(f'Top weights: {view}, {name}', fontsize=14, fontweight='bold')
    ax.grid(axis='x', alpha=0.3)

    plt.tight_layout()
    return fig, ax
