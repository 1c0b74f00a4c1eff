"""
Figure output helpers shared by the plotting layer and report workflows.
"""

from pathlib import Path
from typing import Union

import matplotlib.pyplot as plt

from multiomics_lab.exceptions import ArtifactIOError


def save_publication_figure(fig, filename: Union[str, Path], dpi: int = 300):
    """
    Save figure in publication quality.

    Parameters
    ----------
    fig : matplotlib figure
        Figure to save
    filename : str or Path
        Output filename; the format follows the extension
    dpi : int
        Resolution
    """
    filename = Path(filename)
    try:
        filename.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(filename, dpi=dpi, bbox_inches='tight',
                    facecolor='white', edgecolor='none')
    except OSError as e:
        raise ArtifactIOError(f"Cannot write figure {filename}: {e}") from e
    print(f"Figure saved: {filename}")


def close_figures(figures):
    """Close every figure in a {name: fig} mapping."""
    for fig in figures.values():
        plt.close(fig)
