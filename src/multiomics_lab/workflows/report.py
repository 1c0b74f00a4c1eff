"""
Report workflows.

Complete pipelines for the two multi-omics reports: a supervised
discriminant report (block PLS-DA and sparse block PLS-DA) and an
unsupervised factor report (MOFA+ plus clinical covariates). Each report
runs load -> fit -> join -> render in order; every step returns its output
and nothing is shared between report instances.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from multiomics_lab.config import SECTIONS, merge_config
from multiomics_lab.data.loader import fetch_table, load_cohort
from multiomics_lab.data.multiblock import MultiBlockData
from multiomics_lab.exceptions import ConfigurationError
from multiomics_lab.io.persistence import (
    save_discriminant_tables,
    save_factor_model,
    write_clinical_table,
    write_table
)
from multiomics_lab.join.clinical import JoinReport, clean_clinical, join_clinical
from multiomics_lab.methods.block_plsda import BlockPLSDA, DiscriminantResult
from multiomics_lab.methods.factor_analysis import FactorAnalysis, FactorResult
from multiomics_lab.plotting import discriminant_plots, factor_plots
from multiomics_lab.preprocessing.assay_preprocessor import AssayPreprocessor
from multiomics_lab.utils.visualization import close_figures, save_publication_figure


ReportResults = Dict[str, Any]


def _banner(title: str):
    print(f"\n{'='*60}")
    print(title)
    print(f"{'='*60}")


class ReportWorkflow:
    """
    Shared steps of the report workflows.

    Subclasses implement ``fit``, ``render`` and ``run_full_report``.
    """

    def __init__(self, config: Optional[Dict[str, Dict]] = None, preprocess: bool = True):
        """
        Initialize the workflow.

        Parameters
        ----------
        config : dict, optional
            {section: overrides} for the 'preprocessing', 'diablo' and
            'mofa' sections (the output of :func:`load_config` works as is)
        preprocess : bool
            Run AssayPreprocessor on every block after loading
        """
        config = config or {}
        unknown = sorted(set(config) - set(SECTIONS))
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {unknown}")
        self.config = {name: merge_config(defaults, config.get(name))
                       for name, defaults in SECTIONS.items()}
        self.preprocess = preprocess
        self.preprocessor = None
        self.results: ReportResults = {}

    def load(self,
             cohort: Optional[MultiBlockData] = None,
             directory: Optional[Union[str, Path]] = None,
             align: bool = True) -> MultiBlockData:
        """
        Load and preprocess the cohort.

        Parameters
        ----------
        cohort : MultiBlockData, optional
            In-memory cohort
        directory : str or Path, optional
            Cohort directory for :func:`load_cohort` (used if ``cohort`` is None)
        align : bool
            Subset a loaded directory to shared samples

        Returns
        -------
        MultiBlockData
            Cohort ready for analysis
        """
        _banner("LOADING DATA")

        if cohort is None:
            if directory is None:
                raise ValueError("Either cohort or directory is required")
            cohort = load_cohort(directory, align=align)

        print(cohort.get_summary().to_string(index=False))

        if self.preprocess:
            self.preprocessor = AssayPreprocessor(self.config['preprocessing'])
            blocks = self.preprocessor.preprocess_blocks(cohort.blocks)
            cohort = MultiBlockData(blocks=blocks, labels=cohort.labels, name=cohort.name)
            print("\nPreprocessing Log:")
            self.preprocessor.print_log()

        self.results['data'] = cohort
        return cohort

    def figures(self) -> Dict[str, Any]:
        """All figures produced so far, keyed without the 'fig_' prefix."""
        return {key[len('fig_'):]: value for key, value in self.results.items()
                if key.startswith('fig_')}

    def _save_figures(self, output_dir: Path, dpi: int = 300):
        for name, fig in self.figures().items():
            save_publication_figure(fig, output_dir / f'{name}.png', dpi=dpi)

    def close(self):
        """Close every figure held by this report."""
        close_figures(self.figures())


class DiscriminantReport(ReportWorkflow):
    """
    Supervised multi-block discriminant report.

    Pipeline:
    1. Load and preprocess the blocks
    2. Fit block PLS-DA (all features)
    3. Fit sparse block PLS-DA when keepX is configured
    4. Render sample, loading, correlation circle and block correlation plots
    """

    def fit(self, data: MultiBlockData, keepX: Optional[Dict[str, List[int]]] = None,
            key: str = 'model') -> DiscriminantResult:
        """
        Fit one discriminant model with the 'diablo' configuration.

        Parameters
        ----------
        data : MultiBlockData
            Labelled cohort
        keepX : dict, optional
            Overrides the configured keepX (None means full model)
        key : str
            Name under which the result is stored in ``results``
        """
        mode = 'SPARSE BLOCK PLS-DA' if keepX else 'BLOCK PLS-DA'
        _banner(f"FITTING {mode}")

        params = dict(self.config['diablo'])
        params['keepX'] = keepX
        model = BlockPLSDA(**params)
        result = model.fit(data).result_

        print(f"Components: {result.n_components}")
        for block in result.block_names:
            ev = ', '.join(f'{v:.3f}' for v in result.explained_variance[block])
            print(f"  {block}: explained variance [{ev}]")
        print("\nBlock correlations (component 1):")
        print(result.block_correlations(1).round(3).to_string())

        self.results[key] = result
        return result

    def render(self, result: DiscriminantResult, prefix: str = '') -> Dict[str, Any]:
        """
        Render the standard plots for one model.

        Returns
        -------
        dict
            {figure_name: fig}
        """
        _banner("RENDERING PLOTS")

        figures = {}
        if result.n_components >= 2:
            fig, _ = discriminant_plots.plot_indiv(result, ellipse=True)
            figures['indiv'] = fig
            fig, _ = discriminant_plots.plot_var(result)
            figures['var'] = fig
        fig, _ = discriminant_plots.plot_block_correlations(result)
        figures['block_correlations'] = fig
        for block in result.block_names:
            fig, _ = discriminant_plots.plot_loadings(result, block, comp=1, top_n=20)
            figures[f'loadings_{block}'] = fig

        for name, fig in figures.items():
            self.results[f'fig_{prefix}{name}'] = fig
        print(f"Rendered {len(figures)} figures")
        return figures

    def run_full_report(self,
                        cohort: Optional[MultiBlockData] = None,
                        directory: Optional[Union[str, Path]] = None,
                        keepX: Optional[Dict[str, List[int]]] = None) -> ReportResults:
        """
        Run the complete discriminant report.

        Parameters
        ----------
        cohort : MultiBlockData, optional
            In-memory labelled cohort
        directory : str or Path, optional
            Cohort directory (used if ``cohort`` is None)
        keepX : dict, optional
            Features to keep per block per component for the sparse model;
            defaults to the configured keepX, and no sparse model is fitted
            when neither is set

        Returns
        -------
        dict
            'data', 'model', 'sparse_model' (if fitted), 'top_features'
            and figures under 'fig_*' keys
        """
        data = self.load(cohort=cohort, directory=directory)

        result = self.fit(data, keepX=None, key='model')
        self.render(result)

        keepX = keepX if keepX is not None else self.config['diablo']['keepX']
        if keepX:
            sparse = self.fit(data, keepX=keepX, key='sparse_model')
            self.render(sparse, prefix='sparse_')
            selected = pd.concat(
                [sparse.top_features(block, comp=h, n=len(sparse.loadings[block]))
                 .assign(Component=h)
                 for block in sparse.block_names
                 for h in range(1, sparse.n_components + 1)],
                ignore_index=True
            )
            self.results['top_features'] = selected
        else:
            self.results['top_features'] = pd.concat(
                [result.top_features(block, comp=1, n=20) for block in result.block_names],
                ignore_index=True
            )

        _banner("DISCRIMINANT REPORT COMPLETE")
        return self.results

    def save_results(self, output_dir: Union[str, Path]):
        """
        Save tables and figures.

        Parameters
        ----------
        output_dir : str or Path
            Output directory
        """
        output_dir = Path(output_dir)

        for key in ('model', 'sparse_model'):
            if key in self.results:
                save_discriminant_tables(self.results[key], output_dir / key)

        if 'top_features' in self.results:
            write_table(self.results['top_features'], output_dir / 'top_features.csv',
                        index=False)

        self._save_figures(output_dir)
        print(f"\nResults saved to: {output_dir}")


class FactorReport(ReportWorkflow):
    """
    Unsupervised factor report.

    Pipeline:
    1. Load and preprocess the views
    2. Train MOFA+ and persist the training artifact and the model
    3. Join factor scores with clinical metadata
    4. Render variance explained, factor and weight plots
    """

    def fit(self, data: MultiBlockData, output_dir: Union[str, Path]) -> FactorResult:
        """
        Train the factor model.

        Writes ``model.hdf5`` (training artifact) and ``model.joblib``
        (serialised FactorResult) under ``output_dir``.
        """
        _banner("TRAINING FACTOR MODEL")

        output_dir = Path(output_dir)
        cfg = self.config['mofa']
        print(f"Factors: {cfg['factors']}, convergence mode: {cfg['convergence_mode']}, "
              f"seed: {cfg['seed']}")

        result = FactorAnalysis(cfg).fit(data, output_dir / 'model.hdf5')
        save_factor_model(result, output_dir / 'model.joblib')

        print(f"ELBO recorded at {int((~pd.isna(result.elbo)).sum())} iterations")
        print("\nVariance explained per view (%):")
        print(result.variance_explained_total.round(2).to_string())

        self.results['model'] = result
        return result

    def join(self,
             result: FactorResult,
             clinical: pd.DataFrame,
             id_column: Optional[str] = None,
             pattern: Optional[str] = None,
             columns: Optional[List[str]] = None,
             normalize_scores: bool = False) -> JoinReport:
        """Join factor scores with clinical metadata; see :func:`join_clinical`."""
        _banner("JOINING CLINICAL METADATA")

        report = join_clinical(result.factors, clinical, id_column=id_column,
                               pattern=pattern, normalize_scores=normalize_scores,
                               columns=columns)
        print(report.summary())
        if report.unmatched:
            print(f"  Unmatched samples: {report.unmatched[:10]}")
        if report.duplicated_keys:
            print(f"  Duplicated clinical keys (first record used): "
                  f"{report.duplicated_keys[:10]}")

        self.results['join'] = report
        self.results['clinical'] = clean_clinical(clinical, id_column=id_column,
                                                  pattern=pattern, columns=columns)
        return report

    def render(self,
               result: FactorResult,
               metadata: Optional[pd.DataFrame] = None,
               color_by: Optional[str] = None,
               covariate: Optional[str] = None,
               n_factors: int = 3) -> Dict[str, Any]:
        """
        Render the standard factor plots.

        Parameters
        ----------
        result : FactorResult
            Trained model
        metadata : pd.DataFrame, optional
            Sample covariates indexed like the factor scores
        color_by : str, optional
            Categorical covariate for factor plots
        covariate : str, optional
            Continuous covariate plotted against Factor1
        n_factors : int
            Number of leading factors to show

        Returns
        -------
        dict
            {figure_name: fig}
        """
        _banner("RENDERING PLOTS")

        shown = list(range(1, min(n_factors, result.n_factors) + 1))
        figures = {}

        fig, _ = factor_plots.plot_variance_explained(result)
        figures['variance_explained'] = fig
        fig, _ = factor_plots.plot_variance_explained(result, plot_total=True)
        figures['variance_explained_total'] = fig
        fig, _ = factor_plots.plot_factor_cor(result)
        figures['factor_correlations'] = fig

        fig, _ = factor_plots.plot_factor(result, shown, color_by=color_by, group_by=color_by,
                                          metadata=metadata, dot_size=5,
                                          dodge=color_by is not None,
                                          add_violin=color_by is not None)
        figures['factor_values'] = fig
        if result.n_factors >= 2:
            fig, _ = factor_plots.plot_factors(result, 1, 2, color_by=color_by,
                                               metadata=metadata, dot_size=4)
            figures['factors_1_2'] = fig
        if covariate is not None:
            fig, _ = factor_plots.plot_factor_vs_covariate(result, 1, covariate, metadata)
            figures[f'factor1_vs_{covariate}'] = fig

        for view in result.views:
            fig, _ = factor_plots.plot_weights(result, view, factor=1, top_n=10)
            figures[f'weights_{view}'] = fig

        for name, fig in figures.items():
            self.results[f'fig_{name}'] = fig
        print(f"Rendered {len(figures)} figures")
        return figures

    def run_full_report(self,
                        output_dir: Union[str, Path],
                        cohort: Optional[MultiBlockData] = None,
                        directory: Optional[Union[str, Path]] = None,
                        clinical: Optional[pd.DataFrame] = None,
                        clinical_url: Optional[str] = None,
                        id_column: Optional[str] = None,
                        pattern: Optional[str] = None,
                        columns: Optional[List[str]] = None,
                        color_by: Optional[str] = None,
                        covariate: Optional[str] = None) -> ReportResults:
        """
        Run the complete factor report.

        Parameters
        ----------
        output_dir : str or Path
            Where the training artifact and model are written
        cohort : MultiBlockData, optional
            In-memory cohort
        directory : str or Path, optional
            Cohort directory (used if ``cohort`` is None)
        clinical : pd.DataFrame, optional
            Clinical table
        clinical_url : str, optional
            Clinical table location, fetched when ``clinical`` is None
        id_column, pattern, columns
            Passed to :func:`join_clinical`
        color_by, covariate : str, optional
            Covariates used in the plots

        Returns
        -------
        dict
            'data', 'model', 'join', 'clinical' (when clinical data is given)
            and figures under 'fig_*' keys
        """
        output_dir = Path(output_dir)
        data = self.load(cohort=cohort, directory=directory)
        result = self.fit(data, output_dir)

        if clinical is None and clinical_url is not None:
            clinical = fetch_table(clinical_url, destination=output_dir / 'clinical_raw.tsv')

        metadata = None
        if clinical is not None:
            report = self.join(result, clinical, id_column=id_column, pattern=pattern,
                               columns=columns)
            metadata = report.table
        elif color_by is not None or covariate is not None:
            raise ValueError("Clinical data is required to plot covariates")

        self.render(result, metadata=metadata, color_by=color_by, covariate=covariate)

        _banner("FACTOR REPORT COMPLETE")
        return self.results

    def save_results(self, output_dir: Union[str, Path]):
        """
        Save tables and figures.

        Parameters
        ----------
        output_dir : str or Path
            Output directory
        """
        output_dir = Path(output_dir)

        if 'model' in self.results:
            result = self.results['model']
            write_table(result.factors, output_dir / 'factors.csv')
            write_table(result.variance_explained, output_dir / 'variance_explained.csv')
            for view, weights in result.weights.items():
                write_table(weights, output_dir / f'weights_{view}.csv')

        if 'join' in self.results:
            write_table(self.results['join'].table, output_dir / 'factors_clinical.csv')
        if 'clinical' in self.results:
            clinical = self.results['clinical']
            write_clinical_table(clinical[~clinical.index.duplicated(keep='first')],
                                 output_dir / 'clinical.csv')

        self._save_figures(output_dir)
        print(f"\nResults saved to: {output_dir}")
