"""
Factor report example.

This script demonstrates:
1. Training MOFA+ on a multi-block cohort
2. Fetching a clinical table and joining it to the factor scores
3. Plotting factors against clinical covariates
4. Saving the training artifact, the model and the figures

Usage:
    python example_mofa_report.py <cohort_dir> <clinical_url_or_path>
"""

import sys

from multiomics_lab.data import make_synthetic_cohort
from multiomics_lab.workflows import FactorReport


def main(directory=None, clinical_url=None, output_dir='results/mofa_report'):
    print("\n" + "="*80)
    print("FACTOR REPORT")
    print("="*80)

    report = FactorReport({
        'mofa': {'factors': 5, 'convergence_mode': 'fast', 'seed': 42,
                 'require_convergence': False}
    })

    if directory is None:
        cohort = make_synthetic_cohort(n_samples=60,
                                       block_sizes={'mRNA': 200, 'miRNA': 184, 'protein': 142},
                                       n_classes=3)
        results = report.run_full_report(output_dir, cohort=cohort)
    else:
        results = report.run_full_report(output_dir, directory=directory,
                                         clinical_url=clinical_url,
                                         id_column='bcr_patient_barcode',
                                         pattern='tcga_barcode',
                                         columns=['subtype', 'age_at_diagnosis'],
                                         color_by='subtype',
                                         covariate='age_at_diagnosis')
        print(results['join'].summary())

    model = results['model']
    for view in model.views:
        print(f"\nTop {view} weights on Factor1:")
        print(model.top_weights(view, factor=1, n=10).to_string(index=False))

    report.save_results(output_dir)
    report.close()


if __name__ == "__main__":
    main(*sys.argv[1:3])
