"""
Discriminant report example.

This script demonstrates:
1. Loading a labelled multi-block cohort
2. Block PLS-DA on all features
3. Sparse block PLS-DA with fixed keepX counts
4. Saving tables and figures

Pass a cohort directory (block_<name>.csv files plus labels.csv) as the
first argument; without one a synthetic cohort is used.
"""

import sys

from multiomics_lab.data import make_synthetic_cohort
from multiomics_lab.workflows import DiscriminantReport


# Features kept per block on each component, tuned by hand
KEEPX = {
    'mRNA': [25, 25],
    'miRNA': [20, 20],
    'protein': [15, 15],
}


def main(directory=None, output_dir='results/diablo_report'):
    print("\n" + "="*80)
    print("DISCRIMINANT REPORT")
    print("="*80)

    report = DiscriminantReport({'diablo': {'n_components': 2, 'design': 0.1}})

    if directory is None:
        cohort = make_synthetic_cohort(n_samples=60,
                                       block_sizes={'mRNA': 200, 'miRNA': 184, 'protein': 142},
                                       n_classes=3,
                                       class_names=['Basal', 'Her2', 'LumA'])
        results = report.run_full_report(cohort=cohort, keepX=KEEPX)
    else:
        results = report.run_full_report(directory=directory, keepX=KEEPX)

    sparse = results['sparse_model']
    for block in sparse.block_names:
        print(f"\nSelected {block} features (component 1):")
        print(sparse.top_features(block, comp=1, n=10).to_string(index=False))

    report.save_results(output_dir)
    report.close()


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
