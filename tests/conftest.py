"""
Pytest configuration and shared fixtures for multiomics_lab tests.
"""

import matplotlib
matplotlib.use('Agg')

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from multiomics_lab.data import make_synthetic_cohort
from multiomics_lab.methods import FactorResult


@pytest.fixture
def cohort():
    """Ten samples, blocks A/B/C with 5/8/3 features, two classes."""
    return make_synthetic_cohort(n_samples=10, block_sizes={'A': 5, 'B': 8, 'C': 3},
                                 n_classes=2, seed=42)


@pytest.fixture
def sparse_keepx():
    return {'A': [2, 2], 'B': [3, 1], 'C': [1, 1]}


@pytest.fixture
def factor_result():
    """Hand-built factor model over the synthetic sample ids."""
    rng = np.random.default_rng(0)
    samples = [f'S{i + 1}' for i in range(10)]
    factor_names = ['Factor1', 'Factor2', 'Factor3']

    factors = pd.DataFrame(rng.normal(size=(10, 3)), index=samples, columns=factor_names)
    factors.index.name = 'sample'
    weights = {
        'A': pd.DataFrame(rng.normal(size=(5, 3)), index=[f'A_f{j}' for j in range(1, 6)],
                          columns=factor_names),
        'B': pd.DataFrame(rng.normal(size=(8, 3)), index=[f'B_f{j}' for j in range(1, 9)],
                          columns=factor_names),
    }
    r2 = pd.DataFrame([[20.0, 10.0], [5.0, 15.0], [1.0, 2.0]],
                      index=factor_names, columns=['A', 'B'])

    return FactorResult(
        factors=factors,
        weights=weights,
        variance_explained=r2,
        variance_explained_total=r2.sum(axis=0),
        elbo=np.array([-1000.0, -900.0, -899.0]),
        group='group1',
    )


@pytest.fixture
def clinical_table():
    """Clinical records keyed by TCGA-style barcodes for S1..S8 with one duplicate."""
    ids = [f'TCGA-AA-S{i}' for i in range(1, 9)] + ['TCGA-AA-S3']
    return pd.DataFrame({
        'bcr_patient_barcode': ids,
        'subtype': ['LumA', 'LumB', 'Her2', 'Basal', 'LumA', 'LumB', 'Her2', 'Basal', 'LumA'],
        'age': [45, 52, 61, 38, 70, 55, 49, 66, 61],
    })


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')
