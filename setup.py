"""
Setup file for multiomics_lab package.

Installation:
    pip install -e .

Or for development:
    pip install -e .[dev]
"""

from setuptools import setup, find_packages
import pathlib

# Read the README file
here = pathlib.Path(__file__).parent.resolve()
long_description = (here / 'README.md').read_text(encoding='utf-8')

setup(
    name='multiomics_lab',
    version='0.1.0',
    description='Multi-omics integration reports: block PLS-DA, MOFA+ and clinical joins',
    long_description=long_description,
    long_description_content_type='text/markdown',

    # Package discovery
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    package_data={'multiomics_lab': ['r/*.R']},

    # Python version requirement
    python_requires='>=3.8',

    # Dependencies
    install_requires=[
        'numpy>=1.21.0',
        'pandas>=1.3.0',
        'matplotlib>=3.4.0',
        'seaborn>=0.11.0',
        'scikit-learn>=1.0.0',
        'scipy>=1.7.0',
        'h5py>=3.0',
        'joblib>=1.0',
        'mofapy2>=0.7',
    ],

    # Optional dependencies for development
    extras_require={
        'dev': [
            'pytest>=6.0',
            'pytest-cov>=2.0',
        ],
    },

    # Package classifiers
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Bio-Informatics',
        'Programming Language :: Python :: 3',
    ],

    # Keywords
    keywords='omics, multi-omics, diablo, mofa, integration, cancer',
)
