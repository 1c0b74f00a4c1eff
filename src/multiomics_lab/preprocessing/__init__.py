# ============================================================================
# src/multiomics_lab/preprocessing/__init__.py
# ============================================================================
"""Preprocessing of assay tables."""

from .assay_preprocessor import AssayPreprocessor

__all__ = ['AssayPreprocessor']
