# ============================================================================
# src/multiomics_lab/join/__init__.py
# ============================================================================
"""Joining analysis outputs with clinical metadata."""

from .clinical import JoinReport, clean_clinical, export_clinical_subset, join_clinical

__all__ = [
    'JoinReport',
    'clean_clinical',
    'export_clinical_subset',
    'join_clinical'
]
