# ============================================================================
# src/multiomics_lab/io/__init__.py
# ============================================================================
"""Reading and writing of report artifacts."""

from .persistence import (
    write_table,
    read_table,
    write_clinical_table,
    save_factor_model,
    load_factor_model,
    read_factor_artifact,
    save_discriminant_tables
)

__all__ = [
    'write_table',
    'read_table',
    'write_clinical_table',
    'save_factor_model',
    'load_factor_model',
    'read_factor_artifact',
    'save_discriminant_tables'
]
