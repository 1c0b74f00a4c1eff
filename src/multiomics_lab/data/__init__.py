# ============================================================================
# src/multiomics_lab/data/__init__.py
# ============================================================================
"""Data loading, alignment and sample id handling."""

from .multiblock import MultiBlockData, validate_alignment, align_blocks
from .loader import (
    load_assay_table,
    load_labels,
    load_cohort,
    fetch_table,
    blocks_from_frames
)
from .sample_ids import (
    SAMPLE_ID_PATTERNS,
    normalize_sample_id,
    normalize_sample_ids
)
from .synthetic import make_synthetic_cohort

__all__ = [
    'MultiBlockData',
    'validate_alignment',
    'align_blocks',
    'load_assay_table',
    'load_labels',
    'load_cohort',
    'fetch_table',
    'blocks_from_frames',
    'SAMPLE_ID_PATTERNS',
    'normalize_sample_id',
    'normalize_sample_ids',
    'make_synthetic_cohort'
]
