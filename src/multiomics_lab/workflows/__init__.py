# ============================================================================
# src/multiomics_lab/workflows/__init__.py
# ============================================================================
"""Complete report workflows."""

from .report import DiscriminantReport, FactorReport, ReportResults, ReportWorkflow

__all__ = ['DiscriminantReport', 'FactorReport', 'ReportResults', 'ReportWorkflow']
