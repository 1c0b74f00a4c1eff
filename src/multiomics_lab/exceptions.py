"""
Exception types raised by multiomics_lab.

Each subclasses the builtin a caller would otherwise expect, so existing
``except ValueError`` / ``except OSError`` handlers keep working.
"""


class DataAlignmentError(ValueError):
    """Sample identifiers across blocks, labels or metadata do not line up."""


class ConfigurationError(ValueError):
    """Analysis configuration is malformed (e.g. keepX length vs n_components)."""


class ConvergenceError(RuntimeError):
    """Factor training stopped at maxiter without meeting its tolerance."""


class ArtifactIOError(OSError):
    """A persisted artifact could not be written or read."""


class RBackendError(RuntimeError):
    """The external R process failed."""
