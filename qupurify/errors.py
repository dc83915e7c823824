"""QuPurify error taxonomy.

Every error is a caller contract violation detected at the point of misuse.
Nothing inside the package catches these; the host application decides
whether to display them or treat them as fatal.

© 2026 QuPurify contributors | MIT License
"""
from __future__ import annotations


class QuPurifyError(Exception):
    """Base class for all QuPurify errors."""


class DimensionMismatch(QuPurifyError, ValueError):
    """Matrix operation on incompatible shapes."""


class NotSquare(DimensionMismatch):
    """Trace / unitary check on a non-square matrix."""


class InvalidParameter(QuPurifyError, ValueError):
    """Out-of-range channel strength, qubit index or qubit-count dimension."""


class InvalidConfiguration(QuPurifyError, ValueError):
    """SimulationParameters outside their documented domain."""


class DivisionByZero(QuPurifyError, ZeroDivisionError):
    """Complex division by a (numerically) zero denominator."""
