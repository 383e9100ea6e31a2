"""Custom exception hierarchy for the MICAA pricing engine.

Lookup misses (unknown material reference, unconfigured city) are not
exceptions: they come back as ``PricingWarning`` records on the result.
"""

from __future__ import annotations


class MicaaError(Exception):
    """Base exception for all MICAA errors."""


class ValidationError(MicaaError, ValueError):
    """Raised when pricing input is malformed (bad activity id, bad factor)."""


class NotFoundError(MicaaError, LookupError):
    """Raised when a requested activity or project does not exist."""


class PersistenceError(MicaaError):
    """Raised when the store is unreachable or a write cannot complete.

    Nothing is committed when this is raised.
    """


class OperationTimeoutError(PersistenceError):
    """Raised when a bulk operation exceeds its deadline and was rolled back."""
