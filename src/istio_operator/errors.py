"""Exception types raised by the reconciliation core."""

from __future__ import annotations


class OperatorError(Exception):
    """Base class for operator errors."""


class ValidationError(OperatorError):
    """The IstioRevision spec is invalid and cannot be reconciled as-is."""


class ValuesDecodeError(OperatorError):
    """A values path holds a value of an unexpected type."""

    def __init__(self, path: str, expected: str, actual: object):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{path}: expected {expected}, got {type(actual).__name__} ({actual!r})"
        )


class ChartError(OperatorError):
    """A chart could not be installed, upgraded or uninstalled."""

    def __init__(self, chart: str, operation: str, detail: str):
        self.chart = chart
        self.operation = operation
        self.detail = detail
        super().__init__(f"failed to {operation} chart {chart}: {detail}")


class ReadinessError(OperatorError):
    """Reading a managed workload failed for a reason other than not-found."""
