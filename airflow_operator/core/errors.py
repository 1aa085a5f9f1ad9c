"""Operator-specific exceptions for error handling."""

from typing import Optional


class OperatorError(Exception):
    """Base class for errors raised by the desired-state layer."""


class ConfigurationError(OperatorError):
    """Raised when a root resource spec cannot be turned into child objects.

    This exception covers declarations such as:
    - Both Git and GCS configured as the DAG source
    - An executor that needs a component the cluster does not declare
    - Unknown executor or database type values

    Attributes:
        message: Description of the problem
        field: Dotted path of the offending spec field (optional)
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        """Initialize ConfigurationError exception.

        Args:
            message: Error message describing the problem
            field: Dotted path of the offending spec field (optional)
        """
        super().__init__(message)
        self.field = field


class TypeMismatchError(OperatorError):
    """Raised when a component is handed a root resource of the wrong kind.

    A MySQL component only ever belongs to an AirflowBase, a Scheduler only to
    an AirflowCluster. Passing anything else is a programming error in the
    caller, not a user input problem.

    Attributes:
        expected: Kind the component is bound to
        actual: Kind (or type name) that was passed in
    """

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"expected {expected} root resource, got {actual}")
        self.expected = expected
        self.actual = actual


class ReconciliationError(OperatorError):
    """Opaque failure reported by the reconciliation engine.

    The engine wraps apply/get failures in this type before handing them to
    ``update_component_status`` so the status block records a stable reason.

    Attributes:
        message: Description of the failure
        component: Component tag the failure belongs to (optional)
    """

    def __init__(self, message: str, component: Optional[str] = None) -> None:
        super().__init__(message)
        self.component = component
