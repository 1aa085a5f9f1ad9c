"""
Core schema definitions for component specs, object sets, status and violations.

These protocols and dataclasses are shared by every component and form the
contract with the external reconcile engine.
"""

from airflow_operator.core.schema.component import ComponentSpec
from airflow_operator.core.schema.objects import (
    Lifecycle,
    ManagedObject,
    ObjectSet,
    Observable,
    observables_from_objects,
)
from airflow_operator.core.schema.status import ComponentStatus, ObjectReference, RootStatus
from airflow_operator.core.schema.violation import Violation

__all__ = [
    "ComponentSpec",
    "Lifecycle",
    "ManagedObject",
    "ObjectSet",
    "Observable",
    "observables_from_objects",
    "ComponentStatus",
    "ObjectReference",
    "RootStatus",
    "Violation",
]
