"""ComponentSpec protocol implemented by every deployable component."""

import random
from typing import Any, Dict, List, Optional, Protocol

from airflow_operator.core.schema.objects import ObjectSet, Observable
from airflow_operator.core.schema.status import RootStatus


class ComponentSpec(Protocol):
    """Uniform operation set the reconcile engine drives per component.

    A component (MySQL, Redis, Scheduler, ...) turns a root resource into the
    child objects that should exist for it, tells the engine how to find the
    live copies, decides whether a live copy needs an update and records the
    outcome in the root's status.

    Every operation is synchronous and free of side effects on the cluster,
    and safe to repeat with identical inputs: the engine retries on conflict.

    Example:
        for tag, spec in cluster_components(cluster):
            if spec is None:
                continue
            expected = spec.expected_resources(cluster, labels)
            selectors = spec.observables(expected)
            ...
    """

    COMPONENT: str

    def expected_resources(
        self, root: Any, labels: Dict[str, str], rng: Optional[random.Random] = None
    ) -> ObjectSet:
        """Compute the full desired object set for this component.

        Args:
            root: Root resource the component belongs to
            labels: Caller labels merged into every object's label set
            rng: Generator for secret material (shared locked source if omitted)

        Returns:
            ObjectSet, empty when the component is suppressed by a spec flag

        Raises:
            TypeMismatchError: If root is not the kind this component binds to
            ConfigurationError: If the spec combination is unsupported
        """
        ...

    def observables(self, expected: ObjectSet) -> List[Observable]:
        """Derive selectors used to fetch live objects of the expected kinds."""
        ...

    def differs(self, expected: Dict[str, Any], observed: Dict[str, Any]) -> bool:
        """Return True when the live object must be updated to ``expected``.

        May copy infrastructure-assigned fields from ``observed`` into
        ``expected`` before answering.
        """
        ...

    def mutate(self, expected: ObjectSet, observed: ObjectSet) -> ObjectSet:
        """Adjust the desired state using observed state before apply."""
        ...

    def finalize(self, root: Any, observed: ObjectSet) -> None:
        """Run cleanup before the root resource is deleted.

        Raising blocks deletion of the root resource.
        """
        ...

    def update_component_status(
        self,
        root: Any,
        status: RootStatus,
        reconciled: List[Dict[str, Any]],
        err: Optional[BaseException],
    ) -> None:
        """Fold reconciled objects and any error into ``status``. Never raises."""
        ...
