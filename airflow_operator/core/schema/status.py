"""Per-component status folded from reconciliation outcomes."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CONDITION_READY = "Ready"
CONDITION_FAILED = "Failed"


@dataclass(frozen=True)
class ObjectReference:
    """Pointer to a reconciled child object."""

    kind: str
    name: str
    namespace: Optional[str] = None
    api_version: Optional[str] = None

    @classmethod
    def from_manifest(cls, manifest: Dict[str, Any]) -> "ObjectReference":
        metadata = manifest.get("metadata", {})
        return cls(
            kind=manifest.get("kind", ""),
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace"),
            api_version=manifest.get("apiVersion"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {"kind": self.kind, "name": self.name}
        if self.namespace is not None:
            result["namespace"] = self.namespace
        if self.api_version is not None:
            result["apiVersion"] = self.api_version
        return result


@dataclass
class ComponentStatus:
    """Status of one component on a root resource.

    Attributes:
        condition: "Ready", "Failed", or None before the first outcome
        reason: Short machine-readable cause (error class name on failure)
        message: Human-readable detail, the error text on failure
        objects: References to the objects reconciled on the last success
    """

    condition: Optional[str] = None
    reason: str = ""
    message: str = ""
    objects: List[ObjectReference] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition": self.condition,
            "reason": self.reason,
            "message": self.message,
            "objects": [ref.to_dict() for ref in self.objects],
        }


@dataclass
class RootStatus:
    """Status block of an AirflowBase or AirflowCluster.

    Components are recorded independently; updating one never resets
    another, so an unconfigured component keeps whatever was recorded before.
    """

    components: Dict[str, ComponentStatus] = field(default_factory=dict)

    def update_status(
        self,
        component: str,
        reconciled: List[Dict[str, Any]],
        err: Optional[BaseException] = None,
    ) -> ComponentStatus:
        """Fold a reconciliation outcome into the component's status.

        Never raises: failures are recorded, not propagated. A success with
        no objects for a component that has no entry yet records nothing, so
        a suppressed component does not hold back ``ready``.

        Args:
            component: Component tag, e.g. "mysql"
            reconciled: Manifests of the objects the engine reconciled
            err: Error seen while reconciling, if any

        Returns:
            The updated ComponentStatus
        """
        if err is None and not reconciled and component not in self.components:
            # nothing declared and nothing recorded: stay out of the rollup
            return ComponentStatus()

        current = self.components.setdefault(component, ComponentStatus())
        if err is not None:
            current.condition = CONDITION_FAILED
            current.reason = type(err).__name__
            current.message = str(err)
            logger.debug("component %s failed: %s", component, err)
            return current

        current.objects = [ObjectReference.from_manifest(obj) for obj in reconciled]
        if current.objects:
            current.condition = CONDITION_READY
            current.reason = ""
            current.message = ""
        return current

    @property
    def ready(self) -> bool:
        """True when every recorded component is Ready."""
        return bool(self.components) and all(
            status.condition == CONDITION_READY for status in self.components.values()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ready": self.ready,
            "components": {name: status.to_dict() for name, status in self.components.items()},
        }
