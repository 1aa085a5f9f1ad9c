"""Desired-state containers passed between components and the reconcile engine."""

import copy
from dataclasses import dataclass
from enum import Enum
from io import StringIO
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ruamel.yaml import YAML


class Lifecycle(str, Enum):
    """Who owns a child object.

    MANAGED objects are created, updated and deleted by the engine.
    REFERRED objects are owned by someone else and are only read.
    """

    MANAGED = "managed"
    REFERRED = "referred"


@dataclass
class ManagedObject:
    """A Kubernetes manifest tagged with its lifecycle.

    Attributes:
        obj: Manifest as a plain dict (``apiVersion``, ``kind``, ``metadata``...)
        lifecycle: Whether the engine owns the object or only reads it
    """

    obj: Dict[str, Any]
    lifecycle: Lifecycle = Lifecycle.MANAGED

    @property
    def kind(self) -> str:
        return self.obj.get("kind", "")

    @property
    def api_version(self) -> str:
        return self.obj.get("apiVersion", "")

    @property
    def name(self) -> str:
        return self.obj.get("metadata", {}).get("name", "")

    @property
    def namespace(self) -> Optional[str]:
        return self.obj.get("metadata", {}).get("namespace")

    @property
    def labels(self) -> Dict[str, str]:
        return self.obj.get("metadata", {}).get("labels") or {}

    @property
    def key(self) -> Tuple[str, str]:
        return (self.kind, self.name)


class ObjectSet:
    """Unordered collection of ManagedObjects keyed by (kind, name).

    Adding an object whose key is already present replaces the earlier entry,
    so the union of two sets never holds two objects with the same identity.
    Iteration follows insertion order to keep rendered output stable.

    Example:
        >>> objects = ObjectSet()
        >>> objects.add(ManagedObject(obj={"kind": "Secret", "metadata": {"name": "a"}}))
        >>> len(objects)
        1
    """

    def __init__(self, objects: Optional[List[ManagedObject]] = None) -> None:
        self._objects: Dict[Tuple[str, str], ManagedObject] = {}
        if objects:
            self.add(*objects)

    def add(self, *objects: ManagedObject) -> "ObjectSet":
        for obj in objects:
            self._objects[obj.key] = obj
        return self

    def union(self, other: "ObjectSet") -> "ObjectSet":
        """Return a new set holding the objects of both sets."""
        merged = ObjectSet(list(self))
        merged.add(*other)
        return merged

    def get(self, kind: str, name: str) -> Optional[ManagedObject]:
        return self._objects.get((kind, name))

    def of_kind(self, kind: str) -> List[ManagedObject]:
        return [obj for obj in self if obj.kind == kind]

    def managed(self) -> List[ManagedObject]:
        return [obj for obj in self if obj.lifecycle == Lifecycle.MANAGED]

    def referred(self) -> List[ManagedObject]:
        return [obj for obj in self if obj.lifecycle == Lifecycle.REFERRED]

    def keys(self) -> List[Tuple[str, str]]:
        return list(self._objects)

    def __iter__(self) -> Iterator[ManagedObject]:
        return iter(list(self._objects.values()))

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def to_serializable(self) -> List[Dict[str, Any]]:
        """Convert the set to a JSON-serializable list.

        Returns:
            List of dicts with ``lifecycle`` and a deep copy of ``object``
        """
        return [
            {"lifecycle": obj.lifecycle.value, "object": copy.deepcopy(obj.obj)}
            for obj in self
        ]

    def to_yaml(self, include_referred: bool = False) -> str:
        """Render the manifests as a multi-document YAML stream.

        Args:
            include_referred: Also render REFERRED objects (default: False,
                              they are not the operator's to apply)

        Returns:
            YAML text, one document per object
        """
        yaml = YAML()
        yaml.default_flow_style = False
        yaml.width = 4096
        docs = [
            copy.deepcopy(obj.obj)
            for obj in self
            if include_referred or obj.lifecycle == Lifecycle.MANAGED
        ]
        stream = StringIO()
        yaml.dump_all(docs, stream)
        return stream.getvalue()


@dataclass(frozen=True)
class Observable:
    """Describes how the engine should fetch live objects of one kind.

    Either ``labels`` is set (list every object of the kind matching the
    selector) or ``name`` is set (get one object by name).

    Attributes:
        kind: Object kind, e.g. "StatefulSet"
        api_version: Object apiVersion, e.g. "apps/v1"
        namespace: Namespace to search
        labels: Label selector for list calls
        name: Object name for direct get calls
    """

    kind: str
    api_version: str
    namespace: Optional[str]
    labels: Optional[Tuple[Tuple[str, str], ...]] = None
    name: Optional[str] = None

    @property
    def selector(self) -> Dict[str, str]:
        return dict(self.labels or ())


def observables_from_objects(expected: ObjectSet) -> List[Observable]:
    """Derive the selectors the engine uses to fetch live objects.

    MANAGED objects produce one label-selector observable per kind, using the
    labels the builder stamped on them. REFERRED objects carry no labels of
    ours and are fetched by name.

    Args:
        expected: Desired object set for one component

    Returns:
        List of observables in first-seen order
    """
    observables: List[Observable] = []
    seen_kinds = set()
    for obj in expected:
        if obj.lifecycle == Lifecycle.REFERRED:
            observables.append(Observable(
                kind=obj.kind,
                api_version=obj.api_version,
                namespace=obj.namespace,
                name=obj.name,
            ))
            continue
        if obj.kind in seen_kinds:
            continue
        seen_kinds.add(obj.kind)
        observables.append(Observable(
            kind=obj.kind,
            api_version=obj.api_version,
            namespace=obj.namespace,
            labels=tuple(sorted(obj.labels.items())),
        ))
    return observables
