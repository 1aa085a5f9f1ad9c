"""Deterministic child-object naming, identity labels and owner references."""

from typing import Any, Dict, Optional

from airflow_operator.k8s.constants import (
    API_GROUP,
    API_VERSION,
    CONTROLLER_VERSION,
    LABEL_AIRFLOW_COMPONENT,
    LABEL_AIRFLOW_CR,
    LABEL_AIRFLOW_CR_NAME,
    LABEL_APP,
    LABEL_CONTROLLER_VERSION,
)


def rsrc_name(name: str, component: str, suffix: str = "") -> str:
    """Name of a child object: ``<root>-<component><suffix>``.

    Example:
        >>> rsrc_name("prod", "mysql")
        'prod-mysql'
    """
    return name + "-" + component + suffix


def owner_reference(root: Any) -> Dict[str, Any]:
    """Controller owner reference pointing at ``root`` with its declared kind."""
    return {
        "apiVersion": API_GROUP + "/" + API_VERSION,
        "kind": root.KIND,
        "name": root.name,
        "uid": root.metadata.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


def build_metadata(root: Any, name: str, labels: Dict[str, str]) -> Dict[str, Any]:
    """Object metadata for a child of ``root``.

    Namespace is inherited from the root, annotations come from the root
    spec and the single owner reference makes the child cascade-delete with
    the root.

    Args:
        root: AirflowBase or AirflowCluster
        name: Child object name
        labels: Label set for the child

    Returns:
        Metadata dict; label and annotation dicts are fresh copies
    """
    meta: Dict[str, Any] = {
        "name": name,
        "namespace": root.namespace,
        "labels": dict(labels),
        "ownerReferences": [owner_reference(root)],
    }
    if root.annotations:
        meta["annotations"] = dict(root.annotations)
    return meta


def component_labels(
    root: Any, component: str, extra: Optional[Dict[str, str]] = None
) -> Dict[str, str]:
    """Label set for one component of ``root``.

    Root spec labels come first, then caller labels, then the CR identity
    labels, which always win so selectors built from them match exactly the
    objects the builders produce.
    """
    labels: Dict[str, str] = dict(root.labels or {})
    labels.update(extra or {})
    labels.update({
        LABEL_APP: "airflow",
        LABEL_AIRFLOW_CR: root.CR_NAME,
        LABEL_AIRFLOW_CR_NAME: root.name,
        LABEL_AIRFLOW_COMPONENT: component,
        LABEL_CONTROLLER_VERSION: CONTROLLER_VERSION,
    })
    return labels
