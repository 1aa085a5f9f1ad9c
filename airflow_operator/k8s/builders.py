"""Desired-state builders for the child objects of a root resource.

Each builder returns a fresh manifest dict (or a ManagedObject wrapping one);
nothing is shared between calls, so callers may mutate the result freely.
"""

import copy
import random
from typing import Any, Dict, List, Optional, Sequence

from airflow_operator.core.errors import ConfigurationError
from airflow_operator.core.passwords import random_alphanumeric_string
from airflow_operator.core.schema.objects import Lifecycle, ManagedObject
from airflow_operator.k8s.naming import rsrc_name
from airflow_operator.k8s.utils import encode_secret_value, get_pod_spec

MIN_AVAILABLE_ALL = "100%"
CLUSTER_ADMIN_ROLE = "cluster-admin"


def statefulset(
    root: Any,
    component: str,
    suffix: str,
    svc: bool,
    labels: Dict[str, str],
    replicas: Optional[int] = None,
) -> Dict[str, Any]:
    """StatefulSet skeleton for a component.

    The pod template inherits affinity and node selector from the root and
    carries the component labels so the selector matches its own pods.
    Containers and volumes are filled in by the caller.

    Args:
        root: AirflowBase or AirflowCluster
        component: Component tag, e.g. "mysql"
        suffix: Name suffix (usually "")
        svc: Whether the StatefulSet is governed by a Service of the same name
        labels: Component label set
        replicas: Pod count (omitted from the manifest when None)

    Returns:
        StatefulSet manifest dict
    """
    name = rsrc_name(root.name, component, suffix)
    meta = root.get_meta(name, labels)
    pod_spec: Dict[str, Any] = {"subdomain": name}
    if root.affinity:
        pod_spec["affinity"] = copy.deepcopy(root.affinity)
    if root.node_selector:
        pod_spec["nodeSelector"] = dict(root.node_selector)

    template_meta: Dict[str, Any] = {"labels": dict(labels)}
    if meta.get("annotations"):
        template_meta["annotations"] = dict(meta["annotations"])

    spec: Dict[str, Any] = {
        "serviceName": name if svc else "",
        "selector": {"matchLabels": dict(labels)},
        "template": {"metadata": template_meta, "spec": pod_spec},
    }
    if replicas is not None:
        spec["replicas"] = replicas
    return {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": meta,
        "spec": spec,
    }


def attach_data_volume(
    sts: Dict[str, Any],
    claim_template: Optional[Dict[str, Any]],
    default_name: str,
) -> str:
    """Give the StatefulSet its data volume.

    A persistent-volume-claim template is added to ``volumeClaimTemplates``;
    otherwise an ``emptyDir`` volume named ``default_name`` is added to the
    pod. Never both.

    Returns:
        Name to use in the container's volume mount

    Raises:
        ConfigurationError: If the claim template has no metadata.name
    """
    if claim_template is not None:
        vol_name = (claim_template.get("metadata") or {}).get("name")
        if not vol_name:
            raise ConfigurationError(
                "volume claim template requires metadata.name", "volumeClaimTemplate"
            )
        sts["spec"]["volumeClaimTemplates"] = [copy.deepcopy(claim_template)]
        return vol_name
    add_empty_dir(sts, default_name)
    return default_name


def add_empty_dir(sts: Dict[str, Any], vol_name: str) -> None:
    pod_spec = get_pod_spec(sts)
    pod_spec.setdefault("volumes", []).append({"name": vol_name, "emptyDir": {}})


def service(
    root: Any,
    component: str,
    name: str,
    labels: Dict[str, str],
    ports: Sequence[Dict[str, Any]],
) -> ManagedObject:
    """Cluster-internal Service selecting the component's pods.

    Args:
        name: Service name; empty means ``<root>-<component>``
    """
    if not name:
        name = rsrc_name(root.name, component)
    return ManagedObject(
        obj={
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": root.get_meta(name, labels),
            "spec": {
                "ports": [dict(port) for port in ports],
                "selector": dict(labels),
            },
        },
        lifecycle=Lifecycle.MANAGED,
    )


def pod_disruption_budget(
    root: Any, component: str, suffix: str, labels: Dict[str, str],
    min_available: str = MIN_AVAILABLE_ALL,
) -> ManagedObject:
    """PodDisruptionBudget forbidding voluntary eviction of the component's pods."""
    name = rsrc_name(root.name, component, suffix)
    return ManagedObject(
        obj={
            "apiVersion": "policy/v1",
            "kind": "PodDisruptionBudget",
            "metadata": root.get_meta(name, labels),
            "spec": {
                "minAvailable": min_available,
                "selector": {"matchLabels": dict(labels)},
            },
        },
        lifecycle=Lifecycle.MANAGED,
    )


def secret(
    root: Any,
    name: str,
    labels: Dict[str, str],
    keys: Sequence[str],
    rng: Optional[random.Random] = None,
) -> ManagedObject:
    """Secret holding freshly generated passwords under ``keys``.

    A new value is generated on every call; the diff policy never updates a
    live Secret, so the value written at creation is the one that stays.
    """
    return ManagedObject(
        obj={
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": root.get_meta(name, labels),
            "type": "Opaque",
            "data": {
                key: encode_secret_value(random_alphanumeric_string(rng=rng))
                for key in keys
            },
        },
        lifecycle=Lifecycle.MANAGED,
    )


def referred_secret(namespace: str, name: str) -> ManagedObject:
    """Externally provisioned Secret the operator only reads."""
    return ManagedObject(
        obj={
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": name, "namespace": namespace},
        },
        lifecycle=Lifecycle.REFERRED,
    )


def service_account(root: Any, name: str, labels: Dict[str, str]) -> ManagedObject:
    return ManagedObject(
        obj={
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": root.get_meta(name, labels),
        },
        lifecycle=Lifecycle.MANAGED,
    )


def role_binding(root: Any, name: str, labels: Dict[str, str]) -> ManagedObject:
    """Bind the service account ``name`` to the cluster-admin ClusterRole.

    The scheduler needs it to create and delete task pods.
    """
    return ManagedObject(
        obj={
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "RoleBinding",
            "metadata": root.get_meta(name, labels),
            "subjects": [
                {"kind": "ServiceAccount", "name": name, "namespace": root.namespace},
            ],
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": CLUSTER_ADMIN_ROLE,
            },
        },
        lifecycle=Lifecycle.MANAGED,
    )


def exec_probe(command: List[str], initial_delay: int, period: int, timeout: int) -> Dict[str, Any]:
    return {
        "exec": {"command": list(command)},
        "initialDelaySeconds": initial_delay,
        "periodSeconds": period,
        "timeoutSeconds": timeout,
    }


def managed(obj: Dict[str, Any]) -> ManagedObject:
    return ManagedObject(obj=obj, lifecycle=Lifecycle.MANAGED)
