"""Kubernetes adapter for the Airflow operator.

This module provides the Airflow-specific desired state:
- AirflowBase / AirflowCluster: root resources and their component specs
- Components: MySQL, Postgres, SQLProxy, NFS, UI, Redis, Scheduler, Worker, Flower
- Builders: StatefulSets, Services, Secrets, RBAC and the injected sidecars
- SchemaValidator: checks generated manifests against the K8s OpenAPI schema
"""

from airflow_operator.k8s.components import (
    COMPONENT_TYPES,
    base_components,
    cluster_components,
    update_component_status,
)
from airflow_operator.k8s.resources import (
    AirflowBase,
    AirflowCluster,
    load_resource,
    resource_from_manifest,
)

__all__ = [
    "AirflowBase",
    "AirflowCluster",
    "COMPONENT_TYPES",
    "base_components",
    "cluster_components",
    "load_resource",
    "resource_from_manifest",
    "update_component_status",
]
