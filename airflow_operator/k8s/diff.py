"""Update policy for live child objects.

``differs`` decides per kind whether the engine should push ``expected`` over
``observed``. Secrets and ServiceAccounts are never updated once created, so
generated credentials and identities stay stable. For Services and
PodDisruptionBudgets the fields the cluster owns are copied from the live
object first, so they are not seen as drift.
"""

import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

IMMUTABLE_KINDS = frozenset({"Secret", "ServiceAccount"})


def _copy_resource_version(expected: Dict[str, Any], observed: Dict[str, Any]) -> None:
    version = observed.get("metadata", {}).get("resourceVersion")
    if version is not None:
        expected.setdefault("metadata", {})["resourceVersion"] = version


def differs(expected: Dict[str, Any], observed: Dict[str, Any]) -> bool:
    """Return True if the live object needs to be updated.

    Args:
        expected: Desired manifest; may be modified in place
        observed: Live manifest as read from the cluster

    Returns:
        False for Secret and ServiceAccount, True for every other kind
    """
    kind = expected.get("kind")
    if kind in IMMUTABLE_KINDS:
        logger.debug("not updating %s %s", kind, expected.get("metadata", {}).get("name"))
        return False
    if kind == "Service":
        _copy_resource_version(expected, observed)
        cluster_ip = observed.get("spec", {}).get("clusterIP")
        if cluster_ip is not None:
            expected.setdefault("spec", {})["clusterIP"] = cluster_ip
    elif kind == "PodDisruptionBudget":
        _copy_resource_version(expected, observed)
    return True


def always_differs(expected: Dict[str, Any], observed: Dict[str, Any]) -> bool:
    """Reconcile unconditionally."""
    return True
