"""Pod-spec accessors, env var helpers, Secret encoding and image defaults.

Accessors read nested StatefulSet fields without KeyErrors on partial
manifests. Image defaults come from the DEFAULT_IMAGES table, overridable
through settings (``images.<component>.image|version``).
"""

import base64
from typing import Any, Dict, List, Optional

from airflow_operator.core.config import get_config_value
from airflow_operator.k8s.constants import DEFAULT_IMAGES


def get_pod_spec(manifest: dict) -> dict:
    return manifest.get("spec", {}).get("template", {}).get("spec", {})


def get_containers(manifest: dict) -> list:
    """Main containers of a StatefulSet's pod template ([] when absent)."""
    return get_pod_spec(manifest).get("containers", [])


def get_init_containers(manifest: dict) -> list:
    return get_pod_spec(manifest).get("initContainers", [])


def find_container(manifest: dict, name: str) -> Optional[dict]:
    """Find a container or init container by name."""
    for container in get_init_containers(manifest) + get_containers(manifest):
        if container.get("name") == name:
            return container
    return None


def env_value(name: str, value: str) -> Dict[str, Any]:
    return {"name": name, "value": value}


def env_from_secret(name: str, secret_name: str, key: str) -> Dict[str, Any]:
    """Build an env var sourced from one key of a Secret."""
    return {
        "name": name,
        "valueFrom": {"secretKeyRef": {"name": secret_name, "key": key}},
    }


def env_to_dict(env: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Index an env list by name: plain values map to the string, secret refs to the ref dict."""
    result: Dict[str, Any] = {}
    for var in env:
        if "valueFrom" in var:
            result[var["name"]] = var["valueFrom"]["secretKeyRef"]
        else:
            result[var["name"]] = var.get("value")
    return result


def encode_secret_value(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def decode_secret_value(manifest: dict, key: str) -> str:
    """Decode one base64 ``data`` entry of a Secret manifest."""
    return base64.b64decode(manifest["data"][key]).decode("utf-8")


def default_image(component: str, config: Optional[Dict[str, Any]] = None) -> str:
    """Image repository used when a component spec leaves ``image`` empty.

    Looks up ``images.<component>.image`` in config.json (or the
    IMAGES_<COMPONENT>_IMAGE environment variable) before the built-in table.
    """
    builtin = DEFAULT_IMAGES[component]["image"]
    return get_config_value(["images", component, "image"], builtin, config)


def default_version(component: str, config: Optional[Dict[str, Any]] = None) -> str:
    """Image tag used when a component spec leaves ``version`` empty."""
    builtin = DEFAULT_IMAGES[component]["version"]
    return get_config_value(["images", component, "version"], builtin, config)


def image_ref(component: str, config: Optional[Dict[str, Any]] = None) -> str:
    """Full ``image:tag`` reference for a component, honouring settings."""
    return "%s:%s" % (default_image(component, config), default_version(component, config))


def builtin_image_ref(component: str) -> str:
    """``image:tag`` from the built-in table, ignoring settings."""
    entry = DEFAULT_IMAGES[component]
    return entry["image"] + ":" + entry["version"]


def helper_image_ref(images: Optional[Dict[str, str]], component: str) -> str:
    """Pick a helper container image from refs resolved at parse time.

    Args:
        images: component -> ``image:tag`` map recorded on the root resource
        component: Key in DEFAULT_IMAGES, e.g. "gitsync"

    Returns:
        The recorded ref, or the built-in one when nothing was recorded
    """
    if images and images.get(component):
        return images[component]
    return builtin_image_ref(component)
