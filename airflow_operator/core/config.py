"""Process-level settings for the operator.

Settings live in an optional JSON file (``$AIRFLOW_OPERATOR_CONFIG``, or
``config.json`` in the working directory). Any nested key can also be set
through an environment variable named after the key path, e.g.
``images.mysql.version`` -> ``IMAGES_MYSQL_VERSION``. The file wins over the
environment; both win over the caller's default.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

CONFIG_PATH_ENV = "AIRFLOW_OPERATOR_CONFIG"
DEFAULT_CONFIG_PATH = "config.json"


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Read the settings file.

    A missing or malformed file yields an empty dict so every lookup falls
    back to the environment and then to defaults.

    Args:
        config_path: Path to the JSON file (default: $AIRFLOW_OPERATOR_CONFIG
                     or "config.json")

    Returns:
        Parsed settings, or {} when unavailable
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))
    if not path.is_file():
        return {}
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def env_key(keys: List[str]) -> str:
    """Environment variable name for a key path."""
    return "_".join(k.upper() for k in keys)


def _lookup(config: Dict[str, Any], keys: List[str]) -> Any:
    node: Any = config
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def get_config_value(
    keys: List[str], default: Any = None, config: Optional[Dict[str, Any]] = None
) -> Any:
    """Resolve one setting.

    Args:
        keys: Key path, e.g. ["images", "redis", "image"]
        default: Value used when neither the file nor the environment set it
        config: Settings dict (read with load_config() if omitted)

    Returns:
        Setting value, or default
    """
    value = _lookup(load_config() if config is None else config, keys)
    if value is not None:
        return value
    return os.environ.get(env_key(keys), default)
