"""Containers injected into Airflow StatefulSets: DAG sync and DB bootstrap.

DAG sync depends on the DAG source: Git runs ``git-sync``, GCS runs
``gcs-syncd``. A source with ``once`` set syncs in an init container that
blocks startup; otherwise the sync process runs as a sidecar.

The DB bootstrap init container creates the application database and user
declared in the scheduler spec, using the root credentials of the SQL
backend. Both the MySQL and Postgres scripts can run any number of times.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from airflow_operator.k8s.constants import (
    COMPONENT_SQL,
    DB_TYPE_POSTGRES,
    GIT_SYNC_DEST_DIR,
    SECRET_KEY_PASSWORD,
    SECRET_KEY_ROOT_PASSWORD,
    SQL_BOOTSTRAP_DB,
    SQL_BOOTSTRAP_USER,
)
from airflow_operator.k8s.env import require_scheduler, sql_secret_name, sql_service_name
from airflow_operator.k8s.naming import rsrc_name
from airflow_operator.k8s.resources import (
    AirflowCluster,
    DagSpec,
    GCSSpec,
    GitSpec,
)
from airflow_operator.k8s.utils import env_from_secret, env_value, get_pod_spec, helper_image_ref

logger = logging.getLogger(__name__)

GIT_SYNC_PORT = 2020
GIT_SYNC_ROOT = "/git"
GCS_SYNC_ROOT = "/home/airflow/gcs"

MYSQL_BOOTSTRAP_SCRIPT = """
mysql -uroot -h$(SQL_HOST) -p$(SQL_ROOT_PASSWORD) << EOSQL
CREATE DATABASE IF NOT EXISTS $(SQL_DB);
USE $(SQL_DB);
CREATE USER IF NOT EXISTS '$(SQL_USER)'@'%' IDENTIFIED BY '$(SQL_PASSWORD)';
GRANT ALL ON $(SQL_DB).* TO '$(SQL_USER)'@'%' ;
FLUSH PRIVILEGES;
EOSQL
"""

# psql has no CREATE DATABASE IF NOT EXISTS; look the objects up first
POSTGRES_BOOTSTRAP_SCRIPT = """
set -e
export PGPASSWORD=$(SQL_ROOT_PASSWORD)
PSQL="psql -h $(SQL_HOST) -U {user} -d {db}"
$PSQL -tAc "SELECT 1 FROM pg_database WHERE datname = '$(SQL_DB)'" | grep -q 1 || $PSQL -c "CREATE DATABASE $(SQL_DB)"
$PSQL -tAc "SELECT 1 FROM pg_roles WHERE rolname = '$(SQL_USER)'" | grep -q 1 || $PSQL -c "CREATE USER $(SQL_USER) WITH ENCRYPTED PASSWORD '$(SQL_PASSWORD)'"
$PSQL -c "GRANT ALL PRIVILEGES ON DATABASE $(SQL_DB) TO $(SQL_USER)"
""".format(user=SQL_BOOTSTRAP_USER, db=SQL_BOOTSTRAP_DB)


def git_sync_container(git: GitSpec, vol_name: str, image: str) -> Tuple[bool, Dict[str, Any]]:
    """git-sync container; returns (is_init, container)."""
    env = [
        env_value("GIT_SYNC_REPO", git.repo),
        env_value("GIT_SYNC_DEST", GIT_SYNC_DEST_DIR),
        env_value("GIT_SYNC_BRANCH", git.branch),
        env_value("GIT_SYNC_ONE_TIME", "true" if git.once else "false"),
        env_value("GIT_SYNC_REV", git.rev),
    ]
    if git.cred_secret_ref:
        env.extend([
            env_from_secret("GIT_PASSWORD", git.cred_secret_ref, SECRET_KEY_PASSWORD),
            env_value("GIT_USER", git.user),
        ])
    container = {
        "name": "git-sync",
        "image": image,
        "env": env,
        "command": ["/git-sync"],
        "ports": [{"name": "gitsync", "containerPort": GIT_SYNC_PORT}],
        "volumeMounts": [{"name": vol_name, "mountPath": GIT_SYNC_ROOT}],
    }
    return git.once, container


def gcs_sync_container(gcs: GCSSpec, vol_name: str, image: str) -> Tuple[bool, Dict[str, Any]]:
    """gcs-syncd container; returns (is_init, container)."""
    container = {
        "name": "gcs-syncd",
        "image": image,
        "env": [env_value("GCS_BUCKET", gcs.bucket)],
        "args": [GCS_SYNC_ROOT],
        "volumeMounts": [{"name": vol_name, "mountPath": GCS_SYNC_ROOT}],
    }
    return gcs.once, container


SyncBuilder = Callable[[Any, str, str], Tuple[bool, Dict[str, Any]]]

# source type -> (image key, builder)
_SYNC_BUILDERS: Dict[type, Tuple[str, SyncBuilder]] = {
    GitSpec: ("gitsync", git_sync_container),
    GCSSpec: ("gcssync", gcs_sync_container),
}


def dag_sync_container(
    dags: Optional[DagSpec], vol_name: str, images: Optional[Dict[str, str]] = None
) -> Optional[Tuple[bool, Dict[str, Any]]]:
    """Sync container for the configured DAG source, or None without one.

    ``images`` is the root's resolved helper image map; missing entries use
    the built-in images.

    Raises:
        ConfigurationError: If both Git and GCS are configured
    """
    if dags is None:
        return None
    source = dags.source()
    if source is None:
        return None
    image_key, build = _SYNC_BUILDERS[type(source)]
    return build(source, vol_name, helper_image_ref(images, image_key))


def add_airflow_containers(
    cluster: AirflowCluster,
    sts: Dict[str, Any],
    containers: List[Dict[str, Any]],
    vol_name: str,
) -> None:
    """Set the pod's containers, adding the DAG sync container where it belongs.

    Init containers are reset, so the result does not depend on what the
    StatefulSet held before.
    """
    pod_spec = get_pod_spec(sts)
    init_containers: List[Dict[str, Any]] = []
    containers = list(containers)
    sync = dag_sync_container(cluster.spec.dags, vol_name, cluster.helper_images)
    if sync is not None:
        is_init, container = sync
        if is_init:
            init_containers.append(container)
        else:
            containers.append(container)
    pod_spec["initContainers"] = init_containers
    pod_spec["containers"] = containers


def db_bootstrap_container(cluster: AirflowCluster) -> Dict[str, Any]:
    """Init container creating the scheduler's database and user.

    The root password comes from the base's ``<base>-sql`` Secret, the
    application password from the cluster's UI Secret.
    """
    db_type = cluster.spec.airflow_base_ref.db_type
    scheduler = require_scheduler(cluster)
    sql_root_secret = rsrc_name(cluster.spec.airflow_base_ref.name, COMPONENT_SQL)
    env = [
        env_from_secret("SQL_ROOT_PASSWORD", sql_root_secret, SECRET_KEY_ROOT_PASSWORD),
        env_value("SQL_DB", scheduler.db_name),
        env_value("SQL_USER", scheduler.db_user),
        env_from_secret("SQL_PASSWORD", sql_secret_name(cluster), SECRET_KEY_PASSWORD),
        env_value("SQL_HOST", sql_service_name(cluster)),
        env_value("DB_TYPE", db_type),
    ]
    if db_type == DB_TYPE_POSTGRES:
        name, script = "postgres-dbcreate", POSTGRES_BOOTSTRAP_SCRIPT
    else:
        name, script = "mysql-dbcreate", MYSQL_BOOTSTRAP_SCRIPT
    return {
        "name": name,
        "image": cluster.helper_image(db_type),
        "env": env,
        "command": ["/bin/bash"],
        "args": ["-c", script],
    }


def add_db_bootstrap_container(cluster: AirflowCluster, sts: Dict[str, Any]) -> None:
    """Prepend the DB bootstrap container so it runs before any DAG sync."""
    pod_spec = get_pod_spec(sts)
    pod_spec["initContainers"] = [db_bootstrap_container(cluster)] + pod_spec.get("initContainers", [])
    logger.debug("added %s bootstrap to %s", cluster.spec.airflow_base_ref.db_type,
                 sts["metadata"]["name"])
