"""Environment assembly for Airflow workload containers.

The env list depends only on the cluster spec: executor, DAG source, the
scheduler's database fields and the worker image. The same cluster always
yields the same list.
"""

import posixpath
from typing import Any, Dict, List

from airflow_operator.core.errors import ConfigurationError
from airflow_operator.k8s.constants import (
    AIRFLOW_DAGS_BASE,
    COMPONENT_REDIS,
    COMPONENT_SQL,
    COMPONENT_UI,
    DB_TYPE_MYSQL,
    DB_TYPE_POSTGRES,
    ENV_PREFIX_CORE,
    ENV_PREFIX_KUBERNETES,
    ENV_PREFIX_PROMETHEUS,
    EXECUTOR_CELERY,
    EXECUTOR_KUBERNETES,
    GCS_SYNC_DEST_DIR,
    GIT_SYNC_DEST_DIR,
    SECRET_KEY_PASSWORD,
)
from airflow_operator.k8s.naming import rsrc_name
from airflow_operator.k8s.resources import (
    AirflowCluster,
    GitSpec,
    SchedulerSpec,
    validate_cluster_spec,
)
from airflow_operator.k8s.utils import env_from_secret, env_value

SQL_PORTS = {DB_TYPE_MYSQL: "3306", DB_TYPE_POSTGRES: "5432"}
PROMETHEUS_LISTEN_ADDR = ":9112"


def sql_service_name(cluster: AirflowCluster) -> str:
    """Service fronting the SQL backend of the referenced AirflowBase."""
    return rsrc_name(cluster.spec.airflow_base_ref.name, COMPONENT_SQL)


def sql_secret_name(cluster: AirflowCluster) -> str:
    """Secret holding the application database password (owned by the UI)."""
    return rsrc_name(cluster.name, COMPONENT_UI)


def redis_name(cluster: AirflowCluster) -> str:
    """Name shared by the Redis Service and its password Secret."""
    return rsrc_name(cluster.name, COMPONENT_REDIS)


def dags_folder(cluster: AirflowCluster) -> str:
    """DAGs folder seen by Airflow containers for the configured DAG source."""
    dags = cluster.spec.dags
    if dags is None:
        return AIRFLOW_DAGS_BASE
    source = dags.source()
    if source is None:
        return AIRFLOW_DAGS_BASE
    dest = GIT_SYNC_DEST_DIR if isinstance(source, GitSpec) else GCS_SYNC_DEST_DIR
    # subdir is relative to the sync dest even when written with a leading slash
    return posixpath.join(AIRFLOW_DAGS_BASE, dest, dags.dag_subdir.lstrip("/"))


def require_scheduler(cluster: AirflowCluster) -> SchedulerSpec:
    if cluster.spec.scheduler is None:
        raise ConfigurationError(
            "scheduler spec is required for database settings", "spec.scheduler"
        )
    return cluster.spec.scheduler


def airflow_env(cluster: AirflowCluster, sa_name: str) -> List[Dict[str, Any]]:
    """Compose the env list for Airflow containers (UI, scheduler, worker, flower).

    Always present: ``EXECUTOR``, ``SQL_PASSWORD`` (secret), the DAGs folder,
    ``SQL_HOST``, ``SQL_USER``, ``SQL_DB``, ``DB_TYPE``. The Kubernetes
    executor adds the worker pod settings and, with a Git DAG source, the git
    fields and ``sa_name`` as the worker service account. The Celery executor
    adds the Redis host and password.

    Args:
        cluster: AirflowCluster being reconciled
        sa_name: Service account name handed to worker pods

    Returns:
        Ordered list of env var dicts; consumers treat it as a set

    Raises:
        ConfigurationError: If the executor needs a component the cluster
                            does not declare, or the DAG source is ambiguous
    """
    sp = cluster.spec
    validate_cluster_spec(sp)
    scheduler = require_scheduler(cluster)

    env = [
        env_value("EXECUTOR", sp.executor),
        env_from_secret("SQL_PASSWORD", sql_secret_name(cluster), SECRET_KEY_PASSWORD),
        env_value(ENV_PREFIX_CORE + "DAGS_FOLDER", dags_folder(cluster)),
        env_value("SQL_HOST", sql_service_name(cluster)),
        env_value("SQL_USER", scheduler.db_user),
        env_value("SQL_DB", scheduler.db_name),
        env_value("DB_TYPE", sp.airflow_base_ref.db_type),
    ]

    if sp.executor == EXECUTOR_KUBERNETES:
        if sp.worker is None:
            raise ConfigurationError(
                "Kubernetes executor requires a worker spec for task pods", "spec.worker"
            )
        env.extend([
            env_value(ENV_PREFIX_KUBERNETES + "WORKER_CONTAINER_REPOSITORY", sp.worker.resolved_image()),
            env_value(ENV_PREFIX_KUBERNETES + "WORKER_CONTAINER_TAG", sp.worker.resolved_version()),
            env_value(ENV_PREFIX_KUBERNETES + "WORKER_CONTAINER_IMAGE_PULL_POLICY", "IfNotPresent"),
            env_value(ENV_PREFIX_KUBERNETES + "DELETE_WORKER_PODS", "True"),
            env_value(ENV_PREFIX_KUBERNETES + "NAMESPACE", cluster.namespace),
        ])
        git = sp.dags.git if sp.dags is not None else None
        if git is not None:
            env.extend([
                env_value(ENV_PREFIX_KUBERNETES + "GIT_REPO", git.repo),
                env_value(ENV_PREFIX_KUBERNETES + "GIT_BRANCH", git.branch),
                env_value(ENV_PREFIX_KUBERNETES + "GIT_SUBPATH", sp.dags.dag_subdir),
                env_value(ENV_PREFIX_KUBERNETES + "WORKER_SERVICE_ACCOUNT_NAME", sa_name),
            ])
            if git.cred_secret_ref:
                env.extend([
                    env_from_secret("GIT_PASSWORD", git.cred_secret_ref, SECRET_KEY_PASSWORD),
                    env_value("GIT_USER", git.user),
                ])

    if sp.executor == EXECUTOR_CELERY:
        if sp.redis is None:
            raise ConfigurationError(
                "Celery executor requires a redis spec", "spec.redis"
            )
        env.extend([
            env_from_secret("REDIS_PASSWORD", redis_name(cluster), SECRET_KEY_PASSWORD),
            env_value("REDIS_HOST", redis_name(cluster)),
        ])
    return env


def prometheus_env(cluster: AirflowCluster) -> List[Dict[str, Any]]:
    """Env for the metrics exporter running next to the scheduler."""
    validate_cluster_spec(cluster.spec)
    scheduler = require_scheduler(cluster)
    db_type = cluster.spec.airflow_base_ref.db_type
    apd = ENV_PREFIX_PROMETHEUS + "DATABASE_"
    return [
        env_value(ENV_PREFIX_PROMETHEUS + "LISTEN_ADDR", PROMETHEUS_LISTEN_ADDR),
        env_value(apd + "BACKEND", db_type),
        env_value(apd + "HOST", sql_service_name(cluster)),
        env_value(apd + "PORT", SQL_PORTS[db_type]),
        env_value(apd + "USER", scheduler.db_user),
        env_from_secret(apd + "PASSWORD", sql_secret_name(cluster), SECRET_KEY_PASSWORD),
        env_value(apd + "NAME", scheduler.db_name),
    ]
