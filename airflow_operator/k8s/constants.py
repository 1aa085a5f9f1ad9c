"""K8s constants used across the builder and component modules.

This module contains label keys, component tags, image defaults and well-known
paths shared by several modules, kept here to avoid circular imports.
"""

CONTROLLER_VERSION = "0.1"

API_GROUP = "airflow.k8s.io"
API_VERSION = "v1alpha1"

KIND_AIRFLOW_BASE = "AirflowBase"
KIND_AIRFLOW_CLUSTER = "AirflowCluster"

# Label keys and values
LABEL_AIRFLOW_CR = "airflow-cr"
VALUE_AIRFLOW_CR_BASE = "airflow-base"
VALUE_AIRFLOW_CR_CLUSTER = "airflow-cluster"
LABEL_AIRFLOW_CR_NAME = "airflow-cr-name"
LABEL_AIRFLOW_COMPONENT = "airflow-component"
LABEL_CONTROLLER_VERSION = "airflow-controller-version"
LABEL_APP = "app"

# Component tags
COMPONENT_MYSQL = "mysql"
COMPONENT_POSTGRES = "postgres"
COMPONENT_SQLPROXY = "sqlproxy"
COMPONENT_SQL = "sql"
COMPONENT_UI = "airflowui"
COMPONENT_NFS = "nfs"
COMPONENT_REDIS = "redis"
COMPONENT_SCHEDULER = "scheduler"
COMPONENT_WORKER = "worker"
COMPONENT_FLOWER = "flower"

# Executors
EXECUTOR_KUBERNETES = "Kubernetes"
EXECUTOR_CELERY = "Celery"

DB_TYPE_MYSQL = "mysql"
DB_TYPE_POSTGRES = "postgres"

POD_MANAGEMENT_POLICY_PARALLEL = "Parallel"
CLEANUP_FINALIZER = "sigs.k8s.io/cleanup"

# Paths
GIT_SYNC_DEST_DIR = "gitdags"
GCS_SYNC_DEST_DIR = "dags"
AIRFLOW_HOME = "/usr/local/airflow"
AIRFLOW_DAGS_BASE = AIRFLOW_HOME + "/dags/"

ENV_PREFIX_KUBERNETES = "AIRFLOW__KUBERNETES__"
ENV_PREFIX_CORE = "AIRFLOW__CORE__"
ENV_PREFIX_PROMETHEUS = "AIRFLOW_PROMETHEUS_"

# Bootstrap database and user created by the SQL images themselves
SQL_BOOTSTRAP_DB = "testdb"
SQL_BOOTSTRAP_USER = "airflow"

SECRET_KEY_PASSWORD = "password"
SECRET_KEY_ROOT_PASSWORD = "rootpassword"

# Built-in image defaults, overridable through config.json or the environment
DEFAULT_IMAGES = {
    "mysql": {"image": "mysql", "version": "5.7"},
    "postgres": {"image": "postgres", "version": "9.5"},
    "sqlproxy": {"image": "gcr.io/cloud-airflow-releases/gcloud-proxy", "version": "1.11"},
    "nfs": {"image": "k8s.gcr.io/volume-nfs", "version": "0.8"},
    "redis": {"image": "redis", "version": "4.0"},
    "airflow": {"image": "gcr.io/airflow-operator/airflow", "version": "1.10.2"},
    "gitsync": {"image": "gcr.io/google_containers/git-sync", "version": "v3.0.1"},
    "gcssync": {"image": "gcr.io/cloud-airflow-releases/gcs-syncd",
                "version": "cloud_composer_service_2018-05-23-RC0"},
    "metrics": {"image": "pbweb/airflow-prometheus-exporter", "version": "latest"},
}
