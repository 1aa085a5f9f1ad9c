"""Shared fixtures: root resources parsed from CR manifests."""

import os
import random

import pytest

from airflow_operator.core.config import CONFIG_PATH_ENV
from airflow_operator.k8s.resources import load_resource

BASE_MYSQL_YAML = """apiVersion: airflow.k8s.io/v1alpha1
kind: AirflowBase
metadata:
  name: pc-base
  namespace: airflow
  uid: 1111-2222
spec:
  labels:
    team: data
  annotations:
    owner: data-platform
  mysql:
    operator: false
  storage:
    version: "0.8"
"""

BASE_POSTGRES_YAML = """apiVersion: airflow.k8s.io/v1alpha1
kind: AirflowBase
metadata:
  name: pg-base
  namespace: airflow
spec:
  postgres:
    operator: false
"""

CLUSTER_CELERY_YAML = """apiVersion: airflow.k8s.io/v1alpha1
kind: AirflowCluster
metadata:
  name: pc-cluster
  namespace: airflow
  uid: 3333-4444
spec:
  executor: Celery
  redis:
    additionalArgs: "--maxmemory 256mb"
  scheduler:
    version: "1.10.2"
  ui:
    replicas: 1
    version: "1.10.2"
  worker:
    replicas: 2
    version: "1.10.2"
  flower:
    replicas: 1
    version: "1.10.2"
  dags:
    dagSubdir: "airflow/example_dags/"
    git:
      repo: "https://github.com/apache/incubator-airflow/"
      once: true
  airflowBaseRef:
    name: pc-base
"""

CLUSTER_K8S_YAML = """apiVersion: airflow.k8s.io/v1alpha1
kind: AirflowCluster
metadata:
  name: k8s-cluster
  namespace: airflow
spec:
  executor: Kubernetes
  scheduler:
    dbName: airflowdb
    dbUser: airflowuser
  ui:
    replicas: 1
  worker:
    image: my-registry/airflow
    version: "2.0"
  dags:
    dagSubdir: example_dags
    git:
      repo: https://example.com/dags.git
      branch: main
      user: bot
      credSecretRef:
        name: git-creds
  airflowBaseRef:
    name: pc-base
    dbType: postgres
"""


@pytest.fixture(autouse=True)
def no_config_file(monkeypatch, tmp_path):
    """Keep image defaults independent of any config.json on the machine."""
    monkeypatch.setenv(CONFIG_PATH_ENV, str(tmp_path / "missing.json"))
    for key in [k for k in os.environ if k.startswith("IMAGES_")]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def base():
    return load_resource(BASE_MYSQL_YAML)


@pytest.fixture
def pg_base():
    return load_resource(BASE_POSTGRES_YAML)


@pytest.fixture
def celery_cluster():
    return load_resource(CLUSTER_CELERY_YAML)


@pytest.fixture
def k8s_cluster():
    return load_resource(CLUSTER_K8S_YAML)
