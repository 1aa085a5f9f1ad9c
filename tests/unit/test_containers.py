"""Tests for DAG sync and DB bootstrap containers."""

import pytest

from airflow_operator.core.errors import ConfigurationError
from airflow_operator.k8s import builders
from airflow_operator.k8s.containers import (
    POSTGRES_BOOTSTRAP_SCRIPT,
    add_airflow_containers,
    add_db_bootstrap_container,
    dag_sync_container,
    db_bootstrap_container,
)
from airflow_operator.k8s.resources import DagSpec, GCSSpec, GitSpec
from airflow_operator.k8s.utils import env_to_dict, get_containers, get_init_containers


class TestDagSync:
    """Tests for dag_sync_container."""

    def test_git_once_is_init(self):
        dags = DagSpec(git=GitSpec(repo="r", once=True))
        is_init, container = dag_sync_container(dags, "dags-data")
        assert is_init
        assert container["name"] == "git-sync"
        env = env_to_dict(container["env"])
        assert env["GIT_SYNC_REPO"] == "r"
        assert env["GIT_SYNC_DEST"] == "gitdags"
        assert env["GIT_SYNC_BRANCH"] == "master"
        assert env["GIT_SYNC_ONE_TIME"] == "true"
        assert env["GIT_SYNC_REV"] == "HEAD"
        assert container["ports"] == [{"name": "gitsync", "containerPort": 2020}]
        assert container["volumeMounts"] == [{"name": "dags-data", "mountPath": "/git"}]

    def test_git_credentials(self):
        dags = DagSpec(git=GitSpec(repo="r", user="bot", cred_secret_ref="creds"))
        is_init, container = dag_sync_container(dags, "v")
        assert not is_init
        env = env_to_dict(container["env"])
        assert env["GIT_PASSWORD"] == {"name": "creds", "key": "password"}
        assert env["GIT_USER"] == "bot"

    def test_gcs_sidecar(self):
        is_init, container = dag_sync_container(DagSpec(gcs=GCSSpec(bucket="b")), "v")
        assert not is_init
        assert container["name"] == "gcs-syncd"
        assert env_to_dict(container["env"]) == {"GCS_BUCKET": "b"}
        assert container["volumeMounts"][0]["mountPath"] == "/home/airflow/gcs"

    def test_resolved_images(self):
        images = {"gitsync": "mirror/git-sync:v4", "gcssync": "mirror/gcs-syncd:1"}
        _, git = dag_sync_container(DagSpec(git=GitSpec(repo="r")), "v", images)
        _, gcs = dag_sync_container(DagSpec(gcs=GCSSpec(bucket="b")), "v", images)
        assert git["image"] == "mirror/git-sync:v4"
        assert gcs["image"] == "mirror/gcs-syncd:1"

    def test_builtin_image_without_resolved_map(self):
        _, container = dag_sync_container(DagSpec(git=GitSpec(repo="r")), "v")
        assert container["image"] == "gcr.io/google_containers/git-sync:v3.0.1"

    def test_no_source(self):
        assert dag_sync_container(None, "v") is None
        assert dag_sync_container(DagSpec(), "v") is None

    def test_both_sources_rejected(self):
        dags = DagSpec(git=GitSpec(repo="r"), gcs=GCSSpec(bucket="b"))
        with pytest.raises(ConfigurationError):
            dag_sync_container(dags, "v")


class TestAddAirflowContainers:
    """Tests for add_airflow_containers."""

    def test_once_sync_goes_to_init(self, celery_cluster):
        sts = builders.statefulset(celery_cluster, "worker", "", True, {})
        add_airflow_containers(celery_cluster, sts, [{"name": "worker"}], "dags-data")
        assert [c["name"] for c in get_init_containers(sts)] == ["git-sync"]
        assert [c["name"] for c in get_containers(sts)] == ["worker"]

    def test_sidecar_sync(self, celery_cluster):
        celery_cluster.spec.dags.git.once = False
        sts = builders.statefulset(celery_cluster, "worker", "", True, {})
        add_airflow_containers(celery_cluster, sts, [{"name": "worker"}], "dags-data")
        assert get_init_containers(sts) == []
        assert [c["name"] for c in get_containers(sts)] == ["worker", "git-sync"]

    def test_repeated_calls_do_not_accumulate(self, celery_cluster):
        sts = builders.statefulset(celery_cluster, "worker", "", True, {})
        add_airflow_containers(celery_cluster, sts, [{"name": "worker"}], "dags-data")
        add_airflow_containers(celery_cluster, sts, [{"name": "worker"}], "dags-data")
        assert len(get_init_containers(sts)) == 1


class TestDBBootstrap:
    """Tests for the database bootstrap init container."""

    def test_mysql_variant(self, celery_cluster):
        container = db_bootstrap_container(celery_cluster)
        assert container["name"] == "mysql-dbcreate"
        assert container["image"] == "mysql:5.7"
        env = env_to_dict(container["env"])
        assert env["SQL_ROOT_PASSWORD"] == {"name": "pc-base-sql", "key": "rootpassword"}
        assert env["SQL_PASSWORD"] == {"name": "pc-cluster-airflowui", "key": "password"}
        assert env["SQL_DB"] == "airflow"
        assert env["SQL_USER"] == "airflow"
        assert env["SQL_HOST"] == "pc-base-sql"
        assert env["DB_TYPE"] == "mysql"
        assert "CREATE DATABASE IF NOT EXISTS" in container["args"][1]

    def test_postgres_variant_is_idempotent(self, k8s_cluster):
        container = db_bootstrap_container(k8s_cluster)
        assert container["name"] == "postgres-dbcreate"
        assert container["image"] == "postgres:9.5"
        script = container["args"][1]
        assert script == POSTGRES_BOOTSTRAP_SCRIPT
        assert "pg_database" in script and "|| $PSQL -c \"CREATE DATABASE" in script
        assert "pg_roles" in script and "|| $PSQL -c \"CREATE USER" in script

    def test_image_from_recorded_helper_images(self, celery_cluster):
        celery_cluster.helper_images["mysql"] = "mirror/mysql:8"
        assert db_bootstrap_container(celery_cluster)["image"] == "mirror/mysql:8"

    def test_prepended_before_sync(self, celery_cluster):
        sts = builders.statefulset(celery_cluster, "airflowui", "", False, {})
        add_airflow_containers(celery_cluster, sts, [{"name": "airflow-ui"}], "dags-data")
        add_db_bootstrap_container(celery_cluster, sts)
        assert [c["name"] for c in get_init_containers(sts)] == ["mysql-dbcreate", "git-sync"]

    def test_requires_scheduler(self, celery_cluster):
        celery_cluster.spec.scheduler = None
        with pytest.raises(ConfigurationError):
            db_bootstrap_container(celery_cluster)
