"""Tests for root resource parsing and component spec defaults."""

import logging
import random

import pytest

from airflow_operator.core.errors import ConfigurationError
from airflow_operator.core.schema.status import RootStatus
from airflow_operator.k8s.components import base_components, cluster_components
from airflow_operator.k8s.resources import (
    AirflowBase,
    AirflowCluster,
    MySQLSpec,
    WorkerSpec,
    load_resource,
    resource_from_manifest,
)
from airflow_operator.k8s.utils import find_container


class TestLoadResource:
    """Tests for load_resource and resource_from_manifest."""

    def test_base(self, base):
        assert isinstance(base, AirflowBase)
        assert base.name == "pc-base"
        assert base.namespace == "airflow"
        assert base.metadata.uid == "1111-2222"
        assert isinstance(base.spec.mysql, MySQLSpec)
        assert base.spec.postgres is None
        assert base.spec.storage.version == "0.8"
        assert base.labels == {"team": "data"}
        assert isinstance(base.status, RootStatus)

    def test_cluster_camel_case_fields(self, k8s_cluster):
        assert isinstance(k8s_cluster, AirflowCluster)
        sp = k8s_cluster.spec
        assert sp.executor == "Kubernetes"
        assert sp.scheduler.db_name == "airflowdb"
        assert sp.dags.dag_subdir == "example_dags"
        assert sp.dags.git.cred_secret_ref == "git-creds"
        assert sp.airflow_base_ref.db_type == "postgres"
        assert sp.redis is None

    def test_unknown_field_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            base = resource_from_manifest({
                "kind": "AirflowBase",
                "metadata": {"name": "b"},
                "spec": {"mysql": {"bogus": 1}},
            })
        assert base.spec.mysql is not None
        assert "bogus" in caplog.text

    def test_default_namespace(self):
        base = resource_from_manifest({"kind": "AirflowBase", "metadata": {"name": "b"}})
        assert base.namespace == "default"
        assert base.metadata.finalizers == []

    def test_missing_name(self):
        with pytest.raises(ConfigurationError):
            resource_from_manifest({"kind": "AirflowBase", "metadata": {}})

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError):
            resource_from_manifest({"kind": "Deployment", "metadata": {"name": "x"}})

    def test_invalid_executor(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resource_from_manifest({
                "kind": "AirflowCluster",
                "metadata": {"name": "c"},
                "spec": {"executor": "Local"},
            })
        assert exc_info.value.field == "spec.executor"

    def test_invalid_db_type(self):
        with pytest.raises(ConfigurationError):
            resource_from_manifest({
                "kind": "AirflowCluster",
                "metadata": {"name": "c"},
                "spec": {"airflowBaseRef": {"name": "b", "dbType": "oracle"}},
            })

    def test_two_sql_backends_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resource_from_manifest({
                "kind": "AirflowBase",
                "metadata": {"name": "b"},
                "spec": {"mysql": {}, "sqlproxy": {"project": "p"}},
            })
        assert exc_info.value.field == "spec"

    def test_non_mapping_spec_field(self):
        with pytest.raises(ConfigurationError):
            resource_from_manifest({
                "kind": "AirflowBase",
                "metadata": {"name": "b"},
                "spec": {"mysql": ["not", "a", "mapping"]},
            })

    def test_bad_yaml(self):
        with pytest.raises(ConfigurationError):
            load_resource("kind: [unclosed")

    def test_yaml_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            load_resource("- a\n- b\n")


class TestComponentConfig:
    """Tests for image resolution on component specs."""

    def test_builtin_defaults(self):
        assert MySQLSpec().image_ref() == "mysql:5.7"
        assert WorkerSpec().image_ref() == "gcr.io/airflow-operator/airflow:1.10.2"

    def test_explicit_values_win(self):
        assert WorkerSpec(image="repo/x", version="2").image_ref() == "repo/x:2"

    def test_unparsed_spec_ignores_environment(self, monkeypatch):
        monkeypatch.setenv("IMAGES_MYSQL_VERSION", "8.0")
        assert MySQLSpec().image_ref() == "mysql:5.7"

    def test_apply_defaults_keeps_explicit_fields(self):
        spec = WorkerSpec(image="repo/x")
        spec.apply_defaults({"images": {"airflow": {"image": "other", "version": "9"}}})
        assert spec.image_ref() == "repo/x:9"


class TestImageDefaultsAtParse:
    """Settings are read once, when the root resource is parsed."""

    BASE = {"kind": "AirflowBase", "metadata": {"name": "b"}, "spec": {"mysql": {}}}
    CLUSTER = {
        "kind": "AirflowCluster",
        "metadata": {"name": "c"},
        "spec": {
            "executor": "Celery",
            "redis": {},
            "scheduler": {},
            "dags": {"git": {"repo": "r"}},
            "airflowBaseRef": {"name": "b"},
        },
    }

    def test_environment_default(self, monkeypatch):
        monkeypatch.setenv("IMAGES_MYSQL_VERSION", "8.0")
        base = resource_from_manifest(self.BASE)
        assert base.spec.mysql.image_ref() == "mysql:8.0"

    def test_config_dict(self):
        base = resource_from_manifest(self.BASE, {"images": {"mysql": {"image": "mariadb"}}})
        assert base.spec.mysql.image_ref() == "mariadb:5.7"

    def test_later_environment_changes_ignored(self, monkeypatch):
        base = resource_from_manifest(self.BASE)
        cluster = resource_from_manifest(self.CLUSTER)
        before = [c.expected_resources(base, {}, random.Random(1)).to_serializable()
                  for _, c in base_components(base) if c is not None]
        scheduler = dict(cluster_components(cluster))["scheduler"]
        sts_before = scheduler.expected_resources(cluster, {}).get(
            "StatefulSet", "c-scheduler").obj

        monkeypatch.setenv("IMAGES_MYSQL_VERSION", "8.0")
        monkeypatch.setenv("IMAGES_AIRFLOW_VERSION", "2.7")
        monkeypatch.setenv("IMAGES_METRICS_VERSION", "v2")
        monkeypatch.setenv("IMAGES_GITSYNC_VERSION", "v4")

        after = [c.expected_resources(base, {}, random.Random(1)).to_serializable()
                 for _, c in base_components(base) if c is not None]
        sts_after = scheduler.expected_resources(cluster, {}).get(
            "StatefulSet", "c-scheduler").obj
        assert after == before
        assert sts_after == sts_before

    def test_cluster_records_helper_images(self):
        cluster = resource_from_manifest(
            self.CLUSTER, {"images": {"gitsync": {"version": "v4.0.0"}}})
        assert cluster.helper_images["gitsync"] == "gcr.io/google_containers/git-sync:v4.0.0"
        assert cluster.helper_image("metrics") == "pbweb/airflow-prometheus-exporter:latest"
        assert cluster.helper_image("mysql") == "mysql:5.7"
        sts = dict(cluster_components(cluster))["scheduler"].expected_resources(
            cluster, {}).get("StatefulSet", "c-scheduler").obj
        assert find_container(sts, "git-sync")["image"] == (
            "gcr.io/google_containers/git-sync:v4.0.0")
