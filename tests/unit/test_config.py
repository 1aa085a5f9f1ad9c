"""Tests for configuration loading."""

import json

from airflow_operator.core.config import CONFIG_PATH_ENV, get_config_value, load_config
from airflow_operator.k8s.utils import (
    builtin_image_ref,
    default_image,
    default_version,
    helper_image_ref,
    image_ref,
)


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file(self, tmp_path):
        assert load_config(str(tmp_path / "nope.json")) == {}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_config(str(path)) == {}

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"images": {"redis": {"version": "6.2"}}}))
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))
        assert load_config()["images"]["redis"]["version"] == "6.2"


class TestGetConfigValue:
    """Tests for get_config_value."""

    def test_nested_lookup(self):
        config = {"images": {"mysql": {"image": "mariadb"}}}
        assert get_config_value(["images", "mysql", "image"], "mysql", config) == "mariadb"

    def test_default_when_missing(self):
        assert get_config_value(["images", "mysql", "image"], "mysql", {}) == "mysql"

    def test_environment_fallback(self, monkeypatch):
        monkeypatch.setenv("IMAGES_MYSQL_IMAGE", "percona")
        assert get_config_value(["images", "mysql", "image"], "mysql", {}) == "percona"

    def test_non_dict_intermediate(self):
        assert get_config_value(["images", "mysql"], "d", {"images": "flat"}) == "d"


class TestImageDefaults:
    """Tests for the image default helpers."""

    def test_builtin_table(self):
        assert default_image("redis", {}) == "redis"
        assert default_version("redis", {}) == "4.0"
        assert image_ref("metrics", {}) == "pbweb/airflow-prometheus-exporter:latest"

    def test_config_override(self):
        config = {"images": {"gitsync": {"version": "v4.0.0"}}}
        assert image_ref("gitsync", config) == "gcr.io/google_containers/git-sync:v4.0.0"

    def test_builtin_ref_ignores_environment(self, monkeypatch):
        monkeypatch.setenv("IMAGES_REDIS_VERSION", "7.2")
        assert image_ref("redis", {}) == "redis:7.2"
        assert builtin_image_ref("redis") == "redis:4.0"

    def test_helper_ref_prefers_recorded(self):
        assert helper_image_ref({"gitsync": "mirror/git-sync:v4"}, "gitsync") == "mirror/git-sync:v4"
        assert helper_image_ref({}, "gcssync") == builtin_image_ref("gcssync")
        assert helper_image_ref(None, "metrics") == "pbweb/airflow-prometheus-exporter:latest"
