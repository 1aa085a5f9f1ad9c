"""Tests for ObjectSet, ManagedObject and observables."""

from ruamel.yaml import YAML

from airflow_operator.core.schema.objects import (
    Lifecycle,
    ManagedObject,
    ObjectSet,
    observables_from_objects,
)


def _managed(kind, name, labels=None, api_version="v1"):
    return ManagedObject(obj={
        "apiVersion": api_version,
        "kind": kind,
        "metadata": {"name": name, "namespace": "ns", "labels": labels or {"c": "x"}},
    })


def _referred(name):
    return ManagedObject(
        obj={"apiVersion": "v1", "kind": "Secret", "metadata": {"name": name, "namespace": "ns"}},
        lifecycle=Lifecycle.REFERRED,
    )


class TestObjectSet:
    """Tests for ObjectSet."""

    def test_keyed_by_kind_and_name(self):
        objects = ObjectSet([_managed("Secret", "a"), _managed("Service", "a")])
        assert len(objects) == 2
        assert ("Secret", "a") in objects
        assert objects.get("Service", "a").kind == "Service"
        assert objects.get("Service", "b") is None

    def test_same_key_replaces(self):
        objects = ObjectSet([_managed("Secret", "a")])
        objects.add(_referred("a"))
        assert len(objects) == 1
        assert objects.get("Secret", "a").lifecycle == Lifecycle.REFERRED

    def test_union_leaves_inputs_untouched(self):
        left = ObjectSet([_managed("Secret", "a")])
        right = ObjectSet([_managed("Service", "b")])
        merged = left.union(right)
        assert len(merged) == 2
        assert len(left) == 1 and len(right) == 1

    def test_managed_and_referred(self):
        objects = ObjectSet([_managed("Service", "a"), _referred("creds")])
        assert [o.name for o in objects.managed()] == ["a"]
        assert [o.name for o in objects.referred()] == ["creds"]

    def test_to_yaml_skips_referred(self):
        objects = ObjectSet([_managed("Service", "a"), _referred("creds")])
        docs = list(YAML(typ="safe").load_all(objects.to_yaml()))
        assert [d["metadata"]["name"] for d in docs] == ["a"]
        docs = list(YAML(typ="safe").load_all(objects.to_yaml(include_referred=True)))
        assert len(docs) == 2

    def test_to_serializable(self):
        objects = ObjectSet([_referred("creds")])
        data = objects.to_serializable()
        assert data == [{"lifecycle": "referred", "object": objects.get("Secret", "creds").obj}]
        data[0]["object"]["metadata"]["name"] = "changed"
        assert objects.get("Secret", "creds").name == "creds"


class TestObservables:
    """Tests for observables_from_objects."""

    def test_one_selector_per_managed_kind(self):
        objects = ObjectSet([
            _managed("Service", "a"),
            _managed("Service", "b"),
            _managed("StatefulSet", "a", api_version="apps/v1"),
        ])
        observables = observables_from_objects(objects)
        assert [(o.kind, o.api_version) for o in observables] == [
            ("Service", "v1"), ("StatefulSet", "apps/v1"),
        ]
        assert observables[0].selector == {"c": "x"}
        assert observables[0].name is None
        assert observables[0].namespace == "ns"

    def test_referred_fetched_by_name(self):
        observables = observables_from_objects(ObjectSet([_referred("creds")]))
        assert len(observables) == 1
        assert observables[0].name == "creds"
        assert observables[0].labels is None

    def test_empty_set(self):
        assert observables_from_objects(ObjectSet()) == []
