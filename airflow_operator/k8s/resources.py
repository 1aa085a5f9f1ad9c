"""Root resources (AirflowBase, AirflowCluster) and their component specs.

Specs are plain dataclasses with snake_case fields. ``from_dict`` accepts the
camelCase keys used in the custom resource manifests, and ``load_resource``
parses a YAML document into the matching root resource. Image defaults
from settings are resolved into the resource while it is parsed.
"""

import copy
import dataclasses
import logging
import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Type, TypeVar

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from airflow_operator.core.config import load_config
from airflow_operator.core.errors import ConfigurationError
from airflow_operator.core.schema.status import RootStatus
from airflow_operator.k8s.constants import (
    DB_TYPE_MYSQL,
    DB_TYPE_POSTGRES,
    DEFAULT_IMAGES,
    EXECUTOR_CELERY,
    EXECUTOR_KUBERNETES,
    KIND_AIRFLOW_BASE,
    KIND_AIRFLOW_CLUSTER,
    VALUE_AIRFLOW_CR_BASE,
    VALUE_AIRFLOW_CR_CLUSTER,
)
from airflow_operator.k8s.naming import build_metadata
from airflow_operator.k8s.utils import default_image, default_version, helper_image_ref, image_ref

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Manifest keys that do not follow plain camelCase -> snake_case
_KEY_ALIASES = {
    "DAGs": "dags",
    "dags": "dags",
    "credSecretRef": "cred_secret_ref",
    "airflowBaseRef": "airflow_base_ref",
    "sqlproxy": "sqlproxy",
}


def _snake(key: str) -> str:
    if key in _KEY_ALIASES:
        return _KEY_ALIASES[key]
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _from_dict(cls: Type[T], data: Any, path: str) -> T:
    """Build dataclass ``cls`` from a manifest mapping.

    Nested spec fields are declared in the class's ``_nested`` table. Unknown
    keys are logged and skipped.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must be a mapping, got {type(data).__name__}", path)

    nested: Dict[str, type] = getattr(cls, "_nested", {})
    names = {f.name for f in dataclasses.fields(cls)}
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        attr = _snake(key)
        if attr not in names:
            logger.warning("ignoring unknown field %s.%s", path, key)
            continue
        if attr in nested and value is not None:
            value = _from_dict(nested[attr], value, f"{path}.{key}")
        elif attr == "cred_secret_ref" and isinstance(value, dict):
            value = value.get("name")
        kwargs[attr] = copy.deepcopy(value)
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigurationError(f"invalid {path}: {e}", path) from e


@dataclass
class ObjectMeta:
    name: str
    namespace: str = "default"
    uid: str = ""
    finalizers: list = field(default_factory=list)


@dataclass
class ComponentConfig:
    """Fields shared by every deployable component.

    Attributes:
        image: Image repository; empty means the default, filled in at parse time
        version: Image tag; empty means the default, filled in at parse time
        resources: Container ResourceRequirements passed through verbatim
        replicas: Number of pods in the component's StatefulSet
    """

    IMAGE_KEY: ClassVar[str] = ""

    image: str = ""
    version: str = ""
    resources: Dict[str, Any] = field(default_factory=dict)
    replicas: int = 1

    def resolved_image(self) -> str:
        return self.image or DEFAULT_IMAGES[self.IMAGE_KEY]["image"]

    def resolved_version(self) -> str:
        return self.version or DEFAULT_IMAGES[self.IMAGE_KEY]["version"]

    def image_ref(self) -> str:
        return self.resolved_image() + ":" + self.resolved_version()

    def apply_defaults(self, config: Dict[str, Any]) -> None:
        """Fill an empty image or version from settings (see core.config)."""
        if not self.image:
            self.image = str(default_image(self.IMAGE_KEY, config))
        if not self.version:
            self.version = str(default_version(self.IMAGE_KEY, config))


@dataclass
class MySQLSpec(ComponentConfig):
    """Self-managed MySQL; ``operator=True`` means an external operator runs it."""

    IMAGE_KEY: ClassVar[str] = "mysql"

    operator: bool = False
    volume_claim_template: Optional[Dict[str, Any]] = None
    options: Dict[str, str] = field(default_factory=dict)


@dataclass
class PostgresSpec(ComponentConfig):
    IMAGE_KEY: ClassVar[str] = "postgres"

    operator: bool = False
    volume_claim_template: Optional[Dict[str, Any]] = None
    options: Dict[str, str] = field(default_factory=dict)


@dataclass
class SQLProxySpec(ComponentConfig):
    """Cloud SQL proxy in front of a managed instance ``project:region:instance``."""

    IMAGE_KEY: ClassVar[str] = "sqlproxy"

    project: str = ""
    region: str = ""
    instance: str = ""


@dataclass
class NFSStoreSpec(ComponentConfig):
    IMAGE_KEY: ClassVar[str] = "nfs"

    volume: Optional[Dict[str, Any]] = None


@dataclass
class RedisSpec(ComponentConfig):
    IMAGE_KEY: ClassVar[str] = "redis"

    volume_claim_template: Optional[Dict[str, Any]] = None
    additional_args: str = ""


@dataclass
class SchedulerSpec(ComponentConfig):
    """Scheduler; also declares the application database and user."""

    IMAGE_KEY: ClassVar[str] = "airflow"

    db_name: str = "airflow"
    db_user: str = "airflow"


@dataclass
class WorkerSpec(ComponentConfig):
    IMAGE_KEY: ClassVar[str] = "airflow"


@dataclass
class AirflowUISpec(ComponentConfig):
    IMAGE_KEY: ClassVar[str] = "airflow"


@dataclass
class FlowerSpec(ComponentConfig):
    IMAGE_KEY: ClassVar[str] = "airflow"


@dataclass
class GitSpec:
    """Git DAG source.

    Attributes:
        repo: Repository URL
        branch: Branch to sync
        rev: Revision to check out
        user: Basic-auth user, used only with ``cred_secret_ref``
        once: Sync once in an init container instead of a sidecar
        cred_secret_ref: Name of a Secret whose ``password`` key holds the credential
    """

    repo: str = ""
    branch: str = "master"
    rev: str = "HEAD"
    user: str = ""
    once: bool = False
    cred_secret_ref: Optional[str] = None


@dataclass
class GCSSpec:
    bucket: str = ""
    once: bool = False


@dataclass
class DagSpec:
    _nested: ClassVar[Dict[str, type]] = {"git": GitSpec, "gcs": GCSSpec}

    dag_subdir: str = ""
    git: Optional[GitSpec] = None
    gcs: Optional[GCSSpec] = None

    def source(self) -> Any:
        """Return the configured source, GitSpec, GCSSpec or None.

        Raises:
            ConfigurationError: If both Git and GCS are configured
        """
        if self.git is not None and self.gcs is not None:
            raise ConfigurationError(
                "dags: git and gcs are mutually exclusive", "spec.dags"
            )
        return self.git if self.git is not None else self.gcs


@dataclass
class AirflowBaseRef:
    name: str = ""
    db_type: str = DB_TYPE_MYSQL


@dataclass
class AirflowBaseSpec:
    _nested: ClassVar[Dict[str, type]] = {
        "mysql": MySQLSpec,
        "postgres": PostgresSpec,
        "sqlproxy": SQLProxySpec,
        "storage": NFSStoreSpec,
    }

    mysql: Optional[MySQLSpec] = None
    postgres: Optional[PostgresSpec] = None
    sqlproxy: Optional[SQLProxySpec] = None
    storage: Optional[NFSStoreSpec] = None
    affinity: Optional[Dict[str, Any]] = None
    node_selector: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class AirflowClusterSpec:
    _nested: ClassVar[Dict[str, type]] = {
        "redis": RedisSpec,
        "scheduler": SchedulerSpec,
        "worker": WorkerSpec,
        "ui": AirflowUISpec,
        "flower": FlowerSpec,
        "dags": DagSpec,
        "airflow_base_ref": AirflowBaseRef,
    }

    executor: str = EXECUTOR_KUBERNETES
    redis: Optional[RedisSpec] = None
    scheduler: Optional[SchedulerSpec] = None
    worker: Optional[WorkerSpec] = None
    ui: Optional[AirflowUISpec] = None
    flower: Optional[FlowerSpec] = None
    dags: Optional[DagSpec] = None
    airflow_base_ref: AirflowBaseRef = field(default_factory=AirflowBaseRef)
    affinity: Optional[Dict[str, Any]] = None
    node_selector: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class AirflowResource:
    """Capabilities shared by both root resource kinds.

    Subclasses set ``KIND`` (the CR kind used in owner references) and
    ``CR_NAME`` (the value of the ``airflow-cr`` label), and carry a ``spec``
    with ``affinity``, ``node_selector``, ``labels`` and ``annotations``.
    """

    KIND: ClassVar[str] = ""
    CR_NAME: ClassVar[str] = ""

    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def affinity(self) -> Optional[Dict[str, Any]]:
        return self.spec.affinity

    @property
    def node_selector(self) -> Dict[str, str]:
        return self.spec.node_selector

    @property
    def labels(self) -> Dict[str, str]:
        return self.spec.labels

    @property
    def annotations(self) -> Dict[str, str]:
        return self.spec.annotations

    def get_meta(self, name: str, labels: Dict[str, str]) -> Dict[str, Any]:
        return build_metadata(self, name, labels)


@dataclass
class AirflowBase(AirflowResource):
    """Shared infrastructure: SQL backend and NFS store."""

    KIND: ClassVar[str] = KIND_AIRFLOW_BASE
    CR_NAME: ClassVar[str] = VALUE_AIRFLOW_CR_BASE

    spec: AirflowBaseSpec = field(default_factory=AirflowBaseSpec)
    status: RootStatus = field(default_factory=RootStatus)

    @classmethod
    def from_dict(
        cls, manifest: Dict[str, Any], config: Optional[Dict[str, Any]] = None
    ) -> "AirflowBase":
        base = cls(
            metadata=_metadata_from_dict(manifest),
            spec=_from_dict(AirflowBaseSpec, manifest.get("spec"), "spec"),
        )
        validate_base_spec(base.spec)
        apply_image_defaults(base, config)
        return base


@dataclass
class AirflowCluster(AirflowResource):
    """Per-cluster compute stack: scheduler, workers, UI, queue."""

    KIND: ClassVar[str] = KIND_AIRFLOW_CLUSTER
    CR_NAME: ClassVar[str] = VALUE_AIRFLOW_CR_CLUSTER

    spec: AirflowClusterSpec = field(default_factory=AirflowClusterSpec)
    status: RootStatus = field(default_factory=RootStatus)
    # image:tag of the containers the operator adds on its own (DAG sync,
    # metrics exporter, DB bootstrap), keyed like DEFAULT_IMAGES
    helper_images: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls, manifest: Dict[str, Any], config: Optional[Dict[str, Any]] = None
    ) -> "AirflowCluster":
        cluster = cls(
            metadata=_metadata_from_dict(manifest),
            spec=_from_dict(AirflowClusterSpec, manifest.get("spec"), "spec"),
        )
        validate_cluster_spec(cluster.spec)
        apply_image_defaults(cluster, config)
        return cluster

    def helper_image(self, component: str) -> str:
        return helper_image_ref(self.helper_images, component)


# All of these serve the <base>-sql Service
SQL_BACKENDS = ("mysql", "postgres", "sqlproxy")

HELPER_IMAGES = ("gitsync", "gcssync", "metrics", DB_TYPE_MYSQL, DB_TYPE_POSTGRES)


def validate_base_spec(spec: AirflowBaseSpec) -> None:
    """Check that a base declares at most one SQL backend.

    Raises:
        ConfigurationError: If more than one of mysql, postgres and sqlproxy is set
    """
    declared = [name for name in SQL_BACKENDS if getattr(spec, name) is not None]
    if len(declared) > 1:
        raise ConfigurationError(
            "only one SQL backend may be declared, got " + ", ".join(declared), "spec"
        )


def apply_image_defaults(
    resource: AirflowResource, config: Optional[Dict[str, Any]] = None
) -> None:
    """Resolve image defaults into the resource, reading settings once.

    Empty ``image``/``version`` fields of every component spec are filled in,
    and a cluster records the refs of its helper containers. Manifests built
    afterwards depend on the resource alone.

    Args:
        resource: Freshly parsed AirflowBase or AirflowCluster
        config: Settings dict (read with load_config() if omitted)
    """
    if config is None:
        config = load_config()
    for f in dataclasses.fields(resource.spec):
        value = getattr(resource.spec, f.name)
        if isinstance(value, ComponentConfig):
            value.apply_defaults(config)
    if isinstance(resource, AirflowCluster):
        for key in HELPER_IMAGES:
            if not resource.helper_images.get(key):
                resource.helper_images[key] = image_ref(key, config)


def validate_cluster_spec(spec: AirflowClusterSpec) -> None:
    """Check enum-valued fields of a cluster spec.

    Raises:
        ConfigurationError: On an unknown executor or database type
    """
    if spec.executor not in (EXECUTOR_KUBERNETES, EXECUTOR_CELERY):
        raise ConfigurationError(
            f"unsupported executor {spec.executor!r}", "spec.executor"
        )
    if spec.airflow_base_ref.db_type not in (DB_TYPE_MYSQL, DB_TYPE_POSTGRES):
        raise ConfigurationError(
            f"unsupported database type {spec.airflow_base_ref.db_type!r}",
            "spec.airflowBaseRef.dbType",
        )


def _metadata_from_dict(manifest: Dict[str, Any]) -> ObjectMeta:
    metadata = manifest.get("metadata") or {}
    if not metadata.get("name"):
        raise ConfigurationError("metadata.name is required", "metadata.name")
    return ObjectMeta(
        name=metadata["name"],
        namespace=metadata.get("namespace") or "default",
        uid=metadata.get("uid") or "",
        finalizers=list(metadata.get("finalizers") or []),
    )


_ROOT_KINDS: Dict[str, Any] = {
    KIND_AIRFLOW_BASE: AirflowBase,
    KIND_AIRFLOW_CLUSTER: AirflowCluster,
}


def resource_from_manifest(
    manifest: Dict[str, Any], config: Optional[Dict[str, Any]] = None
) -> AirflowResource:
    """Build the root resource matching ``manifest["kind"]``.

    ``config`` is the settings dict used for image defaults (read with
    load_config() if omitted).

    Raises:
        ConfigurationError: If the kind is not a known root kind
    """
    kind = manifest.get("kind")
    if kind not in _ROOT_KINDS:
        raise ConfigurationError(f"unknown root resource kind {kind!r}", "kind")
    return _ROOT_KINDS[kind].from_dict(manifest, config)


def load_resource(text: str, config: Optional[Dict[str, Any]] = None) -> AirflowResource:
    """Parse a YAML document into an AirflowBase or AirflowCluster.

    Example:
        >>> base = load_resource('''
        ... apiVersion: airflow.k8s.io/v1alpha1
        ... kind: AirflowBase
        ... metadata:
        ...   name: pc-base
        ... spec:
        ...   mysql:
        ...     operator: false
        ... ''')
        >>> base.spec.mysql.operator
        False
    """
    yaml = YAML(typ="safe")
    try:
        manifest = yaml.load(text)
    except YAMLError as e:
        raise ConfigurationError(f"failed to parse YAML: {e}") from e
    if not isinstance(manifest, dict):
        raise ConfigurationError("root resource document must be a mapping")
    return resource_from_manifest(manifest, config)
