"""The nine deployable components of an Airflow installation.

Base components (MySQL, Postgres, SQLProxy, NFS) belong to an AirflowBase;
cluster components (UI, Redis, Scheduler, Worker, Flower) belong to an
AirflowCluster. Each one wraps its spec dataclass, implements the
ComponentSpec protocol and is bound to its root kind: handing it the other
kind raises TypeMismatchError before anything is built.
"""

import copy
import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from airflow_operator.core.errors import ConfigurationError, TypeMismatchError
from airflow_operator.core.schema.objects import (
    ManagedObject,
    ObjectSet,
    Observable,
    observables_from_objects,
)
from airflow_operator.core.schema.status import RootStatus
from airflow_operator.k8s import builders
from airflow_operator.k8s.constants import (
    CLEANUP_FINALIZER,
    COMPONENT_FLOWER,
    COMPONENT_MYSQL,
    COMPONENT_NFS,
    COMPONENT_POSTGRES,
    COMPONENT_REDIS,
    COMPONENT_SCHEDULER,
    COMPONENT_SQL,
    COMPONENT_SQLPROXY,
    COMPONENT_UI,
    COMPONENT_WORKER,
    EXECUTOR_KUBERNETES,
    POD_MANAGEMENT_POLICY_PARALLEL,
    SECRET_KEY_PASSWORD,
    SECRET_KEY_ROOT_PASSWORD,
    SQL_BOOTSTRAP_DB,
    SQL_BOOTSTRAP_USER,
)
from airflow_operator.k8s.containers import add_airflow_containers, add_db_bootstrap_container
from airflow_operator.k8s.diff import always_differs, differs
from airflow_operator.k8s.env import airflow_env, prometheus_env
from airflow_operator.k8s.naming import component_labels, rsrc_name
from airflow_operator.k8s.resources import AirflowBase, AirflowCluster, validate_base_spec
from airflow_operator.k8s.utils import env_from_secret, env_value, get_pod_spec

logger = logging.getLogger(__name__)

DAGS_VOLUME = "dags-data"
DAGS_MOUNT = "/usr/local/airflow/dags/"


class Component:
    """Protocol behaviour shared by all nine components.

    Wraps the component's spec dataclass. Subclasses set ``COMPONENT`` (the
    component tag) and ``ROOT_KIND`` (the root resource class they belong
    to) and implement ``_build``.
    """

    COMPONENT: str = ""
    ROOT_KIND: type = object

    def __init__(self, spec: Any) -> None:
        self.spec = spec

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.spec!r})"

    def _check_root(self, root: Any) -> None:
        if not isinstance(root, self.ROOT_KIND):
            raise TypeMismatchError(self.ROOT_KIND.__name__, type(root).__name__)

    def _build(
        self, root: Any, labels: Dict[str, str], rng: Optional[random.Random]
    ) -> List[ManagedObject]:
        raise NotImplementedError

    def expected_resources(
        self, root: Any, labels: Dict[str, str], rng: Optional[random.Random] = None
    ) -> ObjectSet:
        self._check_root(root)
        full_labels = component_labels(root, self.COMPONENT, labels)
        return ObjectSet(self._build(root, full_labels, rng))

    def observables(self, expected: ObjectSet) -> List[Observable]:
        return observables_from_objects(expected)

    def differs(self, expected: Dict[str, Any], observed: Dict[str, Any]) -> bool:
        return differs(expected, observed)

    def mutate(self, expected: ObjectSet, observed: ObjectSet) -> ObjectSet:
        return expected

    def finalize(self, root: Any, observed: ObjectSet) -> None:
        """Clear the cleanup finalizer so the root resource can be deleted."""
        self._check_root(root)
        if CLEANUP_FINALIZER in root.metadata.finalizers:
            root.metadata.finalizers = [
                f for f in root.metadata.finalizers if f != CLEANUP_FINALIZER
            ]
            logger.debug("removed %s finalizer from %s", CLEANUP_FINALIZER, root.name)

    def update_component_status(
        self,
        root: Any,
        status: RootStatus,
        reconciled: List[Dict[str, Any]],
        err: Optional[BaseException],
    ) -> None:
        status.update_status(self.COMPONENT, reconciled, err)

    def _statefulset(self, root: Any, labels: Dict[str, str], svc: bool = True) -> Dict[str, Any]:
        return builders.statefulset(root, self.COMPONENT, "", svc, labels, replicas=self.spec.replicas)


# ------------------------------ Base ---------------------------------------


class _SQLComponent(Component):
    """MySQL and Postgres share one object layout and differ in the container."""

    ROOT_KIND = AirflowBase
    PORT = 0

    def _container(self, sql_secret: str, vol_name: str) -> Dict[str, Any]:
        raise NotImplementedError

    def _build(self, root, labels, rng):
        validate_base_spec(root.spec)
        if self.spec.operator:
            logger.warning("%s of %s is run by an external operator, nothing to deploy",
                           self.COMPONENT, root.name)
            return []
        sql_name = rsrc_name(root.name, COMPONENT_SQL)
        sts = self._statefulset(root, labels)
        vol_name = builders.attach_data_volume(
            sts, self.spec.volume_claim_template, self.COMPONENT + "-data"
        )
        get_pod_spec(sts)["containers"] = [self._container(sql_name, vol_name)]
        return [
            builders.secret(root, sql_name, labels,
                            [SECRET_KEY_PASSWORD, SECRET_KEY_ROOT_PASSWORD], rng),
            builders.service(root, self.COMPONENT, sql_name, labels,
                             [{"name": self.COMPONENT, "port": self.PORT}]),
            builders.managed(sts),
            builders.pod_disruption_budget(root, self.COMPONENT, "", labels),
        ]


class MySQLComponent(_SQLComponent):
    COMPONENT = COMPONENT_MYSQL
    PORT = 3306

    def _container(self, sql_secret, vol_name):
        args = ["--explicit-defaults-for-timestamp=ON"]
        args.extend("--%s=%s" % (k, v) for k, v in sorted(self.spec.options.items()))
        return {
            "name": "mysql",
            "image": self.spec.image_ref(),
            "env": [
                env_value("MYSQL_DATABASE", SQL_BOOTSTRAP_DB),
                env_value("MYSQL_USER", SQL_BOOTSTRAP_USER),
                env_from_secret("MYSQL_PASSWORD", sql_secret, SECRET_KEY_PASSWORD),
                env_from_secret("MYSQL_ROOT_PASSWORD", sql_secret, SECRET_KEY_ROOT_PASSWORD),
            ],
            "args": args,
            "resources": copy.deepcopy(self.spec.resources),
            "ports": [{"name": "mysql", "containerPort": self.PORT}],
            "volumeMounts": [{"name": vol_name, "mountPath": "/var/lib/mysql"}],
            "livenessProbe": builders.exec_probe(
                ["bash", "-c", "mysqladmin -p$MYSQL_ROOT_PASSWORD ping"], 30, 20, 5),
            "readinessProbe": builders.exec_probe(
                ["bash", "-c", 'mysql -u$MYSQL_USER -p$MYSQL_PASSWORD -e "use %s"' % SQL_BOOTSTRAP_DB],
                10, 5, 2),
        }


class PostgresComponent(_SQLComponent):
    COMPONENT = COMPONENT_POSTGRES
    PORT = 5432

    def _container(self, sql_secret, vol_name):
        probe = ["bash", "-c", "psql -w -U $POSTGRES_USER -d $POSTGRES_DB -c SELECT 1"]
        container = {
            "name": "postgres",
            "image": self.spec.image_ref(),
            "env": [
                env_value("POSTGRES_DB", SQL_BOOTSTRAP_DB),
                env_value("POSTGRES_USER", SQL_BOOTSTRAP_USER),
                env_from_secret("POSTGRES_PASSWORD", sql_secret, SECRET_KEY_ROOT_PASSWORD),
            ],
            "resources": copy.deepcopy(self.spec.resources),
            "ports": [{"name": "postgres", "containerPort": self.PORT}],
            "volumeMounts": [{"name": vol_name, "mountPath": "/var/lib/postgres/data"}],
            "livenessProbe": builders.exec_probe(probe, 30, 20, 5),
            "readinessProbe": builders.exec_probe(probe, 10, 5, 2),
        }
        if self.spec.options:
            args: List[str] = []
            for k, v in sorted(self.spec.options.items()):
                args.extend(["-c", "%s=%s" % (k, v)])
            container["args"] = args
        return container


class SQLProxyComponent(Component):
    """Cloud SQL proxy; its credentials Secret is provisioned by the user."""

    COMPONENT = COMPONENT_SQLPROXY
    ROOT_KIND = AirflowBase
    PORT = 3306

    def _build(self, root, labels, rng):
        validate_base_spec(root.spec)
        missing = [f for f in ("project", "region", "instance") if not getattr(self.spec, f)]
        if missing:
            raise ConfigurationError("sqlproxy requires " + ", ".join(missing), "spec.sqlproxy")
        instance = "%s:%s:%s=tcp:0.0.0.0:%d" % (
            self.spec.project, self.spec.region, self.spec.instance, self.PORT)
        sts = self._statefulset(root, labels)
        get_pod_spec(sts)["containers"] = [{
            "name": "sqlproxy",
            "image": self.spec.image_ref(),
            "env": [env_value("SQL_INSTANCE", instance)],
            "command": ["/cloud_sql_proxy", "-instances", "$(SQL_INSTANCE)"],
            "resources": copy.deepcopy(self.spec.resources),
            "ports": [{"name": "sqlproxy", "containerPort": self.PORT}],
        }]
        return [
            builders.service(root, self.COMPONENT, rsrc_name(root.name, COMPONENT_SQL), labels,
                             [{"name": "sqlproxy", "port": self.PORT}]),
            builders.managed(sts),
            builders.referred_secret(root.namespace, rsrc_name(root.name, self.COMPONENT)),
        ]


class NFSStoreComponent(Component):
    COMPONENT = COMPONENT_NFS
    ROOT_KIND = AirflowBase
    PORTS: Tuple[Tuple[str, int], ...] = (("nfs", 2049), ("mountd", 20048), ("rpcbind", 111))

    def _build(self, root, labels, rng):
        sts = self._statefulset(root, labels)
        sts["spec"]["podManagementPolicy"] = POD_MANAGEMENT_POLICY_PARALLEL
        vol_name = builders.attach_data_volume(sts, self.spec.volume, "nfs-data")
        get_pod_spec(sts)["containers"] = [{
            "name": "nfs-server",
            "image": self.spec.image_ref(),
            "resources": copy.deepcopy(self.spec.resources),
            "ports": [{"name": name, "containerPort": port} for name, port in self.PORTS],
            "securityContext": {},
            "volumeMounts": [{"name": vol_name, "mountPath": "/exports"}],
        }]
        return [
            builders.managed(sts),
            builders.service(root, self.COMPONENT, "", labels,
                             [{"name": name, "port": port} for name, port in self.PORTS]),
            builders.pod_disruption_budget(root, self.COMPONENT, "", labels),
        ]


# ------------------------------ Cluster ---------------------------------------


def _airflow_container(
    spec: Any,
    cluster: AirflowCluster,
    name: str,
    args: List[str],
    sa_name: str,
    ports: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    container: Dict[str, Any] = {
        "name": name,
        "image": spec.image_ref(),
        "imagePullPolicy": "Always",
        "args": args,
        "env": airflow_env(cluster, sa_name),
        "resources": copy.deepcopy(spec.resources),
        "volumeMounts": [{"name": DAGS_VOLUME, "mountPath": DAGS_MOUNT}],
    }
    if ports:
        container["ports"] = ports
    return container


class AirflowUIComponent(Component):
    """Webserver; also owns the Secret with the application database password."""

    COMPONENT = COMPONENT_UI
    ROOT_KIND = AirflowCluster

    def _build(self, root, labels, rng):
        sts = self._statefulset(root, labels, svc=False)
        sts["spec"]["podManagementPolicy"] = POD_MANAGEMENT_POLICY_PARALLEL
        builders.add_empty_dir(sts, DAGS_VOLUME)
        container = _airflow_container(
            self.spec, root, "airflow-ui", ["webserver"], sts["metadata"]["name"],
            ports=[{"name": "web", "containerPort": 8080}],
        )
        container["livenessProbe"] = {
            "httpGet": {"path": "/health", "port": "web"},
            "initialDelaySeconds": 100,
            "periodSeconds": 60,
            "timeoutSeconds": 2,
            "successThreshold": 1,
            "failureThreshold": 5,
        }
        add_airflow_containers(root, sts, [container], DAGS_VOLUME)
        add_db_bootstrap_container(root, sts)
        return [
            builders.managed(sts),
            builders.secret(root, rsrc_name(root.name, self.COMPONENT), labels,
                            [SECRET_KEY_PASSWORD], rng),
        ]


class RedisComponent(Component):
    COMPONENT = COMPONENT_REDIS
    ROOT_KIND = AirflowCluster
    PORT = 6379

    def _build(self, root, labels, rng):
        redis_secret = rsrc_name(root.name, self.COMPONENT)
        sts = self._statefulset(root, labels)
        vol_name = builders.attach_data_volume(sts, self.spec.volume_claim_template, "redis-data")
        args = ["--requirepass", "$(REDIS_PASSWORD)"]
        if self.spec.additional_args:
            args.append("$(REDIS_EXTRA_FLAGS)")
        get_pod_spec(sts)["containers"] = [{
            "name": "redis",
            "image": self.spec.image_ref(),
            "env": [
                env_value("REDIS_EXTRA_FLAGS", self.spec.additional_args),
                env_from_secret("REDIS_PASSWORD", redis_secret, SECRET_KEY_PASSWORD),
            ],
            "args": args,
            "resources": copy.deepcopy(self.spec.resources),
            "ports": [{"name": "redis", "containerPort": self.PORT}],
            "volumeMounts": [{"name": vol_name, "mountPath": "/data"}],
            "livenessProbe": builders.exec_probe(["redis-cli", "ping"], 30, 20, 5),
            "readinessProbe": builders.exec_probe(["redis-cli", "ping"], 10, 5, 2),
        }]
        return [
            builders.secret(root, redis_secret, labels, [SECRET_KEY_PASSWORD], rng),
            builders.service(root, self.COMPONENT, "", labels,
                             [{"name": "redis", "port": self.PORT}]),
            builders.managed(sts),
            builders.pod_disruption_budget(root, self.COMPONENT, "", labels),
        ]


class SchedulerComponent(Component):
    """Scheduler plus a metrics exporter sidecar.

    Under the Kubernetes executor the scheduler launches task pods itself,
    so it runs with a ServiceAccount bound to cluster-admin.
    """

    COMPONENT = COMPONENT_SCHEDULER
    ROOT_KIND = AirflowCluster
    METRICS_PORT = 9112

    def _build(self, root, labels, rng):
        name = rsrc_name(root.name, self.COMPONENT)
        k8s_executor = root.spec.executor == EXECUTOR_KUBERNETES
        sts = self._statefulset(root, labels)
        builders.add_empty_dir(sts, DAGS_VOLUME)
        if k8s_executor:
            get_pod_spec(sts)["serviceAccountName"] = name
        containers = [
            _airflow_container(self.spec, root, "scheduler", ["scheduler"], name),
            {
                "name": "metrics",
                "image": root.helper_image("metrics"),
                "env": prometheus_env(root),
                "ports": [{"name": "metrics", "containerPort": self.METRICS_PORT}],
            },
        ]
        add_airflow_containers(root, sts, containers, DAGS_VOLUME)

        objects = [builders.managed(sts)]
        if k8s_executor:
            objects.append(builders.service_account(root, name, labels))
            objects.append(builders.role_binding(root, name, labels))
        git = root.spec.dags.git if root.spec.dags is not None else None
        if git is not None and git.cred_secret_ref:
            objects.append(builders.referred_secret(root.namespace, git.cred_secret_ref))
        return objects


class WorkerComponent(Component):
    COMPONENT = COMPONENT_WORKER
    ROOT_KIND = AirflowCluster

    def _build(self, root, labels, rng):
        sts = self._statefulset(root, labels)
        builders.add_empty_dir(sts, DAGS_VOLUME)
        container = _airflow_container(
            self.spec, root, "worker", ["worker"], sts["metadata"]["name"],
            ports=[{"name": "wlog", "containerPort": 8793}],
        )
        add_airflow_containers(root, sts, [container], DAGS_VOLUME)
        return [builders.managed(sts)]

    def differs(self, expected, observed):
        return always_differs(expected, observed)


class FlowerComponent(Component):
    """Celery task monitor."""

    COMPONENT = COMPONENT_FLOWER
    ROOT_KIND = AirflowCluster

    def _build(self, root, labels, rng):
        sts = self._statefulset(root, labels)
        builders.add_empty_dir(sts, DAGS_VOLUME)
        container = _airflow_container(
            self.spec, root, "flower", ["flower"], sts["metadata"]["name"],
            ports=[{"name": "flower", "containerPort": 5555}],
        )
        add_airflow_containers(root, sts, [container], DAGS_VOLUME)
        return [builders.managed(sts)]


COMPONENT_TYPES: Dict[str, type] = {
    COMPONENT_MYSQL: MySQLComponent,
    COMPONENT_POSTGRES: PostgresComponent,
    COMPONENT_SQLPROXY: SQLProxyComponent,
    COMPONENT_NFS: NFSStoreComponent,
    COMPONENT_UI: AirflowUIComponent,
    COMPONENT_REDIS: RedisComponent,
    COMPONENT_SCHEDULER: SchedulerComponent,
    COMPONENT_WORKER: WorkerComponent,
    COMPONENT_FLOWER: FlowerComponent,
}


def _wrap(tag: str, spec: Any) -> Optional[Component]:
    if spec is None:
        return None
    return COMPONENT_TYPES[tag](spec)


def base_components(base: AirflowBase) -> List[Tuple[str, Optional[Component]]]:
    """(tag, component) pairs of an AirflowBase; component is None when unset."""
    sp = base.spec
    return [
        (COMPONENT_MYSQL, _wrap(COMPONENT_MYSQL, sp.mysql)),
        (COMPONENT_POSTGRES, _wrap(COMPONENT_POSTGRES, sp.postgres)),
        (COMPONENT_SQLPROXY, _wrap(COMPONENT_SQLPROXY, sp.sqlproxy)),
        (COMPONENT_NFS, _wrap(COMPONENT_NFS, sp.storage)),
    ]


def cluster_components(cluster: AirflowCluster) -> List[Tuple[str, Optional[Component]]]:
    """(tag, component) pairs of an AirflowCluster; component is None when unset."""
    sp = cluster.spec
    return [
        (COMPONENT_REDIS, _wrap(COMPONENT_REDIS, sp.redis)),
        (COMPONENT_SCHEDULER, _wrap(COMPONENT_SCHEDULER, sp.scheduler)),
        (COMPONENT_WORKER, _wrap(COMPONENT_WORKER, sp.worker)),
        (COMPONENT_UI, _wrap(COMPONENT_UI, sp.ui)),
        (COMPONENT_FLOWER, _wrap(COMPONENT_FLOWER, sp.flower)),
    ]


def update_component_status(
    component: Optional[Component],
    root: Any,
    status: RootStatus,
    reconciled: List[Dict[str, Any]],
    err: Optional[BaseException],
) -> None:
    """Record a component's outcome; an unconfigured (None) component is skipped."""
    if component is None:
        return
    component.update_component_status(root, status, reconciled, err)
