"""Shared fixtures: an in-memory object store and a cluster populated with the
objects other controllers would normally provide."""

import base64
import copy
import json
import logging
import pytest
import yaml
from typing import Any, Dict, List, Optional, Tuple
from kubernetes_asyncio.client import ApiException, V1ConfigMap, V1ObjectMeta, V1Secret
from management_ingress.resources.store import (
    CONFIG_MAP,
    CUSTOM_KINDS,
    DNS,
    INGRESS_CONTROLLER,
    SECRET,
    object_name,
)
from management_ingress.types.schemas import ManagementIngressSpecSchema
from management_ingress.types.settings import Settings

NAMESPACE = "ibm-common-services"
CR_NAME = "default"
OWNER_UID = "9d3b2c4e-0000-4000-8000-000000000001"


def _namespaced(kind: str, namespace: Optional[str]) -> Optional[str]:
    if kind in CUSTOM_KINDS and not CUSTOM_KINDS[kind].namespaced:
        return None
    return namespace


def _labels(obj: Any) -> Dict[str, str]:
    if isinstance(obj, dict):
        return (obj.get("metadata") or {}).get("labels") or {}
    return (obj.metadata.labels if obj.metadata else None) or {}


def _api_error(status: int, reason: str) -> ApiException:
    ex = ApiException(status=status, reason=reason)
    ex.body = json.dumps({"kind": "Status", "reason": reason, "message": reason})
    return ex


class FakeObjectStore:
    """Dictionary backed stand-in for KubeObjectStore that records every write."""

    def __init__(self):
        self.objects: Dict[Tuple[str, Optional[str], str], Any] = {}
        self.creates: List[Tuple[str, Optional[str], str]] = []
        self.replaces: List[Tuple[str, Optional[str], str]] = []
        self.deletes: List[Tuple[str, Optional[str], str]] = []
        self.status_patches: List[Dict[str, Any]] = []

    def add(self, kind: str, obj: Any, namespace: Optional[str] = None) -> Any:
        key = (kind, _namespaced(kind, namespace), object_name(obj))
        self.objects[key] = copy.deepcopy(obj)
        return obj

    def peek(self, kind: str, name: str, namespace: Optional[str] = None) -> Any:
        return self.objects.get((kind, _namespaced(kind, namespace), name))

    def written(self, kind: str) -> List[str]:
        return [name for k, _, name in self.creates if k == kind]

    async def get(self, kind: str, name: str, namespace: Optional[str] = None) -> Any:
        obj = self.peek(kind, name, namespace)
        return copy.deepcopy(obj) if obj is not None else None

    async def create(self, kind: str, obj: Any, namespace: str) -> Any:
        key = (kind, _namespaced(kind, namespace), object_name(obj))
        if key in self.objects:
            raise _api_error(409, "AlreadyExists")
        self.objects[key] = copy.deepcopy(obj)
        self.creates.append(key)
        return copy.deepcopy(obj)

    async def replace(self, kind: str, obj: Any, namespace: str) -> Any:
        key = (kind, _namespaced(kind, namespace), object_name(obj))
        if key not in self.objects:
            raise _api_error(404, "NotFound")
        self.objects[key] = copy.deepcopy(obj)
        self.replaces.append(key)
        return copy.deepcopy(obj)

    async def delete(self, kind: str, name: str, namespace: str) -> None:
        key = (kind, _namespaced(kind, namespace), name)
        if self.objects.pop(key, None) is not None:
            self.deletes.append(key)

    async def list(self, kind: str, namespace: str, label_selector: str = None) -> List[Any]:
        wanted = dict(
            term.split("=", 1) for term in (label_selector or "").split(",") if term
        )
        return [
            copy.deepcopy(obj)
            for (k, ns, _), obj in self.objects.items()
            if k == kind
            and ns == namespace
            and all(_labels(obj).get(key) == value for key, value in wanted.items())
        ]

    async def patch_status(self, kind: str, name: str, namespace: str, status: Dict[str, Any]):
        self.status_patches.append(copy.deepcopy(status))
        return {"status": status}


class FakeClock:
    """Monotonic clock whose sleep only moves time forward."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def tls_secret(name: str, namespace: str = NAMESPACE, ca: str = "CA-PEM") -> V1Secret:
    return V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=V1ObjectMeta(name=name, namespace=namespace),
        data={"tls.crt": b64("CRT-PEM"), "tls.key": b64("KEY-PEM"), "ca.crt": b64(ca)},
    )


def config_map(name: str, namespace: str, data: Dict[str, str]) -> V1ConfigMap:
    return V1ConfigMap(
        api_version="v1",
        kind="ConfigMap",
        metadata=V1ObjectMeta(name=name, namespace=namespace),
        data=data,
    )


def make_spec(**overrides):
    return ManagementIngressSpecSchema().load(dict(overrides))


def owner_body(status: Dict[str, Any] = None) -> Dict[str, Any]:
    body = {
        "apiVersion": "operator.ibm.com/v1alpha1",
        "kind": "ManagementIngress",
        "metadata": {"name": CR_NAME, "namespace": NAMESPACE, "uid": OWNER_UID},
        "spec": {},
    }
    if status is not None:
        body["status"] = status
    return body


@pytest.fixture
def logger():
    return logging.getLogger("tests.management_ingress")


@pytest.fixture
def settings():
    return Settings(
        pod_namespace=NAMESPACE,
        operand_image="quay.io/opencloudio/icp-management-ingress:2.5.0",
        wait_timeout_seconds=10,
        wait_interval_seconds=2,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def owner():
    body = owner_body()
    body.pop("spec")
    return body


@pytest.fixture
def standard_cluster(store):
    """Objects found on a cluster with routes once cert-manager issued the certificates."""
    store.add(
        INGRESS_CONTROLLER,
        {
            "apiVersion": "operator.openshift.io/v1",
            "kind": "IngressController",
            "metadata": {"name": "default", "namespace": "openshift-ingress-operator"},
            "status": {"domain": "apps.example.com"},
        },
        "openshift-ingress-operator",
    )
    store.add(
        DNS,
        {
            "apiVersion": "operator.openshift.io/v1",
            "kind": "DNS",
            "metadata": {"name": "default"},
            "status": {"clusterDomain": "cluster.local"},
        },
    )
    store.add(
        CONFIG_MAP,
        config_map(
            "console-config",
            "openshift-console",
            {
                "console-config.yaml": yaml.safe_dump(
                    {"clusterInfo": {"masterPublicURL": "https://api.example.com:6443"}}
                )
            },
        ),
        "openshift-console",
    )
    store.add(SECRET, tls_secret("route-tls-secret", ca="ROUTE-CA-PEM"), NAMESPACE)
    store.add(
        SECRET,
        tls_secret("icp-management-ingress-tls-secret", ca="SERVICE-CA-PEM"),
        NAMESPACE,
    )
    return store


@pytest.fixture
def cncf_cluster(store):
    store.add(
        CONFIG_MAP,
        config_map(
            "ibm-cpp-config",
            NAMESPACE,
            {"kubernetes_cluster_type": "cncf", "domain_name": "example.com:30443"},
        ),
        NAMESPACE,
    )
    store.add(SECRET, tls_secret("route-tls-secret", ca="ROUTE-CA-PEM"), NAMESPACE)
    return store
