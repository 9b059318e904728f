"""Structural comparison of live objects against their desired form.

Every ``diff_*`` function returns a :class:`DiffResult`. ``merged`` is a
copy of the live object where only the tracked fields that differ were
replaced by the desired values; everything the server populated
(resourceVersion, status, defaulted fields, foreign annotations) is kept.
"""
import copy
from typing import Any, Dict, Iterable, List, NamedTuple, Optional
from kubernetes_asyncio.client import (
    V1ConfigMap,
    V1Container,
    V1Deployment,
    V1EnvVar,
    V1EnvVarSource,
    V1Secret,
    V1Service,
    V1Toleration,
    V1Volume,
)
from management_ingress.utils.helpers import (
    deep_compare_dict,
    parse_quantity,
    quantities_equal,
)


class DiffResult(NamedTuple):
    merged: Any
    changed: bool


def maps_equal(lhs: Optional[Dict[str, str]], rhs: Optional[Dict[str, str]]) -> bool:
    """Nil and empty maps are the same map."""
    return (lhs or {}) == (rhs or {})


def _toleration_equal(lhs: V1Toleration, rhs: V1Toleration) -> bool:
    return (
        (lhs.key or "") == (rhs.key or "")
        and (lhs.operator or "") == (rhs.operator or "")
        and (lhs.value or "") == (rhs.value or "")
        and (lhs.effect or "") == (rhs.effect or "")
        and lhs.toleration_seconds == rhs.toleration_seconds
    )


def tolerations_equal(
    lhs: Optional[List[V1Toleration]], rhs: Optional[List[V1Toleration]]
) -> bool:
    """Order independent comparison of two toleration lists."""
    lhs, rhs = lhs or [], rhs or []
    if len(lhs) != len(rhs):
        return False
    return all(any(_toleration_equal(t, other) for other in rhs) for t in lhs) and all(
        any(_toleration_equal(t, other) for other in lhs) for t in rhs
    )


def _divisor_equal(lhs, rhs) -> bool:
    if lhs is None or rhs is None:
        return lhs is None and rhs is None
    try:
        return parse_quantity(lhs) == parse_quantity(rhs)
    except ValueError:
        return str(lhs) == str(rhs)


def env_source_equal(lhs: V1EnvVarSource, rhs: V1EnvVarSource) -> bool:
    """Both sources must reference the same kind of object with the same content."""
    for attr in ("field_ref", "resource_field_ref", "config_map_key_ref", "secret_key_ref"):
        if (getattr(lhs, attr) is None) != (getattr(rhs, attr) is None):
            return False

    if lhs.field_ref is not None:
        if lhs.field_ref.field_path != rhs.field_ref.field_path:
            return False
        if (lhs.field_ref.api_version or "v1") != (rhs.field_ref.api_version or "v1"):
            return False

    if lhs.resource_field_ref is not None:
        l, r = lhs.resource_field_ref, rhs.resource_field_ref
        if (l.container_name or "") != (r.container_name or "") or l.resource != r.resource:
            return False
        if not _divisor_equal(l.divisor, r.divisor):
            return False

    for attr in ("config_map_key_ref", "secret_key_ref"):
        l, r = getattr(lhs, attr), getattr(rhs, attr)
        if l is not None:
            if l.name != r.name or l.key != r.key or bool(l.optional) != bool(r.optional):
                return False
    return True


def env_var_equal(lhs: V1EnvVar, rhs: V1EnvVar) -> bool:
    if (lhs.value or "") != (rhs.value or ""):
        return False
    if (lhs.value_from is None) != (rhs.value_from is None):
        return False
    if lhs.value_from is not None:
        return env_source_equal(lhs.value_from, rhs.value_from)
    return True


def env_equal(lhs: Optional[List[V1EnvVar]], rhs: Optional[List[V1EnvVar]]) -> bool:
    """Compare env vars by name regardless of their order."""
    lhs, rhs = lhs or [], rhs or []
    if len(lhs) != len(rhs):
        return False
    by_name = {var.name: var for var in rhs}
    if len(by_name) != len(rhs):
        return False
    for var in lhs:
        other = by_name.get(var.name)
        if other is None or not env_var_equal(var, other):
            return False
    return True


def _volume_equal(lhs: V1Volume, rhs: V1Volume) -> bool:
    if lhs.secret is not None and rhs.secret is not None:
        return lhs.secret.secret_name == rhs.secret.secret_name
    if lhs.config_map is not None and rhs.config_map is not None:
        return lhs.config_map.name == rhs.config_map.name
    if lhs.host_path is not None and rhs.host_path is not None:
        return lhs.host_path.path == rhs.host_path.path
    return False


def volumes_equal(lhs: Optional[List[V1Volume]], rhs: Optional[List[V1Volume]]) -> bool:
    """Volumes match by name and by the secret, config map or host path they use."""
    lhs, rhs = lhs or [], rhs or []
    if len(lhs) != len(rhs):
        return False
    rhs_by_name = {vol.name: vol for vol in rhs}
    for vol in lhs:
        other = rhs_by_name.get(vol.name)
        if other is None or not _volume_equal(vol, other):
            return False
    return True


def volume_mounts_equal(lhs, rhs) -> bool:
    lhs, rhs = lhs or [], rhs or []
    return len(lhs) == len(rhs) and all(a == b for a, b in zip(lhs, rhs))


def resources_equal(lhs, rhs) -> bool:
    """Compare two V1ResourceRequirements by quantity value."""
    return quantities_equal(
        getattr(lhs, "limits", None), getattr(rhs, "limits", None)
    ) and quantities_equal(getattr(lhs, "requests", None), getattr(rhs, "requests", None))


def _containers_by_name(containers: Iterable[V1Container]) -> Dict[str, V1Container]:
    return {c.name: c for c in containers or []}


def diff_deployment(live: V1Deployment, desired: V1Deployment) -> DiffResult:
    """Compare the tracked pod template fields and replica count of a deployment."""
    merged: V1Deployment = copy.deepcopy(live)
    changed = False
    pod_spec = merged.spec.template.spec
    desired_pod_spec = desired.spec.template.spec

    if not maps_equal(pod_spec.node_selector, desired_pod_spec.node_selector):
        pod_spec.node_selector = copy.deepcopy(desired_pod_spec.node_selector)
        changed = True

    if not tolerations_equal(pod_spec.tolerations, desired_pod_spec.tolerations):
        pod_spec.tolerations = copy.deepcopy(desired_pod_spec.tolerations)
        changed = True

    wanted = _containers_by_name(desired_pod_spec.containers)
    for container in pod_spec.containers or []:
        target = wanted.get(container.name)
        if target is None:
            continue
        if container.image != target.image:
            container.image = target.image
            changed = True
        if not resources_equal(container.resources, target.resources):
            container.resources = copy.deepcopy(target.resources)
            changed = True

    if desired.spec.replicas is not None and live.spec.replicas != desired.spec.replicas:
        merged.spec.replicas = desired.spec.replicas
        changed = True

    if pod_spec.containers and desired_pod_spec.containers:
        first, target = pod_spec.containers[0], desired_pod_spec.containers[0]
        if not env_equal(first.env, target.env):
            first.env = copy.deepcopy(target.env)
            changed = True
        if not volume_mounts_equal(first.volume_mounts, target.volume_mounts):
            first.volume_mounts = copy.deepcopy(target.volume_mounts)
            changed = True

    if not volumes_equal(pod_spec.volumes, desired_pod_spec.volumes):
        pod_spec.volumes = copy.deepcopy(desired_pod_spec.volumes)
        changed = True

    return DiffResult(merged, changed)


def _ports_equal(lhs, rhs) -> bool:
    lhs, rhs = lhs or [], rhs or []
    if len(lhs) != len(rhs):
        return False
    rhs_by_name = {p.name: p for p in rhs}
    for port in lhs:
        other = rhs_by_name.get(port.name)
        if other is None:
            return False
        if (
            port.port != other.port
            or (port.protocol or "TCP") != (other.protocol or "TCP")
            or str(port.target_port) != str(other.target_port)
        ):
            return False
    return True


def diff_service(live: V1Service, desired: V1Service) -> DiffResult:
    """Ports and selector are tracked; the cluster IP always comes from live."""
    merged: V1Service = copy.deepcopy(live)
    changed = False
    if not _ports_equal(live.spec.ports, desired.spec.ports):
        merged.spec.ports = copy.deepcopy(desired.spec.ports)
        changed = True
    if not maps_equal(live.spec.selector, desired.spec.selector):
        merged.spec.selector = copy.deepcopy(desired.spec.selector)
        changed = True
    return DiffResult(merged, changed)


def diff_config_map(live: V1ConfigMap, desired: V1ConfigMap) -> DiffResult:
    merged: V1ConfigMap = copy.deepcopy(live)
    if maps_equal(live.data, desired.data):
        return DiffResult(merged, False)
    merged.data = dict(desired.data or {})
    return DiffResult(merged, True)


def diff_secret(live: V1Secret, desired: V1Secret) -> DiffResult:
    merged: V1Secret = copy.deepcopy(live)
    if maps_equal(live.data, desired.data):
        return DiffResult(merged, False)
    merged.data = dict(desired.data or {})
    return DiffResult(merged, True)


def diff_certificate(live: Dict, desired: Dict) -> DiffResult:
    """Certificates are compared on their whole spec."""
    merged = copy.deepcopy(live)
    if deep_compare_dict(live.get("spec") or {}, desired.get("spec") or {}):
        return DiffResult(merged, False)
    merged["spec"] = copy.deepcopy(desired["spec"])
    return DiffResult(merged, True)


_ROUTE_TLS_FIELDS = (
    "termination",
    "insecureEdgeTerminationPolicy",
    "certificate",
    "key",
    "caCertificate",
    "destinationCACertificate",
)


def diff_route(live: Dict, desired: Dict) -> DiffResult:
    """Host, backend, port and TLS material of a route are tracked."""
    merged = copy.deepcopy(live)
    live_spec = merged.setdefault("spec", {})
    desired_spec = desired.get("spec") or {}
    changed = False

    for field in ("host", "to", "port"):
        if not deep_compare_dict(live_spec.get(field), desired_spec.get(field)):
            live_spec[field] = copy.deepcopy(desired_spec.get(field))
            changed = True

    live_tls = live_spec.get("tls") or {}
    desired_tls = desired_spec.get("tls") or {}
    if any((live_tls.get(f) or "") != (desired_tls.get(f) or "") for f in _ROUTE_TLS_FIELDS):
        live_spec["tls"] = {**live_tls, **copy.deepcopy(desired_tls)}
        for f in _ROUTE_TLS_FIELDS:
            if f not in desired_tls:
                live_spec["tls"].pop(f, None)
        changed = True

    return DiffResult(merged, changed)
