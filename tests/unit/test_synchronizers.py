"""Unit tests for the per-kind synchronizers."""

import pytest
from kubernetes_asyncio.client import ApiException
from unittest.mock import AsyncMock
from management_ingress.resources import (
    CertificateSynchronizer,
    ConfigMapSynchronizer,
    DeploymentSynchronizer,
    RouteSynchronizer,
    SecretSynchronizer,
    ServiceSynchronizer,
)
from management_ingress.resources.base import CREATED, UNCHANGED, UPDATED
from management_ingress.resources.certificate import resolve_issuer
from management_ingress.resources.deployment import allowed_host_headers, resolve_image
from management_ingress.resources.secret import has_ca_cert, has_tls_material, secret_value
from management_ingress.resources.store import CONFIG_MAP, DEPLOYMENT, ROUTE, SERVICE
from management_ingress.utils.errors import ResourceMissingError
from management_ingress.utils.waiters import ReadinessWaiter
from conftest import NAMESPACE, make_spec, tls_secret


@pytest.fixture
def deployments(store, owner, logger):
    return DeploymentSynchronizer(store, owner, NAMESPACE, logger=logger)


@pytest.fixture
def config_maps(store, owner, logger):
    return ConfigMapSynchronizer(store, owner, NAMESPACE, logger=logger)


class TestEnsure:
    @pytest.mark.asyncio
    async def test_create_then_unchanged(self, store, owner, logger):
        services = ServiceSynchronizer(store, owner, NAMESPACE, logger=logger)
        assert await services.ensure(services.prepare_service()) == CREATED
        assert await services.ensure(services.prepare_service()) == UNCHANGED
        assert store.replaces == []

    @pytest.mark.asyncio
    async def test_orphan_is_adopted(self, store, owner, logger):
        services = ServiceSynchronizer(store, owner, NAMESPACE, logger=logger)
        store.add(SERVICE, services.prepare_service(), NAMESPACE)

        assert await services.ensure(services.prepare_service()) == UPDATED
        live = store.peek(SERVICE, "icp-management-ingress", NAMESPACE)
        assert live.metadata.owner_references[0].uid == owner["metadata"]["uid"]

    @pytest.mark.asyncio
    async def test_conflict_without_live_object(self, store, owner, logger):
        services = ServiceSynchronizer(store, owner, NAMESPACE, logger=logger)
        conflict = ApiException(status=409, reason="Conflict")
        store.create = AsyncMock(side_effect=conflict)
        with pytest.raises(ResourceMissingError):
            await services.ensure(services.prepare_service())

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, store, owner, logger):
        services = ServiceSynchronizer(store, owner, NAMESPACE, logger=logger)
        store.create = AsyncMock(side_effect=ApiException(status=403, reason="Forbidden"))
        with pytest.raises(ApiException):
            await services.ensure(services.prepare_service())

    @pytest.mark.asyncio
    async def test_no_owner_across_namespaces(self, store, owner, logger):
        secrets = SecretSynchronizer(store, owner, NAMESPACE, logger=logger)
        await secrets.sync_cluster_ca("CA", "kube-public")
        secret = await store.get("Secret", "ibmcloud-cluster-ca-cert", "kube-public")
        assert not secret.metadata.owner_references


class TestConfigMaps:
    @pytest.mark.asyncio
    async def test_primary_config_change_restarts_deployment(
        self, store, deployments, config_maps
    ):
        await deployments.sync(make_spec(), "img:1", "host", "cluster.local")
        await config_maps.sync("management-ingress-config", {"a": "1"}, triggers_restart=True)

        outcome = await config_maps.sync(
            "management-ingress-config", {"a": "2"}, triggers_restart=True
        )

        assert outcome == UPDATED
        restarted = store.peek(DEPLOYMENT, "management-ingress", NAMESPACE)
        assert (
            "management-ingress.operator.k8s.io/config-updated"
            in restarted.spec.template.metadata.annotations
        )

    @pytest.mark.asyncio
    async def test_bind_info_change_does_not_restart(self, store, deployments, config_maps):
        await deployments.sync(make_spec(), "img:1", "host", "cluster.local")
        await config_maps.sync("management-ingress-info", {"a": "1"})
        await config_maps.sync("management-ingress-info", {"a": "2"})

        assert (DEPLOYMENT, NAMESPACE, "management-ingress") not in store.replaces
        assert (CONFIG_MAP, NAMESPACE, "management-ingress-info") in store.replaces

    @pytest.mark.asyncio
    async def test_restart_without_deployment_is_skipped(self, store, config_maps):
        await config_maps.sync("management-ingress-config", {"a": "1"}, triggers_restart=True)
        await config_maps.sync("management-ingress-config", {"a": "2"}, triggers_restart=True)
        assert store.peek(DEPLOYMENT, "management-ingress", NAMESPACE) is None


class TestCertificates:
    def test_default_issuer(self):
        assert resolve_issuer(make_spec().cert) == {"name": "cs-ca-issuer", "kind": "Issuer"}

    def test_namespaced_issuer(self):
        spec = make_spec(cert={"namespacedIssuer": {"name": "my-issuer", "kind": "ClusterIssuer"}})
        assert resolve_issuer(spec.cert) == {"name": "my-issuer", "kind": "ClusterIssuer"}

    def test_service_certificate_dns_names(self, store, owner, logger):
        certs = CertificateSynchronizer(store, owner, NAMESPACE, logger=logger)
        spec = make_spec(cert={"dnsNames": ["extra.example.com"], "ipAddresses": ["10.0.0.1"]})
        cert = certs.prepare_service_certificate(spec.cert)
        assert cert["spec"]["dnsNames"] == [
            "icp-management-ingress",
            f"icp-management-ingress.{NAMESPACE}",
            f"icp-management-ingress.{NAMESPACE}.svc",
            "extra.example.com",
        ]
        assert cert["spec"]["ipAddresses"] == ["10.0.0.1"]
        assert cert["spec"]["secretName"] == "icp-management-ingress-tls-secret"

    def test_route_certificate_without_ip_addresses(self, store, owner, logger):
        certs = CertificateSynchronizer(store, owner, NAMESPACE, logger=logger)
        cert = certs.prepare_route_certificate(make_spec().cert, "cp-console.apps.x")
        assert cert["spec"]["dnsNames"] == ["cp-console.apps.x"]
        assert "ipAddresses" not in cert["spec"]


class TestDeployment:
    def test_resolve_image_with_registry(self):
        spec = make_spec(
            imageRegistry="quay.io/opencloudio/",
            image={"repository": "icp-management-ingress", "tag": "2.5.0"},
        )
        assert resolve_image(spec, "default") == "quay.io/opencloudio/icp-management-ingress:2.5.0"

    def test_resolve_image_with_digest(self):
        spec = make_spec(image={"repository": "quay.io/ingress", "tag": "sha256:abc"})
        assert resolve_image(spec, "default") == "quay.io/ingress@sha256:abc"

    def test_resolve_image_default(self):
        assert resolve_image(make_spec(), "default:1") == "default:1"

    def test_allowed_host_headers(self):
        headers = allowed_host_headers("extra.example.com", "cp-console.apps.x", "ns").split()
        assert headers[:2] == ["extra.example.com", "cp-console.apps.x"]
        assert "iam-token-service.ns.svc" in headers
        assert "icp-management-ingress.ns" in headers

    def test_pressure_tolerations_appended_once(self, deployments):
        spec = make_spec(
            tolerations=[
                {"key": "node.kubernetes.io/disk-pressure", "operator": "Exists", "effect": "NoSchedule"},
                {"key": "dedicated", "operator": "Equal", "value": "infra", "effect": "NoSchedule"},
            ]
        )
        keys = [t.key for t in deployments.prepare_tolerations(spec.tolerations)]
        assert keys.count("node.kubernetes.io/disk-pressure") == 1
        assert "node.kubernetes.io/memory-pressure" in keys
        assert "dedicated" in keys

    def test_replicas_and_resources_from_spec(self, deployments):
        spec = make_spec(replicas=3, resources={"limits": {"cpu": "1"}})
        deployment = deployments.prepare_deployment(spec, "img:1", "host", "cluster.local")
        assert deployment.spec.replicas == 3
        assert deployment.spec.template.spec.containers[0].resources.limits == {"cpu": "1"}
        assert deployment.spec.template.metadata.labels["intent"] == "projected"

    @pytest.mark.asyncio
    async def test_replica_change_is_applied(self, store, deployments):
        await deployments.sync(make_spec(replicas=1), "img:1", "host", "cluster.local")
        assert await deployments.sync(make_spec(replicas=2), "img:1", "host", "cluster.local") == UPDATED
        assert store.peek(DEPLOYMENT, "management-ingress", NAMESPACE).spec.replicas == 2


class TestRoutes:
    @pytest.mark.asyncio
    async def test_existing_proxy_route_is_only_adopted(self, store, owner, logger, clock):
        waiter = ReadinessWaiter(store, clock=clock, sleep=clock.sleep)
        secrets = SecretSynchronizer(store, owner, NAMESPACE, logger=logger)
        routes = RouteSynchronizer(
            store, owner, NAMESPACE, logger=logger, waiter=waiter, secrets=secrets
        )
        foreign = routes.prepare_route("cp-proxy", "nginx-ingress-controller", "custom.proxy")
        store.add(ROUTE, foreign, NAMESPACE)

        await routes.sync_proxy_route("apps.x")

        live = store.peek(ROUTE, "cp-proxy", NAMESPACE)
        assert live["spec"]["host"] == "custom.proxy"
        assert live["metadata"]["ownerReferences"][0]["uid"] == owner["metadata"]["uid"]


class TestSecrets:
    def test_secret_value(self):
        secret = tls_secret("s", ca="PEM")
        assert secret_value(secret, "ca.crt") == "PEM"
        assert secret_value(secret, "missing") == ""
        assert secret_value(None, "ca.crt") == ""

    def test_has_tls_material(self):
        secret = tls_secret("s")
        assert has_tls_material(secret)
        secret.data = {"ca.crt": secret.data["ca.crt"]}
        assert not has_tls_material(secret)

    def test_has_ca_cert(self):
        secret = tls_secret("s")
        assert has_ca_cert(secret)
        secret.data = {"tls.crt": secret.data["tls.crt"]}
        assert not has_ca_cert(secret)
