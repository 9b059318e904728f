"""Unit tests for cluster discovery and the readiness waiter."""

import pytest
from management_ingress.resources import ClusterDiscovery
from management_ingress.resources.store import CONFIG_MAP, DNS, SECRET
from management_ingress.types.models.cluster_flavor import ClusterFlavor, ClusterType
from management_ingress.utils.errors import ClusterDiscoveryError, DependencyTimeoutError
from management_ingress.utils.waiters import ReadinessWaiter
from conftest import NAMESPACE, config_map, tls_secret


class TestClusterDiscovery:
    @pytest.mark.asyncio
    async def test_standard_without_cpp_config(self, store):
        flavor = await ClusterDiscovery(store, NAMESPACE).flavor()
        assert flavor == ClusterFlavor.standard()

    @pytest.mark.asyncio
    async def test_cncf_from_cpp_config(self, cncf_cluster):
        flavor = await ClusterDiscovery(cncf_cluster, NAMESPACE).flavor()
        assert flavor.type is ClusterType.CNCF
        assert flavor.domain_name == "example.com:30443"

    @pytest.mark.asyncio
    async def test_cncf_without_domain_name(self, store):
        store.add(
            CONFIG_MAP,
            config_map("ibm-cpp-config", NAMESPACE, {"kubernetes_cluster_type": "cncf"}),
            NAMESPACE,
        )
        with pytest.raises(ClusterDiscoveryError):
            await ClusterDiscovery(store, NAMESPACE).flavor()

    @pytest.mark.asyncio
    async def test_base_domain(self, standard_cluster):
        assert await ClusterDiscovery(standard_cluster, NAMESPACE).base_domain() == "apps.example.com"

    @pytest.mark.asyncio
    async def test_base_domain_missing(self, store):
        with pytest.raises(ClusterDiscoveryError):
            await ClusterDiscovery(store, NAMESPACE).base_domain()

    @pytest.mark.asyncio
    async def test_cluster_domain_falls_back(self, store):
        domain = await ClusterDiscovery(store, NAMESPACE).cluster_domain(ClusterFlavor.standard())
        assert domain == "cluster.local"

    @pytest.mark.asyncio
    async def test_cluster_domain_from_dns_operator(self, store):
        store.add(
            DNS,
            {"metadata": {"name": "default"}, "status": {"clusterDomain": "corp.local"}},
        )
        domain = await ClusterDiscovery(store, NAMESPACE).cluster_domain(ClusterFlavor.standard())
        assert domain == "corp.local"

    @pytest.mark.asyncio
    async def test_api_server_address(self, standard_cluster):
        discovery = ClusterDiscovery(standard_cluster, NAMESPACE)
        assert await discovery.api_server_address() == ("api.example.com", "6443")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"console-config.yaml": "clusterInfo: {}"},
            {"console-config.yaml": "- not\n- a mapping"},
            {"console-config.yaml": "clusterInfo: [unclosed"},
        ],
    )
    async def test_api_server_address_errors(self, store, data):
        store.add(CONFIG_MAP, config_map("console-config", "openshift-console", data), "openshift-console")
        with pytest.raises(ClusterDiscoveryError):
            await ClusterDiscovery(store, NAMESPACE).api_server_address()


class TestReadinessWaiter:
    @pytest.mark.asyncio
    async def test_returns_existing_object_without_sleeping(self, store, clock):
        store.add(SECRET, tls_secret("route-tls-secret"), NAMESPACE)
        waiter = ReadinessWaiter(store, clock=clock, sleep=clock.sleep)
        secret = await waiter.wait_for(SECRET, "route-tls-secret", NAMESPACE)
        assert secret.metadata.name == "route-tls-secret"
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_object_appearing_later(self, store, clock):
        async def sleep(seconds):
            await clock.sleep(seconds)
            if len(clock.sleeps) == 2:
                store.add(SECRET, tls_secret("route-tls-secret"), NAMESPACE)

        waiter = ReadinessWaiter(store, timeout=60, interval=2, clock=clock, sleep=sleep)
        await waiter.wait_for(SECRET, "route-tls-secret", NAMESPACE)
        assert clock.sleeps == [2, 2]

    @pytest.mark.asyncio
    async def test_times_out(self, store, clock):
        waiter = ReadinessWaiter(store, timeout=5, interval=2, clock=clock, sleep=clock.sleep)
        with pytest.raises(DependencyTimeoutError) as excinfo:
            await waiter.wait_for(SECRET, "route-tls-secret", NAMESPACE)
        assert clock.sleeps == [2, 2, 1]
        assert "route-tls-secret" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_ready_predicate(self, store, clock):
        secret = tls_secret("route-tls-secret")
        secret.data = {}
        store.add(SECRET, secret, NAMESPACE)
        waiter = ReadinessWaiter(store, timeout=4, interval=2, clock=clock, sleep=clock.sleep)
        with pytest.raises(DependencyTimeoutError):
            await waiter.wait_for(
                SECRET, "route-tls-secret", NAMESPACE, ready=lambda s: bool(s.data)
            )
