from typing import Dict
from kubernetes_asyncio.client import ApiException, V1ConfigMap, V1ObjectMeta
from management_ingress.resources.base import BaseResource, UPDATED
from management_ingress.resources.store import CONFIG_MAP, DEPLOYMENT
from management_ingress.types.models.cluster_flavor import ClusterFlavor
from management_ingress.types.models.managementingress_resources import (
    ManagementIngressResources,
)
from management_ingress.types.settings import Settings
from management_ingress.utils.differ import DiffResult, diff_config_map
from management_ingress.utils.helpers import now

# cluster info keys
CLUSTER_ADDRESS = "cluster_address"
CLUSTER_CA_DOMAIN = "cluster_ca_domain"
CLUSTER_ENDPOINT = "cluster_endpoint"
CLUSTER_NAME = "cluster_name"
ROUTE_HTTP_PORT = "cluster_router_http_port"
ROUTE_HTTPS_PORT = "cluster_router_https_port"
ROUTE_BASE_DOMAIN = "openshift_router_base_domain"
VERSION = "version"
API_SERVER_HOST = "cluster_kube_apiserver_host"
API_SERVER_PORT = "cluster_kube_apiserver_port"
PROXY_ADDRESS = "proxy_address"
PROXY_HTTP_PORT = "proxy_ingress_http_port"
PROXY_HTTPS_PORT = "proxy_ingress_https_port"
NODE_PORT = "node_port"


def prepare_bind_info(host: str) -> Dict[str, str]:
    return {
        "MANAGEMENT_INGRESS_ROUTE_HOST": host,
        "MANAGEMENT_INGRESS_SERVICE_NAME": ManagementIngressResources.SERVICE_NAME,
    }


def _common_cluster_info(settings: Settings, operator_namespace: str) -> Dict[str, str]:
    return {
        CLUSTER_ENDPOINT: ManagementIngressResources.cluster_endpoint(operator_namespace),
        CLUSTER_NAME: settings.cluster_name,
        ROUTE_HTTP_PORT: settings.route_http_port,
        ROUTE_HTTPS_PORT: settings.route_https_port,
        VERSION: settings.version,
        PROXY_HTTP_PORT: "80",
        PROXY_HTTPS_PORT: "443",
    }


def prepare_standard_cluster_info(
    settings: Settings,
    operator_namespace: str,
    host: str,
    base_domain: str,
    api_server_host: str,
    api_server_port: str,
) -> Dict[str, str]:
    """Cluster info published on clusters that expose the console through routes."""
    data = _common_cluster_info(settings, operator_namespace)
    data.update(
        {
            CLUSTER_ADDRESS: host,
            CLUSTER_CA_DOMAIN: host,
            ROUTE_BASE_DOMAIN: base_domain,
            API_SERVER_HOST: api_server_host,
            API_SERVER_PORT: api_server_port,
            PROXY_ADDRESS: ManagementIngressResources.proxy_host(base_domain),
        }
    )
    return data


def prepare_cncf_cluster_info(
    settings: Settings, operator_namespace: str, flavor: ClusterFlavor
) -> Dict[str, str]:
    """Cluster info derived from the ``host[:nodeport]`` domain of a CNCF cluster."""
    address = ManagementIngressResources.console_host(flavor.domain_without_port)
    data = _common_cluster_info(settings, operator_namespace)
    data.update(
        {
            CLUSTER_ADDRESS: address,
            CLUSTER_CA_DOMAIN: address,
            PROXY_ADDRESS: address,
            NODE_PORT: flavor.node_port,
        }
    )
    return data


class ConfigMapSynchronizer(BaseResource):
    """Config maps consumed by the ingress workload and by dependent services."""

    KIND = CONFIG_MAP

    def prepare_config_map(self, name: str, data: Dict[str, str]) -> V1ConfigMap:
        return V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=V1ObjectMeta(**self.prepare_metadata(name)),
            data=dict(data or {}),
        )

    def diff(self, live, desired) -> DiffResult:
        return diff_config_map(live, desired)

    async def sync(self, name: str, data: Dict[str, str], triggers_restart: bool = False) -> str:
        """Ensure one config map.

        When a restart triggering map changed, the deployment pod template is
        annotated so its pods roll and pick up the new configuration.
        """
        outcome = await self.ensure(self.prepare_config_map(name, data))
        if outcome == UPDATED and triggers_restart:
            await self.restart_deployment()
        return outcome

    async def restart_deployment(self) -> None:
        name = ManagementIngressResources.DEPLOYMENT_NAME
        try:
            deployment = await self.store.get(DEPLOYMENT, name, self.namespace)
            if deployment is None:
                return
            template_meta = deployment.spec.template.metadata
            if template_meta is None:
                template_meta = deployment.spec.template.metadata = V1ObjectMeta()
            annotations = dict(template_meta.annotations or {})
            annotations[ManagementIngressResources.CONFIG_UPDATED_ANNOTATION] = now()
            template_meta.annotations = annotations
            self.logger.info(f"Restarting Deployment {name} after config change.")
            await self.store.replace(DEPLOYMENT, deployment, self.namespace)
        except ApiException as ex:
            self.logger.error(f"Failure restarting Deployment {name} after config change: {ex}")
