import logging
import yaml
from typing import Tuple
from management_ingress.resources.store import CONFIG_MAP, DNS, INGRESS_CONTROLLER
from management_ingress.types.models.cluster_flavor import (
    ClusterFlavor,
    ClusterType,
    split_node_port,
)
from management_ingress.utils.errors import ClusterDiscoveryError

CPP_CONFIG_NAME = "ibm-cpp-config"
CPP_CLUSTER_TYPE_KEY = "kubernetes_cluster_type"
CPP_DOMAIN_NAME_KEY = "domain_name"

INGRESS_OPERATOR_NAMESPACE = "openshift-ingress-operator"
DEFAULT_OPERATOR_CONFIG = "default"
DEFAULT_CLUSTER_DOMAIN = "cluster.local"

CONSOLE_CONFIG_NAME = "console-config"
CONSOLE_NAMESPACE = "openshift-console"
CONSOLE_CONFIG_KEY = "console-config.yaml"


class ClusterDiscovery:
    """Reads what the operator needs to know about the cluster it runs on."""

    def __init__(self, store, operator_namespace: str, logger: logging.Logger = None):
        self.store = store
        self.operator_namespace = operator_namespace
        self.logger = logger or logging.getLogger(__name__)

    async def flavor(self) -> ClusterFlavor:
        """CNCF when the cpp config says so, standard otherwise."""
        cpp_config = await self.store.get(CONFIG_MAP, CPP_CONFIG_NAME, self.operator_namespace)
        data = (cpp_config.data or {}) if cpp_config is not None else {}
        if data.get(CPP_CLUSTER_TYPE_KEY) != ClusterType.CNCF.value:
            return ClusterFlavor.standard()
        domain_name = data.get(CPP_DOMAIN_NAME_KEY)
        if not domain_name:
            raise ClusterDiscoveryError(
                f"{CPP_DOMAIN_NAME_KEY} is missing from config map "
                f"{self.operator_namespace}/{CPP_CONFIG_NAME}"
            )
        return ClusterFlavor.cncf(domain_name)

    async def base_domain(self) -> str:
        """Application domain of the default ingress controller."""
        ingress = await self.store.get(
            INGRESS_CONTROLLER, DEFAULT_OPERATOR_CONFIG, INGRESS_OPERATOR_NAMESPACE
        )
        domain = ((ingress or {}).get("status") or {}).get("domain")
        if not domain:
            raise ClusterDiscoveryError(
                "the router domain from the config of the ingress controller operator is empty"
            )
        return domain

    async def cluster_domain(self, flavor: ClusterFlavor) -> str:
        if flavor.type is ClusterType.CNCF:
            return DEFAULT_CLUSTER_DOMAIN
        dns = await self.store.get(DNS, DEFAULT_OPERATOR_CONFIG, None)
        domain = ((dns or {}).get("status") or {}).get("clusterDomain")
        if not domain:
            self.logger.warning(
                f"DNS operator reports no cluster domain, using {DEFAULT_CLUSTER_DOMAIN}"
            )
            return DEFAULT_CLUSTER_DOMAIN
        return domain

    async def api_server_address(self) -> Tuple[str, str]:
        """Host and port of the API server published by the console."""
        console = await self.store.get(CONFIG_MAP, CONSOLE_CONFIG_NAME, CONSOLE_NAMESPACE)
        if console is None or not (console.data or {}).get(CONSOLE_CONFIG_KEY):
            raise ClusterDiscoveryError(
                f"config map {CONSOLE_NAMESPACE}/{CONSOLE_CONFIG_NAME} has no {CONSOLE_CONFIG_KEY}"
            )
        try:
            config = yaml.safe_load(console.data[CONSOLE_CONFIG_KEY]) or {}
        except yaml.YAMLError as ex:
            raise ClusterDiscoveryError(f"unable to parse {CONSOLE_CONFIG_KEY}: {ex}") from ex
        if not isinstance(config, dict):
            raise ClusterDiscoveryError(f"{CONSOLE_CONFIG_KEY} is not a mapping")
        url = ((config.get("clusterInfo") or {}).get("masterPublicURL") or "").strip()
        if not url:
            raise ClusterDiscoveryError("clusterInfo.masterPublicURL is not set in console config")
        address = url[len("https://"):] if url.startswith("https://") else url
        host, port = split_node_port(address)
        return host, port
