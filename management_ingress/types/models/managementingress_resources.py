from typing import List


class ManagementIngressResources:
    """Encapsulates the naming scheme of the objects the operator manages for a
    ManagementIngress."""

    APP_NAME = "management-ingress"
    SERVICE_NAME = "icp-management-ingress"
    DEPLOYMENT_NAME = APP_NAME
    SERVICE_ACCOUNT_NAME = APP_NAME
    CONTAINER_NAME = APP_NAME
    IAM_TOKEN_SERVICE = "iam-token-service"

    CONFIG_NAME = "management-ingress-config"
    BIND_INFO_CONFIG_NAME = "management-ingress-info"
    CLUSTER_INFO_CONFIG_NAME = "ibmcloud-cluster-info"

    CERT_NAME = "management-ingress-cert"
    TLS_SECRET_NAME = "icp-management-ingress-tls-secret"
    ROUTE_CERT_NAME = "route-cert"
    ROUTE_SECRET_NAME = "route-tls-secret"
    CLUSTER_CA_SECRET_NAME = "ibmcloud-cluster-ca-cert"

    CONSOLE_ROUTE_NAME = "cp-console"
    PROXY_ROUTE_NAME = "cp-proxy"
    PROXY_SERVICE_NAME = "nginx-ingress-controller"

    DEFAULT_ISSUER_NAME = "cs-ca-issuer"
    DEFAULT_ISSUER_KIND = "Issuer"

    CONFIG_UPDATED_ANNOTATION = "management-ingress.operator.k8s.io/config-updated"

    @classmethod
    def qualified_service_names(cls, name: str, namespace: str) -> List[str]:
        """In-cluster DNS names of a service."""
        return [name, f"{name}.{namespace}", f"{name}.{namespace}.svc"]

    @classmethod
    def cluster_endpoint(cls, operator_namespace: str) -> str:
        return f"https://{cls.SERVICE_NAME}.{operator_namespace}.svc:443"

    @classmethod
    def console_host(cls, base_domain: str, namespace: str = None) -> str:
        """Default console route host, namespaced when several instances share a cluster."""
        if namespace:
            return f"{cls.CONSOLE_ROUTE_NAME}-{namespace}.{base_domain}"
        return f"{cls.CONSOLE_ROUTE_NAME}.{base_domain}"

    @classmethod
    def proxy_host(cls, base_domain: str) -> str:
        return f"{cls.PROXY_ROUTE_NAME}.{base_domain}"
