from typing import Any, Dict, List, Optional
from management_ingress.resources.base import BaseResource
from management_ingress.resources.store import CERTIFICATE, CUSTOM_KINDS
from management_ingress.types.models.managementingress_resources import (
    ManagementIngressResources,
)
from management_ingress.types.models.managementingress_spec import Cert
from management_ingress.utils.differ import DiffResult, diff_certificate

CERT_DURATION = "8760h"
CERT_RENEW_BEFORE = "24h"
CERT_USAGES = ["digital signature", "key encipherment", "server auth"]


def resolve_issuer(cert: Optional[Cert]) -> Dict[str, str]:
    """Namespaced issuer from the custom resource, or the default CA issuer."""
    issuer = getattr(cert, "namespaced_issuer", None)
    if issuer is None or not issuer.name:
        return {
            "name": ManagementIngressResources.DEFAULT_ISSUER_NAME,
            "kind": ManagementIngressResources.DEFAULT_ISSUER_KIND,
        }
    return {"name": issuer.name, "kind": issuer.kind or "Issuer"}


class CertificateSynchronizer(BaseResource):
    """cert-manager certificates for the service and the console route."""

    KIND = CERTIFICATE

    def prepare_certificate(
        self,
        name: str,
        secret_name: str,
        dns_names: List[str],
        ip_addresses: List[str],
        issuer: Dict[str, str],
    ) -> Dict[str, Any]:
        spec = {
            "commonName": ManagementIngressResources.APP_NAME,
            "duration": CERT_DURATION,
            "renewBefore": CERT_RENEW_BEFORE,
            "secretName": secret_name,
            "issuerRef": dict(issuer),
            "dnsNames": list(dns_names),
            "usages": list(CERT_USAGES),
        }
        if ip_addresses:
            spec["ipAddresses"] = list(ip_addresses)
        return {
            "apiVersion": CUSTOM_KINDS[CERTIFICATE].api_version,
            "kind": CERTIFICATE,
            "metadata": self.prepare_metadata(name),
            "spec": spec,
        }

    def prepare_service_certificate(self, cert: Optional[Cert]) -> Dict[str, Any]:
        dns_names = ManagementIngressResources.qualified_service_names(
            ManagementIngressResources.SERVICE_NAME, self.namespace
        ) + list(getattr(cert, "dns_names", None) or [])
        return self.prepare_certificate(
            ManagementIngressResources.CERT_NAME,
            ManagementIngressResources.TLS_SECRET_NAME,
            dns_names,
            list(getattr(cert, "ip_addresses", None) or []),
            resolve_issuer(cert),
        )

    def prepare_route_certificate(self, cert: Optional[Cert], host: str) -> Dict[str, Any]:
        return self.prepare_certificate(
            ManagementIngressResources.ROUTE_CERT_NAME,
            ManagementIngressResources.ROUTE_SECRET_NAME,
            [host],
            [],
            resolve_issuer(cert),
        )

    def diff(self, live, desired) -> DiffResult:
        return diff_certificate(live, desired)

    async def sync(self, cert: Optional[Cert], host: str) -> None:
        """Ensure the service certificate, then the route certificate."""
        await self.ensure(self.prepare_service_certificate(cert))
        await self.ensure(self.prepare_route_certificate(cert, host))
