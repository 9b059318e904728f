from typing import Any, Dict
from kubernetes_asyncio.client import ApiException
from management_ingress.resources.base import BaseResource, CREATED
from management_ingress.resources.secret import (
    CA_CRT,
    TLS_CRT,
    TLS_KEY,
    SecretSynchronizer,
    has_ca_cert,
    has_tls_material,
    secret_value,
)
from management_ingress.resources.store import CUSTOM_KINDS, ROUTE, SECRET
from management_ingress.types.models.managementingress_resources import (
    ManagementIngressResources,
)
from management_ingress.utils.differ import DiffResult, diff_route
from management_ingress.utils.waiters import ReadinessWaiter

TERMINATION_REENCRYPT = "reencrypt"
TERMINATION_PASSTHROUGH = "passthrough"
INSECURE_REDIRECT = "Redirect"


class RouteSynchronizer(BaseResource):
    """Console and proxy routes on clusters with route support."""

    KIND = ROUTE

    def __init__(self, *args, waiter: ReadinessWaiter, secrets: SecretSynchronizer, **kwargs):
        super().__init__(*args, **kwargs)
        self.waiter = waiter
        self.secrets = secrets

    def prepare_route(
        self,
        name: str,
        service_name: str,
        host: str,
        cert: str = "",
        key: str = "",
        ca_cert: str = "",
        destination_ca_cert: str = "",
    ) -> Dict[str, Any]:
        """Reencrypt when all TLS material is known, passthrough otherwise."""
        if cert and key and ca_cert and destination_ca_cert:
            tls = {
                "termination": TERMINATION_REENCRYPT,
                "insecureEdgeTerminationPolicy": INSECURE_REDIRECT,
                "certificate": cert,
                "key": key,
                "caCertificate": ca_cert,
                "destinationCACertificate": destination_ca_cert,
            }
        else:
            tls = {
                "termination": TERMINATION_PASSTHROUGH,
                "insecureEdgeTerminationPolicy": INSECURE_REDIRECT,
            }
        return {
            "apiVersion": CUSTOM_KINDS[ROUTE].api_version,
            "kind": ROUTE,
            "metadata": self.prepare_metadata(name),
            "spec": {
                "host": host,
                "port": {"targetPort": "https"},
                "to": {"kind": "Service", "name": service_name},
                "tls": tls,
            },
        }

    def diff(self, live, desired) -> DiffResult:
        return diff_route(live, desired)

    async def sync(self, host: str, base_domain: str, operator_namespace: str) -> None:
        """Publish the console route (with the route certificate) and the proxy route."""
        route_secret = await self.waiter.wait_for(
            SECRET,
            ManagementIngressResources.ROUTE_SECRET_NAME,
            self.namespace,
            ready=lambda s: has_tls_material(s) and has_ca_cert(s),
        )
        cert = secret_value(route_secret, TLS_CRT)
        key = secret_value(route_secret, TLS_KEY)
        ca_cert = secret_value(route_secret, CA_CRT)

        ingress_secret = await self.waiter.wait_for(
            SECRET,
            ManagementIngressResources.TLS_SECRET_NAME,
            self.namespace,
            ready=has_ca_cert,
        )
        destination_ca_cert = secret_value(ingress_secret, CA_CRT)

        await self.secrets.sync_cluster_ca(ca_cert, operator_namespace)

        await self.ensure(
            self.prepare_route(
                ManagementIngressResources.CONSOLE_ROUTE_NAME,
                ManagementIngressResources.SERVICE_NAME,
                host,
                cert,
                key,
                ca_cert,
                destination_ca_cert,
            )
        )
        await self.sync_proxy_route(base_domain)

    async def sync_proxy_route(self, base_domain: str) -> None:
        """The proxy route may be owned by another installer; only adopt it."""
        desired = self.prepare_route(
            ManagementIngressResources.PROXY_ROUTE_NAME,
            ManagementIngressResources.PROXY_SERVICE_NAME,
            ManagementIngressResources.proxy_host(base_domain),
        )
        outcome = await self.ensure_once(desired)
        if outcome == CREATED:
            return
        live = await self.fetch(ManagementIngressResources.PROXY_ROUTE_NAME)
        if live is not None and self.adopt_orphan(live):
            self.logger.info(
                f"Route {ManagementIngressResources.PROXY_ROUTE_NAME} exists, "
                "adding owner reference"
            )
            try:
                await self.store.replace(ROUTE, live, self.namespace)
            except ApiException as ex:
                self.logger.error(f"Error updating proxy Route owner reference: {ex}")
