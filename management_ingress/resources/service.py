from kubernetes_asyncio.client import V1ObjectMeta, V1Service, V1ServicePort, V1ServiceSpec
from management_ingress.resources.base import BaseResource
from management_ingress.resources.store import SERVICE
from management_ingress.types.models.managementingress_resources import (
    ManagementIngressResources,
)
from management_ingress.common.models.labels import Labels
from management_ingress.utils.differ import DiffResult, diff_service

HTTPS_PORT = 443


class ServiceSynchronizer(BaseResource):
    """ClusterIP service in front of the management ingress pods."""

    KIND = SERVICE

    def prepare_service(self) -> V1Service:
        return V1Service(
            api_version="v1",
            kind="Service",
            metadata=V1ObjectMeta(
                **self.prepare_metadata(ManagementIngressResources.SERVICE_NAME)
            ),
            spec=V1ServiceSpec(
                type="ClusterIP",
                selector={Labels.COMPONENT_LABEL: ManagementIngressResources.APP_NAME},
                ports=[
                    V1ServicePort(
                        name="https",
                        port=HTTPS_PORT,
                        protocol="TCP",
                        target_port="https",
                    )
                ],
            ),
        )

    def diff(self, live, desired) -> DiffResult:
        return diff_service(live, desired)

    async def sync(self) -> None:
        await self.ensure(self.prepare_service())
