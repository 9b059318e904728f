import base64
from typing import Dict, Optional
from kubernetes_asyncio.client import V1ObjectMeta, V1Secret
from management_ingress.resources.base import BaseResource
from management_ingress.resources.store import SECRET
from management_ingress.types.models.managementingress_resources import (
    ManagementIngressResources,
)
from management_ingress.utils.differ import DiffResult, diff_secret

TLS_CRT = "tls.crt"
TLS_KEY = "tls.key"
CA_CRT = "ca.crt"


def secret_value(secret: Optional[V1Secret], key: str) -> str:
    """Decoded value of one secret key, empty when absent."""
    if secret is None or not secret.data:
        return ""
    value = secret.data.get(key)
    if not value:
        return ""
    return base64.b64decode(value).decode("utf-8")


def has_tls_material(secret: V1Secret) -> bool:
    return bool(secret_value(secret, TLS_CRT) and secret_value(secret, TLS_KEY))


def has_ca_cert(secret: V1Secret) -> bool:
    return bool(secret_value(secret, CA_CRT))


class SecretSynchronizer(BaseResource):
    """Secrets the operator publishes itself, e.g. the cluster CA bundle."""

    KIND = SECRET

    def prepare_secret(self, name: str, data: Dict[str, str], namespace: str = None) -> V1Secret:
        """Build an opaque secret; ``data`` holds encoded (base64) values."""
        return V1Secret(
            api_version="v1",
            kind="Secret",
            type="Opaque",
            metadata=V1ObjectMeta(**self.prepare_metadata(name, namespace)),
            data=dict(data),
        )

    def prepare_cluster_ca_secret(self, ca_crt: str, namespace: str) -> V1Secret:
        return self.prepare_secret(
            ManagementIngressResources.CLUSTER_CA_SECRET_NAME,
            {CA_CRT: base64.b64encode(ca_crt.encode("utf-8")).decode("ascii")},
            namespace,
        )

    def diff(self, live, desired) -> DiffResult:
        return diff_secret(live, desired)

    async def sync_cluster_ca(self, ca_crt: str, namespace: str) -> str:
        return await self.ensure(self.prepare_cluster_ca_secret(ca_crt, namespace), namespace)
