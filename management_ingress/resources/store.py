from typing import Any, Dict, List, NamedTuple, Optional
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
)
from management_ingress.utils.errors import not_found_error
from management_ingress.utils.objects import cached_property

CONFIG_MAP = "ConfigMap"
SECRET = "Secret"
SERVICE = "Service"
SERVICE_ACCOUNT = "ServiceAccount"
POD = "Pod"
DEPLOYMENT = "Deployment"
CERTIFICATE = "Certificate"
ROUTE = "Route"
MANAGEMENT_INGRESS = "ManagementIngress"
INGRESS_CONTROLLER = "IngressController"
DNS = "DNS"


class CustomKind(NamedTuple):
    group: str
    version: str
    plural: str
    namespaced: bool = True

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"


CUSTOM_KINDS: Dict[str, CustomKind] = {
    CERTIFICATE: CustomKind("certmanager.k8s.io", "v1alpha1", "certificates"),
    ROUTE: CustomKind("route.openshift.io", "v1", "routes"),
    MANAGEMENT_INGRESS: CustomKind("operator.ibm.com", "v1alpha1", "managementingresses"),
    INGRESS_CONTROLLER: CustomKind("operator.openshift.io", "v1", "ingresscontrollers"),
    DNS: CustomKind("operator.openshift.io", "v1", "dnses", namespaced=False),
}

# kind -> (api attribute, method suffix)
CORE_KINDS = {
    CONFIG_MAP: ("core_v1_api", "config_map"),
    SECRET: ("core_v1_api", "secret"),
    SERVICE: ("core_v1_api", "service"),
    SERVICE_ACCOUNT: ("core_v1_api", "service_account"),
    POD: ("core_v1_api", "pod"),
    DEPLOYMENT: ("apps_v1_api", "deployment"),
}


def object_name(obj: Any) -> str:
    if isinstance(obj, dict):
        return obj["metadata"]["name"]
    return obj.metadata.name


class KubeObjectStore:
    """Generic get/create/replace/delete/list access to the kinds the operator touches.

    Core kinds are exchanged as kubernetes_asyncio models, custom kinds as
    plain dictionaries.
    """

    def __init__(self, api_client: ApiClient):
        self.api_client = api_client

    @cached_property
    def core_v1_api(self) -> CoreV1Api:
        return CoreV1Api(self.api_client)

    @cached_property
    def apps_v1_api(self) -> AppsV1Api:
        return AppsV1Api(self.api_client)

    @cached_property
    def custom_objects_api(self) -> CustomObjectsApi:
        return CustomObjectsApi(self.api_client)

    def _core(self, kind: str, verb: str):
        try:
            api_attr, suffix = CORE_KINDS[kind]
        except KeyError:
            raise ValueError(f"Unsupported kind: {kind}")
        return getattr(getattr(self, api_attr), f"{verb}_namespaced_{suffix}")

    async def get(self, kind: str, name: str, namespace: Optional[str] = None) -> Any:
        """Retrieve the latest state of an object, None when it does not exist."""
        try:
            if kind in CUSTOM_KINDS:
                ck = CUSTOM_KINDS[kind]
                if not ck.namespaced:
                    return await self.custom_objects_api.get_cluster_custom_object(
                        group=ck.group, version=ck.version, plural=ck.plural, name=name
                    )
                return await self.custom_objects_api.get_namespaced_custom_object(
                    group=ck.group,
                    version=ck.version,
                    namespace=namespace,
                    plural=ck.plural,
                    name=name,
                )
            return await self._core(kind, "read")(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def create(self, kind: str, obj: Any, namespace: str) -> Any:
        if kind in CUSTOM_KINDS:
            ck = CUSTOM_KINDS[kind]
            return await self.custom_objects_api.create_namespaced_custom_object(
                group=ck.group,
                version=ck.version,
                namespace=namespace,
                plural=ck.plural,
                body=obj,
            )
        return await self._core(kind, "create")(namespace=namespace, body=obj)

    async def replace(self, kind: str, obj: Any, namespace: str) -> Any:
        name = object_name(obj)
        if kind in CUSTOM_KINDS:
            ck = CUSTOM_KINDS[kind]
            return await self.custom_objects_api.replace_namespaced_custom_object(
                group=ck.group,
                version=ck.version,
                namespace=namespace,
                plural=ck.plural,
                name=name,
                body=obj,
            )
        return await self._core(kind, "replace")(name=name, namespace=namespace, body=obj)

    async def delete(self, kind: str, name: str, namespace: str) -> None:
        try:
            if kind in CUSTOM_KINDS:
                ck = CUSTOM_KINDS[kind]
                await self.custom_objects_api.delete_namespaced_custom_object(
                    group=ck.group,
                    version=ck.version,
                    namespace=namespace,
                    plural=ck.plural,
                    name=name,
                )
            else:
                await self._core(kind, "delete")(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return
            raise

    async def list(
        self, kind: str, namespace: str, label_selector: str = None
    ) -> List[Any]:
        if kind in CUSTOM_KINDS:
            ck = CUSTOM_KINDS[kind]
            result = await self.custom_objects_api.list_namespaced_custom_object(
                group=ck.group,
                version=ck.version,
                namespace=namespace,
                plural=ck.plural,
                label_selector=label_selector,
            )
            return result.get("items", [])
        result = await self._core(kind, "list")(
            namespace=namespace, label_selector=label_selector
        )
        return list(result.items or [])

    async def patch_status(
        self, kind: str, name: str, namespace: str, status: Dict[str, Any]
    ) -> Any:
        """Write the status subresource of a custom object."""
        ck = CUSTOM_KINDS[kind]
        return await self.custom_objects_api.patch_namespaced_custom_object_status(
            group=ck.group,
            version=ck.version,
            namespace=namespace,
            plural=ck.plural,
            name=name,
            body={"status": status},
        )
