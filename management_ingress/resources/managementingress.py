import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, NamedTuple, Optional
from management_ingress.common.models.labels import Labels
from management_ingress.resources.certificate import CertificateSynchronizer
from management_ingress.resources.configmap import (
    ConfigMapSynchronizer,
    prepare_bind_info,
    prepare_cncf_cluster_info,
    prepare_standard_cluster_info,
)
from management_ingress.resources.deployment import (
    DeploymentSynchronizer,
    ServiceAccountSynchronizer,
    resolve_image,
)
from management_ingress.resources.discovery import ClusterDiscovery
from management_ingress.resources.route import RouteSynchronizer
from management_ingress.resources.secret import (
    CA_CRT,
    SecretSynchronizer,
    has_tls_material,
    secret_value,
)
from management_ingress.resources.service import ServiceSynchronizer
from management_ingress.resources.store import (
    CUSTOM_KINDS,
    MANAGEMENT_INGRESS,
    POD,
    SECRET,
)
from management_ingress.types.models.cluster_flavor import ClusterFlavor, ClusterType
from management_ingress.types.models.managementingress_resources import (
    ManagementIngressResources,
)
from management_ingress.types.models.managementingress_spec import ManagementIngressSpec
from management_ingress.types.models.managementingress_status import (
    COND_DISCOVERING_CLUSTER_INFO,
    COND_RESOURCE_CREATING,
    COND_RESOURCE_FAILED_ON_CREATION,
    COND_WAITING_RESOURCE,
    POD_FAILED,
    POD_NOT_READY,
    POD_READY,
    STATUS_DEPLOYING,
    STATUS_FAILED,
    STATUS_SUCCESSFUL,
    ManagementIngressStatus,
    OperandState,
)
from management_ingress.types.schemas.managementingress_status import (
    ManagementIngressStatusSchema,
)
from management_ingress.types.settings import Settings
from management_ingress.utils.errors import (
    ClusterDiscoveryError,
    DependencyTimeoutError,
    ManagementIngressError,
    SyncError,
)
from management_ingress.utils.helpers import (
    label_selector,
    status_timestamp,
    to_plain,
    upsert_condition,
)
from management_ingress.utils.objects import cached_property
from management_ingress.utils.waiters import ReadinessWaiter
from kubernetes_asyncio.client import ApiException

FAILURE_CONDITIONS = (
    COND_RESOURCE_FAILED_ON_CREATION,
    COND_WAITING_RESOURCE,
    COND_DISCOVERING_CLUSTER_INFO,
)


class ReconcileResult(NamedTuple):
    requeue: bool = False
    host: Optional[str] = None


class FlavorPlan(NamedTuple):
    """Step implementations selected for one cluster flavor."""

    flavor: ClusterFlavor
    cluster_info: Callable[[str], Awaitable[Dict[str, str]]]
    exposure_kind: str
    exposure: Callable[[str], Awaitable[None]]
    header_host: Callable[[str], str]


def bucket_pods(pods: List[Any]) -> Dict[str, List[str]]:
    """Sort pod names into ready, notReady and failed."""
    state = {POD_READY: [], POD_NOT_READY: [], POD_FAILED: []}
    for pod in pods:
        phase = pod.status.phase if pod.status else None
        statuses = (pod.status.container_statuses if pod.status else None) or []
        if phase == "Failed":
            state[POD_FAILED].append(pod.metadata.name)
        elif phase == "Running" and statuses and all(s.ready for s in statuses):
            state[POD_READY].append(pod.metadata.name)
        else:
            state[POD_NOT_READY].append(pod.metadata.name)
    return {key: sorted(names) for key, names in state.items()}


class ManagementIngress:
    """Reconciles everything a ManagementIngress custom resource owns.

    The object store is injected so that the whole sequence can run against
    an in-memory store.
    """

    KIND = MANAGEMENT_INGRESS

    name: str
    namespace: str
    spec: ManagementIngressSpec
    status: ManagementIngressStatus
    owner: Mapping[str, Any]

    def __init__(
        self,
        name: str,
        namespace: str,
        spec: ManagementIngressSpec,
        owner: Mapping[str, Any],
        status: ManagementIngressStatus,
        store,
        settings: Settings = None,
        waiter: ReadinessWaiter = None,
        logger: logging.Logger = None,
    ):
        self.name = name
        self.namespace = namespace
        self.spec = spec
        self.owner = owner
        self.status = status
        self.store = store
        self.conf = settings or Settings()
        self.logger = logger or logging.getLogger(__name__)
        self.waiter = waiter or ReadinessWaiter(
            store,
            timeout=self.conf.wait_timeout_seconds,
            interval=self.conf.wait_interval_seconds,
            logger=self.logger,
        )
        self._persisted_status = self.dump_status(status)
        self._base_domain: Optional[str] = None

    @classmethod
    def from_spec(
        cls,
        name: str,
        namespace: str,
        spec: ManagementIngressSpec,
        body: Mapping[str, Any],
        store,
        settings: Settings = None,
        waiter: ReadinessWaiter = None,
        logger: logging.Logger = None,
    ) -> "ManagementIngress":
        body = to_plain(body)
        metadata = body.get("metadata") or {}
        owner = {
            "apiVersion": body.get("apiVersion") or CUSTOM_KINDS[MANAGEMENT_INGRESS].api_version,
            "kind": body.get("kind") or MANAGEMENT_INGRESS,
            "metadata": {
                "name": metadata.get("name", name),
                "namespace": metadata.get("namespace", namespace),
                "uid": metadata.get("uid"),
            },
        }
        status = ManagementIngressStatusSchema().load(body.get("status") or {})
        return cls(
            name,
            namespace,
            spec,
            owner,
            status,
            store,
            settings=settings,
            waiter=waiter,
            logger=logger,
        )

    @cached_property
    def operator_namespace(self) -> str:
        return self.conf.operator_namespace(self.namespace)

    def _synchronizer(self, klass, **kwargs):
        return klass(self.store, self.owner, self.namespace, logger=self.logger, **kwargs)

    @cached_property
    def discovery(self) -> ClusterDiscovery:
        return ClusterDiscovery(self.store, self.operator_namespace, logger=self.logger)

    @cached_property
    def certificates(self) -> CertificateSynchronizer:
        return self._synchronizer(CertificateSynchronizer)

    @cached_property
    def services(self) -> ServiceSynchronizer:
        return self._synchronizer(ServiceSynchronizer)

    @cached_property
    def config_maps(self) -> ConfigMapSynchronizer:
        return self._synchronizer(ConfigMapSynchronizer)

    @cached_property
    def secrets(self) -> SecretSynchronizer:
        return self._synchronizer(SecretSynchronizer)

    @cached_property
    def routes(self) -> RouteSynchronizer:
        return self._synchronizer(RouteSynchronizer, waiter=self.waiter, secrets=self.secrets)

    @cached_property
    def service_accounts(self) -> ServiceAccountSynchronizer:
        return self._synchronizer(ServiceAccountSynchronizer)

    @cached_property
    def deployments(self) -> DeploymentSynchronizer:
        return self._synchronizer(DeploymentSynchronizer)

    async def base_domain(self) -> str:
        if self._base_domain is None:
            self._base_domain = await self.discovery.base_domain()
        return self._base_domain

    def plan(self, flavor: ClusterFlavor) -> FlavorPlan:
        if not flavor.has_routes:
            return FlavorPlan(
                flavor=flavor,
                cluster_info=self.prepare_cncf_cluster_info,
                exposure_kind="cluster CA secret",
                exposure=self.sync_cluster_ca_secret,
                header_host=lambda host: host.rpartition(":")[0] or host,
            )
        return FlavorPlan(
            flavor=flavor,
            cluster_info=self.prepare_standard_cluster_info,
            exposure_kind="route",
            exposure=self.sync_routes,
            header_host=lambda host: host,
        )

    async def resolve_host(self, flavor: ClusterFlavor) -> str:
        """Explicit route host, else a host derived from the cluster domain."""
        if self.spec.route_host:
            return self.spec.route_host
        if flavor.type is ClusterType.CNCF:
            return ManagementIngressResources.console_host(flavor.domain_name)
        namespace = self.namespace if self.spec.multiple_instances_enabled else None
        return ManagementIngressResources.console_host(await self.base_domain(), namespace)

    async def check_upgrade_compatibility(self) -> bool:
        """Delete a deployment created with the legacy selector; True when requeue is needed."""
        if not await self.deployments.has_legacy_selector():
            return False
        self.logger.info(
            f"Deployment {ManagementIngressResources.DEPLOYMENT_NAME} has a legacy "
            f"{Labels.KUBERNETES_MANAGED_BY_LABEL} selector, deleting it so it can be recreated"
        )
        await self.deployments.delete()
        return True

    async def synchronize(self) -> ReconcileResult:
        """Run the reconcile sequence; the first failure stops it."""
        if await self.check_upgrade_compatibility():
            return ReconcileResult(requeue=True)
        try:
            plan = self.plan(await self.discovery.flavor())
            host = await self.resolve_host(plan.flavor)
            await self.sync_status_host(host)
            await self.run_step("certificates", self.sync_certificates, host)
            await self.run_step("service", self.sync_service)
            await self.run_step("configmap", self.sync_config_maps, plan, host)
            await self.run_step(plan.exposure_kind, plan.exposure, host)
            await self.run_step("deployment", self.sync_deployment, plan, host)
        except ManagementIngressError as ex:
            await self.record_failure(ex)
            raise
        await self.sync_status_completed()
        return ReconcileResult(host=host)

    async def run_step(self, kind: str, step: Callable[..., Awaitable[Any]], *args) -> Any:
        self.logger.debug(f"Reconciling {kind} for {self.KIND}/{self.name}")
        try:
            return await step(*args)
        except Exception as ex:
            raise SyncError(kind, self.name, ex) from ex

    async def sync_certificates(self, host: str) -> None:
        await self.certificates.sync(self.spec.cert, host)

    async def sync_service(self) -> None:
        await self.services.sync()

    async def sync_config_maps(self, plan: FlavorPlan, host: str) -> None:
        await self.config_maps.sync(
            ManagementIngressResources.CONFIG_NAME, self.spec.config, triggers_restart=True
        )
        await self.config_maps.sync(
            ManagementIngressResources.BIND_INFO_CONFIG_NAME, prepare_bind_info(host)
        )
        await self.config_maps.sync(
            ManagementIngressResources.CLUSTER_INFO_CONFIG_NAME, await plan.cluster_info(host)
        )

    async def prepare_standard_cluster_info(self, host: str) -> Dict[str, str]:
        api_host, api_port = await self.discovery.api_server_address()
        return prepare_standard_cluster_info(
            self.conf,
            self.operator_namespace,
            host,
            await self.base_domain(),
            api_host,
            api_port,
        )

    async def prepare_cncf_cluster_info(self, host: str) -> Dict[str, str]:
        flavor = await self.discovery.flavor()
        return prepare_cncf_cluster_info(self.conf, self.operator_namespace, flavor)

    async def sync_routes(self, host: str) -> None:
        await self.routes.sync(host, await self.base_domain(), self.operator_namespace)

    async def sync_cluster_ca_secret(self, host: str) -> None:
        """Without routes, only the CA of the route certificate is published."""
        route_secret = await self.waiter.wait_for(
            SECRET,
            ManagementIngressResources.ROUTE_SECRET_NAME,
            self.namespace,
            ready=has_tls_material,
        )
        await self.secrets.sync_cluster_ca(
            secret_value(route_secret, CA_CRT), self.operator_namespace
        )

    async def sync_deployment(self, plan: FlavorPlan, host: str) -> None:
        await self.service_accounts.sync()
        image = resolve_image(self.spec, self.conf.operand_image)
        if not image:
            raise ManagementIngressError(
                "no operand image: set spec.image or ICP_MANAGEMENT_INGRESS_IMAGE"
            )
        cluster_domain = await self.discovery.cluster_domain(plan.flavor)
        await self.deployments.sync(self.spec, image, plan.header_host(host), cluster_domain)

    # --- status -------------------------------------------------------

    @staticmethod
    def dump_status(status: ManagementIngressStatus) -> Dict[str, Any]:
        return ManagementIngressStatusSchema().dump(status)

    async def write_status(self) -> None:
        """Persist ``self.status`` when it differs from what the server has."""
        current = self.dump_status(self.status)
        if current == self._persisted_status:
            return
        patch = dict(current)
        for field in ("condition", "podstate"):
            removed = set(self._persisted_status.get(field) or {}) - set(current.get(field) or {})
            if removed:
                patch[field] = {**(current.get(field) or {}), **{key: None for key in removed}}
        await self.store.patch_status(self.KIND, self.name, self.namespace, patch)
        self._persisted_status = current

    async def sync_status_host(self, host: str) -> None:
        if self.status.host and self.status.host == host:
            return
        self.logger.info(f"Setting status host to {host}")
        self.status = ManagementIngressStatus(
            conditions={},
            pod_state={},
            host=host,
            operand_state=OperandState(
                status=STATUS_DEPLOYING,
                message=f"Get router host for management ingress at {status_timestamp()}",
            ),
        )
        await self.write_status()

    async def sync_status_completed(self) -> None:
        pods = await self.store.list(
            POD,
            self.namespace,
            label_selector=label_selector(
                {Labels.COMPONENT_LABEL: ManagementIngressResources.APP_NAME}
            ),
        )
        conditions = {kind: list(conds) for kind, conds in (self.status.conditions or {}).items()}
        for kind, conds in conditions.items():
            for cond in list(conds):
                if cond.get("type") in FAILURE_CONDITIONS and cond.get("status") == "True":
                    conds = upsert_condition(
                        conds,
                        {"type": cond["type"], "status": "False", "reason": "Recovered", "message": ""},
                    )
            conditions[kind] = conds
        conditions[self.KIND] = upsert_condition(
            conditions.get(self.KIND),
            {
                "type": COND_RESOURCE_CREATING,
                "status": "False",
                "reason": "Reconciled",
                "message": "All resources are reconciled",
            },
        )
        self.status = ManagementIngressStatus(
            conditions=conditions,
            pod_state=bucket_pods(pods),
            host=self.status.host,
            operand_state=OperandState(
                status=STATUS_SUCCESSFUL, message="Management ingress is reconciled"
            ),
        )
        await self.write_status()

    async def record_failure(self, error: ManagementIngressError) -> None:
        cause = error.cause if isinstance(error, SyncError) else error
        if isinstance(cause, DependencyTimeoutError):
            cond_type = COND_WAITING_RESOURCE
        elif isinstance(cause, ClusterDiscoveryError):
            cond_type = COND_DISCOVERING_CLUSTER_INFO
        else:
            cond_type = COND_RESOURCE_FAILED_ON_CREATION
        kind = error.kind if isinstance(error, SyncError) else self.KIND
        conditions = {k: list(v) for k, v in (self.status.conditions or {}).items()}
        conditions[kind] = upsert_condition(
            conditions.get(kind),
            {"type": cond_type, "status": "True", "reason": "Error", "message": str(error)},
        )
        self.status = ManagementIngressStatus(
            conditions=conditions,
            pod_state=dict(self.status.pod_state or {}),
            host=self.status.host,
            operand_state=OperandState(status=STATUS_FAILED, message=str(error)),
        )
        try:
            await self.write_status()
        except ApiException as ex:
            self.logger.error(f"Failed to record failure in status of {self.KIND}/{self.name}: {ex}")
