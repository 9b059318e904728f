from typing import Dict, List, Optional
from kubernetes_asyncio.client import (
    V1Affinity,
    V1ConfigMapKeySelector,
    V1Container,
    V1ContainerPort,
    V1Deployment,
    V1DeploymentSpec,
    V1EnvVar,
    V1EnvVarSource,
    V1HTTPGetAction,
    V1LabelSelector,
    V1LabelSelectorRequirement,
    V1ObjectFieldSelector,
    V1ObjectMeta,
    V1PodAffinityTerm,
    V1PodAntiAffinity,
    V1PodSpec,
    V1PodTemplateSpec,
    V1Probe,
    V1ResourceRequirements,
    V1SecretKeySelector,
    V1SecretVolumeSource,
    V1SecurityContext,
    V1ServiceAccount,
    V1Toleration,
    V1TopologySpreadConstraint,
    V1Volume,
    V1VolumeMount,
    V1WeightedPodAffinityTerm,
)
from management_ingress.common.models.labels import Labels
from management_ingress.resources.base import BaseResource
from management_ingress.resources.store import DEPLOYMENT, SERVICE_ACCOUNT
from management_ingress.types.models.managementingress_resources import (
    ManagementIngressResources,
)
from management_ingress.types.models.managementingress_spec import (
    ManagementIngressSpec,
    ResourceRequirements,
    Toleration,
)
from management_ingress.utils.differ import DiffResult, diff_deployment, tolerations_equal

DEFAULT_REPLICAS = 1
HTTPS_PORT = 8443
HTTP_PORT = 8080
TLS_VOLUME_NAME = "tls-secret"
TLS_MOUNT_PATH = "/var/run/secrets/tls"
TLS_VOLUME_MODE = 0o644
TERMINATION_GRACE_PERIOD_SECONDS = 30

DEFAULT_LIMITS = {"memory": "512Mi", "cpu": "200m"}
DEFAULT_REQUESTS = {"memory": "300Mi", "cpu": "50m"}

NAMESPACE_SCOPE_CONFIG_MAP = "namespace-scope"
PLATFORM_AUTH_CONFIG_MAP = "platform-auth-idp"
PLATFORM_AUTH_SECRET = "platform-oidc-credentials"

PRODUCT_ANNOTATIONS = {
    "productName": "IBM Cloud Platform Common Services",
    "productID": "068a62892a1e4db39641342e592daa25",
    "productMetric": "FREE",
}
POD_ANNOTATIONS = {
    "scheduler.alpha.kubernetes.io/critical-pod": "",
    "clusterhealth.ibm.com/dependencies": "cert-manager, auth-idp",
}

PRESSURE_TOLERATIONS = [
    ("node.kubernetes.io/memory-pressure", "Exists", "NoSchedule"),
    ("node.kubernetes.io/disk-pressure", "Exists", "NoSchedule"),
]


def resolve_image(spec: ManagementIngressSpec, default_image: str) -> str:
    """Image named in the custom resource, else the operator wide default."""
    image = spec.image
    if image is None or not image.repository:
        return default_image
    repository = image.repository
    if spec.image_registry and "/" not in repository:
        repository = f"{spec.image_registry.rstrip('/')}/{repository}"
    if image.tag:
        separator = "@" if image.tag.startswith("sha256:") else ":"
        return f"{repository}{separator}{image.tag}"
    return repository


def allowed_host_headers(
    allowed_host_header: Optional[str], host: str, namespace: str
) -> str:
    """Space separated host headers the ingress accepts."""
    services = (
        ManagementIngressResources.SERVICE_NAME,
        ManagementIngressResources.IAM_TOKEN_SERVICE,
    )
    headers = [allowed_host_header or "", host, *services]
    for service in services:
        headers.extend(
            ManagementIngressResources.qualified_service_names(service, namespace)[1:]
        )
    return " ".join(headers)


def _config_map_env(name: str, config_map: str, key: str) -> V1EnvVar:
    return V1EnvVar(
        name=name,
        value_from=V1EnvVarSource(
            config_map_key_ref=V1ConfigMapKeySelector(name=config_map, key=key)
        ),
    )


def _field_env(name: str, field_path: str) -> V1EnvVar:
    return V1EnvVar(
        name=name,
        value_from=V1EnvVarSource(
            field_ref=V1ObjectFieldSelector(api_version="v1", field_path=field_path)
        ),
    )


def _probe(failure_threshold: int = None) -> V1Probe:
    return V1Probe(
        http_get=V1HTTPGetAction(path="/healthz", port=HTTP_PORT, scheme="HTTP"),
        timeout_seconds=1,
        initial_delay_seconds=10,
        period_seconds=10,
        failure_threshold=failure_threshold,
    )


class ServiceAccountSynchronizer(BaseResource):
    KIND = SERVICE_ACCOUNT

    def prepare_service_account(self) -> V1ServiceAccount:
        return V1ServiceAccount(
            api_version="v1",
            kind="ServiceAccount",
            metadata=V1ObjectMeta(
                **self.prepare_metadata(ManagementIngressResources.SERVICE_ACCOUNT_NAME)
            ),
        )

    async def sync(self) -> None:
        await self.ensure_once(self.prepare_service_account())


class DeploymentSynchronizer(BaseResource):
    """The management ingress workload."""

    KIND = DEPLOYMENT

    def prepare_resources(self, resources: Optional[ResourceRequirements]) -> V1ResourceRequirements:
        if resources is None or not (resources.limits or resources.requests):
            return V1ResourceRequirements(
                limits=dict(DEFAULT_LIMITS), requests=dict(DEFAULT_REQUESTS)
            )
        return V1ResourceRequirements(
            limits=dict(resources.limits or {}) or None,
            requests=dict(resources.requests or {}) or None,
        )

    def prepare_tolerations(self, tolerations: List[Toleration]) -> List[V1Toleration]:
        result = [
            V1Toleration(
                key=t.key,
                operator=t.operator,
                value=t.value,
                effect=t.effect,
                toleration_seconds=t.toleration_seconds,
            )
            for t in tolerations or []
        ]
        for key, operator, effect in PRESSURE_TOLERATIONS:
            extra = V1Toleration(key=key, operator=operator, effect=effect)
            if not any(tolerations_equal([extra], [t]) for t in result):
                result.append(extra)
        return result

    def prepare_env(
        self, cluster_domain: str, host_headers: str, fips_enabled: bool
    ) -> List[V1EnvVar]:
        return [
            _config_map_env("WATCH_NAMESPACE", NAMESPACE_SCOPE_CONFIG_MAP, "namespaces"),
            V1EnvVar(name="ENABLE_IMPERSONATION", value="false"),
            V1EnvVar(name="APISERVER_SECURE_PORT", value="6443"),
            V1EnvVar(name="CLUSTER_DOMAIN", value=cluster_domain),
            V1EnvVar(name="HOST_HEADERS_CHECK_ENABLED", value="false"),
            V1EnvVar(name="ALLOWED_HOST_HEADERS", value=host_headers),
            _config_map_env("OIDC_ISSUER_URL", PLATFORM_AUTH_CONFIG_MAP, "OIDC_ISSUER_URL"),
            V1EnvVar(
                name="WLP_CLIENT_ID",
                value_from=V1EnvVarSource(
                    secret_key_ref=V1SecretKeySelector(
                        name=PLATFORM_AUTH_SECRET, key="WLP_CLIENT_ID"
                    )
                ),
            ),
            _field_env("POD_NAME", "metadata.name"),
            _field_env("POD_NAMESPACE", "metadata.namespace"),
            V1EnvVar(name="FIPS_ENABLED", value=str(bool(fips_enabled)).lower()),
        ]

    def prepare_container(
        self,
        image: str,
        resources: V1ResourceRequirements,
        env: List[V1EnvVar],
    ) -> V1Container:
        return V1Container(
            name=ManagementIngressResources.CONTAINER_NAME,
            image=image,
            image_pull_policy="IfNotPresent",
            resources=resources,
            ports=[
                V1ContainerPort(name="https", container_port=HTTPS_PORT, protocol="TCP"),
                V1ContainerPort(name="http", container_port=HTTP_PORT, protocol="TCP"),
            ],
            command=[
                "/icp-management-ingress",
                f"--default-ssl-certificate=$(POD_NAMESPACE)/{ManagementIngressResources.TLS_SECRET_NAME}",
                f"--configmap=$(POD_NAMESPACE)/{ManagementIngressResources.CONFIG_NAME}",
                f"--http-port={HTTP_PORT}",
                f"--https-port={HTTPS_PORT}",
                "--watch-namespace=$(WATCH_NAMESPACE)",
            ],
            env=env,
            security_context=V1SecurityContext(
                privileged=False, allow_privilege_escalation=False
            ),
            liveness_probe=_probe(failure_threshold=10),
            readiness_probe=_probe(),
            volume_mounts=[V1VolumeMount(name=TLS_VOLUME_NAME, mount_path=TLS_MOUNT_PATH)],
        )

    def prepare_affinity(self) -> V1Affinity:
        app = ManagementIngressResources.APP_NAME
        return V1Affinity(
            pod_anti_affinity=V1PodAntiAffinity(
                preferred_during_scheduling_ignored_during_execution=[
                    V1WeightedPodAffinityTerm(
                        weight=100,
                        pod_affinity_term=V1PodAffinityTerm(
                            topology_key="kubernetes.io/hostname",
                            label_selector=V1LabelSelector(
                                match_expressions=[
                                    V1LabelSelectorRequirement(
                                        key=Labels.APP_LABEL, operator="In", values=[app]
                                    ),
                                    V1LabelSelectorRequirement(
                                        key=Labels.COMPONENT_LABEL, operator="In", values=[app]
                                    ),
                                ]
                            ),
                        ),
                    )
                ]
            )
        )

    def prepare_topology_spread_constraints(self) -> List[V1TopologySpreadConstraint]:
        return [
            V1TopologySpreadConstraint(
                max_skew=1,
                topology_key=topology_key,
                when_unsatisfiable="ScheduleAnyway",
                label_selector=V1LabelSelector(
                    match_labels={Labels.APP_LABEL: ManagementIngressResources.APP_NAME}
                ),
            )
            for topology_key in ("topology.kubernetes.io/zone", "topology.kubernetes.io/region")
        ]

    def prepare_deployment(
        self,
        spec: ManagementIngressSpec,
        image: str,
        host: str,
        cluster_domain: str,
    ) -> V1Deployment:
        labels = self.default_labels()
        pod_labels = self.default_labels().include_intent("projected")
        host_headers = allowed_host_headers(spec.allowed_host_header, host, self.namespace)
        container = self.prepare_container(
            image,
            self.prepare_resources(spec.resources),
            self.prepare_env(cluster_domain, host_headers, spec.fips_enabled),
        )
        pod_spec = V1PodSpec(
            containers=[container],
            service_account_name=ManagementIngressResources.SERVICE_ACCOUNT_NAME,
            node_selector=dict(spec.node_selector) if spec.node_selector else None,
            tolerations=self.prepare_tolerations(spec.tolerations),
            affinity=self.prepare_affinity(),
            topology_spread_constraints=self.prepare_topology_spread_constraints(),
            volumes=[
                V1Volume(
                    name=TLS_VOLUME_NAME,
                    secret=V1SecretVolumeSource(
                        secret_name=ManagementIngressResources.TLS_SECRET_NAME,
                        default_mode=TLS_VOLUME_MODE,
                    ),
                )
            ],
            termination_grace_period_seconds=TERMINATION_GRACE_PERIOD_SECONDS,
        )
        metadata = self.prepare_metadata(ManagementIngressResources.DEPLOYMENT_NAME)
        metadata["annotations"] = dict(PRODUCT_ANNOTATIONS)
        return V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=V1ObjectMeta(**metadata),
            spec=V1DeploymentSpec(
                replicas=spec.replicas or DEFAULT_REPLICAS,
                selector=V1LabelSelector(match_labels=labels.as_dict()),
                template=V1PodTemplateSpec(
                    metadata=V1ObjectMeta(
                        labels=pod_labels.as_dict(),
                        annotations={**POD_ANNOTATIONS, **PRODUCT_ANNOTATIONS},
                    ),
                    spec=pod_spec,
                ),
            ),
        )

    def diff(self, live, desired) -> DiffResult:
        return diff_deployment(live, desired)

    async def sync(
        self, spec: ManagementIngressSpec, image: str, host: str, cluster_domain: str
    ) -> str:
        return await self.ensure(self.prepare_deployment(spec, image, host, cluster_domain))

    async def has_legacy_selector(self) -> bool:
        deployment = await self.fetch(ManagementIngressResources.DEPLOYMENT_NAME)
        if deployment is None or deployment.spec is None or deployment.spec.selector is None:
            return False
        return Labels.has_legacy_selector(deployment.spec.selector.match_labels)

    async def delete(self) -> None:
        await self.store.delete(
            DEPLOYMENT, ManagementIngressResources.DEPLOYMENT_NAME, self.namespace
        )
