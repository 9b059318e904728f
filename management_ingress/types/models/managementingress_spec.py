from typing import Dict, List, Optional
from management_ingress.types.base import BaseModel


class CertIssuer(BaseModel):
    """Reference to a cert-manager issuer"""

    name: str
    kind: str


class Cert(BaseModel):
    """Certificate options of the management ingress"""

    issuer: Optional[CertIssuer]
    namespaced_issuer: Optional[CertIssuer]
    dns_names: List[str]
    ip_addresses: List[str]


class OperandImage(BaseModel):
    repository: Optional[str]
    tag: Optional[str]


class ResourceRequirements(BaseModel):
    limits: Optional[Dict[str, str]]
    requests: Optional[Dict[str, str]]


class Toleration(BaseModel):
    key: Optional[str]
    operator: Optional[str]
    value: Optional[str]
    effect: Optional[str]
    toleration_seconds: Optional[int]


class ManagementIngressSpec(BaseModel):
    """ManagementIngress CRD spec"""

    management_state: str
    image_registry: Optional[str]
    image: Optional[OperandImage]
    replicas: Optional[int]
    resources: Optional[ResourceRequirements]
    node_selector: Optional[Dict[str, str]]
    tolerations: List[Toleration]
    allowed_host_header: Optional[str]
    cert: Optional[Cert]
    route_host: Optional[str]
    config: Dict[str, str]
    fips_enabled: bool
    multiple_instances_enabled: bool

    @property
    def managed(self) -> bool:
        return self.management_state != "Unmanaged"
