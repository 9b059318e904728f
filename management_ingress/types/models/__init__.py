from .managementingress_spec import (
    CertIssuer,
    Cert,
    OperandImage,
    ResourceRequirements,
    Toleration,
    ManagementIngressSpec,
)
from .managementingress_status import OperandState, ManagementIngressStatus
from .managementingress_resources import ManagementIngressResources
from .cluster_flavor import ClusterType, ClusterFlavor

__all__ = [
    "CertIssuer",
    "Cert",
    "OperandImage",
    "ResourceRequirements",
    "Toleration",
    "ManagementIngressSpec",
    "OperandState",
    "ManagementIngressStatus",
    "ManagementIngressResources",
    "ClusterType",
    "ClusterFlavor",
]
