from .store import KubeObjectStore
from .base import BaseResource
from .certificate import CertificateSynchronizer
from .service import ServiceSynchronizer
from .configmap import ConfigMapSynchronizer
from .secret import SecretSynchronizer
from .route import RouteSynchronizer
from .deployment import DeploymentSynchronizer, ServiceAccountSynchronizer
from .discovery import ClusterDiscovery
from .managementingress import ManagementIngress, ReconcileResult

__all__ = [
    "KubeObjectStore",
    "BaseResource",
    "CertificateSynchronizer",
    "ServiceSynchronizer",
    "ConfigMapSynchronizer",
    "SecretSynchronizer",
    "RouteSynchronizer",
    "DeploymentSynchronizer",
    "ServiceAccountSynchronizer",
    "ClusterDiscovery",
    "ManagementIngress",
    "ReconcileResult",
]
