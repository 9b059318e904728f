from enum import Enum
from typing import NamedTuple, Optional


class ClusterType(Enum):
    #: OpenShift style cluster with routes and ingress controller discovery
    STANDARD = "standard"
    #: CNCF cluster; no route objects, domain supplied by the cpp config map
    CNCF = "cncf"


class ClusterFlavor(NamedTuple):
    type: ClusterType
    domain_name: Optional[str] = None

    @property
    def has_routes(self) -> bool:
        return self.type is ClusterType.STANDARD

    @property
    def domain_without_port(self) -> str:
        return split_node_port(self.domain_name or "")[0]

    @property
    def node_port(self) -> str:
        return split_node_port(self.domain_name or "")[1]

    @classmethod
    def standard(cls) -> "ClusterFlavor":
        return cls(ClusterType.STANDARD)

    @classmethod
    def cncf(cls, domain_name: str) -> "ClusterFlavor":
        return cls(ClusterType.CNCF, domain_name)


def split_node_port(address: str):
    """Split ``host:port`` on the last colon; ``("host", "")`` when there is no port."""
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, ""
    return host, port
