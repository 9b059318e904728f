from typing import Dict, List
from management_ingress.types.base import BaseModel

STATUS_DEPLOYING = "Deploying"
STATUS_SUCCESSFUL = "Successful"
STATUS_FAILED = "Failed"

COND_RESOURCE_CREATING = "ResourceCreating"
COND_WAITING_RESOURCE = "WaitingResource"
COND_RESOURCE_FAILED_ON_CREATION = "ResourceFailedOnCreation"
COND_DISCOVERING_CLUSTER_INFO = "DiscoveringClusterInfo"

POD_READY = "ready"
POD_NOT_READY = "notReady"
POD_FAILED = "failed"


class OperandState(BaseModel):
    status: str
    message: str


class ManagementIngressStatus(BaseModel):
    """ManagementIngress CRD status"""

    conditions: Dict[str, List[Dict]]
    pod_state: Dict[str, List[str]]
    host: str
    operand_state: OperandState
