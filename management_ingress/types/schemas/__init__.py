from .managementingress_spec import (
    CertIssuerSchema,
    CertSchema,
    OperandImageSchema,
    ResourceRequirementsSchema,
    TolerationSchema,
    ManagementIngressSpecSchema,
)
from .managementingress_status import OperandStateSchema, ManagementIngressStatusSchema

__all__ = [
    "CertIssuerSchema",
    "CertSchema",
    "OperandImageSchema",
    "ResourceRequirementsSchema",
    "TolerationSchema",
    "ManagementIngressSpecSchema",
    "OperandStateSchema",
    "ManagementIngressStatusSchema",
]
