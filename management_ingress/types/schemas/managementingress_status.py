from marshmallow import fields, pre_load
from management_ingress.types.base import BaseSchema
from management_ingress.types.models.managementingress_status import (
    OperandState,
    ManagementIngressStatus,
)


class OperandStateSchema(BaseSchema):
    __model__ = OperandState

    status = fields.Str(data_key="status", load_default="")
    message = fields.Str(data_key="message", load_default="")


class ManagementIngressStatusSchema(BaseSchema):
    __model__ = ManagementIngressStatus

    conditions = fields.Dict(
        keys=fields.Str(),
        values=fields.List(fields.Dict()),
        data_key="condition",
        load_default=dict,
    )
    pod_state = fields.Dict(
        keys=fields.Str(),
        values=fields.List(fields.Str()),
        data_key="podstate",
        load_default=dict,
    )
    host = fields.Str(data_key="host", load_default="")
    operand_state = fields.Nested(
        OperandStateSchema(),
        data_key="operandState",
        load_default=lambda: OperandStateSchema().load({}),
    )

    @pre_load
    def drop_nulls(self, data, **kwargs):
        """A stored status may carry explicit nulls, e.g. ``podstate: null``."""
        return {key: value for key, value in data.items() if value is not None}
