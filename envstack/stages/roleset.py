from __future__ import annotations

from typing import Any

from pipelinekit.stage_types import StageIO, StageRef
from envstack.framework.runtime import (
    LAYER_CLUSTER,
    OUTPUT_CLOUDFORMATION_ROLE_ARN,
    OUTPUT_ENVIRONMENT,
    WorkflowContext,
    layer_key,
)
from envstack.framework.workflow import UpsertInputs, make_action_stage_block

KIND_ID = "env.roleset"

CLOUDFORMATION_ROLE_KEY = "CloudFormationRoleArn"
INSTANCE_PROFILE_KEY = "EC2InstanceProfileArn"


def _build(inputs: UpsertInputs, *, instance_id: str):
    upserter = inputs.collaborators.roleset_upserter
    getter = inputs.collaborators.roleset_getter

    def _action(ctx: WorkflowContext) -> dict[str, Any]:
        environment = ctx.require_environment()

        upserter.upsert_common_roleset()
        common_roleset = getter.get_common_roleset()
        role_arn = common_roleset.get(CLOUDFORMATION_ROLE_KEY)
        if not role_arn:
            ctx.logger.warning(
                "Common roleset has no %s; stacks will be submitted with caller credentials",
                CLOUDFORMATION_ROLE_KEY,
            )

        upserter.upsert_environment_roleset(environment.name)
        environment_roleset = getter.get_environment_roleset(environment.name)

        return {
            OUTPUT_CLOUDFORMATION_ROLE_ARN: role_arn or None,
            layer_key(LAYER_CLUSTER, INSTANCE_PROFILE_KEY): environment_roleset.get(
                INSTANCE_PROFILE_KEY, ""
            ),
        }

    return make_action_stage_block(instance_id, fn=_action)


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Upsert the common and environment rolesets; capture the CloudFormation role.",
    tags=("identity",),
    io=StageIO(
        requires=(OUTPUT_ENVIRONMENT,),
        provides=(
            OUTPUT_CLOUDFORMATION_ROLE_ARN,
            layer_key(LAYER_CLUSTER, INSTANCE_PROFILE_KEY),
        ),
    ),
)
