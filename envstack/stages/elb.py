from __future__ import annotations

from typing import Any

from pipelinekit.stage_types import StageIO, StageRef
from envstack.framework.config import EnvironmentConfig
from envstack.framework.runtime import (
    LAYER_CLUSTER,
    LAYER_ELB,
    OUTPUT_CLOUDFORMATION_ROLE_ARN,
    OUTPUT_ENVIRONMENT,
    WorkflowContext,
    layer_key,
)
from envstack.framework.stacks import (
    STACK_TYPE_LOADBALANCER,
    create_stack_name,
    output_reference,
)
from envstack.framework.workflow import UpsertInputs, make_action_stage_block, upsert_and_wait

KIND_ID = "env.elb"

ELB_TEMPLATE = "elb.yml"


def elb_parameters(
    environment: EnvironmentConfig, namespace: str, network_params: dict[str, str]
) -> dict[str, str]:
    params = dict(network_params)
    loadbalancer = environment.loadbalancer

    if loadbalancer.certificate:
        params["ElbCert"] = loadbalancer.certificate

    if loadbalancer.hosted_zone:
        params["ElbDomainName"] = loadbalancer.hosted_zone
        params["ElbHostName"] = loadbalancer.name or environment.name

    params["ServiceDiscoveryName"] = (
        environment.discovery.name or f"{environment.name}.{namespace}.local"
    )
    params["ElbInternal"] = "true" if loadbalancer.internal else "false"
    return params


def _build(inputs: UpsertInputs, *, instance_id: str):
    namespace = inputs.config.namespace
    collaborators = inputs.collaborators

    def _action(ctx: WorkflowContext) -> dict[str, Any]:
        environment = ctx.require_environment()
        stack_name = create_stack_name(namespace, STACK_TYPE_LOADBALANCER, environment.name)

        ctx.logger.info("Upserting ELB environment '%s' ...", environment.name)
        upsert_and_wait(
            ctx,
            collaborators,
            stack_name=stack_name,
            template_name=ELB_TEMPLATE,
            stack_type=STACK_TYPE_LOADBALANCER,
            parameters=elb_parameters(environment, namespace, ctx.layer_params(LAYER_ELB)),
        )

        return {
            layer_key(LAYER_CLUSTER, "ElbSecurityGroup"): output_reference(
                stack_name, "ElbInstanceSecurityGroup"
            ),
        }

    return make_action_stage_block(instance_id, fn=_action)


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Upsert the environment load balancer.",
    source="envstack.stages.elb.elb_parameters",
    tags=("loadbalancer",),
    io=StageIO(
        requires=(
            OUTPUT_ENVIRONMENT,
            OUTPUT_CLOUDFORMATION_ROLE_ARN,
            layer_key(LAYER_ELB, "VpcId"),
            layer_key(LAYER_ELB, "ElbSubnetIds"),
        ),
        provides=(layer_key(LAYER_CLUSTER, "ElbSecurityGroup"),),
    ),
)
