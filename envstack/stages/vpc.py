from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pipelinekit.stage_types import StageIO, StageRef
from envstack.framework.config import EnvironmentConfig
from envstack.framework.errors import ConfigurationError
from envstack.framework.providers import EC2_IMAGE_PATTERN
from envstack.framework.runtime import (
    LAYER_CLUSTER,
    LAYER_ELB,
    OUTPUT_CLOUDFORMATION_ROLE_ARN,
    OUTPUT_ENVIRONMENT,
    WorkflowContext,
    layer_key,
)
from envstack.framework.stacks import (
    DEFAULT_SSH_ALLOW,
    STACK_TYPE_TARGET,
    STACK_TYPE_VPC,
    create_stack_name,
    output_reference,
)
from envstack.framework.workflow import UpsertInputs, make_action_stage_block, upsert_and_wait

KIND_ID = "env.vpc"

MANAGED_VPC_TEMPLATE = "vpc.yml"
TARGET_VPC_TEMPLATE = "vpc-target.yml"
MIN_AZ_COUNT = 2


@dataclass(frozen=True)
class VpcPlan:
    """Which network stack an environment uses, and what (if anything) to submit.

    `template_name` is None when the network belongs to another environment.
    """

    stack_name: str
    template_name: str | None = None
    parameters: dict[str, str] = field(default_factory=dict)
    needs_az_count: bool = False


def plan_vpc(environment: EnvironmentConfig, namespace: str) -> VpcPlan:
    target = environment.vpc_target
    if target.environment:
        # No check that the referenced network stack exists; that surfaces
        # when the stack manager resolves the output references.
        return VpcPlan(
            stack_name=create_stack_name(
                target.namespace or namespace, STACK_TYPE_VPC, target.environment
            )
        )

    if target.vpc_id:
        return VpcPlan(
            stack_name=create_stack_name(namespace, STACK_TYPE_TARGET, environment.name),
            template_name=TARGET_VPC_TEMPLATE,
            parameters={
                "VpcId": target.vpc_id,
                "ElbSubnetIds": ",".join(target.elb_subnet_ids),
                "InstanceSubnetIds": ",".join(target.instance_subnet_ids),
            },
        )

    cluster = environment.cluster
    parameters = {"SshAllow": cluster.ssh_allow or DEFAULT_SSH_ALLOW}
    if cluster.instance_tenancy:
        parameters["InstanceTenancy"] = cluster.instance_tenancy
    if cluster.key_name:
        parameters["BastionKeyName"] = cluster.key_name
    parameters["ElbInternal"] = "true" if environment.loadbalancer.internal else "false"

    return VpcPlan(
        stack_name=create_stack_name(namespace, STACK_TYPE_VPC, environment.name),
        template_name=MANAGED_VPC_TEMPLATE,
        parameters=parameters,
        needs_az_count=True,
    )


def _build(inputs: UpsertInputs, *, instance_id: str):
    namespace = inputs.config.namespace
    collaborators = inputs.collaborators

    def _action(ctx: WorkflowContext) -> dict[str, Any]:
        environment = ctx.require_environment()
        plan = plan_vpc(environment, namespace)
        parameters = dict(plan.parameters)

        if plan.template_name is None:
            ctx.logger.debug("VpcTarget exists for a different environment; targeting that VPC")
        elif plan.needs_az_count:
            ctx.logger.debug("No VpcTarget, so the VPC stack manages the VPC")
        else:
            ctx.logger.debug("VpcTarget exists, so the VPC stack references the VPC attributes")

        if "BastionKeyName" in parameters:
            parameters["BastionImageId"] = collaborators.image_finder.find_latest_image_id(
                EC2_IMAGE_PATTERN
            )

        az_count = collaborators.az_counter.count_azs()
        if az_count < MIN_AZ_COUNT:
            raise ConfigurationError(
                f"Only found {az_count} availability zones...need at least {MIN_AZ_COUNT}"
            )
        if plan.needs_az_count:
            parameters["AZCount"] = str(az_count)

        if plan.template_name is not None:
            ctx.logger.info("Upserting VPC environment '%s' ...", environment.name)
            upsert_and_wait(
                ctx,
                collaborators,
                stack_name=plan.stack_name,
                template_name=plan.template_name,
                stack_type=STACK_TYPE_VPC,
                parameters=parameters,
            )

        return {
            layer_key(LAYER_CLUSTER, "VpcId"): output_reference(plan.stack_name, "VpcId"),
            layer_key(LAYER_CLUSTER, "InstanceSubnetIds"): output_reference(
                plan.stack_name, "InstanceSubnetIds"
            ),
            layer_key(LAYER_ELB, "VpcId"): output_reference(plan.stack_name, "VpcId"),
            layer_key(LAYER_ELB, "ElbSubnetIds"): output_reference(plan.stack_name, "ElbSubnetIds"),
        }

    return make_action_stage_block(instance_id, fn=_action)


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Upsert (or reference) the environment network and publish its outputs.",
    source="envstack.stages.vpc.plan_vpc",
    tags=("network",),
    io=StageIO(
        requires=(OUTPUT_ENVIRONMENT, OUTPUT_CLOUDFORMATION_ROLE_ARN),
        provides=(
            layer_key(LAYER_CLUSTER, "VpcId"),
            layer_key(LAYER_CLUSTER, "InstanceSubnetIds"),
            layer_key(LAYER_ELB, "VpcId"),
            layer_key(LAYER_ELB, "ElbSubnetIds"),
        ),
    ),
)
