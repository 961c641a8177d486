from __future__ import annotations

from pipelinekit.stage_types import StageIO, StageRef
from envstack.framework.collaborators import ImageFinder
from envstack.framework.config import EnvironmentConfig
from envstack.framework.providers import provider_profile
from envstack.framework.runtime import (
    LAYER_CLUSTER,
    OUTPUT_CLOUDFORMATION_ROLE_ARN,
    OUTPUT_ENVIRONMENT,
    WorkflowContext,
    layer_key,
)
from envstack.framework.stacks import DEFAULT_SSH_ALLOW, STACK_TYPE_ENV, create_stack_name
from envstack.framework.workflow import UpsertInputs, make_action_stage_block, upsert_and_wait

KIND_ID = "env.cluster"


def cluster_parameters(
    environment: EnvironmentConfig,
    base_params: dict[str, str],
    image_finder: ImageFinder,
) -> tuple[str, dict[str, str]]:
    """Return (template_name, parameters) for the environment's compute stack."""

    profile = provider_profile(environment.provider)
    cluster = environment.cluster
    params = dict(base_params)

    params["LaunchType"] = profile.launch_type
    params["SshAllow"] = cluster.ssh_allow or DEFAULT_SSH_ALLOW
    if cluster.instance_type:
        params["InstanceType"] = cluster.instance_type
    if cluster.extra_user_data:
        params["ExtraUserData"] = cluster.extra_user_data
    if cluster.image_id:
        params["ImageId"] = cluster.image_id
    else:
        params["ImageId"] = image_finder.find_latest_image_id(profile.image_pattern)
    if cluster.image_os_type:
        params["ImageOsType"] = cluster.image_os_type

    # Zero means "let the template decide".
    for key, value in (
        ("DesiredCapacity", cluster.desired_capacity),
        ("MinSize", cluster.min_size),
        ("MaxSize", cluster.max_size),
    ):
        if value:
            params[key] = str(value)
    if cluster.key_name:
        params["KeyName"] = cluster.key_name
    if cluster.target_cpu_reservation:
        params["TargetCPUReservation"] = str(cluster.target_cpu_reservation)
    if cluster.target_memory_reservation:
        params["TargetMemoryReservation"] = str(cluster.target_memory_reservation)
    if cluster.http_proxy:
        params["HttpProxy"] = cluster.http_proxy

    return profile.template_name, params


def _build(inputs: UpsertInputs, *, instance_id: str):
    namespace = inputs.config.namespace
    collaborators = inputs.collaborators

    def _action(ctx: WorkflowContext) -> None:
        environment = ctx.require_environment()
        ctx.logger.debug("Using provider '%s' for environment", environment.provider)
        stack_name = create_stack_name(namespace, STACK_TYPE_ENV, environment.name)

        template_name, params = cluster_parameters(
            environment, ctx.layer_params(LAYER_CLUSTER), collaborators.image_finder
        )

        ctx.logger.info("Upserting environment '%s' ...", environment.name)
        upsert_and_wait(
            ctx,
            collaborators,
            stack_name=stack_name,
            template_name=template_name,
            stack_type=STACK_TYPE_ENV,
            parameters=params,
        )
        return None

    return make_action_stage_block(instance_id, fn=_action)


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Upsert the compute cluster stack for the environment's provider.",
    source="envstack.stages.cluster.cluster_parameters",
    tags=("compute",),
    io=StageIO(
        requires=(
            OUTPUT_ENVIRONMENT,
            OUTPUT_CLOUDFORMATION_ROLE_ARN,
            layer_key(LAYER_CLUSTER, "EC2InstanceProfileArn"),
            layer_key(LAYER_CLUSTER, "VpcId"),
            layer_key(LAYER_CLUSTER, "InstanceSubnetIds"),
            layer_key(LAYER_CLUSTER, "ElbSecurityGroup"),
        ),
    ),
)
