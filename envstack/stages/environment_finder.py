from __future__ import annotations

import dataclasses
from typing import Any

from pipelinekit.stage_types import StageIO, StageRef
from envstack.framework.config import ENV_PROVIDER_ECS
from envstack.framework.errors import ConfigurationError, EnvironmentNotFoundWarning
from envstack.framework.runtime import OUTPUT_ENVIRONMENT, WorkflowContext
from envstack.framework.workflow import UpsertInputs, make_action_stage_block

KIND_ID = "env.find"

UNSUPPORTED_DISCOVERY_PROVIDER = "consul"


def _build(inputs: UpsertInputs, *, instance_id: str):
    environments = inputs.config.environments
    environment_name = inputs.environment_name

    def _action(ctx: WorkflowContext) -> dict[str, Any]:
        for candidate in environments:
            if candidate.name.casefold() != environment_name.casefold():
                continue

            if candidate.discovery.provider == UNSUPPORTED_DISCOVERY_PROVIDER:
                raise ConfigurationError(
                    "Consul is no longer supported as a service discovery provider. "
                    "Use an extension that manages Consul separately."
                )

            environment = candidate
            if not environment.provider:
                environment = dataclasses.replace(environment, provider=ENV_PROVIDER_ECS)
            ctx.logger.debug(
                "Resolved environment '%s' (provider=%s)", environment.name, environment.provider
            )
            return {OUTPUT_ENVIRONMENT: environment}

        raise EnvironmentNotFoundWarning(environment_name)

    return make_action_stage_block(instance_id, fn=_action)


STAGE = StageRef(
    id=KIND_ID,
    builder=_build,
    doc="Find the named environment in configuration (case-insensitive).",
    tags=("environment",),
    io=StageIO(provides=(OUTPUT_ENVIRONMENT,)),
)
