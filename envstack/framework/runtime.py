from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from envstack.framework.config import EnvironmentConfig

# Output keys are "<layer>.<ParameterName>"; a stage reads its layer back
# as a fresh parameter dict via `layer_params`.
LAYER_ELB = "elb"
LAYER_CLUSTER = "cluster"

OUTPUT_ENVIRONMENT = "environment"
OUTPUT_CLOUDFORMATION_ROLE_ARN = "cloudformation_role_arn"


def layer_key(layer: str, param: str) -> str:
    return f"{layer}.{param}"


@dataclass
class WorkflowContext:
    """Mutable state of one workflow invocation. Never shared across invocations."""

    namespace: str
    environment_name: str
    logger: logging.Logger
    code_revision: str = ""
    repo_name: str = ""

    outputs: dict[str, Any] = field(default_factory=dict)
    steps: list[dict[str, Any]] = field(default_factory=list)

    @property
    def environment(self) -> EnvironmentConfig | None:
        return self.outputs.get(OUTPUT_ENVIRONMENT)

    @property
    def cloudformation_role_arn(self) -> str | None:
        return self.outputs.get(OUTPUT_CLOUDFORMATION_ROLE_ARN)

    def require_environment(self) -> EnvironmentConfig:
        environment = self.environment
        if environment is None:
            raise RuntimeError(
                f"Environment '{self.environment_name}' has not been resolved; "
                "run env.find before this stage."
            )
        return environment

    def layer_params(self, layer: str) -> dict[str, str]:
        prefix = f"{layer}."
        return {
            key[len(prefix) :]: str(value)
            for key, value in self.outputs.items()
            if key.startswith(prefix)
        }
