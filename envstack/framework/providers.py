from __future__ import annotations

from dataclasses import dataclass

from envstack.framework.config import (
    ENV_PROVIDER_EC2,
    ENV_PROVIDER_ECS,
    ENV_PROVIDER_ECS_FARGATE,
    ENV_PROVIDERS,
)
from envstack.framework.errors import ConfigurationError

ECS_IMAGE_PATTERN = "amzn-ami-*-amazon-ecs-optimized"
EC2_IMAGE_PATTERN = "amzn-ami-hvm-*-x86_64-gp2"

ECS_TEMPLATE = "env-ecs.yml"
EC2_TEMPLATE = "env-ec2.yml"


@dataclass(frozen=True)
class ProviderProfile:
    template_name: str
    image_pattern: str
    launch_type: str


def provider_profile(provider: str | None) -> ProviderProfile:
    """Compute template, base-image name glob and ECS launch type for a provider."""

    if provider == ENV_PROVIDER_ECS:
        return ProviderProfile(ECS_TEMPLATE, ECS_IMAGE_PATTERN, "EC2")
    if provider == ENV_PROVIDER_ECS_FARGATE:
        return ProviderProfile(ECS_TEMPLATE, ECS_IMAGE_PATTERN, "FARGATE")
    if provider == ENV_PROVIDER_EC2:
        return ProviderProfile(EC2_TEMPLATE, EC2_IMAGE_PATTERN, "")
    raise ConfigurationError(
        f"Unsupported environment provider: {provider!r} (expected one of: {', '.join(ENV_PROVIDERS)})"
    )
