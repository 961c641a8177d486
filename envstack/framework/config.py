from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from pipelinekit.config_namespace import ConfigNamespace
from envstack.framework.errors import ConfigurationError

EnvProvider = Literal["ecs", "ecs-fargate", "ec2"]
ENV_PROVIDERS: tuple[str, ...] = ("ecs", "ecs-fargate", "ec2")
ENV_PROVIDER_ECS: EnvProvider = "ecs"
ENV_PROVIDER_ECS_FARGATE: EnvProvider = "ecs-fargate"
ENV_PROVIDER_EC2: EnvProvider = "ec2"

InstanceTenancy = Literal["default", "dedicated", "host"]

DEFAULT_NAMESPACE = "mu"


@dataclass(frozen=True)
class ClusterConfig:
    instance_type: str | None = None
    image_id: str | None = None
    image_os_type: str | None = None
    instance_tenancy: InstanceTenancy | None = None
    ssh_allow: str | None = None
    key_name: str | None = None
    desired_capacity: int = 0
    min_size: int = 0
    max_size: int = 0
    target_cpu_reservation: int = 0
    target_memory_reservation: int = 0
    http_proxy: str | None = None
    extra_user_data: str | None = None


@dataclass(frozen=True)
class LoadBalancerConfig:
    hosted_zone: str | None = None
    name: str | None = None
    certificate: str | None = None
    internal: bool = False


@dataclass(frozen=True)
class DiscoveryConfig:
    provider: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class VpcTarget:
    """Points an environment at a network it does not manage.

    Either `environment` (borrow another environment's VPC stack, optionally
    from another `namespace`) or `vpc_id` plus subnet lists (an existing VPC).
    """

    environment: str | None = None
    namespace: str | None = None
    vpc_id: str | None = None
    elb_subnet_ids: tuple[str, ...] = ()
    instance_subnet_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class EnvironmentConfig:
    name: str
    provider: EnvProvider | None = None
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    loadbalancer: LoadBalancerConfig = field(default_factory=LoadBalancerConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    vpc_target: VpcTarget = field(default_factory=VpcTarget)


@dataclass(frozen=True)
class RepoConfig:
    revision: str = ""
    slug: str = ""


@dataclass(frozen=True)
class Config:
    namespace: str = DEFAULT_NAMESPACE
    environments: tuple[EnvironmentConfig, ...] = ()
    repo: RepoConfig = field(default_factory=RepoConfig)

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> tuple["Config", list[str]]:
        """
        Parse and validate configuration, returning (Config, warnings).

        Unknown keys are reported as warnings, or rejected when `strict: true`.

        Raises:
            ConfigurationError: if keys are missing or invalid.
        """

        if not isinstance(cfg, Mapping):
            raise ConfigurationError("Config must be a mapping")

        root = ConfigNamespace(dict(cfg), path="")
        try:
            strict = root.get_bool("strict", default=False)
            namespace = root.get_str("namespace", default=DEFAULT_NAMESPACE)
            repo_ns = root.namespace("repo")
            repo = RepoConfig(
                revision=repo_ns.get_str("revision", default="", allow_empty=True) or "",
                slug=repo_ns.get_str("slug", default="", allow_empty=True) or "",
            )
            environments = tuple(
                _parse_environment(env_ns) for env_ns in root.get_list_mapping("environments", default=[])
            )
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ConfigurationError):
                raise
            raise ConfigurationError(str(exc)) from exc

        seen: dict[str, str] = {}
        for env in environments:
            key = env.name.casefold()
            if key in seen:
                raise ConfigurationError(
                    f"Duplicate environment name: {env.name!r} (conflicts with {seen[key]!r})"
                )
            seen[key] = env.name

        warnings: list[str] = []
        unknown = root.unconsumed_paths()
        if unknown:
            if strict:
                raise ConfigurationError(f"Unknown config keys: {', '.join(unknown)}")
            warnings.extend(f"Unknown config key ignored: {path}" for path in unknown)

        return Config(namespace=namespace or DEFAULT_NAMESPACE, environments=environments, repo=repo), warnings

    def environment_names(self) -> tuple[str, ...]:
        return tuple(env.name for env in self.environments)


def _parse_environment(ns: ConfigNamespace) -> EnvironmentConfig:
    name = ns.get_str("name")
    provider = ns.get_str("provider", default=None, allow_empty=True)
    if provider:
        provider = provider.lower()
        if provider not in ENV_PROVIDERS:
            raise ConfigurationError(
                f"{ns.path}.provider must be one of: {', '.join(ENV_PROVIDERS)} (got {provider!r})"
            )

    lb_ns = ns.namespace("loadbalancer")
    loadbalancer = LoadBalancerConfig(
        hosted_zone=lb_ns.get_str("hostedzone", default=None),
        name=lb_ns.get_str("name", default=None),
        certificate=lb_ns.get_str("certificate", default=None),
        internal=lb_ns.get_bool("internal", default=False),
    )

    cluster_ns = ns.namespace("cluster")
    cluster = ClusterConfig(
        instance_type=cluster_ns.get_str("instanceType", default=None),
        image_id=cluster_ns.get_str("imageId", default=None),
        image_os_type=cluster_ns.get_str("imageOsType", default=None),
        instance_tenancy=cluster_ns.get_str(  # type: ignore[arg-type]
            "instanceTenancy", default=None, choices=("default", "dedicated", "host")
        ),
        ssh_allow=cluster_ns.get_str("sshAllow", default=None),
        key_name=cluster_ns.get_str("keyName", default=None),
        desired_capacity=cluster_ns.get_int("desiredCapacity", default=0, min_value=0),
        min_size=cluster_ns.get_int("minSize", default=0, min_value=0),
        max_size=cluster_ns.get_int("maxSize", default=0, min_value=0),
        target_cpu_reservation=cluster_ns.get_int(
            "targetCPUReservation", default=0, min_value=0, max_value=100
        ),
        target_memory_reservation=cluster_ns.get_int(
            "targetMemoryReservation", default=0, min_value=0, max_value=100
        ),
        http_proxy=cluster_ns.get_str("httpProxy", default=None),
        extra_user_data=cluster_ns.get_str("extraUserData", default=None, allow_empty=True),
    )

    discovery_ns = ns.namespace("discovery")
    discovery = DiscoveryConfig(
        provider=discovery_ns.get_str("provider", default=None, allow_empty=True),
        name=discovery_ns.get_str("name", default=None),
    )

    target_ns = ns.namespace("vpcTarget")
    vpc_target = VpcTarget(
        environment=target_ns.get_str("environment", default=None),
        namespace=target_ns.get_str("namespace", default=None),
        vpc_id=target_ns.get_str("vpcId", default=None),
        elb_subnet_ids=tuple(target_ns.get_list_str("elbSubnetIds", default=(), allow_empty=True)),
        instance_subnet_ids=tuple(
            target_ns.get_list_str("instanceSubnetIds", default=(), allow_empty=True)
        ),
    )
    if vpc_target.vpc_id and not (vpc_target.elb_subnet_ids and vpc_target.instance_subnet_ids):
        raise ConfigurationError(
            f"{target_ns.path}: vpcId requires both elbSubnetIds and instanceSubnetIds"
        )

    return EnvironmentConfig(
        name=name or "",
        provider=provider or None,  # type: ignore[arg-type]
        cluster=cluster,
        loadbalancer=loadbalancer,
        discovery=discovery,
        vpc_target=vpc_target,
    )
