"""Contracts for the infrastructure collaborators the workflow drives.

Implementations own credentials, template rendering, submission and polling.
Failures are raised as exceptions and propagate through the workflow unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Protocol

from envstack.framework.config import EnvironmentConfig


@dataclass(frozen=True)
class Stack:
    """Terminal state of an infrastructure stack operation."""

    name: str
    status: str
    status_reason: str = ""
    outputs: Mapping[str, str] = field(default_factory=dict)


class StackUpserter(Protocol):
    def upsert_stack(
        self,
        stack_name: str,
        template_name: str,
        environment: EnvironmentConfig,
        parameters: Mapping[str, str],
        tags: Mapping[str, str],
        role_arn: str | None,
    ) -> None: ...


class StackWaiter(Protocol):
    def await_final_status(self, stack_name: str) -> Stack | None: ...


class ImageFinder(Protocol):
    def find_latest_image_id(self, name_pattern: str) -> str: ...


class AZCounter(Protocol):
    def count_azs(self) -> int: ...


class RolesetUpserter(Protocol):
    def upsert_common_roleset(self) -> None: ...

    def upsert_environment_roleset(self, environment_name: str) -> None: ...


class RolesetGetter(Protocol):
    def get_common_roleset(self) -> Mapping[str, str]: ...

    def get_environment_roleset(self, environment_name: str) -> Mapping[str, str]: ...


@dataclass(frozen=True)
class Collaborators:
    stack_upserter: StackUpserter
    stack_waiter: StackWaiter
    image_finder: ImageFinder
    az_counter: AZCounter
    roleset_upserter: RolesetUpserter
    roleset_getter: RolesetGetter
