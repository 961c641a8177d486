from __future__ import annotations

from typing import Literal

from envstack.framework.collaborators import Stack
from envstack.framework.errors import StackFailureError

StackType = Literal["vpc", "target", "elb", "environment"]
STACK_TYPE_VPC: StackType = "vpc"
STACK_TYPE_TARGET: StackType = "target"
STACK_TYPE_LOADBALANCER: StackType = "elb"
STACK_TYPE_ENV: StackType = "environment"

TAG_PREFIX = "envstack:"
MAX_STACK_NAME_LENGTH = 128
DEFAULT_SSH_ALLOW = "0.0.0.0/0"


def create_stack_name(namespace: str, stack_type: StackType, *names: str) -> str:
    name = "-".join([namespace, stack_type, *names])
    return name[:MAX_STACK_NAME_LENGTH]


def output_reference(stack_name: str, output_key: str) -> str:
    """Symbolic reference to another stack's output; resolved by the stack manager."""
    return f"{stack_name}-{output_key}"


def stack_succeeded(stack: Stack | None) -> bool:
    if stack is None:
        return False
    status = stack.status or ""
    return status.endswith("_COMPLETE") and not status.endswith("ROLLBACK_COMPLETE")


def ensure_stack_succeeded(stack_name: str, stack: Stack | None) -> Stack:
    """Return `stack` if it finished cleanly, otherwise raise StackFailureError."""

    if stack is None:
        raise StackFailureError(stack_name)
    if not stack_succeeded(stack):
        raise StackFailureError(stack_name, stack.status, stack.status_reason)
    return stack


def build_stack_tags(
    *,
    environment: str,
    stack_type: StackType,
    provider: str | None,
    revision: str,
    repo: str,
) -> dict[str, str]:
    values = {
        "environment": environment,
        "type": stack_type,
        "provider": provider or "",
        "revision": revision,
        "repo": repo,
    }
    return {f"{TAG_PREFIX}{key}": value for key, value in values.items()}
