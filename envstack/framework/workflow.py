"""Stage authoring glue for the environment workflow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from pipelinekit.engine.pipeline import ActionStep, Block, DefaultStepRecorder, FlowContext, StepInfo
from envstack.framework.collaborators import Collaborators, Stack
from envstack.framework.config import Config
from envstack.framework.errors import WorkflowWarning
from envstack.framework.runtime import WorkflowContext
from envstack.framework.stacks import StackType, build_stack_tags, ensure_stack_succeeded


@dataclass(frozen=True)
class UpsertInputs:
    """Everything a stage builder may close over. Built once per invocation."""

    config: Config
    environment_name: str
    collaborators: Collaborators


def make_action_stage_block(
    stage_id: str,
    *,
    fn: Callable[[WorkflowContext], Mapping[str, Any] | None],
    doc: str | None = None,
) -> Block:
    if not isinstance(stage_id, str) or not stage_id.strip():
        raise TypeError("stage_id must be a non-empty string")
    if not callable(fn):
        raise TypeError("fn must be callable")

    stage_meta: dict[str, Any] = {}
    if doc and doc.strip():
        stage_meta["doc"] = doc.strip()

    return Block(
        name=stage_id.strip(),
        nodes=[ActionStep(name="action", fn=fn, publishes=True)],
        meta=stage_meta,
    )


def upsert_and_wait(
    ctx: WorkflowContext,
    collaborators: Collaborators,
    *,
    stack_name: str,
    template_name: str,
    stack_type: StackType,
    parameters: Mapping[str, str],
) -> Stack:
    """Submit a stack, block until it is terminal, and fail unless it completed cleanly."""

    environment = ctx.require_environment()
    tags = build_stack_tags(
        environment=environment.name,
        stack_type=stack_type,
        provider=environment.provider,
        revision=ctx.code_revision,
        repo=ctx.repo_name,
    )

    collaborators.stack_upserter.upsert_stack(
        stack_name,
        template_name,
        environment,
        dict(parameters),
        tags,
        ctx.cloudformation_role_arn,
    )

    ctx.logger.debug("Waiting for stack '%s' to complete", stack_name)
    stack = collaborators.stack_waiter.await_final_status(stack_name)
    stack = ensure_stack_succeeded(stack_name, stack)
    ctx.logger.debug("Stack '%s' finished with status %s", stack_name, stack.status)
    return stack


class WorkflowStepRecorder(DefaultStepRecorder):
    """Step narration where a `WorkflowWarning` is a warning, not a failure."""

    def on_step_error(self, ctx: FlowContext, step: StepInfo, exc: Exception) -> None:
        if isinstance(exc, WorkflowWarning):
            ctx.logger.warning("Step stopped: %s (%s)", step.path, exc)
            return
        super().on_step_error(ctx, step, exc)
