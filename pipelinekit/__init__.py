"""Reusable pipeline kernel (engine primitives + stage authoring kit).

This package is intentionally independent of `envstack.*`. Any project-specific
conventions (stage ids, output key naming, collaborator contracts) must live in
the consuming application.
"""

from pipelinekit.compiler import CompiledStageBlocks, compile_stage_blocks
from pipelinekit.config_namespace import ConfigNamespace
from pipelinekit.engine.pipeline import (
    ActionStep,
    Block,
    DefaultStepRecorder,
    FlowContext,
    Node,
    NullStepRecorder,
    PipelineRunner,
    StepInfo,
    StepRecorder,
    utc_now_iso8601,
)
from pipelinekit.stage_registry import StageRegistry
from pipelinekit.stage_types import StageBuilder, StageIO, StageInstance, StageRef

__all__ = [
    "ActionStep",
    "Block",
    "CompiledStageBlocks",
    "ConfigNamespace",
    "DefaultStepRecorder",
    "FlowContext",
    "Node",
    "NullStepRecorder",
    "PipelineRunner",
    "StageBuilder",
    "StageIO",
    "StageInstance",
    "StageRef",
    "StageRegistry",
    "StepInfo",
    "StepRecorder",
    "compile_stage_blocks",
    "utc_now_iso8601",
]
