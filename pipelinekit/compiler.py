from __future__ import annotations

"""Generic stage compilation.

Turns an ordered list of stage instances into Blocks, validating that every
stage's declared `requires` keys are provided by a stage earlier in the list.
This module contains no application-specific conventions.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from pipelinekit.engine.pipeline import Block
from pipelinekit.stage_types import StageInstance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledStageBlocks:
    blocks: tuple[Block, ...]
    metadata: dict[str, Any]

    def as_pipeline(self, name: str = "pipeline") -> Block:
        return Block(name=name, nodes=list(self.blocks))


def compile_stage_blocks(
    instances: Sequence[StageInstance],
    inputs: Any,
    *,
    initial_outputs: Iterable[str] = (),
) -> CompiledStageBlocks:
    if not instances:
        raise ValueError("Stage list cannot be empty")

    provided = {str(item).strip() for item in initial_outputs if str(item).strip()}
    seen_instances: set[str] = set()
    stage_io: dict[str, dict[str, Any]] = {}
    stage_instances_out: list[dict[str, str]] = []
    blocks: list[Block] = []

    for idx, node in enumerate(instances):
        if not isinstance(node, StageInstance):
            raise TypeError(
                f"stages[{idx}] must be a StageInstance (type={type(node).__name__})"
            )
        stage_id = node.instance_id
        ref = node.stage
        if stage_id in seen_instances:
            raise ValueError(f"Duplicate stage instance id: {stage_id}")
        seen_instances.add(stage_id)

        missing = [key for key in ref.io.requires if key not in provided]
        if missing:
            raise ValueError(
                "Stage IO validation failed: "
                f"stage={stage_id} kind={ref.id} missing_required_outputs={', '.join(missing)}"
            )

        try:
            block = ref.build(inputs, instance_id=stage_id)
        except Exception as exc:
            raise ValueError(f"Stage build failed: stage={stage_id} kind={ref.id}: {exc}") from exc

        blocks.append(block)
        stage_instances_out.append({"instance": stage_id, "kind": ref.id})
        stage_io[stage_id] = {
            "requires": list(ref.io.requires),
            "provides": list(ref.io.provides),
        }
        provided.update(ref.io.provides)
        logger.debug("Compiled stage %s (kind=%s)", stage_id, ref.id)

    metadata: dict[str, Any] = {
        "stage_instances": stage_instances_out,
        "stage_io": stage_io,
    }
    return CompiledStageBlocks(blocks=tuple(blocks), metadata=metadata)
