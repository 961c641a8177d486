from __future__ import annotations

from functools import lru_cache

from pipelinekit.stage_registry import StageRegistry
from pipelinekit.stage_types import StageInstance

UPSERT_SEQUENCE: tuple[str, ...] = (
    "env.find",
    "env.roleset",
    "env.vpc",
    "env.elb",
    "env.cluster",
)


@lru_cache(maxsize=1)
def get_stage_registry() -> StageRegistry:
    # Single import point for stage modules; each exports a `STAGE` symbol.
    from envstack import stages  # noqa: PLC0415

    return StageRegistry.from_refs(stages.__all_stages__)


def upsert_stage_instances() -> list[StageInstance]:
    return get_stage_registry().instances(UPSERT_SEQUENCE)
