from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from pipelinekit.engine.pipeline import Block


def _clean_keys(values: Any, *, label: str) -> tuple[str, ...]:
    if isinstance(values, str):
        raise TypeError(f"{label} must be a sequence of strings, not a string")
    return tuple(str(value).strip() for value in values if str(value).strip())


def _optional_text(value: Any, *, label: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise TypeError(f"{label} must be a non-empty string or None")
    return value.strip()


@dataclass(frozen=True)
class StageIO:
    """Output keys a stage reads (`requires`) and publishes (`provides`)."""

    requires: tuple[str, ...] = ()
    provides: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "requires", _clean_keys(self.requires, label="StageIO.requires"))
        object.__setattr__(self, "provides", _clean_keys(self.provides, label="StageIO.provides"))


class StageBuilder(Protocol):
    def __call__(self, inputs: Any, *, instance_id: str) -> Block:
        ...


@dataclass(frozen=True)
class StageRef:
    """A registered stage kind: its builder plus the metadata the compiler checks."""

    id: str
    builder: StageBuilder
    doc: str | None = None
    source: str | None = None
    tags: tuple[str, ...] = ()
    io: StageIO = field(default_factory=StageIO)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise TypeError("StageRef.id must be a non-empty string")
        object.__setattr__(self, "id", self.id.strip())
        object.__setattr__(self, "doc", _optional_text(self.doc, label="StageRef.doc"))
        object.__setattr__(self, "source", _optional_text(self.source, label="StageRef.source"))
        object.__setattr__(self, "tags", _clean_keys(self.tags, label="StageRef.tags"))

    def instance(self, instance_id: str | None = None) -> "StageInstance":
        return StageInstance(stage=self, instance_id=instance_id or self.id)

    def _stage_meta(self, block_meta: dict[str, Any], instance_id: str) -> dict[str, Any]:
        kind = block_meta.get("stage_kind", self.id)
        if not isinstance(kind, str) or kind.strip() != self.id:
            raise ValueError(
                "Stage builder returned conflicting meta.stage_kind: "
                f"expected={self.id} got={kind!r}"
            )

        meta = {
            "stage_instance": instance_id,
            "doc": self.doc,
            "source": self.source,
            "tags": list(self.tags) or None,
        }
        meta = {key: value for key, value in meta.items() if value is not None}
        meta.update(block_meta)
        meta["stage_kind"] = self.id
        # The runner checks published outputs against this list.
        meta["provides"] = list(self.io.provides)
        return meta

    def build(self, inputs: Any, *, instance_id: str) -> Block:
        if not isinstance(instance_id, str) or not instance_id.strip():
            raise ValueError("instance_id must be a non-empty string")
        instance_id = instance_id.strip()

        block = self.builder(inputs, instance_id=instance_id)
        if not isinstance(block, Block):
            raise TypeError(
                f"Stage builder returned non-Block (stage={self.id}, type={type(block).__name__})"
            )
        if block.name != instance_id:
            raise ValueError(
                f"Stage builder returned mismatched Block.name: expected={instance_id} got={block.name}"
            )

        return Block(name=block.name, nodes=list(block.nodes), meta=self._stage_meta(block.meta, instance_id))


@dataclass(frozen=True)
class StageInstance:
    stage: StageRef
    instance_id: str

    def __post_init__(self) -> None:
        if not isinstance(self.instance_id, str) or not self.instance_id.strip():
            raise TypeError("StageInstance.instance_id must be a non-empty string")
        object.__setattr__(self, "instance_id", self.instance_id.strip())
