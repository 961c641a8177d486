from __future__ import annotations

import difflib
from typing import Any, Iterable, Iterator

from pipelinekit.stage_types import StageInstance, StageRef


class StageRegistry:
    """Immutable lookup of stage kinds by id.

    Ids are dotted (`env.vpc`); a bare suffix (`vpc`) resolves when exactly
    one registered id ends with it.
    """

    def __init__(self, refs: dict[str, StageRef]):
        self._refs = dict(refs)

    @classmethod
    def from_refs(cls, refs: Iterable[StageRef]) -> "StageRegistry":
        collected: dict[str, StageRef] = {}
        for ref in refs:
            if not isinstance(ref, StageRef):
                raise TypeError(f"Stage registry entries must be StageRef (type={type(ref).__name__})")
            if ref.id in collected:
                raise ValueError(f"Duplicate stage kind id: {ref.id}")
            collected[ref.id] = ref
        return cls(collected)

    def __contains__(self, stage_id: object) -> bool:
        return isinstance(stage_id, str) and stage_id.strip() in self._refs

    def __iter__(self) -> Iterator[StageRef]:
        return iter(self._refs[stage_id] for stage_id in self.available())

    def __len__(self) -> int:
        return len(self._refs)

    def available(self) -> tuple[str, ...]:
        return tuple(sorted(self._refs))

    def describe(self) -> tuple[dict[str, Any], ...]:
        return tuple(
            {
                "stage_id": ref.id,
                "doc": ref.doc,
                "source": ref.source,
                "tags": list(ref.tags),
                "io": {"requires": list(ref.io.requires), "provides": list(ref.io.provides)},
            }
            for ref in self
        )

    def _by_suffix(self, suffix: str) -> list[str]:
        return sorted(stage_id for stage_id in self._refs if stage_id.rsplit(".", 1)[-1] == suffix)

    def resolve(self, stage_id: str) -> StageRef:
        if not isinstance(stage_id, str) or not stage_id.strip():
            raise ValueError("stage_id must be a non-empty string")
        key = stage_id.strip()

        if key in self._refs:
            return self._refs[key]

        if "." not in key:
            matches = self._by_suffix(key)
            if len(matches) == 1:
                return self._refs[matches[0]]
            if matches:
                raise ValueError(f"Ambiguous stage kind id: {key} (matches: {', '.join(matches)})")

        message = f"Unknown stage kind id: {key} (available: {', '.join(self.available()) or '<none>'}"
        suggestions = self.suggest(key)
        if suggestions:
            message += f"; did you mean: {', '.join(suggestions)}"
        raise ValueError(message + ")")

    def instances(self, stage_ids: Iterable[str]) -> list[StageInstance]:
        return [self.resolve(stage_id).instance() for stage_id in stage_ids]

    def suggest(self, stage_id: str, *, limit: int = 3) -> tuple[str, ...]:
        key = (stage_id or "").strip()
        if not key:
            return ()
        return tuple(difflib.get_close_matches(key, self.available(), n=limit))
