"""Execution engine for Block/ActionStep trees.

This module is intentionally app-agnostic and must not import `envstack.*`.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, TypeAlias


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class FlowContext(Protocol):
    logger: logging.Logger
    outputs: dict[str, Any]
    steps: list[dict[str, Any]]


def _normalize_node_name(kind: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{kind} name must be a string or None (type={type(value).__name__})")
    name = value.strip()
    if not name:
        raise ValueError(f"{kind} name cannot be empty")
    return name


def _check_meta(kind: str, meta: Any) -> None:
    if not isinstance(meta, dict):
        raise TypeError(f"{kind} meta must be a dict (type={type(meta).__name__})")


@dataclass(frozen=True)
class Block:
    name: str | None = None
    nodes: list["Node"] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _normalize_node_name("Block", self.name))
        _check_meta("Block", self.meta)


@dataclass(frozen=True)
class ActionStep:
    """Pure-Python unit of work.

    `fn` receives the flow context. When `publishes` is set, the returned mapping
    is merged into `ctx.outputs` after being checked against the `provides` keys
    declared in the enclosing stage meta.
    """

    name: str | None
    fn: Callable[[FlowContext], Any]
    publishes: bool = False
    meta: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _normalize_node_name("Action", self.name))
        if not callable(self.fn):
            raise TypeError(f"Action fn must be callable (type={type(self.fn).__name__})")
        _check_meta("Action", self.meta)


Node: TypeAlias = Block | ActionStep


@dataclass(frozen=True)
class StepInfo:
    """What a recorder is told about the action being run."""

    path: str
    name: str
    stage_id: str | None = None
    source: str | None = None
    doc: str | None = None

    def describe(self) -> str:
        tokens = []
        if self.stage_id:
            tokens.append(f"stage_id={self.stage_id}")
        if self.source:
            tokens.append(f"source={self.source}")
        if self.doc:
            tokens.append(f"doc={json.dumps(self.doc, ensure_ascii=False)}")
        return ", ".join(tokens)


class StepRecorder(Protocol):
    def on_step_start(self, ctx: FlowContext, step: StepInfo) -> None:
        ...

    def on_step_end(self, ctx: FlowContext, step: StepInfo, record: dict[str, Any]) -> None:
        ...

    def on_step_error(self, ctx: FlowContext, step: StepInfo, exc: Exception) -> None:
        ...


class DefaultStepRecorder:
    """Appends step records to `ctx.steps` and narrates progress on `ctx.logger`."""

    def on_step_start(self, ctx: FlowContext, step: StepInfo) -> None:
        details = step.describe()
        if details:
            ctx.logger.info("Step: %s (%s)", step.path, details)
        else:
            ctx.logger.info("Step: %s", step.path)

    def on_step_end(self, ctx: FlowContext, step: StepInfo, record: dict[str, Any]) -> None:
        ctx.steps.append(record)
        published = record.get("published") or []
        if published:
            ctx.logger.info("Completed action %s (published=%s)", step.path, ", ".join(published))
        else:
            ctx.logger.info("Completed action %s", step.path)

    def on_step_error(self, ctx: FlowContext, step: StepInfo, exc: Exception) -> None:
        ctx.logger.error("Step failed: %s (%s)", step.path, exc)


class NullStepRecorder:
    """Keeps step records but logs nothing."""

    def on_step_start(self, ctx: FlowContext, step: StepInfo) -> None:
        return

    def on_step_end(self, ctx: FlowContext, step: StepInfo, record: dict[str, Any]) -> None:
        ctx.steps.append(record)

    def on_step_error(self, ctx: FlowContext, step: StepInfo, exc: Exception) -> None:
        return


def to_jsonable(value: Any, *, depth: int = 4, limit: int = 25) -> Any:
    """Bounded, JSON-friendly copy of an action result for step records."""

    if depth <= 0:
        return "<max_depth>"
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        items = list(value.items())
        out = {str(k): to_jsonable(v, depth=depth - 1, limit=limit) for k, v in items[:limit]}
        if len(items) > limit:
            out["<more>"] = f"<{len(items) - limit} more>"
        return out
    if isinstance(value, (list, tuple)):
        out_list = [to_jsonable(item, depth=depth - 1, limit=limit) for item in value[:limit]]
        if len(value) > limit:
            out_list.append(f"<{len(value) - limit} more>")
        return out_list
    return repr(value)


def describe_callable(fn: Any) -> str:
    module = getattr(fn, "__module__", None) or "<unknown_module>"
    qualname = getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or "<callable>"
    return f"{module}.{qualname}"


def _annotate_failure(exc: Exception, *, path: str, node_type: str, node_name: str) -> None:
    # Innermost node wins; outer blocks never overwrite what the action set.
    if hasattr(exc, "pipeline_path"):
        return
    try:
        exc.pipeline_path = path  # type: ignore[attr-defined]
        exc.pipeline_node_type = node_type  # type: ignore[attr-defined]
        exc.pipeline_node_name = node_name  # type: ignore[attr-defined]
    except AttributeError:
        pass


@dataclass(frozen=True)
class _Frame:
    segments: tuple[str, ...]
    meta: Mapping[str, Any]

    @property
    def path(self) -> str:
        return "/".join(self.segments)

    @property
    def name(self) -> str:
        return self.segments[-1]

    def enter(self, name: str, meta: Mapping[str, Any]) -> "_Frame":
        return _Frame(segments=(*self.segments, name), meta={**self.meta, **meta})


def _child_names(block: Block) -> list[str]:
    names = []
    for index, child in enumerate(block.nodes, start=1):
        fallback = f"action_{index:02d}" if isinstance(child, ActionStep) else f"block_{index:02d}"
        names.append(getattr(child, "name", None) or fallback)
    return names


class PipelineRunner:
    """Runs a Block tree depth-first, strictly in order.

    The first exception raised by any action aborts the run and is re-raised
    unchanged (annotated with `pipeline_path`). Nothing already applied is undone.
    """

    def __init__(self, *, recorder: StepRecorder | None = None):
        recorder = recorder or DefaultStepRecorder()
        for method in ("on_step_start", "on_step_end", "on_step_error"):
            if not callable(getattr(recorder, method, None)):
                raise TypeError(f"Step recorder missing required method: {method}")
        self._recorder = recorder

    def run(self, ctx: FlowContext, node: Node) -> None:
        default_root = "pipeline" if isinstance(node, Block) else "action_01"
        self._run_node(ctx, node, _Frame(segments=(node.name or default_root,), meta=dict(node.meta)))

    def run_actions(self, ctx: FlowContext, actions: list[ActionStep]) -> None:
        self.run(ctx, Block(name="pipeline", nodes=list(actions)))

    def _run_node(self, ctx: FlowContext, node: Node, frame: _Frame) -> None:
        if isinstance(node, ActionStep):
            self._run_action(ctx, node, frame)
        elif isinstance(node, Block):
            self._run_block(ctx, node, frame)
        else:
            raise TypeError(f"Unsupported pipeline node type: {type(node).__name__}")

    def _run_block(self, ctx: FlowContext, block: Block, frame: _Frame) -> None:
        try:
            names = _child_names(block)
            duplicates = sorted(name for name, count in Counter(names).items() if count > 1)
            if duplicates:
                raise ValueError(
                    f"Duplicate node name(s) in block {frame.path}: {', '.join(duplicates)}"
                )
            for child, name in zip(block.nodes, names):
                self._run_node(ctx, child, frame.enter(name, getattr(child, "meta", {})))
        except Exception as exc:
            _annotate_failure(exc, path=frame.path, node_type="block", node_name=frame.name)
            raise

    def _step_info(self, action: ActionStep, frame: _Frame) -> StepInfo:
        stage_id = frame.meta.get("stage_id")
        if not stage_id and len(frame.segments) >= 2 and frame.segments[0] == "pipeline":
            stage_id = frame.segments[1]
        doc = frame.meta.get("doc")
        return StepInfo(
            path=frame.path,
            name=frame.name,
            stage_id=stage_id or None,
            source=frame.meta.get("source") or describe_callable(action.fn),
            doc=doc.strip() if isinstance(doc, str) and doc.strip() else None,
        )

    def _publish(self, ctx: FlowContext, result: Any, frame: _Frame) -> list[str]:
        if result is None:
            return []
        if not isinstance(result, Mapping):
            raise TypeError(
                f"Action {frame.name} publishes outputs but returned {type(result).__name__}"
            )
        declared = frame.meta.get("provides")
        if declared is not None:
            undeclared = sorted(str(key) for key in result if key not in declared)
            if undeclared:
                raise ValueError(
                    f"Action {frame.name} published undeclared outputs: {', '.join(undeclared)}"
                )
        ctx.outputs.update({str(key): value for key, value in result.items()})
        return sorted(str(key) for key in result)

    def _run_action(self, ctx: FlowContext, action: ActionStep, frame: _Frame) -> None:
        step = self._step_info(action, frame)
        try:
            self._recorder.on_step_start(ctx, step)
            result = action.fn(ctx)
            published = self._publish(ctx, result, frame) if action.publishes else []

            record_meta = {**frame.meta, "source": step.source}
            if step.stage_id:
                record_meta["stage_id"] = step.stage_id
            record: dict[str, Any] = {
                "type": "action",
                "name": step.name,
                "path": step.path,
                "created_at": utc_now_iso8601(),
                "meta": to_jsonable(record_meta),
            }
            if result is not None:
                record["result"] = to_jsonable(result)
            if published:
                record["published"] = published
            self._recorder.on_step_end(ctx, step, record)
        except Exception as exc:
            try:
                self._recorder.on_step_error(ctx, step, exc)
            except Exception:
                ctx.logger.exception("Step recorder failed during error handling for %s", step.path)
            _annotate_failure(exc, path=step.path, node_type="action", node_name=step.name)
            raise
