import logging

import pytest

from pipelinekit.engine.pipeline import ActionStep, Block, NullStepRecorder, PipelineRunner
from envstack.framework.runtime import WorkflowContext


def _make_ctx(logger_name: str = "test.pipeline_runner") -> WorkflowContext:
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return WorkflowContext(namespace="mu", environment_name="dev", logger=logger)


def test_actions_run_in_order_and_record_steps():
    ctx = _make_ctx()
    calls: list[str] = []

    def _first(inner_ctx):
        calls.append("first")
        return {"a": 1}

    def _second(inner_ctx):
        calls.append("second")
        assert inner_ctx.outputs["a"] == 1
        return None

    root = Block(
        name="pipeline",
        nodes=[
            Block(
                name="stage_a",
                nodes=[ActionStep(name="action", fn=_first, publishes=True)],
                meta={"provides": ["a"]},
            ),
            Block(name="stage_b", nodes=[ActionStep(name="action", fn=_second, publishes=True)]),
        ],
    )

    PipelineRunner().run(ctx, root)

    assert calls == ["first", "second"]
    assert ctx.outputs == {"a": 1}
    assert [step["path"] for step in ctx.steps] == ["pipeline/stage_a/action", "pipeline/stage_b/action"]
    assert ctx.steps[0]["published"] == ["a"]
    assert ctx.steps[0]["meta"]["stage_id"] == "stage_a"
    assert "published" not in ctx.steps[1]


def test_first_failure_halts_the_run_and_is_annotated():
    ctx = _make_ctx("test.pipeline_runner.failure")
    calls: list[str] = []

    def _ok(inner_ctx):
        calls.append("ok")

    def _boom(inner_ctx):
        calls.append("boom")
        raise RuntimeError("stack exploded")

    def _never(inner_ctx):
        calls.append("never")

    root = Block(
        name="pipeline",
        nodes=[
            ActionStep(name="ok", fn=_ok),
            ActionStep(name="boom", fn=_boom),
            ActionStep(name="never", fn=_never),
        ],
    )

    with pytest.raises(RuntimeError, match="stack exploded") as excinfo:
        PipelineRunner(recorder=NullStepRecorder()).run(ctx, root)

    assert calls == ["ok", "boom"]
    assert excinfo.value.pipeline_path == "pipeline/boom"
    assert excinfo.value.pipeline_node_type == "action"
    assert len(ctx.steps) == 1


def test_default_recorder_logs_failed_step(caplog):
    logger = logging.getLogger("test.pipeline_runner.caplog")
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG)
    logger.propagate = True
    ctx = WorkflowContext(namespace="mu", environment_name="dev", logger=logger)

    def _boom(inner_ctx):
        raise ValueError("bad input")

    with caplog.at_level(logging.DEBUG, logger="test.pipeline_runner.caplog"):
        with pytest.raises(ValueError):
            PipelineRunner().run_actions(ctx, [ActionStep(name="boom", fn=_boom)])

    assert "Step: pipeline/boom" in caplog.text
    assert "Step failed: pipeline/boom (bad input)" in caplog.text


def test_publishing_undeclared_outputs_raises():
    ctx = _make_ctx("test.pipeline_runner.undeclared")
    root = Block(
        name="pipeline",
        nodes=[
            Block(
                name="stage",
                nodes=[ActionStep(name="action", fn=lambda c: {"b": 2}, publishes=True)],
                meta={"provides": ["a"]},
            )
        ],
    )

    with pytest.raises(ValueError, match="published undeclared outputs: b"):
        PipelineRunner(recorder=NullStepRecorder()).run(ctx, root)
    assert "b" not in ctx.outputs


def test_publishing_non_mapping_raises():
    ctx = _make_ctx("test.pipeline_runner.non_mapping")
    action = ActionStep(name="act", fn=lambda c: ["not", "a", "mapping"], publishes=True)

    with pytest.raises(TypeError, match="publishes outputs but returned list"):
        PipelineRunner(recorder=NullStepRecorder()).run_actions(ctx, [action])


def test_duplicate_sibling_names_are_rejected():
    ctx = _make_ctx("test.pipeline_runner.duplicates")
    root = Block(
        name="pipeline",
        nodes=[ActionStep(name="same", fn=lambda c: None), ActionStep(name="same", fn=lambda c: None)],
    )

    with pytest.raises(ValueError, match=r"Duplicate node name\(s\) in block pipeline: same"):
        PipelineRunner(recorder=NullStepRecorder()).run(ctx, root)


def test_unnamed_nodes_get_positional_names():
    ctx = _make_ctx("test.pipeline_runner.unnamed")
    root = Block(
        name="pipeline",
        nodes=[ActionStep(name=None, fn=lambda c: None), Block(nodes=[ActionStep(name=None, fn=lambda c: None)])],
    )

    PipelineRunner(recorder=NullStepRecorder()).run(ctx, root)

    assert [step["path"] for step in ctx.steps] == [
        "pipeline/action_01",
        "pipeline/block_02/action_01",
    ]


def test_runner_rejects_incomplete_recorder():
    class Partial:
        def on_step_start(self, ctx, path, **metrics):
            return None

    with pytest.raises(TypeError, match="missing required method: on_step_end"):
        PipelineRunner(recorder=Partial())  # type: ignore[arg-type]


def test_block_and_action_validation():
    with pytest.raises(ValueError, match="Block name cannot be empty"):
        Block(name="  ")
    with pytest.raises(TypeError, match="Action fn must be callable"):
        ActionStep(name="a", fn="nope")  # type: ignore[arg-type]
