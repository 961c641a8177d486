import pytest

from pipelinekit.compiler import compile_stage_blocks
from pipelinekit.engine.pipeline import ActionStep, Block
from pipelinekit.stage_registry import StageRegistry
from pipelinekit.stage_types import StageIO, StageRef
from envstack.framework.config import Config
from envstack.framework.dryrun import DryRunStackManager
from envstack.framework.workflow import UpsertInputs
from envstack.stages.registry import UPSERT_SEQUENCE, get_stage_registry, upsert_stage_instances


def _builder(inputs, *, instance_id):
    return Block(name=instance_id, nodes=[ActionStep(name="action", fn=lambda ctx: None)])


def _ref(stage_id: str, *, requires=(), provides=()) -> StageRef:
    return StageRef(id=stage_id, builder=_builder, io=StageIO(requires=requires, provides=provides))


def test_compile_rejects_missing_required_outputs():
    first = _ref("demo.first", provides=("a",))
    second = _ref("demo.second", requires=("a", "b"))

    with pytest.raises(ValueError, match=r"stage=demo\.second kind=demo\.second missing_required_outputs=b"):
        compile_stage_blocks([first.instance(), second.instance()], inputs=None)


def test_compile_accepts_initial_outputs_and_records_metadata():
    stage = _ref("demo.only", requires=("seed",), provides=("out",))

    compiled = compile_stage_blocks([stage.instance()], inputs=None, initial_outputs=("seed",))

    assert [block.name for block in compiled.blocks] == ["demo.only"]
    assert compiled.blocks[0].meta["stage_kind"] == "demo.only"
    assert compiled.blocks[0].meta["provides"] == ["out"]
    assert compiled.metadata["stage_io"]["demo.only"] == {"requires": ["seed"], "provides": ["out"]}
    assert compiled.as_pipeline().name == "pipeline"


def test_compile_rejects_duplicate_instances_and_empty_lists():
    stage = _ref("demo.only")

    with pytest.raises(ValueError, match="Duplicate stage instance id: demo.only"):
        compile_stage_blocks([stage.instance(), stage.instance()], inputs=None)
    with pytest.raises(ValueError, match="Stage list cannot be empty"):
        compile_stage_blocks([], inputs=None)


def test_compile_wraps_builder_failures():
    def _broken(inputs, *, instance_id):
        raise KeyError("nope")

    stage = StageRef(id="demo.broken", builder=_broken)

    with pytest.raises(ValueError, match=r"Stage build failed: stage=demo\.broken"):
        compile_stage_blocks([stage.instance()], inputs=None)


def test_stage_ref_rejects_mismatched_block_name():
    stage = StageRef(id="demo.named", builder=lambda inputs, *, instance_id: Block(name="other"))

    with pytest.raises(ValueError, match="mismatched Block.name"):
        stage.build(None, instance_id="demo.named")


def test_stage_io_rejects_bare_string():
    with pytest.raises(TypeError, match="must be a sequence of strings"):
        StageIO(requires="environment")  # type: ignore[arg-type]


def test_registry_resolves_suffix_and_suggests():
    registry = StageRegistry.from_refs([_ref("env.vpc"), _ref("env.elb")])

    assert registry.resolve("vpc").id == "env.vpc"
    assert "env.elb" in registry
    with pytest.raises(ValueError, match="did you mean: env.vpc"):
        registry.resolve("env.vcp")


def test_registry_rejects_duplicates():
    with pytest.raises(ValueError, match="Duplicate stage kind id: env.vpc"):
        StageRegistry.from_refs([_ref("env.vpc"), _ref("env.vpc")])


def test_upsert_sequence_is_registered_and_io_consistent():
    registry = get_stage_registry()

    assert registry.available() == tuple(sorted(UPSERT_SEQUENCE))
    instances = upsert_stage_instances()
    assert [instance.instance_id for instance in instances] == list(UPSERT_SEQUENCE)

    inputs = UpsertInputs(
        config=Config(), environment_name="dev", collaborators=DryRunStackManager().collaborators()
    )
    compiled = compile_stage_blocks(instances, inputs)
    assert [entry["kind"] for entry in compiled.metadata["stage_instances"]] == list(UPSERT_SEQUENCE)

