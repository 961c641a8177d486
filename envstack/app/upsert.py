from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Any

from pipelinekit.compiler import compile_stage_blocks
from pipelinekit.engine.pipeline import Block, PipelineRunner, StepRecorder
from pipelinekit.stage_types import StageInstance
from envstack.foundation.config_io import load_config
from envstack.foundation.logging_utils import setup_operational_logger
from envstack.foundation.repo_metadata import discover_repo_metadata
from envstack.framework.collaborators import Collaborators
from envstack.framework.config import Config, RepoConfig
from envstack.framework.dryrun import DryRunStackManager
from envstack.framework.errors import WorkflowWarning
from envstack.framework.runtime import WorkflowContext
from envstack.framework.workflow import UpsertInputs, WorkflowStepRecorder
from envstack.stages.registry import upsert_stage_instances

logger = logging.getLogger(__name__)


@dataclass
class EnvironmentUpserter:
    """One compiled upsert workflow bound to its own context."""

    context: WorkflowContext
    pipeline: Block
    runner: PipelineRunner
    metadata: dict[str, Any]

    def run(self) -> WorkflowContext:
        self.context.logger.info(
            "Upserting environment '%s' (namespace=%s, stages=%d)",
            self.context.environment_name,
            self.context.namespace,
            len(self.pipeline.nodes),
        )
        self.runner.run(self.context, self.pipeline)
        return self.context


def new_environment_upserter(
    config: Config,
    environment_name: str,
    collaborators: Collaborators,
    *,
    workflow_logger: logging.Logger | None = None,
    recorder: StepRecorder | None = None,
    stages: list[StageInstance] | None = None,
) -> EnvironmentUpserter:
    """Build the upsert workflow for one environment.

    Nothing is called on the collaborators until `run()`.
    """

    if not isinstance(environment_name, str) or not environment_name.strip():
        raise ValueError("environment_name must be a non-empty string")

    inputs = UpsertInputs(
        config=config,
        environment_name=environment_name.strip(),
        collaborators=collaborators,
    )
    compiled = compile_stage_blocks(stages if stages is not None else upsert_stage_instances(), inputs)

    context = WorkflowContext(
        namespace=config.namespace,
        environment_name=inputs.environment_name,
        logger=workflow_logger or logger,
        code_revision=config.repo.revision,
        repo_name=config.repo.slug,
    )
    return EnvironmentUpserter(
        context=context,
        pipeline=compiled.as_pipeline(),
        runner=PipelineRunner(recorder=recorder or WorkflowStepRecorder()),
        metadata=compiled.metadata,
    )


def build_collaborators(
    config: Config,
    *,
    dryrun_path: str | None = None,
    region: str | None = None,
    profile: str | None = None,
) -> tuple[Collaborators, DryRunStackManager]:
    """Dry-run collaborators, with real EC2 lookups when a region or profile is given."""

    manager = DryRunStackManager(output_dir=dryrun_path, namespace=config.namespace)
    collaborators = manager.collaborators()
    if region or profile:
        from envstack.framework.aws import Ec2AZCounter, Ec2ImageFinder  # noqa: PLC0415

        collaborators = dataclasses.replace(
            collaborators,
            image_finder=Ec2ImageFinder(region=region, profile=profile),
            az_counter=Ec2AZCounter(region=region, profile=profile),
        )
    return collaborators, manager


def with_discovered_repo(config: Config, *, start_dir: str | None = None) -> Config:
    """Fill unset `repo.revision` / `repo.slug` from the enclosing git checkout."""

    if config.repo.revision and config.repo.slug:
        return config
    discovered = discover_repo_metadata(start_dir)
    return dataclasses.replace(
        config,
        repo=RepoConfig(
            revision=config.repo.revision or discovered.revision,
            slug=config.repo.slug or discovered.slug,
        ),
    )


def run_upsert(
    environment_name: str,
    *,
    config_path: str | None = None,
    dryrun_path: str | None = None,
    region: str | None = None,
    profile: str | None = None,
    log_file: str | None = None,
    verbose: bool = False,
) -> int:
    """Load configuration and upsert one environment. Returns a process exit code."""

    workflow_logger = setup_operational_logger(environment_name, log_file=log_file, verbose=verbose)
    try:
        cfg_dict, cfg_meta = load_config(config_path)
        workflow_logger.debug("Loaded config (%s): %s", cfg_meta["mode"], ", ".join(cfg_meta["paths"]))
        config, warnings = Config.from_dict(cfg_dict)
        for message in warnings:
            workflow_logger.warning(message)
        config = with_discovered_repo(
            config, start_dir=cfg_meta.get("repo_root") or os.path.dirname(cfg_meta["paths"][0])
        )

        collaborators, manager = build_collaborators(
            config, dryrun_path=dryrun_path, region=region, profile=profile
        )
        upserter = new_environment_upserter(
            config, environment_name, collaborators, workflow_logger=workflow_logger
        )
        upserter.run()

        workflow_logger.info(
            "Environment '%s' upserted (%d stack(s) submitted: %s)",
            environment_name,
            len(manager.submissions),
            ", ".join(manager.stack_names()) or "<none>",
        )
        if dryrun_path:
            workflow_logger.info("Dry-run stack definitions written to %s", dryrun_path)
        return 0
    except WorkflowWarning as warning:
        workflow_logger.warning("%s", warning)
        return 0
    except Exception as exc:  # noqa: BLE001
        workflow_logger.exception(
            "Upsert failed at %s", getattr(exc, "pipeline_path", None) or "setup"
        )
        return 1
    finally:
        for handler in list(workflow_logger.handlers):
            handler.flush()
            handler.close()
        workflow_logger.handlers.clear()
