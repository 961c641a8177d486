"""Collaborators that record what would be submitted instead of submitting it."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from envstack.framework.collaborators import Collaborators, Stack
from envstack.framework.config import EnvironmentConfig

logger = logging.getLogger(__name__)

DRYRUN_STATUS = "CREATE_COMPLETE"
DRYRUN_AZ_COUNT = 3
DRYRUN_IMAGE_ID = "ami-dryrun"
DRYRUN_ACCOUNT_ID = "000000000000"


@dataclass(frozen=True)
class StackSubmission:
    stack_name: str
    template_name: str
    environment_name: str
    parameters: dict[str, str]
    tags: dict[str, str]
    role_arn: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stack_name": self.stack_name,
            "template": self.template_name,
            "environment": self.environment_name,
            "parameters": dict(self.parameters),
            "tags": dict(self.tags),
            "role_arn": self.role_arn,
        }


@dataclass
class DryRunStackManager:
    """
    Implements every collaborator protocol without touching a cloud account.

    Submissions are kept in `submissions` (in call order) and, when
    `output_dir` is set, written to `<output_dir>/<stack_name>.json`.
    """

    output_dir: str | None = None
    namespace: str = "mu"
    az_count: int = DRYRUN_AZ_COUNT
    image_id: str = DRYRUN_IMAGE_ID
    submissions: list[StackSubmission] = field(default_factory=list)
    rolesets_upserted: list[str] = field(default_factory=list)

    def collaborators(self) -> Collaborators:
        return Collaborators(
            stack_upserter=self,
            stack_waiter=self,
            image_finder=self,
            az_counter=self,
            roleset_upserter=self,
            roleset_getter=self,
        )

    def upsert_stack(
        self,
        stack_name: str,
        template_name: str,
        environment: EnvironmentConfig,
        parameters: Mapping[str, str],
        tags: Mapping[str, str],
        role_arn: str | None,
    ) -> None:
        submission = StackSubmission(
            stack_name=stack_name,
            template_name=template_name,
            environment_name=environment.name,
            parameters=dict(parameters),
            tags=dict(tags),
            role_arn=role_arn,
        )
        self.submissions.append(submission)
        logger.debug("Dry run: recorded stack %s (template=%s)", stack_name, template_name)

        if self.output_dir:
            os.makedirs(self.output_dir, exist_ok=True)
            path = os.path.join(self.output_dir, f"{stack_name}.json")
            with open(path, "w", encoding="utf-8") as handle:
                json.dump(submission.to_dict(), handle, indent=2, sort_keys=True)
                handle.write("\n")

    def await_final_status(self, stack_name: str) -> Stack | None:
        return Stack(name=stack_name, status=DRYRUN_STATUS)

    def find_latest_image_id(self, name_pattern: str) -> str:
        return self.image_id

    def count_azs(self) -> int:
        return self.az_count

    def upsert_common_roleset(self) -> None:
        self.rolesets_upserted.append("common")

    def upsert_environment_roleset(self, environment_name: str) -> None:
        self.rolesets_upserted.append(environment_name)

    def get_common_roleset(self) -> Mapping[str, str]:
        return {
            "CloudFormationRoleArn": (
                f"arn:aws:iam::{DRYRUN_ACCOUNT_ID}:role/{self.namespace}-cloudformation-common"
            ),
        }

    def get_environment_roleset(self, environment_name: str) -> Mapping[str, str]:
        return {
            "EC2InstanceProfileArn": (
                f"arn:aws:iam::{DRYRUN_ACCOUNT_ID}:instance-profile/"
                f"{self.namespace}-environment-{environment_name}-instance"
            ),
        }

    def stack_names(self) -> list[str]:
        return [submission.stack_name for submission in self.submissions]
