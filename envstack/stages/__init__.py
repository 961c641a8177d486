from __future__ import annotations

from envstack.stages.cluster import STAGE as CLUSTER
from envstack.stages.elb import STAGE as ELB
from envstack.stages.environment_finder import STAGE as ENVIRONMENT_FINDER
from envstack.stages.roleset import STAGE as ROLESET
from envstack.stages.vpc import STAGE as VPC

# Declaration order is execution order for the upsert workflow.
__all_stages__ = [
    ENVIRONMENT_FINDER,
    ROLESET,
    VPC,
    ELB,
    CLUSTER,
]
