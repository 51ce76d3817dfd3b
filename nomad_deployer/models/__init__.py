"""
Pydantic models for nomad-deployer.

Job descriptors, Nomad API responses and run outcomes.
"""

from nomad_deployer.models.job import JobType, NomadJob
from nomad_deployer.models.nomad import (
    Allocation,
    Deployment,
    Evaluation,
    JobListStub,
    JobPlan,
    PlanAnnotations,
    TaskEvent,
    TaskGroupStatus,
    TaskGroupUpdates,
    TaskState,
)
from nomad_deployer.models.outcome import DeployOutcome, OutcomeKind

__all__ = [
    "Allocation",
    "Deployment",
    "DeployOutcome",
    "Evaluation",
    "JobListStub",
    "JobPlan",
    "JobType",
    "NomadJob",
    "OutcomeKind",
    "PlanAnnotations",
    "TaskEvent",
    "TaskGroupStatus",
    "TaskGroupUpdates",
    "TaskState",
]
