"""
Deployment error taxonomy.

Each error kind carries the process exit code and the human summary used in
the failed-hook notification. They are raised inside the pipeline and caught
only by ``Deployer.deploy``, which turns them into a ``DeployOutcome``.
"""

from typing import List, Optional

from nomad_deployer.models import Allocation, OutcomeKind
from nomad_deployer.models.outcome import (
    EXIT_ALLOCATION_FAILED,
    EXIT_DEPLOYMENT_FAILED,
    EXIT_FAILED_TASK_GROUP_PLAN,
    EXIT_GENERAL_ERROR,
    EXIT_SUCCESS,
    EXIT_UNSUPPORTED_DEPLOYMENT_MODE,
)


class DeployError(Exception):
    """Base class for classified deployment failures."""

    kind: OutcomeKind = OutcomeKind.GENERAL_ERROR
    exit_code: int = EXIT_GENERAL_ERROR
    summary: str = "GeneralError hit, exiting!"


class NoModificationsError(DeployError):
    """The dry-run plan implies no change at all."""

    kind = OutcomeKind.NO_CHANGES
    exit_code = EXIT_SUCCESS
    summary = "No modifications to make, exiting!"


class GeneralError(DeployError):
    """Unclassified orchestration error."""

    kind = OutcomeKind.GENERAL_ERROR
    exit_code = EXIT_GENERAL_ERROR
    summary = "GeneralError hit, exiting!"


class UnsupportedJobType(GeneralError):
    """The job type has no supervisor."""

    def __init__(self, job_type: str):
        super().__init__(f"Job-type '{job_type}' not implemented")
        self.job_type = job_type


class WaitTimeoutError(GeneralError):
    """A bounded wait on evaluation or allocation placement ran out."""

    def __init__(self, what: str, timeout: float):
        super().__init__(f"Timed out after {timeout:g}s waiting for {what}")
        self.what = what
        self.timeout = timeout


class AllocationFailedError(DeployError):
    """One or more tasks ended dead and failed."""

    kind = OutcomeKind.ALLOCATION_FAILED
    exit_code = EXIT_ALLOCATION_FAILED
    summary = "Allocation failed with errors, exiting!"

    def __init__(self, evaluation_id: str, allocations: List[Allocation]):
        failed = [
            allocation.id
            for allocation in allocations
            if allocation.never_ran
            or any(task.has_failed for _, task in allocation.sorted_tasks())
        ]
        super().__init__(
            f"Evaluation {evaluation_id}: {len(failed)} allocation(s) failed: {', '.join(failed)}"
        )
        self.evaluation_id = evaluation_id
        self.allocations = allocations


class UnsupportedDeploymentMode(DeployError):
    """Canary groups disagree on who owns promotion and rollback."""

    kind = OutcomeKind.UNSUPPORTED_DEPLOYMENT_MODE
    exit_code = EXIT_UNSUPPORTED_DEPLOYMENT_MODE
    summary = "Deployment failed with errors, exiting!"


class FailedTaskGroupPlan(DeployError):
    """The dry-run plan could not place one or more task groups."""

    kind = OutcomeKind.FAILED_TASK_GROUP_PLAN
    exit_code = EXIT_FAILED_TASK_GROUP_PLAN
    summary = "Couldn't plan correctly, exiting!"

    def __init__(self, groups: List[str]):
        super().__init__(f"Failed to plan groups: {','.join(groups)}")
        self.groups = groups


class DeploymentFailedError(DeployError):
    """The service deployment failed or was rolled back after a timeout."""

    kind = OutcomeKind.DEPLOYMENT_FAILED
    exit_code = EXIT_DEPLOYMENT_FAILED
    summary = "Couldn't deploy succesfully, exiting!"

    def __init__(
        self,
        deployment_id: str,
        job_version: Optional[int] = None,
        description: Optional[str] = None,
    ):
        message = f"Deployment {deployment_id} (version {job_version}) failed"
        if description:
            message += f": {description}"
        super().__init__(message)
        self.deployment_id = deployment_id
        self.job_version = job_version
        self.description = description
