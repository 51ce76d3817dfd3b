"""
Job submission and scheduling waits.

Submits the job (create or update), then blocks until Nomad has finished
evaluating it and until none of the resulting allocations is still pending.
"""

from typing import List, Optional

from nomad_deployer.deployment.context import DeployContext
from nomad_deployer.deployment.errors import WaitTimeoutError
from nomad_deployer.models import Allocation, NomadJob
from nomad_deployer.nomad import NomadClient


class Submitter:
    """Create-or-update a job and wait for it to be scheduled."""

    def __init__(self, client: NomadClient, context: DeployContext) -> None:
        self.client = client
        self.context = context

    def submit(self, job: NomadJob) -> str:
        """Register the job, updating it in place if it already exists. Returns the evaluation ID."""
        logger = self.context.logger
        if self.client.job_exists(job.name):
            logger.info("Updating existing job")
            evaluation_id = self.client.update_job(job)
        else:
            logger.info("Creating new job")
            evaluation_id = self.client.create_job(job)

        logger.info(f"EvaluationID: {evaluation_id}")
        return evaluation_id

    def await_evaluation(self, evaluation_id: str) -> Optional[str]:
        """
        Poll the evaluation until it is complete.

        Returns:
            The first deployment ID the evaluation reported, or None

        Raises:
            WaitTimeoutError: If evaluation_timeout elapses first
        """
        settings = self.context.settings
        logger = self.context.logger
        logger.info(f"{evaluation_id} Waiting until evaluation is complete")

        timer = self.context.timer(
            settings.evaluation_poll_interval, timeout=settings.evaluation_timeout
        )
        deployment_id: Optional[str] = None
        while True:
            evaluation = self.client.get_evaluation(evaluation_id)
            if deployment_id is None and evaluation.deployment_id:
                deployment_id = evaluation.deployment_id
                logger.info(f"{evaluation_id} DeploymentID: {deployment_id}")

            if evaluation.is_complete:
                return deployment_id

            if timer.expired():
                raise WaitTimeoutError(f"evaluation {evaluation_id}", timer.timeout or 0)

            logger.info(f"{evaluation_id} evaluation status: {evaluation.status}")
            timer.wait()

    def await_allocations_placed(self, evaluation_id: str) -> List[Allocation]:
        """
        Poll the evaluation's allocations until none is pending on its client.

        Raises:
            WaitTimeoutError: If allocation_timeout elapses first
        """
        settings = self.context.settings
        logger = self.context.logger
        logger.info("Waiting until allocations are no longer pending")

        timer = self.context.timer(
            settings.allocation_poll_interval, timeout=settings.allocation_timeout
        )
        while True:
            allocations = self.client.get_evaluation_allocations(evaluation_id)
            pending = [allocation for allocation in allocations if allocation.is_pending]
            if not pending:
                return allocations

            if timer.expired():
                raise WaitTimeoutError(
                    f"allocations of evaluation {evaluation_id} to be placed",
                    timer.timeout or 0,
                )

            logger.info(f"{len(pending)}/{len(allocations)} allocation(s) still pending")
            timer.wait()
