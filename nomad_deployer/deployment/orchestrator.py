"""
Deployment driver.

Runs one deployment transaction from preflight plan to terminal outcome and
is the only place where deployment errors are caught and classified.
"""

import logging
from typing import List, Optional

from nomad_deployer.config.settings import DeploymentSettings
from nomad_deployer.deployment.batch import BatchSupervisor
from nomad_deployer.deployment.context import DeployContext
from nomad_deployer.deployment.diagnostics import FailureDiagnostics
from nomad_deployer.deployment.errors import (
    AllocationFailedError,
    DeployError,
    GeneralError,
    UnsupportedJobType,
)
from nomad_deployer.deployment.hooks import HookCallback, HookType, failure_messages
from nomad_deployer.deployment.planner import Planner
from nomad_deployer.deployment.service import ServiceSupervisor
from nomad_deployer.deployment.submission import Submitter
from nomad_deployer.logging_config import LogContext
from nomad_deployer.models import DeployOutcome, JobPlan, JobType, NomadJob, OutcomeKind
from nomad_deployer.nomad import NomadClient, NomadError
from nomad_deployer.utils.log_sanitizer import sanitize_job_name

TRANSPORT_FAILURE_SUMMARY = "Orchestrator request failed, exiting!"


class Deployer:
    """Submits a job to Nomad and supervises it to a terminal outcome."""

    def __init__(
        self,
        client: NomadClient,
        settings: Optional[DeploymentSettings] = None,
        context: Optional[DeployContext] = None,
    ) -> None:
        """
        Initialize the deployer.

        Args:
            client: Nomad API client
            settings: Deployment settings, ignored when ``context`` is given
            context: Fully built run context (logger, hooks, clock)
        """
        self.client = client
        self.context = context or DeployContext(settings=settings)
        self.evaluation_id: Optional[str] = None
        self.deployment_id: Optional[str] = None

    @property
    def logger(self) -> logging.Logger:
        return self.context.logger

    def add_hook(self, hook: HookType, callback: HookCallback) -> None:
        """Register an observer for a lifecycle point."""
        self.context.hooks.add(hook, callback)

    def plan(self, job: NomadJob) -> JobPlan:
        """Dry-run only; raises FailedTaskGroupPlan when groups can't be placed."""
        return Planner(self.client, self.context).plan(job)

    def deploy(self, job: NomadJob) -> DeployOutcome:
        """
        Plan, submit and supervise ``job``.

        Exactly one of the finished or failed hooks fires. Errors never
        escape; they are returned as the outcome's kind.

        Returns:
            The outcome of the run
        """
        self.evaluation_id = None
        self.deployment_id = None
        hooks = self.context.hooks

        with LogContext(self.logger, job_name=job.name) as log_context:
            hooks.dispatch(HookType.DEPLOY_RUNNING, job)
            try:
                self._deploy(job, log_context)
            except DeployError as e:
                messages = failure_messages(type(e).__name__, str(e), e.summary)
                return self._failed(job, e.kind, messages)
            except NomadError as e:
                messages = failure_messages(type(e).__name__, str(e), TRANSPORT_FAILURE_SUMMARY)
                return self._failed(job, OutcomeKind.GENERAL_ERROR, messages)

            hooks.dispatch(HookType.DEPLOY_FINISHED, job)
            return self._outcome(job, OutcomeKind.SUCCEEDED, [])

    def stop(self, job_name: str, purge: bool = False) -> str:
        """Stop a job without supervising it. Returns the evaluation ID."""
        self.logger.info(f"Stopping {sanitize_job_name(job_name)} (purge={purge})")
        evaluation_id = self.client.stop_job(job_name, purge=purge)
        self.logger.info(f"EvaluationID: {evaluation_id}")
        return evaluation_id

    def _deploy(self, job: NomadJob, log_context: LogContext) -> None:
        planner = Planner(self.client, self.context)
        plan = planner.plan(job)
        planner.ensure_changes(plan)

        self.logger.info(
            f"Deploying {sanitize_job_name(job.name)} ({job.type}) with {job.image_name_and_version}"
        )
        self.logger.info(f"URL: {self.client.ui_url(job.name)}")

        submitter = Submitter(self.client, self.context)
        self.evaluation_id = submitter.submit(job)
        log_context.update(evaluation_id=self.evaluation_id)

        try:
            self.deployment_id = submitter.await_evaluation(self.evaluation_id)
            log_context.update(deployment_id=self.deployment_id)
            submitter.await_allocations_placed(self.evaluation_id)

            if job.type == JobType.SERVICE.value:
                if not self.deployment_id:
                    raise GeneralError(
                        f"Evaluation {self.evaluation_id} did not create a deployment"
                    )
                ServiceSupervisor(self.client, self.context).supervise(self.deployment_id)
            elif job.type == JobType.BATCH.value:
                BatchSupervisor(self.client, self.context).supervise(self.evaluation_id)
            else:
                raise UnsupportedJobType(job.type)
        except AllocationFailedError as e:
            FailureDiagnostics(self.client, self.context).report(e)
            raise

    def _failed(self, job: NomadJob, kind: OutcomeKind, messages: List[str]) -> DeployOutcome:
        self.context.hooks.dispatch(HookType.DEPLOY_FAILED, job, messages)
        return self._outcome(job, kind, messages)

    def _outcome(self, job: NomadJob, kind: OutcomeKind, messages: List[str]) -> DeployOutcome:
        return DeployOutcome(
            kind=kind,
            job_name=job.name,
            messages=messages,
            evaluation_id=self.evaluation_id,
            deployment_id=self.deployment_id,
        )
