"""
Service deployment supervision.

Watches the Nomad deployment created for a service job until it succeeds or
fails. Jobs whose canary groups leave promotion and rollback to us run in
manual mode: we wait for healthy canaries, linger, promote, and roll back by
failing the deployment when the deadline passes. Jobs whose canary groups
auto-promote and auto-revert run hands-off: we only mirror Nomad's status.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Set

from nomad_deployer.deployment.context import DeployContext
from nomad_deployer.deployment.errors import DeploymentFailedError, UnsupportedDeploymentMode
from nomad_deployer.deployment.polling import PollTimer
from nomad_deployer.models import Deployment
from nomad_deployer.nomad import NomadClient


class DeploymentMode(str, Enum):
    """Who owns promotion and rollback of canaries."""

    MANUAL = "manual"
    HANDS_OFF = "hands_off"


class ServicePhase(str, Enum):
    """Where a supervised service deployment currently is."""

    MONITORING = "monitoring"
    AWAITING_CANARIES_HEALTHY = "awaiting_canaries_healthy"
    LINGERING = "lingering"
    PROMOTED = "promoted"
    AWAITING_FINAL_SUCCESS = "awaiting_final_success"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def determine_mode(deployment: Deployment) -> DeploymentMode:
    """
    Work out the deployment mode from the canary groups' auto flags.

    Only groups that roll out through canaries take part. Every such group
    must agree, and auto-promote must match auto-revert.

    Raises:
        UnsupportedDeploymentMode: If the flags are mixed
    """
    groups = deployment.canary_groups
    if not groups:
        return DeploymentMode.HANDS_OFF

    auto_promote = {group.auto_promote for group in groups.values()}
    auto_revert = {group.auto_revert for group in groups.values()}

    if auto_promote == {False} and auto_revert == {False}:
        return DeploymentMode.MANUAL
    if auto_promote == {True} and auto_revert == {True}:
        return DeploymentMode.HANDS_OFF

    flags = ", ".join(
        f"{name}(auto_promote={group.auto_promote}, auto_revert={group.auto_revert})"
        for name, group in sorted(groups.items())
    )
    raise UnsupportedDeploymentMode(
        f"Unsupported deployment-mode, manual-promotion={False in auto_promote}, "
        f"manual-rollback={False in auto_revert}: {flags}"
    )


class ServiceSupervisor:
    """Canary, promotion and rollback state machine for one deployment."""

    def __init__(self, client: NomadClient, context: DeployContext) -> None:
        self.client = client
        self.context = context
        self.phase = ServicePhase.MONITORING
        self.mode: Optional[DeploymentMode] = None
        self.promoted = False
        self.completed_groups: Set[str] = set()

    def supervise(self, deployment_id: str) -> bool:
        """
        Block until the deployment reaches a terminal state.

        Returns:
            True when the deployment succeeded

        Raises:
            UnsupportedDeploymentMode: If canary groups disagree on auto flags
            DeploymentFailedError: If the deployment failed or was rolled back
        """
        logger = self.context.logger
        settings = self.context.settings

        logger.info("Waiting until tasks are placed")
        deployment = self.client.get_deployment(deployment_id)
        logger.info(f"{deployment.job_id} version {deployment.job_version}")

        self.mode = determine_mode(deployment)
        if self.mode == DeploymentMode.MANUAL:
            logger.info("Job needs manual promotion/rollback, we'll take care of that!")
            deadline = datetime.now(timezone.utc) + timedelta(seconds=settings.deploy_timeout)
            logger.info(f".. deploy timeout is {deadline:%Y-%m-%d %H:%M:%S} UTC")
            timer = self.context.timer(
                settings.deployment_poll_interval, timeout=settings.deploy_timeout
            )
            self.phase = ServicePhase.AWAITING_CANARIES_HEALTHY
        else:
            logger.info(
                "Job manages its own promotion/rollback, we will just monitor in a hands-off mode!"
            )
            timer = self.context.timer(settings.deployment_poll_interval)
            self.phase = ServicePhase.MONITORING

        while True:
            deployment = self.client.get_deployment(deployment_id)
            self._report_progress(deployment)

            if self.mode == DeploymentMode.MANUAL:
                decision = self._manual_step(deployment, timer)
            else:
                decision = self._hands_off_step(deployment)

            if decision is not None:
                break
            timer.wait()

        if decision:
            self.phase = ServicePhase.SUCCEEDED
            logger.info("")
            logger.info(
                f"{deployment_id} (version {deployment.job_version}) was succesfully deployed!"
            )
            return True

        self.phase = ServicePhase.FAILED
        logger.warning("")
        logger.warning(f"{deployment_id} (version {deployment.job_version}) deployment _failed_!")
        raise DeploymentFailedError(
            deployment_id, deployment.job_version, deployment.status_description
        )

    def _report_progress(self, deployment: Deployment) -> None:
        """Log health per group until the group reaches its target."""
        for group_name, group in deployment.task_groups.items():
            if group_name in self.completed_groups:
                continue

            if self.mode == DeploymentMode.MANUAL:
                self.context.logger.info(
                    f"{deployment.id} {group_name}: {group.healthy_allocs}/"
                    f"{group.desired_canaries}/{group.desired_total} "
                    "(Healthy/WantedCanaries/Total)"
                )
                target = group.desired_canaries
            else:
                self.context.logger.info(
                    f"{deployment.id} {group_name}: {group.healthy_allocs}/"
                    f"{group.desired_total} (Healthy/Total)"
                )
                target = group.desired_total

            if group.healthy_allocs >= target:
                self.completed_groups.add(group_name)

    def _manual_step(self, deployment: Deployment, timer: PollTimer) -> Optional[bool]:
        """One manual-mode decision; None means keep polling."""
        logger = self.context.logger

        if deployment.status == "failed":
            logger.info(f"{deployment.status}: {deployment.status_description}")
            return False

        if timer.expired():
            logger.info("Timeout hit, rolling back deploy!")
            self.client.fail_deployment(deployment.id)
            return False

        if not deployment.canaries_healthy():
            logger.info(
                f"Waiting for healthy canaries, {timer.remaining():.0f}s left before rollback"
            )
            return None

        if not self.promoted:
            self._promote(deployment)
            return None

        if deployment.status == "successful":
            logger.info(f"{deployment.status}: {deployment.status_description}")
            return True

        self.phase = ServicePhase.AWAITING_FINAL_SUCCESS
        logger.info(
            f"Waiting for promotion to complete {deployment.id} (version {deployment.job_version})"
        )
        return None

    def _promote(self, deployment: Deployment) -> None:
        logger = self.context.logger

        self.phase = ServicePhase.LINGERING
        linger = self.context.linger_seconds()
        logger.info(f"Lingering around for {linger} seconds before deployment..")
        self.context.sleep(linger)

        logger.info(f"Promoting {deployment.id} (version {deployment.job_version})")
        self.client.promote_deployment(deployment.id)
        self.promoted = True
        self.phase = ServicePhase.PROMOTED
        logger.info(".. promoted!")

    def _hands_off_step(self, deployment: Deployment) -> Optional[bool]:
        """Mirror Nomad's own verdict; None means keep polling."""
        if deployment.status == "failed":
            self.context.logger.info(f"{deployment.status}: {deployment.status_description}")
            return False
        if deployment.status == "successful":
            self.context.logger.info(f"{deployment.status}: {deployment.status_description}")
            return True
        return None
