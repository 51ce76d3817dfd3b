"""
Preflight planning and change detection.

The job is dry-run against the cluster before anything is submitted. A plan
that cannot place a task group aborts the run; a plan with nothing to change
ends it early without touching the job.
"""

from nomad_deployer.deployment.context import DeployContext
from nomad_deployer.deployment.errors import FailedTaskGroupPlan, NoModificationsError
from nomad_deployer.models import JobPlan, NomadJob
from nomad_deployer.nomad import NomadClient


def count_changes(plan: JobPlan) -> int:
    """Sum of stops, placements, migrations, destructive updates and canaries over all groups."""
    return sum(updates.total_changes for updates in plan.group_updates.values())


class Planner:
    """Dry-runs a job and decides whether the run should continue."""

    def __init__(self, client: NomadClient, context: DeployContext) -> None:
        self.client = client
        self.context = context

    def plan(self, job: NomadJob) -> JobPlan:
        """
        Request a dry-run plan.

        Raises:
            FailedTaskGroupPlan: If any task group could not be placed
        """
        self.context.logger.info("Checking cluster for connectivity and capacity..")
        plan = self.client.plan_job(job)

        if plan.failed_groups:
            raise FailedTaskGroupPlan(plan.failed_groups)

        for group_name, updates in sorted(plan.group_updates.items()):
            self.context.logger.info(
                f"{job.name} {group_name}: place={updates.place} stop={updates.stop} "
                f"migrate={updates.migrate} destructive={updates.destructive_update} "
                f"canary={updates.canary}"
            )

        return plan

    def ensure_changes(self, plan: JobPlan) -> int:
        """
        Make sure the plan actually changes something.

        Raises:
            NoModificationsError: If every change counter is zero
        """
        changes = count_changes(plan)
        if changes == 0:
            raise NoModificationsError()
        return changes
