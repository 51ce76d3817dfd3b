"""
Failure diagnostics.

When allocations fail, print what an operator needs to see: every task's
final state, and for the tasks that failed their stdout, stderr and
lifecycle events.
"""

from nomad_deployer.deployment.context import DeployContext
from nomad_deployer.deployment.errors import AllocationFailedError
from nomad_deployer.deployment.helpers import (
    emit_log_stream,
    format_task_event,
    pretty_task_state,
    task_address,
)
from nomad_deployer.models import Allocation, TaskState
from nomad_deployer.nomad import NomadClient, NomadError


class FailureDiagnostics:
    """Reports logs and events of failed allocations."""

    def __init__(self, client: NomadClient, context: DeployContext) -> None:
        self.client = client
        self.context = context

    def report(self, error: AllocationFailedError) -> None:
        """Log diagnostics for every task of every allocation carried by ``error``."""
        for allocation in error.allocations:
            if allocation.never_ran:
                self.context.logger.info("")
                self.context.logger.info(
                    f"{allocation.id} {allocation.name}: {allocation.client_status} "
                    "before any task started"
                )
                continue
            for task_name, task_state in allocation.sorted_tasks():
                self.report_task(allocation, task_name, task_state)

    def report_task(self, allocation: Allocation, task_name: str, task_state: TaskState) -> None:
        logger = self.context.logger

        logger.info("")
        logger.info(f"{task_address(allocation, task_name)}: {pretty_task_state(task_state)}")
        if not task_state.has_failed:
            logger.info(
                f'Task "{task_name}" was succesfully run, skipping log-printing because it isn\'t relevant!'
            )
            return

        for stream in ("stdout", "stderr"):
            try:
                text = self.client.get_allocation_logs(allocation.id, task_name, stream)
            except NomadError as e:
                # The allocation failure being reported stays the run's outcome
                logger.warning(f"Could not fetch {stream} of {task_name} in {allocation.id}: {e}")
                continue
            emit_log_stream(logger, stream, text)

        for event in task_state.events or []:
            logger.info(format_task_event(event))
