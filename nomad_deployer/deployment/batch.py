"""
Batch job supervision.

Polls the evaluation's allocations until every task has run to completion,
then fails the run if any task died with a failure.
"""

from typing import Dict, List, NamedTuple, Set

from nomad_deployer.deployment.context import DeployContext
from nomad_deployer.deployment.errors import AllocationFailedError
from nomad_deployer.deployment.helpers import emit_log_stream, pretty_task_state, task_address
from nomad_deployer.models import Allocation, TaskState
from nomad_deployer.nomad import NomadClient


class BatchTask(NamedTuple):
    """A task state tagged with the allocation it runs in."""

    allocation: Allocation
    name: str
    state: TaskState

    @property
    def address(self) -> str:
        return task_address(self.allocation, self.name)


class TaskPartition(NamedTuple):
    upcoming: List[BatchTask]
    successful: List[BatchTask]
    failed: List[BatchTask]
    unstarted: List[Allocation]
    lost: List[Allocation]

    @property
    def finished(self) -> bool:
        return not self.upcoming and not self.unstarted

    @property
    def has_failures(self) -> bool:
        return bool(self.failed or self.lost)


def get_tasks(allocations: List[Allocation]) -> List[BatchTask]:
    """Flatten every allocation's task states, ordered by task name within an allocation."""
    return [
        BatchTask(allocation, task_name, task_state)
        for allocation in allocations
        for task_name, task_state in allocation.sorted_tasks()
    ]


def partition_tasks(allocations: List[Allocation]) -> TaskPartition:
    """
    Split tasks into upcoming, successful and failed.

    Allocations without any task state are kept apart: while still pending
    or running on their client they are unstarted and block completion;
    once failed or lost they never ran and count as failures.
    """
    tasks = get_tasks(allocations)
    return TaskPartition(
        upcoming=[task for task in tasks if task.state.is_upcoming],
        successful=[task for task in tasks if task.state.has_succeeded],
        failed=[task for task in tasks if task.state.has_failed],
        unstarted=[
            allocation
            for allocation in allocations
            if not allocation.task_states and allocation.client_status in ("pending", "running")
        ],
        lost=[allocation for allocation in allocations if allocation.never_ran],
    )


class BatchSupervisor:
    """Task-completion state machine for run-to-completion jobs."""

    def __init__(self, client: NomadClient, context: DeployContext) -> None:
        self.client = client
        self.context = context
        self.announced_dead: Set[str] = set()
        self.last_states: Dict[str, str] = {}

    def supervise(self, evaluation_id: str) -> bool:
        """
        Block until no task of the evaluation is pending or running.

        Returns:
            True when every task finished successfully

        Raises:
            AllocationFailedError: If any task ended dead and failed
        """
        timer = self.context.timer(self.context.settings.batch_poll_interval)

        while True:
            allocations = self.client.get_evaluation_allocations(evaluation_id)
            self._announce(allocations)

            partition = partition_tasks(allocations)
            if partition.finished:
                break
            timer.wait()

        if partition.has_failures:
            raise AllocationFailedError(evaluation_id, allocations)

        self.context.logger.info("Deployment complete")
        if self.context.settings.print_batch_logs:
            self._print_logs(allocations)
        return True

    def _announce(self, allocations: List[Allocation]) -> None:
        """Log state changes; the dead transition is logged once per task."""
        for task in get_tasks(allocations):
            if task.address in self.announced_dead:
                continue
            if self.last_states.get(task.address) == task.state.state:
                continue

            self.last_states[task.address] = task.state.state
            self.context.logger.info(f"{task.address}: {pretty_task_state(task.state)}")
            if task.state.is_dead:
                self.announced_dead.add(task.address)

    def _print_logs(self, allocations: List[Allocation]) -> None:
        logger = self.context.logger
        for task in get_tasks(allocations):
            logger.info("")
            logger.info(f"{task.address}: {pretty_task_state(task.state)}")
            for stream in ("stdout", "stderr"):
                text = self.client.get_allocation_logs(task.allocation.id, task.name, stream)
                emit_log_stream(logger, stream, text)
