"""
Nomad API response models.

These models mirror the subset of Nomad's JSON documents the deployer reads.
Field names follow Python conventions and map to Nomad's PascalCase keys
through aliases. Required fields have no defaults, so a response that is
missing one fails validation instead of being silently filled in.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NomadModel(BaseModel):
    """Base for models parsed from Nomad responses."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JobListStub(NomadModel):
    """One entry from the job index (``GET /v1/jobs``)."""

    id: str = Field(..., alias="ID")
    name: Optional[str] = Field(None, alias="Name")
    type: Optional[str] = Field(None, alias="Type")
    status: Optional[str] = Field(None, alias="Status")


class Evaluation(NomadModel):
    """Nomad's record of deciding how to schedule a submitted job version."""

    id: str = Field(..., alias="ID")
    status: str = Field(..., alias="Status")
    deployment_id: Optional[str] = Field(..., alias="DeploymentID")

    @field_validator("deployment_id", mode="before")
    @classmethod
    def empty_deployment_id_is_none(cls, value: Any) -> Any:
        """Nomad reports an unassigned deployment as an empty string."""
        if value == "":
            return None
        return value

    @property
    def is_complete(self) -> bool:
        return self.status == "complete"


class TaskEvent(NomadModel):
    """A single lifecycle event of a task."""

    type: str = Field(..., alias="Type")
    time: int = Field(..., alias="Time", description="Nanoseconds since the epoch")
    display_message: str = Field(..., alias="DisplayMessage")
    details: Optional[Dict[str, str]] = Field(..., alias="Details")

    @field_validator("details", mode="after")
    @classmethod
    def null_details_are_empty(cls, value: Optional[Dict[str, str]]) -> Dict[str, str]:
        return value or {}

    @property
    def timestamp(self) -> datetime:
        """Event time as an aware UTC datetime, truncated to the second."""
        return datetime.fromtimestamp(self.time // 1_000_000_000, tz=timezone.utc)


class TaskState(NomadModel):
    """State of one task inside an allocation."""

    state: str = Field(..., alias="State")
    failed: bool = Field(..., alias="Failed")
    events: Optional[List[TaskEvent]] = Field(..., alias="Events")

    @field_validator("events", mode="after")
    @classmethod
    def null_events_are_empty(cls, value: Optional[List[TaskEvent]]) -> List[TaskEvent]:
        return value or []

    @property
    def is_dead(self) -> bool:
        return self.state == "dead"

    @property
    def is_upcoming(self) -> bool:
        return self.state in ("pending", "running")

    @property
    def has_failed(self) -> bool:
        """Failure is only meaningful once the task is dead."""
        return self.is_dead and self.failed

    @property
    def has_succeeded(self) -> bool:
        return self.is_dead and not self.failed


class Allocation(NomadModel):
    """One scheduled instance of a task group on a client node."""

    id: str = Field(..., alias="ID")
    name: str = Field(..., alias="Name")
    client_status: str = Field(..., alias="ClientStatus")
    task_states: Optional[Dict[str, TaskState]] = Field(..., alias="TaskStates")

    @property
    def is_pending(self) -> bool:
        return self.client_status == "pending"

    @property
    def never_ran(self) -> bool:
        """Failed or lost on its client before any task reported a state."""
        return not self.task_states and self.client_status in ("failed", "lost")

    def sorted_tasks(self) -> List[tuple[str, TaskState]]:
        """Task states ordered by task name; empty until the client reports tasks."""
        return sorted((self.task_states or {}).items())


class TaskGroupStatus(NomadModel):
    """Per task group rollout counters of a deployment."""

    desired_canaries: int = Field(..., alias="DesiredCanaries", ge=0)
    desired_total: int = Field(..., alias="DesiredTotal", ge=0)
    placed_allocs: int = Field(..., alias="PlacedAllocs", ge=0)
    healthy_allocs: int = Field(..., alias="HealthyAllocs", ge=0)
    unhealthy_allocs: int = Field(..., alias="UnhealthyAllocs", ge=0)
    auto_promote: bool = Field(..., alias="AutoPromote")
    auto_revert: bool = Field(..., alias="AutoRevert")


class Deployment(NomadModel):
    """Nomad's record of rolling out a service job version."""

    id: str = Field(..., alias="ID")
    job_id: str = Field(..., alias="JobID")
    status: str = Field(..., alias="Status")
    status_description: str = Field(..., alias="StatusDescription")
    job_version: int = Field(..., alias="JobVersion")
    task_groups: Dict[str, TaskGroupStatus] = Field(..., alias="TaskGroups")

    @property
    def canary_groups(self) -> Dict[str, TaskGroupStatus]:
        """Task groups that roll out through canaries."""
        return {
            name: group for name, group in self.task_groups.items() if group.desired_canaries > 0
        }

    def canaries_healthy(self) -> bool:
        """True when every group has at least as many healthy allocs as desired canaries."""
        return all(
            group.healthy_allocs >= group.desired_canaries for group in self.task_groups.values()
        )


class TaskGroupUpdates(NomadModel):
    """Planned changes for one task group."""

    stop: int = Field(..., alias="Stop")
    place: int = Field(..., alias="Place")
    migrate: int = Field(..., alias="Migrate")
    destructive_update: int = Field(..., alias="DestructiveUpdate")
    canary: int = Field(..., alias="Canary")
    ignore: int = Field(0, alias="Ignore")
    in_place_update: int = Field(0, alias="InPlaceUpdate")

    @property
    def total_changes(self) -> int:
        return self.stop + self.place + self.migrate + self.destructive_update + self.canary


class PlanAnnotations(NomadModel):
    desired_tg_updates: Dict[str, TaskGroupUpdates] = Field(..., alias="DesiredTGUpdates")


class JobPlan(NomadModel):
    """Dry-run result of ``POST /v1/job/{name}/plan``."""

    annotations: PlanAnnotations = Field(..., alias="Annotations")
    failed_tg_allocs: Optional[Dict[str, Any]] = Field(None, alias="FailedTGAllocs")

    @property
    def failed_groups(self) -> List[str]:
        return sorted(self.failed_tg_allocs or {})

    @property
    def group_updates(self) -> Dict[str, TaskGroupUpdates]:
        return self.annotations.desired_tg_updates
