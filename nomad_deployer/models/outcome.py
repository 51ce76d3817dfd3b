"""
Deployment outcome model.

Every ``Deployer.deploy`` call produces exactly one ``DeployOutcome``. The CLI
switches on its ``kind`` once to pick the process exit code.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

# Exit codes
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_ALLOCATION_FAILED = 3
EXIT_UNSUPPORTED_DEPLOYMENT_MODE = 4
EXIT_FAILED_TASK_GROUP_PLAN = 5
EXIT_DEPLOYMENT_FAILED = 6


class OutcomeKind(str, Enum):
    """Terminal result of one deployer run."""

    SUCCEEDED = "succeeded"
    NO_CHANGES = "no_changes"
    GENERAL_ERROR = "general_error"
    ALLOCATION_FAILED = "allocation_failed"
    UNSUPPORTED_DEPLOYMENT_MODE = "unsupported_deployment_mode"
    FAILED_TASK_GROUP_PLAN = "failed_task_group_plan"
    DEPLOYMENT_FAILED = "deployment_failed"


EXIT_CODES = {
    OutcomeKind.SUCCEEDED: EXIT_SUCCESS,
    # Nothing to deploy is reported through the failed hook but is not an error
    OutcomeKind.NO_CHANGES: EXIT_SUCCESS,
    OutcomeKind.GENERAL_ERROR: EXIT_GENERAL_ERROR,
    OutcomeKind.ALLOCATION_FAILED: EXIT_ALLOCATION_FAILED,
    OutcomeKind.UNSUPPORTED_DEPLOYMENT_MODE: EXIT_UNSUPPORTED_DEPLOYMENT_MODE,
    OutcomeKind.FAILED_TASK_GROUP_PLAN: EXIT_FAILED_TASK_GROUP_PLAN,
    OutcomeKind.DEPLOYMENT_FAILED: EXIT_DEPLOYMENT_FAILED,
}


class DeployOutcome(BaseModel):
    """Result of supervising one deployment transaction."""

    kind: OutcomeKind = Field(..., description="Terminal state of the run")
    job_name: str = Field(..., description="Job that was deployed")
    messages: List[str] = Field(
        default_factory=list,
        description="Ordered, de-duplicated failure messages (error kind, message, summary)",
    )
    evaluation_id: Optional[str] = Field(None, description="Evaluation created by the submission")
    deployment_id: Optional[str] = Field(None, description="Deployment supervised, if any")

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.kind]
