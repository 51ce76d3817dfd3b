"""
Deployment orchestration module.

Provides supervised Nomad deployments including:
- Preflight planning and no-op detection
- Canary promotion and timeout-triggered rollback for service jobs
- Task completion tracking for batch jobs
- Failure diagnostics and lifecycle hooks

Usage:
    from nomad_deployer.deployment import Deployer, HookType

    deployer = Deployer(client)
    deployer.add_hook(HookType.DEPLOY_FINISHED, notify_chat)
    outcome = deployer.deploy(job)
"""

from nomad_deployer.deployment.orchestrator import Deployer

from nomad_deployer.deployment.batch import BatchSupervisor
from nomad_deployer.deployment.context import DeployContext
from nomad_deployer.deployment.diagnostics import FailureDiagnostics
from nomad_deployer.deployment.errors import (
    AllocationFailedError,
    DeployError,
    DeploymentFailedError,
    FailedTaskGroupPlan,
    GeneralError,
    NoModificationsError,
    UnsupportedDeploymentMode,
    UnsupportedJobType,
    WaitTimeoutError,
)
from nomad_deployer.deployment.helpers import format_task_event, task_state_decorator
from nomad_deployer.deployment.hooks import HookDispatcher, HookType
from nomad_deployer.deployment.planner import Planner, count_changes
from nomad_deployer.deployment.service import DeploymentMode, ServicePhase, ServiceSupervisor
from nomad_deployer.deployment.submission import Submitter

__all__ = [
    # Driver
    "Deployer",
    "DeployContext",
    # Components
    "BatchSupervisor",
    "FailureDiagnostics",
    "HookDispatcher",
    "Planner",
    "ServiceSupervisor",
    "Submitter",
    # Errors
    "AllocationFailedError",
    "DeployError",
    "DeploymentFailedError",
    "FailedTaskGroupPlan",
    "GeneralError",
    "NoModificationsError",
    "UnsupportedDeploymentMode",
    "UnsupportedJobType",
    "WaitTimeoutError",
    # Types and helpers
    "DeploymentMode",
    "HookType",
    "ServicePhase",
    "count_changes",
    "format_task_event",
    "task_state_decorator",
]
