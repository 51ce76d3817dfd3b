"""
Shared fixtures for nomad-deployer tests.

Payload factories build Nomad-shaped JSON (PascalCase) so tests exercise the
same model validation as real responses.
"""

import logging
import random
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest

from nomad_deployer.config.settings import DeploymentSettings
from nomad_deployer.deployment.context import DeployContext
from nomad_deployer.deployment.hooks import HookDispatcher
from nomad_deployer.models import (
    Allocation,
    Deployment,
    Evaluation,
    JobPlan,
    NomadJob,
)
from nomad_deployer.nomad import NomadClient


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def task_state_payload(
    state: str = "running",
    failed: bool = False,
    events: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    return {"State": state, "Failed": failed, "Events": events or []}


def event_payload(
    event_type: str = "Terminated",
    message: str = "Exit Code: 1",
    details: Optional[Dict[str, str]] = None,
    time_ns: int = 1_700_000_000 * 1_000_000_000,
) -> Dict[str, Any]:
    return {"Type": event_type, "Time": time_ns, "DisplayMessage": message, "Details": details}


def allocation_payload(
    alloc_id: str,
    name: str = "app.web[0]",
    client_status: str = "running",
    tasks: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    return {"ID": alloc_id, "Name": name, "ClientStatus": client_status, "TaskStates": tasks}


def group_payload(
    desired_canaries: int = 0,
    desired_total: int = 1,
    healthy: int = 0,
    auto_promote: bool = False,
    auto_revert: bool = False,
    placed: int = 0,
    unhealthy: int = 0,
) -> Dict[str, Any]:
    return {
        "DesiredCanaries": desired_canaries,
        "DesiredTotal": desired_total,
        "PlacedAllocs": placed,
        "HealthyAllocs": healthy,
        "UnhealthyAllocs": unhealthy,
        "AutoPromote": auto_promote,
        "AutoRevert": auto_revert,
    }


def deployment_payload(
    groups: Dict[str, Dict[str, Any]],
    status: str = "running",
    description: str = "Deployment is running",
    deployment_id: str = "dep-1",
    job_version: int = 3,
) -> Dict[str, Any]:
    return {
        "ID": deployment_id,
        "JobID": "app",
        "Status": status,
        "StatusDescription": description,
        "JobVersion": job_version,
        "TaskGroups": groups,
    }


def plan_payload(
    updates: Dict[str, Dict[str, int]],
    failed_groups: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    desired = {}
    for group_name, counts in updates.items():
        group = {"Stop": 0, "Place": 0, "Migrate": 0, "DestructiveUpdate": 0, "Canary": 0}
        group.update(counts)
        desired[group_name] = group
    payload: Dict[str, Any] = {"Annotations": {"DesiredTGUpdates": desired}}
    if failed_groups is not None:
        payload["FailedTGAllocs"] = failed_groups
    return payload


def make_allocation(*args: Any, **kwargs: Any) -> Allocation:
    return Allocation.model_validate(allocation_payload(*args, **kwargs))


def make_deployment(*args: Any, **kwargs: Any) -> Deployment:
    return Deployment.model_validate(deployment_payload(*args, **kwargs))


def make_evaluation(status: str = "complete", deployment_id: str = "") -> Evaluation:
    return Evaluation.model_validate(
        {"ID": "eval-1", "Status": status, "DeploymentID": deployment_id}
    )


def make_plan(*args: Any, **kwargs: Any) -> JobPlan:
    return JobPlan.model_validate(plan_payload(*args, **kwargs))


class Factories:
    """Namespace handed to tests through the ``nomad`` fixture."""

    task_state = staticmethod(task_state_payload)
    event = staticmethod(event_payload)
    group = staticmethod(group_payload)
    allocation_payload = staticmethod(allocation_payload)
    deployment_payload = staticmethod(deployment_payload)
    plan_payload = staticmethod(plan_payload)
    allocation = staticmethod(make_allocation)
    deployment = staticmethod(make_deployment)
    evaluation = staticmethod(make_evaluation)
    plan = staticmethod(make_plan)


@pytest.fixture
def nomad():
    """Builders for Nomad payloads and models."""
    return Factories


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def settings():
    return DeploymentSettings()


@pytest.fixture
def context(settings, fake_clock):
    """Deploy context with instant sleeps and a seeded RNG."""
    logger = logging.getLogger("nomad_deployer.tests")
    return DeployContext(
        settings=settings,
        logger=logger,
        sleep=fake_clock.sleep,
        clock=fake_clock,
        rng=random.Random(42),
    )


@pytest.fixture
def bare_context(settings, fake_clock):
    """Deploy context without the default failed-hook."""
    logger = logging.getLogger("nomad_deployer.tests")
    return DeployContext(
        settings=settings,
        logger=logger,
        hooks=HookDispatcher(logger),
        sleep=fake_clock.sleep,
        clock=fake_clock,
        rng=random.Random(42),
    )


@pytest.fixture
def mock_client():
    """Nomad client double; tests configure return values per call."""
    client = Mock(spec=NomadClient)
    client.ui_url.side_effect = lambda name: f"http://nomad.test:4646/ui/jobs/{name}"
    client.get_allocation_logs.return_value = ""
    return client


@pytest.fixture
def service_job():
    return NomadJob(
        name="app",
        type="service",
        image="registry.example.com/app:1.4.2",
        spec={"ID": "app", "Name": "app", "Type": "service"},
    )


@pytest.fixture
def batch_job():
    return NomadJob(
        name="migrate",
        type="batch",
        image="registry.example.com/migrate:7",
        spec={"ID": "migrate", "Name": "migrate", "Type": "batch"},
    )
