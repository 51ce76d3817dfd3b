"""
End-to-end tests for the deployment driver against a mocked Nomad client.
"""

import logging
from unittest.mock import Mock

import pytest

from nomad_deployer.deployment import Deployer, HookType
from nomad_deployer.deployment.orchestrator import TRANSPORT_FAILURE_SUMMARY
from nomad_deployer.models import NomadJob, OutcomeKind
from nomad_deployer.nomad import NomadConnectionError


@pytest.fixture
def hooks():
    """One mock observer per lifecycle point."""
    return {hook: Mock() for hook in HookType}


@pytest.fixture
def deployer(mock_client, bare_context, hooks):
    deployer = Deployer(mock_client, context=bare_context)
    for hook, callback in hooks.items():
        deployer.add_hook(hook, callback)
    return deployer


@pytest.fixture
def scheduled(mock_client, nomad):
    """Cluster state up to the point the supervisor takes over."""
    mock_client.plan_job.return_value = nomad.plan({"web": {"Place": 1}})
    mock_client.job_exists.return_value = False
    mock_client.create_job.return_value = "eval-1"
    mock_client.update_job.return_value = "eval-1"
    mock_client.get_evaluation.return_value = nomad.evaluation("complete", deployment_id="dep-1")
    mock_client.get_evaluation_allocations.return_value = [nomad.allocation("a1")]
    return mock_client


def assert_failed_once(hooks, job):
    hooks[HookType.DEPLOY_RUNNING].assert_called_once_with(HookType.DEPLOY_RUNNING, job, None)
    hooks[HookType.DEPLOY_FINISHED].assert_not_called()
    hooks[HookType.DEPLOY_FAILED].assert_called_once()
    return hooks[HookType.DEPLOY_FAILED].call_args[0][2]


class TestNoChanges:
    def test_stops_before_submission(self, deployer, mock_client, hooks, service_job, nomad):
        mock_client.plan_job.return_value = nomad.plan(
            {"web": {"Ignore": 3}, "api": {"InPlaceUpdate": 1}}
        )

        outcome = deployer.deploy(service_job)

        assert outcome.kind == OutcomeKind.NO_CHANGES
        assert outcome.exit_code == 0
        assert outcome.succeeded is False
        mock_client.create_job.assert_not_called()
        mock_client.update_job.assert_not_called()
        messages = assert_failed_once(hooks, service_job)
        assert messages == ["NoModificationsError", "No modifications to make, exiting!"]
        assert outcome.messages == messages

    def test_plan_requested_once(self, deployer, mock_client, service_job, nomad):
        mock_client.plan_job.return_value = nomad.plan({"web": {}})
        deployer.deploy(service_job)
        mock_client.plan_job.assert_called_once_with(service_job)


class TestFailedPlan:
    def test_failed_task_group_plan(self, deployer, mock_client, hooks, service_job, nomad):
        mock_client.plan_job.return_value = nomad.plan(
            {"web": {"Place": 1}, "api": {"Place": 1}},
            failed_groups={"web": {"NodesEvaluated": 3}, "api": {"NodesEvaluated": 3}},
        )

        outcome = deployer.deploy(service_job)

        assert outcome.kind == OutcomeKind.FAILED_TASK_GROUP_PLAN
        assert outcome.exit_code == 5
        assert outcome.messages == [
            "FailedTaskGroupPlan",
            "Failed to plan groups: api,web",
            "Couldn't plan correctly, exiting!",
        ]
        mock_client.create_job.assert_not_called()
        assert_failed_once(hooks, service_job)


class TestServiceDeploy:
    def test_create_and_hands_off_success(
        self, deployer, scheduled, hooks, service_job, nomad, fake_clock
    ):
        groups = {"web": nomad.group(desired_total=1)}
        scheduled.get_deployment.side_effect = [
            nomad.deployment(groups),
            nomad.deployment(groups, status="running"),
            nomad.deployment({"web": nomad.group(desired_total=1, healthy=1)}, status="successful"),
        ]

        outcome = deployer.deploy(service_job)

        assert outcome.kind == OutcomeKind.SUCCEEDED
        assert outcome.exit_code == 0
        assert outcome.evaluation_id == "eval-1"
        assert outcome.deployment_id == "dep-1"
        assert outcome.messages == []
        scheduled.create_job.assert_called_once_with(service_job)
        scheduled.update_job.assert_not_called()
        hooks[HookType.DEPLOY_FINISHED].assert_called_once_with(
            HookType.DEPLOY_FINISHED, service_job, None
        )
        hooks[HookType.DEPLOY_FAILED].assert_not_called()

    def test_existing_job_is_updated(self, deployer, scheduled, service_job, nomad):
        scheduled.job_exists.return_value = True
        scheduled.get_deployment.return_value = nomad.deployment(
            {"web": nomad.group()}, status="successful"
        )

        assert deployer.deploy(service_job).succeeded
        scheduled.update_job.assert_called_once_with(service_job)
        scheduled.create_job.assert_not_called()

    def test_manual_timeout_rolls_back(self, deployer, scheduled, hooks, service_job, nomad):
        scheduled.get_deployment.return_value = nomad.deployment(
            {"web": nomad.group(desired_canaries=1, desired_total=3, healthy=0)}
        )

        outcome = deployer.deploy(service_job)

        assert outcome.kind == OutcomeKind.DEPLOYMENT_FAILED
        assert outcome.exit_code == 6
        scheduled.fail_deployment.assert_called_once_with("dep-1")
        scheduled.promote_deployment.assert_not_called()
        messages = assert_failed_once(hooks, service_job)
        assert messages[0] == "DeploymentFailedError"
        assert messages[-1] == "Couldn't deploy succesfully, exiting!"

    def test_mixed_mode_unsupported(self, deployer, scheduled, hooks, service_job, nomad):
        scheduled.get_deployment.return_value = nomad.deployment(
            {
                "web": nomad.group(desired_canaries=1),
                "api": nomad.group(desired_canaries=1, auto_promote=True, auto_revert=True),
            }
        )

        outcome = deployer.deploy(service_job)

        assert outcome.kind == OutcomeKind.UNSUPPORTED_DEPLOYMENT_MODE
        assert outcome.exit_code == 4
        scheduled.get_deployment.assert_called_once_with("dep-1")
        assert_failed_once(hooks, service_job)

    def test_missing_deployment_is_general_error(
        self, deployer, scheduled, hooks, service_job, nomad
    ):
        scheduled.get_evaluation.return_value = nomad.evaluation("complete")

        outcome = deployer.deploy(service_job)

        assert outcome.kind == OutcomeKind.GENERAL_ERROR
        assert outcome.exit_code == 1
        assert outcome.deployment_id is None
        assert "did not create a deployment" in outcome.messages[1]
        scheduled.get_deployment.assert_not_called()


class TestBatchDeploy:
    def test_success(self, deployer, scheduled, hooks, batch_job, nomad):
        scheduled.get_evaluation.return_value = nomad.evaluation("complete")
        scheduled.get_evaluation_allocations.return_value = [
            nomad.allocation("a1", tasks={"main": nomad.task_state("dead", failed=False)})
        ]

        outcome = deployer.deploy(batch_job)

        assert outcome.kind == OutcomeKind.SUCCEEDED
        assert outcome.deployment_id is None
        hooks[HookType.DEPLOY_FINISHED].assert_called_once()
        scheduled.get_deployment.assert_not_called()

    def test_failed_allocation_prints_diagnostics(
        self, deployer, scheduled, hooks, batch_job, nomad, caplog
    ):
        caplog.set_level(logging.INFO)
        scheduled.get_evaluation.return_value = nomad.evaluation("complete")
        scheduled.get_evaluation_allocations.return_value = [
            nomad.allocation(
                "a1",
                name="migrate.main[0]",
                tasks={
                    "main": nomad.task_state(
                        "dead", failed=True, events=[nomad.event("Terminated", "Exit Code: 1")]
                    )
                },
            ),
            nomad.allocation(
                "a2",
                name="migrate.main[1]",
                tasks={"main": nomad.task_state("dead", failed=False)},
            ),
        ]
        scheduled.get_allocation_logs.side_effect = lambda alloc, task, stream: (
            "relation already exists\n" if stream == "stderr" else ""
        )

        outcome = deployer.deploy(batch_job)

        assert outcome.kind == OutcomeKind.ALLOCATION_FAILED
        assert outcome.exit_code == 3
        assert outcome.messages[-1] == "Allocation failed with errors, exiting!"
        assert scheduled.get_allocation_logs.call_count == 2
        assert "relation already exists" in caplog.text
        assert "Terminated: Exit Code: 1" in caplog.text
        assert_failed_once(hooks, batch_job)


class TestErrors:
    def test_unsupported_job_type(self, deployer, scheduled, hooks, nomad):
        job = NomadJob(name="agent", type="system", image="agent:1", spec={"ID": "agent"})

        outcome = deployer.deploy(job)

        assert outcome.kind == OutcomeKind.GENERAL_ERROR
        assert outcome.messages == [
            "UnsupportedJobType",
            "Job-type 'system' not implemented",
            "GeneralError hit, exiting!",
        ]
        assert_failed_once(hooks, job)

    def test_transport_error(self, deployer, mock_client, hooks, service_job):
        mock_client.plan_job.side_effect = NomadConnectionError("connection refused")

        outcome = deployer.deploy(service_job)

        assert outcome.kind == OutcomeKind.GENERAL_ERROR
        assert outcome.exit_code == 1
        assert outcome.messages == [
            "NomadConnectionError",
            "connection refused",
            TRANSPORT_FAILURE_SUMMARY,
        ]
        assert_failed_once(hooks, service_job)

    def test_evaluation_wait_timeout(self, deployer, scheduled, settings, hooks, service_job, nomad):
        settings.evaluation_timeout = 5
        scheduled.get_evaluation.return_value = nomad.evaluation("pending")

        outcome = deployer.deploy(service_job)

        assert outcome.kind == OutcomeKind.GENERAL_ERROR
        assert outcome.messages[0] == "WaitTimeoutError"
        assert outcome.evaluation_id == "eval-1"
        assert_failed_once(hooks, service_job)

    def test_raising_hook_does_not_abort_run(self, mock_client, bare_context, service_job, nomad):
        mock_client.plan_job.return_value = nomad.plan({"web": {}})
        deployer = Deployer(mock_client, context=bare_context)
        deployer.add_hook(HookType.DEPLOY_RUNNING, Mock(side_effect=RuntimeError("boom")))

        assert deployer.deploy(service_job).kind == OutcomeKind.NO_CHANGES

    def test_default_failed_hook_logs(self, mock_client, service_job, nomad, caplog):
        caplog.set_level(logging.INFO)
        mock_client.plan_job.return_value = nomad.plan({"web": {}})

        Deployer(mock_client).deploy(service_job)

        assert "Failing deploy:" in caplog.text
        assert "- No modifications to make, exiting!" in caplog.text


class TestStop:
    def test_stop(self, mock_client, bare_context):
        mock_client.stop_job.return_value = "eval-9"

        assert Deployer(mock_client, context=bare_context).stop("app", purge=True) == "eval-9"
        mock_client.stop_job.assert_called_once_with("app", purge=True)
