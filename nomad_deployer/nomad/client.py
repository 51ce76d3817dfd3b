"""
Nomad HTTP API client.

Thin synchronous wrapper around the Nomad endpoints the deployer needs.
Every JSON response is validated into a model; anything unexpected is raised
as a ``NomadError`` and is fatal for the run. Nothing here retries.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from nomad_deployer.models import (
    Allocation,
    Deployment,
    Evaluation,
    JobListStub,
    JobPlan,
    NomadJob,
)
from nomad_deployer.utils.log_sanitizer import sanitize_for_log, strip_ansi_codes

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://127.0.0.1:4646"

ModelT = TypeVar("ModelT", bound=BaseModel)


class NomadError(Exception):
    """Base exception for Nomad transport failures."""

    pass


class NomadConnectionError(NomadError):
    """The Nomad API could not be reached."""

    pass


class NomadAPIError(NomadError):
    """Nomad answered with a non-200 status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NomadResponseError(NomadError):
    """Nomad answered 200 but the payload was not what we expected."""

    pass


class NomadClient:
    """Client for the Nomad HTTP API."""

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        token: Optional[str] = None,
        verify_tls: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the Nomad client.

        Args:
            endpoint: Base URL of the Nomad agent, http:// or https://
            token: Optional ACL token sent as X-Nomad-Token
            verify_tls: Verify the server certificate for https endpoints
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.endpoint = endpoint.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if token:
            headers["X-Nomad-Token"] = token
        self._client = httpx.Client(
            base_url=self.endpoint,
            headers=headers,
            verify=verify_tls,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "NomadClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def ui_url(self, job_name: str) -> str:
        """Link to the job in the Nomad web UI."""
        return f"{self.endpoint}/ui/jobs/{job_name}"

    # Transport

    def _request(
        self,
        method: str,
        path: str,
        expect_json: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and enforce the 200 + JSON contract."""
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"HTTP Request failed ({method} {path}: {e})")
            raise NomadConnectionError(f"{method} {path} failed: {e}") from e

        logger.debug(f"{method} {path} -> {response.status_code}")

        if response.status_code != 200:
            message = f"{method} {path} returned {response.status_code}"
            logger.error(f"HTTP Request failed ({message}: {sanitize_for_log(response.text)})")
            raise NomadAPIError(message, response.status_code, response.text)

        if expect_json:
            content_type = response.headers.get("content-type", "")
            if content_type.split(";")[0].strip() != "application/json":
                message = f"{method} {path} returned content type '{content_type}'"
                logger.error(f"HTTP Request failed ({message})")
                raise NomadResponseError(message)

        return response

    def _parse(self, response: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise NomadResponseError(
                f"Unexpected {model.__name__} payload from {response.request.url.path}: {e}"
            ) from e

    def _parse_list(self, response: httpx.Response, model: Type[ModelT]) -> List[ModelT]:
        try:
            return TypeAdapter(List[model]).validate_python(response.json())  # type: ignore[valid-type]
        except (ValueError, ValidationError) as e:
            raise NomadResponseError(
                f"Unexpected {model.__name__} list from {response.request.url.path}: {e}"
            ) from e

    def _eval_id(self, response: httpx.Response) -> str:
        try:
            data = response.json()
            return str(data["EvalID"])
        except (ValueError, KeyError, TypeError) as e:
            raise NomadResponseError(
                f"No EvalID in response from {response.request.url.path}"
            ) from e

    @staticmethod
    def _job_path(job_name: str) -> str:
        return f"/v1/job/{quote(job_name, safe='')}"

    # Jobs

    def list_jobs(self, prefix: Optional[str] = None) -> List[JobListStub]:
        """List jobs, optionally filtered by ID prefix."""
        params = {"prefix": prefix} if prefix else None
        response = self._request("GET", "/v1/jobs", params=params)
        return self._parse_list(response, JobListStub)

    def job_exists(self, job_name: str) -> bool:
        """Whether a job with exactly this ID is registered."""
        return any(job.id == job_name for job in self.list_jobs(prefix=job_name))

    def create_job(self, job: NomadJob) -> str:
        """Register a new job. Returns the evaluation ID."""
        response = self._request("POST", "/v1/jobs", json=job.payload())
        return self._eval_id(response)

    def update_job(self, job: NomadJob) -> str:
        """Update an existing job in place. Returns the evaluation ID."""
        response = self._request("POST", self._job_path(job.name), json=job.payload())
        return self._eval_id(response)

    def stop_job(self, job_name: str, purge: bool = False) -> str:
        """Deregister a job. Returns the evaluation ID."""
        params = {"purge": "true"} if purge else None
        response = self._request("DELETE", self._job_path(job_name), params=params)
        return self._eval_id(response)

    def plan_job(self, job: NomadJob) -> JobPlan:
        """Dry-run the job against the cluster."""
        response = self._request("POST", f"{self._job_path(job.name)}/plan", json=job.payload())
        return self._parse(response, JobPlan)

    def parse_job(self, job_hcl: str) -> Dict[str, Any]:
        """Convert an HCL job file into its JSON representation."""
        response = self._request(
            "POST", "/v1/jobs/parse", json={"JobHCL": job_hcl, "Canonicalize": False}
        )
        try:
            data = response.json()
        except ValueError as e:
            raise NomadResponseError("Invalid JSON from /v1/jobs/parse") from e
        if not isinstance(data, dict):
            raise NomadResponseError("Expected a job object from /v1/jobs/parse")
        return data

    # Evaluations

    def get_evaluation(self, evaluation_id: str) -> Evaluation:
        response = self._request("GET", f"/v1/evaluation/{evaluation_id}")
        return self._parse(response, Evaluation)

    def get_evaluation_allocations(self, evaluation_id: str) -> List[Allocation]:
        response = self._request("GET", f"/v1/evaluation/{evaluation_id}/allocations")
        return self._parse_list(response, Allocation)

    # Deployments

    def get_deployment(self, deployment_id: str) -> Deployment:
        response = self._request("GET", f"/v1/deployment/{deployment_id}")
        return self._parse(response, Deployment)

    def promote_deployment(self, deployment_id: str) -> bool:
        """Promote all canaries of a deployment."""
        self._request(
            "POST",
            f"/v1/deployment/promote/{deployment_id}",
            json={"DeploymentID": deployment_id, "All": True},
        )
        return True

    def fail_deployment(self, deployment_id: str) -> bool:
        """Mark a deployment as failed, triggering rollback where configured."""
        self._request("POST", f"/v1/deployment/fail/{deployment_id}")
        return True

    # Allocations

    def get_allocation_logs(self, allocation_id: str, task_name: str, log_type: str) -> str:
        """
        Fetch the tail of a task's log stream.

        Args:
            allocation_id: Allocation ID
            task_name: Task within the allocation
            log_type: "stdout" or "stderr"

        Returns:
            Plain log text with ANSI colour codes removed
        """
        response = self._request(
            "GET",
            f"/v1/client/fs/logs/{allocation_id}",
            expect_json=False,
            params={"task": task_name, "type": log_type, "plain": "true", "origin": "end"},
        )
        return strip_ansi_codes(response.text)
