"""
Configuration settings for nomad-deployer.

Settings are read from a YAML file; the Nomad address and ACL token can be
overridden from the environment the same way the nomad CLI does it.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from nomad_deployer.nomad.client import DEFAULT_ENDPOINT


class NomadSettings(BaseModel):
    """How to reach the Nomad cluster."""

    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="Nomad HTTP API address")
    token: Optional[str] = Field(None, description="ACL token sent as X-Nomad-Token")
    verify_tls: bool = Field(default=True, description="Verify TLS peers for https endpoints")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout (s)")


class DeploymentSettings(BaseModel):
    """Timeouts and polling cadence of the supervisors."""

    deploy_timeout: float = Field(
        default=180.0, gt=0, description="Manual-mode deadline before rolling back (s)"
    )
    evaluation_timeout: Optional[float] = Field(
        default=600.0, gt=0, description="Max wait for evaluation completion, None for unbounded"
    )
    allocation_timeout: Optional[float] = Field(
        default=600.0, gt=0, description="Max wait for allocations to leave pending, None for unbounded"
    )
    evaluation_poll_interval: float = Field(default=1.0, ge=0)
    allocation_poll_interval: float = Field(default=2.0, ge=0)
    deployment_poll_interval: float = Field(default=5.0, ge=0)
    batch_poll_interval: float = Field(default=1.0, ge=0)
    linger_min: int = Field(default=8, ge=0, description="Shortest pre-promotion linger (s)")
    linger_max: int = Field(default=28, ge=0, description="Longest pre-promotion linger (s)")
    print_batch_logs: bool = Field(
        default=True, description="Print task logs after a successful batch run"
    )

    @model_validator(mode="after")
    def validate_linger_range(self) -> "DeploymentSettings":
        if self.linger_max < self.linger_min:
            raise ValueError("linger_max must be greater than or equal to linger_min")
        return self


class LoggingSettings(BaseModel):
    console_level: str = Field(default="INFO")
    file_level: str = Field(default="DEBUG")
    log_dir: Optional[str] = Field(None, description="Write rotating log files here when set")
    use_json: bool = Field(default=False, description="JSON formatting for log files")


class DeployerConfig(BaseModel):
    """Top-level configuration."""

    nomad: NomadSettings = Field(default_factory=NomadSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_file(cls, config_path: str) -> "DeployerConfig":
        """Load configuration from YAML, then apply environment overrides."""
        with open(config_path, "r") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration root must be a mapping: {config_path}")

        return cls.model_validate(data).with_env_overrides()

    def with_env_overrides(self) -> "DeployerConfig":
        """Apply NOMAD_ADDR / NOMAD_TOKEN from the environment."""
        nomad_updates: Dict[str, Any] = {}
        if os.environ.get("NOMAD_ADDR"):
            nomad_updates["endpoint"] = os.environ["NOMAD_ADDR"]
        if os.environ.get("NOMAD_TOKEN"):
            nomad_updates["token"] = os.environ["NOMAD_TOKEN"]
        if not nomad_updates:
            return self
        return self.model_copy(update={"nomad": self.nomad.model_copy(update=nomad_updates)})

    def save(self, config_path: str) -> None:
        """Write configuration as YAML."""
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)
