"""Configuration for nomad-deployer."""

from nomad_deployer.config.settings import (
    DeployerConfig,
    DeploymentSettings,
    LoggingSettings,
    NomadSettings,
)

__all__ = ["DeployerConfig", "DeploymentSettings", "LoggingSettings", "NomadSettings"]
