"""Nomad HTTP API access."""

from nomad_deployer.nomad.client import (
    DEFAULT_ENDPOINT,
    NomadAPIError,
    NomadClient,
    NomadConnectionError,
    NomadError,
    NomadResponseError,
)

__all__ = [
    "DEFAULT_ENDPOINT",
    "NomadAPIError",
    "NomadClient",
    "NomadConnectionError",
    "NomadError",
    "NomadResponseError",
]
