"""nomad-deployer - Supervised rolling deployments for Nomad jobs."""

__version__ = "1.0.0"

from .deployment import Deployer, HookType
from .models import DeployOutcome, NomadJob, OutcomeKind
from .nomad import NomadClient

__all__ = [
    "Deployer",
    "DeployOutcome",
    "HookType",
    "NomadClient",
    "NomadJob",
    "OutcomeKind",
]
