"""
Job descriptor model.

A ``NomadJob`` is the immutable description of one workload version: its
identity, the container image it ships and the rendered Nomad job document
that is sent to the cluster verbatim.
"""

from enum import Enum
from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field


class JobType(str, Enum):
    """Job types the deployer knows how to supervise."""

    SERVICE = "service"
    BATCH = "batch"


def split_image_reference(image: str) -> Tuple[str, str, str]:
    """
    Split an image reference into name, separator and version.

    Examples:
        ``registry:5000/app:1.2`` -> ``("registry:5000/app", ":", "1.2")``
        ``app@sha256:abc`` -> ``("app", "@", "sha256:abc")``
        ``app`` -> ``("app", ":", "latest")``
    """
    if "@" in image:
        name, digest = image.split("@", 1)
        return name, "@", digest
    # A colon after the last slash is a tag, otherwise it's a registry port
    head, _, last = image.rpartition("/")
    if ":" in last:
        repo, tag = last.rsplit(":", 1)
        name = f"{head}/{repo}" if head else repo
        return name, ":", tag
    return image, ":", "latest"


class NomadJob(BaseModel):
    """A rendered Nomad job ready to be planned and submitted."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Nomad job ID, stable identity key")
    type: str = Field(..., description="Nomad job type (service, batch, ...)")
    image: str = Field(..., description="Full image reference, e.g. registry/app:1.2.3")
    spec: Dict[str, Any] = Field(..., description="Rendered Nomad job document")

    @property
    def image_name(self) -> str:
        """Image reference without its tag."""
        return split_image_reference(self.image)[0]

    @property
    def image_version(self) -> str:
        """Image tag (or digest), ``latest`` when the reference carries none."""
        return split_image_reference(self.image)[2]

    @property
    def image_name_and_version(self) -> str:
        return "".join(split_image_reference(self.image))

    def payload(self) -> Dict[str, Any]:
        """Request body for job submission and planning endpoints."""
        return {"Job": self.spec}
