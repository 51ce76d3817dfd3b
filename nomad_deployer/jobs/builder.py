"""
Job builder.

Renders a job file into a ``NomadJob``. Job files are YAML or JSON documents
(optionally wrapped in ``{"Job": ...}``) or HCL, which is converted by the
Nomad agent's parse endpoint. ``${var}`` placeholders are substituted before
parsing; ``image_full_name``, ``image_name`` and ``image_version`` are
always available.
"""

import logging
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional

import yaml

from nomad_deployer.models import NomadJob
from nomad_deployer.models.job import split_image_reference
from nomad_deployer.nomad import NomadClient

logger = logging.getLogger(__name__)

HCL_SUFFIXES = (".hcl", ".nomad")


class JobTemplate(Template):
    """
    Only braced ${name} placeholders are substituted.

    A placeholder right after another $ is left untouched, so HCL's $${...}
    escape reaches Nomad as written.
    """

    pattern = r"""
    (?<!\$)\$(?:
        (?P<escaped>(?!))
        | (?P<named>(?!))
        | \{(?P<braced>[_a-z][_a-z0-9]*)\}
        | (?P<invalid>(?!))
    )
    """


class JobBuildError(ValueError):
    """The job file could not be turned into a job."""

    pass


class JobBuilder:
    """Builds ``NomadJob`` instances from templated job files."""

    def __init__(self, client: Optional[NomadClient] = None) -> None:
        """
        Args:
            client: Nomad client, only needed for HCL job files
        """
        self.client = client

    def build(
        self,
        template_file: str,
        image_full_name: str,
        template_variables: Optional[Dict[str, str]] = None,
    ) -> NomadJob:
        """
        Render and parse a job file.

        Args:
            template_file: Path to the job file
            image_full_name: Image reference to deploy, e.g. registry/app:1.2.3
            template_variables: Extra ``${var}`` substitutions

        Returns:
            The job descriptor
        """
        path = Path(template_file)
        try:
            template = path.read_text()
        except OSError as e:
            raise JobBuildError(f"Cannot read job file {template_file}: {e}") from e

        image_name, _, image_version = split_image_reference(image_full_name)
        variables = {
            "image_full_name": image_full_name,
            "image_name": image_name,
            "image_version": image_version,
        }
        variables.update(template_variables or {})

        rendered = self.render(template, variables)
        if path.suffix in HCL_SUFFIXES:
            spec = self._parse_hcl(rendered)
        else:
            spec = self._parse_document(rendered, template_file)

        return self.from_spec(spec, image_full_name)

    @staticmethod
    def render(template: str, variables: Dict[str, str]) -> str:
        """Substitute ``${var}`` placeholders; unknown ones and ``$${...}`` escapes are left alone."""
        return JobTemplate(template).safe_substitute(variables)

    @staticmethod
    def from_spec(spec: Dict[str, Any], image_full_name: str) -> NomadJob:
        """Build a job from an already rendered job document."""
        if "Job" in spec and isinstance(spec["Job"], dict):
            spec = spec["Job"]

        name = spec.get("ID") or spec.get("Name")
        if not name:
            raise JobBuildError("Job document has neither ID nor Name")

        # Nomad defaults the job type to service
        job_type = spec.get("Type") or "service"

        logger.debug(f"Built job {name} ({job_type}) with {image_full_name}")
        return NomadJob(name=name, type=job_type, image=image_full_name, spec=spec)

    def _parse_hcl(self, rendered: str) -> Dict[str, Any]:
        if self.client is None:
            raise JobBuildError("HCL job files need a Nomad client to be parsed")
        return self.client.parse_job(rendered)

    @staticmethod
    def _parse_document(rendered: str, template_file: str) -> Dict[str, Any]:
        try:
            spec = yaml.safe_load(rendered)
        except yaml.YAMLError as e:
            raise JobBuildError(f"Invalid job file {template_file}: {e}") from e
        if not isinstance(spec, dict):
            raise JobBuildError(f"Job file {template_file} must contain a mapping")
        return spec
