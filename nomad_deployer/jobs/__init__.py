"""Building job descriptors from job files."""

from nomad_deployer.jobs.builder import JobBuildError, JobBuilder

__all__ = ["JobBuildError", "JobBuilder"]
