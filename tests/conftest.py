"""
Pytest configuration and fixtures for nomad-deployer tests.
"""

import os


def pytest_configure(config):
    """
    Clear Nomad environment variables before any test modules are imported.
    Tests must never talk to a real cluster.
    """
    os.environ.pop("NOMAD_ADDR", None)
    os.environ.pop("NOMAD_TOKEN", None)
