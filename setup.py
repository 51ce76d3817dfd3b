#!/usr/bin/env python3
"""
Setup script for nomad-deployer.
Installs the deployer package and its ``nomad-deployer`` console script.
"""

from setuptools import setup, find_packages

setup(
    name="nomad-deployer",
    version="1.0.0",
    description="Supervised rolling deployments for Nomad jobs",
    python_requires=">=3.9",
    packages=find_packages(include=["nomad_deployer", "nomad_deployer.*"]),
    install_requires=[
        "httpx>=0.24",
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "tabulate>=0.9",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "nomad-deployer=nomad_deployer.cli:main",
        ],
    },
)
