"""
nomad-deployer entry point for ``python -m nomad_deployer``.
"""

import sys

from nomad_deployer.cli import main

if __name__ == "__main__":
    sys.exit(main())
