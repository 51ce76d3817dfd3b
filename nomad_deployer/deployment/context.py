"""
Per-run deployment context.

Bundles everything a run needs besides the Nomad client: settings, the
logger, registered hooks and the sources of time and randomness. Nothing is
process-global, so two deployers never share state.
"""

import logging
import random
import time
from typing import Callable, Optional

from nomad_deployer.config.settings import DeploymentSettings
from nomad_deployer.deployment.hooks import HookDispatcher, HookType, log_failed_deploy
from nomad_deployer.deployment.polling import PollTimer


class DeployContext:
    """Collaborators shared by the components of one run."""

    def __init__(
        self,
        settings: Optional[DeploymentSettings] = None,
        logger: Optional[logging.Logger] = None,
        hooks: Optional[HookDispatcher] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or DeploymentSettings()
        self.logger = logger or logging.getLogger("nomad_deployer.deploy")
        self.sleep = sleep
        self.clock = clock
        self.rng = rng or random.Random()
        if hooks is None:
            hooks = HookDispatcher(self.logger)
            hooks.add(HookType.DEPLOY_FAILED, log_failed_deploy(self.logger))
        self.hooks = hooks

    def timer(self, interval: float, timeout: Optional[float] = None) -> PollTimer:
        """Start a poll timer driven by this context's clock."""
        return PollTimer(interval, timeout=timeout, sleep=self.sleep, clock=self.clock)

    def linger_seconds(self) -> int:
        """Random pre-promotion linger within the configured bounds."""
        return self.rng.randint(self.settings.linger_min, self.settings.linger_max)
