"""
Lifecycle hook dispatch.

Observers register callables for three points of a run. Callbacks receive
``(hook, job, messages)`` where ``messages`` is ``None`` except for
``DEPLOY_FAILED``.
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from nomad_deployer.models import NomadJob


class HookType(str, Enum):
    """Lifecycle points a run notifies observers about."""

    DEPLOY_RUNNING = "deploy.running"
    DEPLOY_FINISHED = "deploy.finished"
    DEPLOY_FAILED = "deploy.failed"


HookCallback = Callable[[HookType, NomadJob, Optional[List[str]]], None]


class HookDispatcher:
    """Holds registered observers and notifies them in registration order."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._hooks: Dict[HookType, List[HookCallback]] = {hook: [] for hook in HookType}

    def add(self, hook: HookType, callback: HookCallback) -> None:
        """
        Register an observer.

        Raises:
            ValueError: If the hook is not a known lifecycle point
        """
        try:
            hook = HookType(hook)
        except ValueError:
            raise ValueError(f"{hook} not supported!") from None
        self._hooks[hook].append(callback)

    def callbacks(self, hook: HookType) -> List[HookCallback]:
        """Snapshot of the observers of ``hook``; dispatch iterates over this copy."""
        return list(self._hooks[HookType(hook)])

    def dispatch(
        self, hook: HookType, job: NomadJob, messages: Optional[List[str]] = None
    ) -> None:
        """Call every observer of ``hook``; a raising observer doesn't stop the others."""
        for callback in self.callbacks(hook):
            try:
                callback(hook, job, messages)
            except Exception as e:
                self.logger.error(f"Hook {hook.value} callback {callback!r} raised: {e}", exc_info=True)


def log_failed_deploy(logger: logging.Logger) -> HookCallback:
    """Default failed-hook: log every message of the failure."""

    def _log(hook: HookType, job: NomadJob, messages: Optional[List[str]]) -> None:
        logger.error("Failing deploy:")
        for message in messages or []:
            logger.error(f"- {message}")

    return _log


def failure_messages(*parts: Optional[str]) -> List[str]:
    """Drop empty parts and duplicates, keeping first-seen order."""
    messages: List[str] = []
    for part in parts:
        if part and part not in messages:
            messages.append(part)
    return messages
