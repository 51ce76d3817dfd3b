"""
Formatting helpers for deployment output.

Pure functions that turn Nomad task states and events into log lines.
"""

import logging
from typing import List

from nomad_deployer.models import Allocation, TaskEvent, TaskState


def task_state_decorator(state: str, failed: bool) -> str:
    """
    Human label for a task state.

    Args:
        state: Nomad task state (pending, running, dead)
        failed: Nomad's failed flag, only meaningful for dead tasks

    Returns:
        Label with status emoji
    """
    if state == "dead":
        return "❌ dead (failed)" if failed else "✅ dead (success)"

    labels = {
        "pending": "⏳ pending",
        "running": "🏃 running",
    }
    return labels.get(state, f"❓ {state}")


def pretty_task_state(task: TaskState) -> str:
    return task_state_decorator(task.state, task.failed)


def task_address(allocation: Allocation, task_name: str) -> str:
    """Identity of one task across allocations: ``<alloc id> <alloc name> <task>``."""
    return f"{allocation.id} {allocation.name} {task_name}"


def format_task_event(event: TaskEvent) -> str:
    """
    Render one task event.

    Example: ``[2024-01-01 12:00:00 UTC] Terminated: Exit Code: 1 (exit_code: 1, signal: 0)``
    """
    line = f"[{event.timestamp:%Y-%m-%d %H:%M:%S} UTC] {event.type}: {event.display_message}"
    if event.details:
        details = ", ".join(f"{key}: {value}" for key, value in event.details.items())
        line += f" ({details})"
    return line


def log_lines(text: str) -> List[str]:
    """Split log output into stripped lines."""
    return [line.strip() for line in text.splitlines()]


def emit_log_stream(logger: logging.Logger, stream: str, text: str) -> None:
    """Log a task's stream line by line; empty streams are skipped."""
    if text == "":
        return
    logger.info("")
    logger.info(f"{stream}:")
    for line in log_lines(text):
        logger.info(line)
