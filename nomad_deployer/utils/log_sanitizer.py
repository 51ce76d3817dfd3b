"""
Cleaning of cluster-supplied text before it is logged.

Job names, response bodies and task output come from outside the deployer;
control characters in them could forge extra log lines, and task output often
carries terminal colour codes.
"""

import re
from typing import Any

CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
JOB_NAME_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9._-]")
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*m")

MAX_JOB_NAME_LENGTH = 128


def sanitize_for_log(value: Any, max_length: int = 100) -> str:
    """
    Render ``value`` as a single log-safe line.

    Control characters (newlines and tabs included) are dropped and the
    result is cut to ``max_length`` characters with a trailing ``...``.
    """
    text = CONTROL_CHARS_RE.sub("", str(value))
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}..."


def sanitize_job_name(job_name: str) -> str:
    """Keep only characters valid in a Nomad job ID."""
    return JOB_NAME_DISALLOWED_RE.sub("", job_name)[:MAX_JOB_NAME_LENGTH]


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI colour escape sequences from task log output."""
    return ANSI_ESCAPE_RE.sub("", text)
