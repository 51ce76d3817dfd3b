"""
Logging setup for nomad-deployer runs.

The console is what a release engineer watches while a rollout is
supervised. When a log directory is configured every run is also kept in
rotating files, with errors and raw Nomad API traffic split out.
"""
# mypy: ignore-errors

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Run identifiers that LogContext attaches to records
RUN_FIELDS = ("job_name", "evaluation_id", "deployment_id")

API_LOGGER = "nomad_deployer.nomad"
QUIET_LOGGERS = ("httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying the run identifiers when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(
            {field: getattr(record, field) for field in RUN_FIELDS if hasattr(record, field)}
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class ConsoleFormatter(logging.Formatter):
    """Plain text lines, with the level name coloured on a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "35",
    }

    def __init__(self, use_colors: bool = False):
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color is None:
            return super().format(record)
        # Colour a copy so other handlers see the plain level name
        tinted = logging.makeLogRecord(record.__dict__)
        tinted.levelname = f"\033[{color}m{record.levelname}\033[0m"
        return super().format(tinted)


def _rotating_handler(
    path: Path,
    level: int,
    formatter: logging.Formatter,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_dir: Optional[str] = None,
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    use_json: bool = False,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Configure the root logger for one deployer process.

    Args:
        log_dir: Where to write deployer.log, error.log and nomad-api.log;
            console only when None
        console_level: Level name for the console handler
        file_level: Level name for deployer.log
        use_json: Write files as JSON lines instead of text
        max_bytes: Rotation size of each file
        backup_count: Rotated files kept per log
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.getLevelName(console_level.upper()))
    console.setFormatter(ConsoleFormatter(use_colors=sys.stdout.isatty()))
    root.addHandler(console)

    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        formatter = JsonFormatter() if use_json else ConsoleFormatter()

        root.addHandler(
            _rotating_handler(
                directory / "deployer.log",
                logging.getLevelName(file_level.upper()),
                formatter,
                max_bytes,
                backup_count,
            )
        )
        root.addHandler(
            _rotating_handler(
                directory / "error.log", logging.ERROR, formatter, max_bytes, backup_count
            )
        )
        logging.getLogger(API_LOGGER).addHandler(
            _rotating_handler(
                directory / "nomad-api.log", logging.DEBUG, formatter, max_bytes, backup_count
            )
        )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(
        f"Logging ready (console={console_level}, file={file_level}, "
        f"dir={log_dir}, json={use_json})"
    )


class LogContext:
    """
    Attach run identifiers to every record created while the context is open.

    Fields can be added later with ``update`` as the run learns its
    evaluation and deployment IDs.
    """

    def __init__(self, logger: logging.Logger, **fields):
        self.logger = logger
        self.fields = {key: value for key, value in fields.items() if value is not None}
        self._previous_factory = None

    def update(self, **fields) -> None:
        self.fields.update({key: value for key, value in fields.items() if value is not None})

    def __enter__(self) -> "LogContext":
        previous = logging.getLogRecordFactory()
        self._previous_factory = previous

        def make_record(*args, **kwargs):
            record = previous(*args, **kwargs)
            record.__dict__.update(self.fields)
            return record

        logging.setLogRecordFactory(make_record)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._previous_factory is not None:
            logging.setLogRecordFactory(self._previous_factory)
            self._previous_factory = None
