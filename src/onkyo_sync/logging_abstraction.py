"""Structured logging for onkyo-sync.

``get_logger(name)`` hands out an ``OnkyoLogger``: a thin wrapper around a
stdlib logger whose ``extra=`` mapping travels on the record as
``extra_data``. Two formatters render it, one JSON object per line for
machines and a single human-readable line with ``key=value`` pairs. Both
stamp the current correlation id.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from typing_extensions import override

from onkyo_sync.correlation import get_correlation_id

__all__ = [
    "HumanReadableFormatter",
    "JSONFormatter",
    "OnkyoLogger",
    "get_logger",
]


def _context_of(record: logging.LogRecord) -> dict[str, object]:
    extra_data = getattr(record, "extra_data", None)
    if isinstance(extra_data, Mapping):
        return dict(cast("Mapping[str, object]", extra_data))
    return {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record; structured context under ``context``."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }
        if context := _context_of(record):
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``time level [module:line] [corr-id] > message | key=value | ...``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(correlation_id)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id()
        record.correlation_id = f"[{correlation_id[:8]}]" if correlation_id else "[--------]"
        line = super().format(record)
        context = _context_of(record)
        if not context:
            return line
        return " | ".join([line, *(f"{key}={value}" for key, value in context.items())])


def _file_handler(path: str | Path) -> logging.Handler | None:
    file_path = Path(path)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(file_path, mode="a")
    except OSError as e:
        # Logging is not configured yet, so stderr is the only place to say so
        print(f"Warning: cannot open log file {file_path}: {e}", file=sys.stderr)
        return None


class OnkyoLogger:
    """Named logger with JSON and/or human-readable output.

    Handlers are attached once per underlying logger, so repeated
    ``get_logger`` calls for the same name share them.
    """

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str | None = "stderr",
    ) -> None:
        """Create (or reuse) the stdlib logger ``name``.

        Args:
            name: Logger name, usually the module's ``__name__``
            log_format: One of ``json``, ``human`` or ``both``
            json_file: Destination of JSON lines; JSON output is off without it
            human_output: ``stdout``, ``stderr`` or a file path

        """
        from onkyo_sync.const import ONKYO_DEBUG

        self.name: str = name
        self.log_format: str = log_format
        self.logger: logging.Logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if ONKYO_DEBUG else logging.INFO)
        if not self.logger.handlers:
            for handler in self._build_handlers(json_file, human_output):
                handler.setLevel(self.logger.level)
                self.logger.addHandler(handler)

    def _build_handlers(self, json_file: str | Path | None, human_output: str | None) -> list[logging.Handler]:
        handlers: list[logging.Handler] = []
        if self.log_format in ("json", "both") and json_file:
            json_handler = _file_handler(json_file)
            if json_handler is not None:
                json_handler.setFormatter(JSONFormatter())
                handlers.append(json_handler)

        if self.log_format in ("human", "both"):
            destination = human_output or "stderr"
            human_handler: logging.Handler | None
            if destination in ("stdout", "stderr"):
                human_handler = logging.StreamHandler(sys.stdout if destination == "stdout" else sys.stderr)
            else:
                human_handler = _file_handler(destination) or logging.StreamHandler(sys.stderr)
            human_handler.setFormatter(HumanReadableFormatter())
            handlers.append(human_handler)
        return handlers

    def _log(self, level: int, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        payload = {"extra_data": dict(extra)} if extra else None
        # Skip this method and the level wrapper so records point at the caller
        self.logger.log(level, msg, *args, extra=payload, stacklevel=3)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        payload = {"extra_data": dict(extra)} if extra else None
        self.logger.exception(msg, *args, extra=payload, stacklevel=2)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


def get_logger(
    name: str,
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
) -> OnkyoLogger:
    """``OnkyoLogger`` for ``name``; unset arguments come from the ``ONKYO_LOG_*`` settings."""
    from onkyo_sync.const import ONKYO_LOG_FORMAT, ONKYO_LOG_HUMAN_OUTPUT, ONKYO_LOG_JSON_FILE

    return OnkyoLogger(
        name=name,
        log_format=log_format or ONKYO_LOG_FORMAT,
        json_file=json_file or ONKYO_LOG_JSON_FILE,
        human_output=human_output or ONKYO_LOG_HUMAN_OUTPUT,
    )
