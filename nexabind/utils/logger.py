"""
NexaBind Logger
===============

Structured logging for the compiler and its tools.

Every logger obtained through ``get_logger`` writes to one shared handler
list, so ``configure_logging`` retargets the whole package at once.

Example:
    logger = get_logger("nexabind.compiler")
    logger.info("Compiled unit", unit="index", components=2)
    # 2026-01-15 10:30:45 [INFO] nexabind.compiler: Compiled unit unit=index components=2
"""

from __future__ import annotations

import logging
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import orjson


class LogLevel(IntEnum):
    """Log levels, numerically compatible with :mod:`logging`."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: Union[str, int, "LogLevel"]) -> "LogLevel":
        """Accept a level name ("debug", "INFO") or a numeric level."""
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown log level '{value}'") from None
        return cls(value)


@dataclass
class LogRecord:
    """
    One log event.

    ``context`` holds the keyword arguments of the log call, for example
    the unit name or the anchor id a rewrite step produced.
    """

    level: LogLevel
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    logger_name: str = "nexabind"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.name,
            "logger": self.logger_name,
            "message": self.message,
        }
        if self.context:
            data["context"] = self.context
        if self.exception is not None:
            data["exception"] = {
                "type": type(self.exception).__name__,
                "message": str(self.exception),
            }
        return data

    def to_json(self) -> str:
        return orjson.dumps(self.to_dict(), default=str).decode("utf-8")


class LogFormatter:
    """Turns a record into one output line."""

    def format(self, record: LogRecord) -> str:
        raise NotImplementedError


class TextFormatter(LogFormatter):
    """
    Human readable lines; context is appended as ``key=value`` pairs.

    Example output:
        2026-01-15 10:30:45 [DEBUG] nexabind.rewriter: Bound loop id=nb1 source=pets
    """

    LEVEL_COLORS = {
        LogLevel.DEBUG: "\033[36m",
        LogLevel.INFO: "\033[32m",
        LogLevel.WARNING: "\033[33m",
        LogLevel.ERROR: "\033[31m",
        LogLevel.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        template: str = "{timestamp} [{level}] {logger}: {message}",
        date_format: str = "%Y-%m-%d %H:%M:%S",
        colors: bool = True,
    ):
        self.template = template
        self.date_format = date_format
        # Colors only make sense on a terminal
        self.colors = colors and sys.stderr.isatty()

    def format(self, record: LogRecord) -> str:
        level = record.level.name
        if self.colors:
            level = f"{self.LEVEL_COLORS[record.level]}{level}{self.RESET}"

        message = record.message
        if record.context:
            message += " " + " ".join(f"{key}={value}" for key, value in record.context.items())

        line = self.template.format(
            timestamp=record.timestamp.strftime(self.date_format),
            level=level,
            logger=record.logger_name,
            message=message,
        )
        if record.exception is not None:
            exc = record.exception
            line += "\n" + "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return line


class JsonFormatter(LogFormatter):
    """One JSON object per line."""

    def format(self, record: LogRecord) -> str:
        return record.to_json()


class LogHandler:
    """Filters records by level and writes the formatted ones."""

    def __init__(
        self,
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        self.formatter = formatter or TextFormatter()
        self.level = level

    def handle(self, record: LogRecord) -> None:
        if record.level >= self.level:
            self.emit(record)

    def emit(self, record: LogRecord) -> None:
        raise NotImplementedError


class StreamHandler(LogHandler):
    """
    Writes to a stream.

    Without an explicit stream, ``sys.stderr`` is looked up on every
    record so redirected streams are honoured.
    """

    def __init__(
        self,
        stream: Any = None,
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        super().__init__(formatter, level)
        self.stream = stream

    def emit(self, record: LogRecord) -> None:
        stream = self.stream or sys.stderr
        stream.write(self.formatter.format(record) + "\n")
        stream.flush()


class FileHandler(LogHandler):
    """Appends records to a file, JSON lines by default."""

    def __init__(
        self,
        path: Union[str, Path],
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        super().__init__(formatter or JsonFormatter(), level)
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: LogRecord) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(self.formatter.format(record) + "\n")


class Logger:
    """
    Named logger with bound context.

    Example:
        logger = get_logger("nexabind.cli")
        logger.info("Wrote document", output="index.html")
        logger.error("Command failed", exception=e)
    """

    def __init__(
        self,
        name: str = "nexabind",
        level: LogLevel = LogLevel.INFO,
        handlers: Optional[List[LogHandler]] = None,
    ):
        self.name = name
        self.level = level
        # The list is shared, not copied, so configure_logging reaches every logger
        self._handlers = handlers if handlers is not None else []
        self._context: Dict[str, Any] = {}

    def with_context(self, **context: Any) -> "Logger":
        """Child logger that adds ``context`` to every record."""
        child = Logger(self.name, self.level, self._handlers)
        child._context = {**self._context, **context}
        return child

    def _log(
        self,
        level: LogLevel,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        if level < self.level:
            return

        record = LogRecord(
            level=level,
            message=message,
            context={**self._context, **context},
            exception=exception,
            logger_name=self.name,
        )
        for handler in self._handlers:
            try:
                handler.handle(record)
            except Exception:
                pass  # Logging must never abort a compilation

    def debug(self, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, **context)

    def error(
        self,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        self._log(LogLevel.ERROR, message, exception, **context)


_loggers: Dict[str, Logger] = {}
_handlers: List[LogHandler] = [StreamHandler()]
_level = LogLevel.INFO


def get_logger(name: str = "nexabind") -> Logger:
    """Return the logger called ``name``, conventionally ``nexabind.<module>``."""
    if name not in _loggers:
        _loggers[name] = Logger(name, _level, _handlers)
    return _loggers[name]


def configure_logging(
    level: Union[str, int, LogLevel] = LogLevel.INFO,
    format: str = "text",
    log_file: Optional[str] = None,
    colors: bool = True,
) -> Logger:
    """
    Configure package logging.

    Applies to every logger, including ones created before this call.

    Args:
        level: Log level or level name
        format: "text" or "json"
        log_file: Optional file that also receives every record
        colors: Colored level names on a terminal

    Returns:
        The package root logger

    Raises:
        ValueError: On an unknown level or format
    """
    global _level

    if format not in ("text", "json"):
        raise ValueError(f"Unknown log format '{format}' (expected 'text' or 'json')")
    _level = LogLevel.parse(level)

    _handlers.clear()
    if format == "json":
        _handlers.append(StreamHandler(formatter=JsonFormatter(), level=_level))
    else:
        _handlers.append(StreamHandler(formatter=TextFormatter(colors=colors), level=_level))
    if log_file:
        file_formatter = JsonFormatter() if format == "json" else TextFormatter(colors=False)
        _handlers.append(FileHandler(log_file, formatter=file_formatter, level=_level))

    for logger in _loggers.values():
        logger.level = _level

    return get_logger("nexabind")
