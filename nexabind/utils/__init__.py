"""
NexaBind Utils Package
======================

Structured logging.
"""

from __future__ import annotations

from nexabind.utils.logger import Logger, LogLevel, get_logger, configure_logging

__all__ = ["Logger", "LogLevel", "get_logger", "configure_logging"]
