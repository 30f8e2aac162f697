"""
NexaBind Core Module
====================

Configuration management.
"""

from nexabind.core.config import Config, ConfigError

__all__ = ["Config", "ConfigError"]
