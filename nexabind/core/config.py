"""
NexaBind Configuration
======================

Layered configuration for the compiler and its command line.

Loading priority (highest to lowest):
1. Runtime overrides (``Config.set``)
2. Environment variables (NEXABIND_*)
3. Python config file exposing ``config = {...}``
4. Default values

Keys:
    compiler.ids      "counter" (default) or "random"
    compiler.prefix   prefix of counter ids ("nb")
    templates.path    include search path(s)
    log.level         "debug", "info", ...
    log.format        "text" or "json"
    server.host       preview server host
    server.port       preview server port

Example:
    # nexabind_config.py
    config = {
        "compiler": {"ids": "random"},
        "templates": {"path": ["templates", "shared"]},
    }

    cfg = Config.load("nexabind_config.py")
    cfg.get("compiler.ids")  # "random"
    cfg.get("server.port")   # 8000
"""

from __future__ import annotations

import copy
import importlib.util
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, TypeVar, Union

import orjson

from nexabind.engine.errors import TemplateError

T = TypeVar("T")

ENV_PREFIX = "NEXABIND_"

DEFAULTS: Dict[str, Any] = {
    "compiler": {
        "ids": "counter",
        "prefix": "nb",
    },
    "templates": {
        "path": ".",
    },
    "log": {
        "level": "info",
        "format": "text",
    },
    "server": {
        "host": "127.0.0.1",
        "port": 8000,
    },
}


class ConfigError(TemplateError):
    """Raised when a config file cannot be loaded."""
    pass


@dataclass
class ConfigSource:
    """Represents a configuration source with priority."""
    name: str
    data: Dict[str, Any]
    priority: int = 0


class Config:
    """
    Configuration container with dot-notation access.

    Example:
        config = Config()
        config.set("compiler.prefix", "x")
        config.get("compiler.prefix")  # "x"
        config.get("compiler.missing", "default")  # "default"
    """

    def __init__(self, defaults: Optional[Mapping[str, Any]] = None) -> None:
        self._sources: List[ConfigSource] = []
        self._merged: Dict[str, Any] = {}
        self._dirty = True
        self.add_source("defaults", copy.deepcopy(dict(defaults or DEFAULTS)), priority=0)

    @classmethod
    def load(
        cls,
        config_file: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Config":
        """
        Build a config from defaults, an optional file and the environment.

        Args:
            config_file: Python file defining ``config``
            environ: Environment mapping; defaults to ``os.environ``
        """
        config = cls()
        if config_file is not None:
            config.load_file(config_file)
        config.load_env(os.environ if environ is None else environ)
        return config

    def load_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a Python file."""
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")

        spec = importlib.util.spec_from_file_location("nexabind_user_config", path)
        if spec is None or spec.loader is None:
            raise ConfigError(f"Cannot load config file: {path}")

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        data = getattr(module, "config", None)
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must define a 'config' dict")

        self.add_source(f"file:{path}", data, priority=10)

    def load_env(self, environ: Mapping[str, str]) -> None:
        """Load overrides from NEXABIND_* environment variables."""
        overrides: Dict[str, Any] = {}

        for key, value in environ.items():
            if key.startswith(ENV_PREFIX):
                # NEXABIND_SERVER_PORT -> server.port
                config_key = key[len(ENV_PREFIX):].lower().replace("_", ".")
                overrides[config_key] = self._parse_env_value(value)

        if overrides:
            self.add_source("env_vars", self._unflatten(overrides), priority=100)

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        lowered = value.lower()
        if lowered in ("true", "yes"):
            return True
        if lowered in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        # JSON (for lists of template paths)
        if value.startswith(("{", "[")):
            try:
                return orjson.loads(value)
            except orjson.JSONDecodeError:
                pass

        return value

    def _unflatten(self, flat: Dict[str, Any]) -> Dict[str, Any]:
        """Convert flat dot-notation keys to nested dict."""
        result: Dict[str, Any] = {}

        for key, value in flat.items():
            parts = key.split(".")
            current = result
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = value

        return result

    def add_source(
        self,
        name: str,
        data: Dict[str, Any],
        priority: int = 0,
    ) -> None:
        """Add a configuration source."""
        self._sources.append(ConfigSource(name=name, data=data, priority=priority))
        self._dirty = True

    def _merge(self) -> None:
        """Merge all sources into single configuration."""
        if not self._dirty:
            return

        # Lower priority first, so higher overrides
        self._merged = {}
        for source in sorted(self._sources, key=lambda s: s.priority):
            self._deep_merge(self._merged, copy.deepcopy(source.data))

        self._dirty = False

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> None:
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: T = None) -> Union[Any, T]:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "compiler.ids")
            default: Default value if key not found
        """
        self._merge()

        current: Any = self._merged
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]

        return current

    def get_int(self, key: str, default: int = 0) -> int:
        """Get configuration value as integer."""
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_list(self, key: str, default: Optional[List[Any]] = None) -> List[Any]:
        """Get configuration value as list; a path string may use os.pathsep."""
        value = self.get(key, default)
        if value is None:
            return list(default or [])
        if isinstance(value, (list, tuple)):
            return list(value)
        if isinstance(value, str):
            return [part for part in value.split(os.pathsep) if part]
        return [value]

    def set(self, key: str, value: Any) -> None:
        """
        Set a runtime configuration value.

        Runtime values have the highest priority.
        """
        runtime_source = next((s for s in self._sources if s.name == "runtime"), None)
        if runtime_source is None:
            runtime_source = ConfigSource(name="runtime", data={}, priority=1000)
            self._sources.append(runtime_source)

        parts = key.split(".")
        current = runtime_source.data
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value

        self._dirty = True

    def all(self) -> Dict[str, Any]:
        """Get all configuration as dict."""
        self._merge()
        return copy.deepcopy(self._merged)

    def __getitem__(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
