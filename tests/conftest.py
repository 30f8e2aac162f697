"""Pytest configuration and fixtures for NexaBind tests."""

from __future__ import annotations

import pytest

from nexabind.engine.anchors import CounterIds
from nexabind.engine.compiler import Compiler
from nexabind.engine.includes import DictLoader
from nexabind.engine.pyxm_parser import parse_template
from nexabind.engine.rewriter import Rewriter
from nexabind.engine.unit import ComponentUnit, UnitKind
from nexabind.utils import logger as log_module


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo configure_logging calls made by a test."""
    handlers = list(log_module._handlers)
    level = log_module._level
    levels = {name: logger.level for name, logger in log_module._loggers.items()}
    yield
    log_module._handlers[:] = handlers
    log_module._level = level
    for name, logger in log_module._loggers.items():
        logger.level = levels.get(name, level)


@pytest.fixture
def ids():
    """Deterministic ids: nb1, nb2, ..."""
    return CounterIds("nb")


@pytest.fixture
def compile_unit(ids):
    """Parse and rewrite a root template; returns the unit."""

    def _compile(source: str, name: str = "index") -> ComponentUnit:
        unit = ComponentUnit(name=name, kind=UnitKind.ROOT, tree=parse_template(source, name).nodes)
        Rewriter(ids).compile(unit)
        return unit

    return _compile


@pytest.fixture
def compiler(ids):
    """Root compiler with deterministic ids and an in-memory loader."""
    return Compiler(
        "index",
        ids=ids,
        loader=DictLoader({
            "header.pyxm": "<header>{{ title }}</header>",
            "footer.pyxm": "<footer>bye</footer>",
        }),
    )


@pytest.fixture
def find_unit():
    """Look up a directly nested unit by name."""

    def _find(unit: ComponentUnit, name: str) -> ComponentUnit:
        for component in unit.components:
            if component.name == name:
                return component
        raise AssertionError(f"no nested unit {name!r} in {[c.name for c in unit.components]}")

    return _find
