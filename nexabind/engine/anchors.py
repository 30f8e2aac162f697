"""
NexaBind Anchors
================

Synthesized container elements that mark a dynamic region, plus the
identifier generators that name them.

An anchor is a ``<div>`` with an ``id`` (and optionally an inline
``display: none``) that the runtime locates with ``getElementById`` and
re-renders when the region's dependencies change.
"""

from __future__ import annotations

import re
import secrets
from typing import Callable, List

from nexabind.engine.pyxm_parser import NodeType, PyxmNode

# Produces a fresh identifier on every call
IdGenerator = Callable[[], str]

HIDDEN_STYLE = "display: none;"

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_$]")


class CounterIds:
    """
    Deterministic identifier generator.

    Example:
        ids = CounterIds("nb")
        ids()  # "nb1"
        ids()  # "nb2"
    """

    def __init__(self, prefix: str = "nb", start: int = 1) -> None:
        self.prefix = prefix
        self.next_value = start

    def __call__(self) -> str:
        value = f"{self.prefix}{self.next_value}"
        self.next_value += 1
        return value


class RandomIds:
    """Random hex identifiers (16 hex digits by default)."""

    def __init__(self, nbytes: int = 8) -> None:
        self.nbytes = nbytes

    def __call__(self) -> str:
        return secrets.token_hex(self.nbytes)


def make_ids(kind: str = "counter", prefix: str = "nb") -> IdGenerator:
    """Build an identifier generator from its configured name."""
    if kind == "counter":
        return CounterIds(prefix)
    if kind == "random":
        return RandomIds()
    raise ValueError(f"Unknown id generator '{kind}' (expected 'counter' or 'random')")


def make_anchor(
    anchor_id: str,
    children: List[PyxmNode],
    hidden: bool = False,
) -> PyxmNode:
    """
    Create an anchor element wrapping ``children``.

    The children list is adopted by reference, never copied or modified.
    """
    attributes = {"id": anchor_id}
    if hidden:
        attributes["style"] = HIDDEN_STYLE

    return PyxmNode(
        type=NodeType.ELEMENT,
        tag="div",
        attributes=attributes,
        children=children,
    )


def js_name(identifier: str) -> str:
    """Turn an anchor id into text usable inside a JavaScript identifier."""
    return _NON_IDENTIFIER.sub(lambda m: f"_{ord(m.group()):x}_", identifier)
