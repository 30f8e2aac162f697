"""
NexaBind Identifier Scanner
===========================

Lightweight lexical scan that pulls candidate variable names out of an
opaque expression string.

Contract:
    - Identifier characters are letters, digits, ``_`` and ``$``; every
      maximal run of them outside a string literal is one token.
    - ``'``, ``"`` and backtick toggle string mode. Escapes are not
      tracked, so an escaped quote still toggles.
    - Tokens inside string literals are discarded.
    - Keywords, numbers and property names are returned like any other
      token. Callers keep only tokens that name a declared variable, so
      ``user.name`` matches a variable called ``name`` (false positive)
      and names built at runtime are never seen (false negative).
    - Order is preserved and duplicates are kept.
"""

from __future__ import annotations

from typing import List, Optional

QUOTES = frozenset("'\"`")


def is_identifier_char(char: str) -> bool:
    """Check if a character can be part of an identifier token."""
    return char.isalnum() or char in "_$"


def scan_identifiers(expression: str) -> List[str]:
    """
    Extract identifier tokens from an expression.

    Args:
        expression: Opaque expression source

    Returns:
        Tokens in left-to-right order, duplicates retained

    Example:
        >>> scan_identifiers("user.name + ' items' + count")
        ['user', 'name', 'count']
    """
    tokens: List[str] = []
    current: List[str] = []
    quote: Optional[str] = None

    for char in expression:
        if quote is not None:
            if char == quote:
                quote = None
            continue

        if is_identifier_char(char):
            current.append(char)
            continue

        if current:
            tokens.append("".join(current))
            current = []
        if char in QUOTES:
            quote = char

    if current and quote is None:
        tokens.append("".join(current))

    return tokens
