"""
NexaBind - Reactive Template Compiler
=====================================

Compiles PYXM templates into static HTML plus a small JavaScript
runtime that re-renders exactly the regions whose variables change.

Quick Start:
    $ pip install nexabind
    $ nexabind build index.pyxm -o index.html
    $ nexabind serve index.pyxm

Example:
    from nexabind import compile_string

    html = compile_string('''
        {% let count = 0 %}
        <button :data-count="count">{{ count }}</button>
    ''')
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

from nexabind.engine import (
    Compiler,
    compile_string,
    compile_file,
    TemplateError,
)
from nexabind.core.config import Config

__all__ = [
    "__version__",
    "Compiler",
    "compile_string",
    "compile_file",
    "TemplateError",
    "Config",
]
