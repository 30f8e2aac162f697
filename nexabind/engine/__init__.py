"""
NexaBind Engine Module
======================

The reactive-binding compiler.

Components:
- PYXM Parser: Parses .pyxm source into an AST
- Rewriter: Turns dynamic regions into anchors and records their events
- Serializer / Codegen: Static markup and component render functions
- Runtime: Emits the event-driven JavaScript program
- Compiler: Facade over the whole run
"""

from nexabind.engine.errors import (
    TemplateError,
    TemplateSyntaxError,
    TemplateNotFoundError,
    IncludeCycleError,
    EmptyDocumentError,
    RenderBeforeParseError,
    UnitStateError,
    BindingError,
    UnknownComponentError,
    DuplicateComponentError,
    UnknownVariableError,
    TemplateRenderError,
)
from nexabind.engine.pyxm_parser import PyxmParser, PyxmNode, PyxmAST, NodeType, parse_template
from nexabind.engine.scanner import scan_identifiers
from nexabind.engine.anchors import CounterIds, RandomIds, make_anchor
from nexabind.engine.unit import ComponentUnit, UnitKind, UnitState
from nexabind.engine.rewriter import Rewriter
from nexabind.engine.includes import FileSystemLoader, DictLoader, resolve_includes
from nexabind.engine.serializer import render_markup
from nexabind.engine.codegen import generate_render_function
from nexabind.engine.runtime import RuntimeEmitter
from nexabind.engine.compiler import Compiler, compile_string, compile_file

__all__ = [
    "TemplateError",
    "TemplateSyntaxError",
    "TemplateNotFoundError",
    "IncludeCycleError",
    "EmptyDocumentError",
    "RenderBeforeParseError",
    "UnitStateError",
    "BindingError",
    "UnknownComponentError",
    "DuplicateComponentError",
    "UnknownVariableError",
    "TemplateRenderError",
    "PyxmParser",
    "PyxmNode",
    "PyxmAST",
    "NodeType",
    "parse_template",
    "scan_identifiers",
    "CounterIds",
    "RandomIds",
    "make_anchor",
    "ComponentUnit",
    "UnitKind",
    "UnitState",
    "Rewriter",
    "FileSystemLoader",
    "DictLoader",
    "resolve_includes",
    "render_markup",
    "generate_render_function",
    "RuntimeEmitter",
    "Compiler",
    "compile_string",
    "compile_file",
]
