"""
NexaBind Compiler
=================

Facade that drives one compilation run: parse, resolve includes,
rewrite, then serialize markup and emit the runtime program.

Example:
    compiler = Compiler("index")
    compiler.parse(source)
    html = compiler.render_document({"count": 3})

    # One-shot helpers
    html = compile_string("{% let x = 'Hi' %}<a :href=\\"x\\">link</a>")
    html = compile_file("templates/index.pyxm")
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from nexabind.core.config import Config
from nexabind.engine.anchors import IdGenerator, make_ids
from nexabind.engine.errors import (
    EmptyDocumentError,
    RenderBeforeParseError,
    TemplateRenderError,
    UnitStateError,
)
from nexabind.engine.includes import FileSystemLoader, ParseSource, resolve_includes
from nexabind.engine.pyxm_parser import parse_template
from nexabind.engine.rewriter import Rewriter
from nexabind.engine.runtime import RuntimeEmitter
from nexabind.engine.serializer import render_markup
from nexabind.engine.unit import ComponentUnit, DependencyGraph, UnitKind, all_units
from nexabind.utils.logger import get_logger

logger = get_logger("nexabind.compiler")


class Compiler:
    """
    Compiles one named unit: a root document or a standalone component.

    A compiler parses exactly once; one identifier generator serves the
    unit and every unit nested in it.

    Attributes:
        name: Unit name (template name in messages, ``c_<name>`` for components)
        kind: ``UnitKind.ROOT`` or ``UnitKind.COMPONENT``
        unit: The compiled unit, None until ``parse``
    """

    def __init__(
        self,
        name: str = "index",
        kind: Union[str, UnitKind] = UnitKind.ROOT,
        *,
        params: Sequence[str] = (),
        ids: Optional[IdGenerator] = None,
        loader: Any = None,
        parse_source: Optional[ParseSource] = None,
        config: Optional[Config] = None,
    ) -> None:
        """
        Initialize compiler.

        Args:
            name: Unit name
            kind: "root" or "component"
            params: Parameter names of a component unit
            ids: Identifier generator; built from ``compiler.ids`` if omitted
            loader: Include loader (``get_source(name)``)
            parse_source: Parser collaborator, ``(source, name) -> PyxmAST``
            config: Configuration; defaults are used if omitted
        """
        self.config = config or Config()
        self.name = name
        self.kind = UnitKind(kind)
        self.params = list(params)
        self.ids = ids or make_ids(
            self.config.get("compiler.ids", "counter"),
            self.config.get("compiler.prefix", "nb"),
        )
        self.loader = loader
        self.parse_source = parse_source or parse_template
        self.unit: Optional[ComponentUnit] = None

        self._rewriter = Rewriter(self.ids)
        self._emitter = RuntimeEmitter()

    def parse(self, source: str) -> ComponentUnit:
        """
        Parse and rewrite ``source``.

        Raises:
            TemplateSyntaxError: On malformed source
            EmptyDocumentError: If the document has no top-level nodes
            UnitStateError: If this compiler already parsed a document
        """
        if self.unit is not None:
            raise UnitStateError(f"Unit '{self.name}' has already been compiled")

        nodes = self.parse_source(source, self.name).nodes
        resolve_includes(nodes, self.loader, self.parse_source, (self.name,))
        if not nodes:
            raise EmptyDocumentError(f"Template '{self.name}' has no content")

        if self.kind == UnitKind.ROOT:
            unit = ComponentUnit(name=self.name, kind=UnitKind.ROOT, tree=nodes)
        else:
            unit = ComponentUnit.component(self.name, self.params, nodes)

        self._rewriter.compile(unit)
        self.unit = unit

        logger.info(
            "Compiled unit",
            unit=self.name,
            kind=self.kind.value,
            variables=len(unit.variables),
            components=sum(1 for _ in all_units(unit)) - 1,
        )
        return unit

    def parse_file(self, path: Union[str, Path], encoding: str = "utf-8") -> ComponentUnit:
        """
        Parse a template file.

        Without a configured loader, includes resolve next to the file.
        """
        path = Path(path)
        if self.loader is None:
            self.loader = FileSystemLoader(path.parent)
        return self.parse(path.read_text(encoding))

    def _require_unit(self, kind: UnitKind) -> ComponentUnit:
        if self.unit is None:
            raise RenderBeforeParseError(f"Unit '{self.name}' must be parsed before rendering")
        if self.unit.kind != kind:
            raise TemplateRenderError(
                f"Unit '{self.name}' is a {self.unit.kind.value} unit, not a {kind.value} unit"
            )
        return self.unit

    def render_runtime(self, overrides: Optional[Mapping[str, Any]] = None) -> str:
        """Emit the runtime program of the root document."""
        return self._emitter.emit(self._require_unit(UnitKind.ROOT), overrides)

    def render_document(self, overrides: Optional[Mapping[str, Any]] = None) -> str:
        """
        Render the final artifact: runtime script followed by markup.

        Args:
            overrides: Variable name -> value used instead of the declared
                initializer at startup; the dependency graph is unaffected

        Raises:
            RenderBeforeParseError: If called before ``parse``
            UnknownVariableError: If an override names no declared variable
        """
        unit = self._require_unit(UnitKind.ROOT)
        runtime = self._emitter.emit(unit, overrides)
        markup = render_markup(unit.tree, self.name)
        return "\n<script>\n" + runtime + "\n</script>\n" + markup

    def render_component(self) -> str:
        """Emit the callable ``c_<name>`` of a component unit and its nested units."""
        return self._emitter.emit_component(self._require_unit(UnitKind.COMPONENT))

    def dependency_graph(self) -> DependencyGraph:
        """Variable name -> event ids of the compiled unit."""
        if self.unit is None:
            raise RenderBeforeParseError(f"Unit '{self.name}' has not been parsed")
        return {name: list(events) for name, events in self.unit.variable_events.items()}

    def describe(self) -> Dict[str, Any]:
        """Summary of the compiled unit hierarchy, JSON serializable."""
        if self.unit is None:
            raise RenderBeforeParseError(f"Unit '{self.name}' has not been parsed")
        return _describe_unit(self.unit)


def _describe_unit(unit: ComponentUnit) -> Dict[str, Any]:
    return {
        "name": unit.name,
        "kind": unit.kind.value,
        "state": unit.state.value,
        "variables": [{"name": v.name, "value": v.value} for v in unit.variables],
        "variable_events": {k: list(v) for k, v in unit.variable_events.items()},
        "conditionals": [
            {
                "id": c.id,
                "test": c.expression,
                "branches": [{"equals": b.equals, "anchor": b.anchor_id} for b in c.branches],
            }
            for c in unit.conditionals
        ],
        "bound_values": [
            {"id": b.id, "attr": b.attr, "expression": b.expression} for b in unit.bound_values
        ],
        "loops": [
            {"id": loop.id, "source": loop.source, "params": list(loop.params), "component": loop.component}
            for loop in unit.loops
        ],
        "invocations": [
            {
                "id": call.id,
                "component": call.component,
                "args": call.args,
                "variable_dependent": call.variable_dependent,
            }
            for call in unit.invocations
        ],
        "components": [_describe_unit(nested) for nested in unit.components],
    }


def template_loader(config: Config, path: Optional[Union[str, Path]] = None) -> FileSystemLoader:
    """
    Loader over ``templates.path``.

    With ``path``, the directory of that template is searched first.
    """
    paths: List[Union[str, Path]] = list(config.get_list("templates.path", ["."]))
    if path is not None:
        paths.insert(0, Path(path).parent)
    return FileSystemLoader(paths)


def _compiler_from_options(
    name: str,
    options: Dict[str, Any],
    path: Optional[Path] = None,
) -> Compiler:
    config = options.get("config") or Config()
    loader = options.pop("loader", None) or template_loader(config, path)
    return Compiler(name, loader=loader, **options)


def compile_string(
    source: str,
    name: str = "index",
    overrides: Optional[Mapping[str, Any]] = None,
    **options: Any,
) -> str:
    """
    Compile template source to a complete document.

    Keyword options are passed to ``Compiler``. Includes resolve through
    ``templates.path`` unless a loader is given.
    """
    compiler = _compiler_from_options(name, options)
    compiler.parse(source)
    return compiler.render_document(overrides)


def compile_file(
    path: Union[str, Path],
    overrides: Optional[Mapping[str, Any]] = None,
    **options: Any,
) -> str:
    """Compile a template file; the unit is named after the file stem."""
    path = Path(path)
    compiler = _compiler_from_options(path.stem, options, path)
    compiler.parse_file(path)
    return compiler.render_document(overrides)
