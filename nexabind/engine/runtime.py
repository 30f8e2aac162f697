"""
NexaBind Runtime Emitter
========================

Turns a rewritten unit hierarchy into the JavaScript program that keeps
the page in sync with its variables.

Program layout:
    prelude helpers (nb_escape, nb_attr, nb_bind)
    let <variable> = undefined;          one cell per variable name
    const c_<unit> = (params) => {...};  one callable per nested unit
    const set_<variable> = ...;          one setter per variable name
    function event_<id>() {...}          one update function per anchor
    window.addEventListener("load", ...) startup routine

Setters assign the new value and call their events synchronously, in
registration order. An event that calls another setter propagates depth
first; there is no cycle detection.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

import orjson

from nexabind.engine.anchors import js_name
from nexabind.engine.codegen import (
    CodegenContext,
    generate_render_function,
    js_string,
    script_safe,
)
from nexabind.engine.errors import (
    DuplicateComponentError,
    UnknownComponentError,
    UnknownVariableError,
)
from nexabind.engine.unit import ComponentUnit, UnitState, all_units
from nexabind.utils.logger import get_logger

logger = get_logger("nexabind.runtime")

# (nodes, template name, params) -> render function source
RenderGenerator = Callable[[List[Any], str, List[str]], str]

MIXIN_PATTERN = re.compile(r'nb_mixins\["((?:[^"\\]|\\.)*)"\]')

PRELUDE = """\
const nb_escape = (value) => String(value ?? "").replace(/[&<>"']/g, (c) => ({
  "&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#39;"
})[c]);
const nb_attr = (name, value) => {
  if (value === false || value === null || value === undefined) return "";
  if (value === true) return " " + name;
  return " " + name + '="' + nb_escape(value) + '"';
};
const nb_bind = (el, name, value) => {
  if (value === false || value === null || value === undefined) {
    el.removeAttribute(name);
  } else {
    el.setAttribute(name, value === true ? "" : String(value));
  }
};"""


def callable_name(unit_name: str) -> str:
    return f"c_{unit_name}"


def element(anchor_id: str) -> str:
    """DOM lookup of an anchor."""
    return f"document.getElementById({js_string(anchor_id)})"


def js_literal(value: Any) -> str:
    """Serialize an override value as a JavaScript literal."""
    return script_safe(orjson.dumps(value).decode("utf-8"))


class RuntimeEmitter:
    """
    Emits runtime programs and component callables.

    Example:
        emitter = RuntimeEmitter()
        script = emitter.emit(root_unit, overrides={"count": 3})
    """

    def __init__(self, generate: RenderGenerator = generate_render_function) -> None:
        self.generate = generate

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def emit(
        self,
        unit: ComponentUnit,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Emit the runtime program of a root unit.

        Args:
            unit: Rewritten root unit
            overrides: Variable name -> value replacing the initializer
                at startup only

        Raises:
            UnknownVariableError: If an override names no declared variable
            UnknownComponentError: If a call names no compiled component
            DuplicateComponentError: If two nested units share a name
        """
        overrides = dict(overrides or {})
        declared = {v.name for v in unit.variables}
        unknown = sorted(name for name in overrides if name not in declared)
        if unknown:
            raise UnknownVariableError(
                f"Cannot override undeclared variable(s) in '{unit.name}': {', '.join(unknown)}"
            )

        nested = list(all_units(unit))[1:]
        known = self._component_names(nested)

        context = CodegenContext()
        for line in PRELUDE.splitlines():
            context.emit(line)

        self._emit_cells(context, unit)
        for component in nested:
            self._emit_callable(context, component, known)
        self._emit_setters(context, unit)
        groups = self._emit_events(context, unit, known)
        self._emit_startup(context, unit, groups, overrides)

        self._mark_emitted(unit)
        logger.debug(
            "Emitted runtime",
            unit=unit.name,
            events=len(groups),
            components=len(nested),
        )
        return context.get_code()

    def emit_component(self, unit: ComponentUnit) -> str:
        """
        Emit the callable of a component unit and of everything it nests.

        The unit's own name is resolvable, so a component may call itself.
        """
        units = list(all_units(unit))
        known = self._component_names(units)

        context = CodegenContext()
        for component in units:
            self._emit_callable(context, component, known)

        self._mark_emitted(unit)
        return context.get_code()

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _component_names(self, units: List[ComponentUnit]) -> Set[str]:
        names: Set[str] = set()
        for component in units:
            if component.name in names:
                raise DuplicateComponentError(
                    f"Component '{component.name}' is defined more than once"
                )
            names.add(component.name)
        return names

    def _emit_cells(self, context: CodegenContext, unit: ComponentUnit) -> None:
        for name in _unique_names(unit):
            context.emit(f"let {name} = undefined;")

    def _emit_callable(
        self,
        context: CodegenContext,
        unit: ComponentUnit,
        known: Set[str],
    ) -> None:
        params = unit.params
        source = self._resolve_calls(
            self.generate(unit.tree, unit.name, params), unit.name, known
        )

        context.emit(f"const {callable_name(unit.name)} = ({', '.join(params)}) => {{")
        context.enter_scope()
        for line in source.splitlines():
            context.emit(line)
        context.emit(f"return template_{unit.name}({{ {', '.join(params)} }});")
        context.exit_scope()
        context.emit("};")

    def _resolve_calls(self, source: str, unit_name: str, known: Set[str]) -> str:
        """Point generic component lookups at the generated callables."""

        def replace(match: re.Match) -> str:
            name = match.group(1)
            self._require(name, unit_name, known)
            return callable_name(name)

        return MIXIN_PATTERN.sub(replace, source)

    def _emit_setters(self, context: CodegenContext, unit: ComponentUnit) -> None:
        for name in _unique_names(unit):
            context.emit(f"const set_{name} = (newValue) => {{")
            context.enter_scope()
            context.emit(f"{name} = newValue;")
            for event_id in unit.variable_events.get(name, []):
                context.emit(f"event_{js_name(event_id)}();")
            context.exit_scope()
            context.emit("};")

    def _emit_events(
        self,
        context: CodegenContext,
        unit: ComponentUnit,
        known: Set[str],
    ) -> Dict[str, List[str]]:
        """Emit one update function per anchor id; returns id -> statements."""
        groups: Dict[str, List[str]] = {}

        for conditional in unit.conditionals:
            statements = groups.setdefault(conditional.id, [])
            statements.append(f"const value = !!({conditional.expression});")
            for branch in conditional.branches:
                shown = "true" if branch.equals else "false"
                statements.append(
                    f"{element(branch.anchor_id)}.style.display = "
                    f'(value === {shown} ? "" : "none");'
                )

        for bound in unit.bound_values:
            statements = groups.setdefault(bound.id, [])
            if bound.attr is None:
                statements.append(f"{element(bound.id)}.textContent = ({bound.expression});")
            else:
                statements.append(
                    f"nb_bind({element(bound.id)}, {js_string(bound.attr)}, ({bound.expression}));"
                )

        for loop in unit.loops:
            self._require(loop.component, unit.name, known)
            params = ", ".join(loop.params)
            groups.setdefault(loop.id, []).append(
                f"{element(loop.id)}.innerHTML = ({loop.source})"
                f".map(({params}) => {callable_name(loop.component)}({params}))"
                '.join("");'
            )

        for invocation in unit.invocations:
            self._require(invocation.component, unit.name, known)
            groups.setdefault(invocation.id, []).append(
                f"{element(invocation.id)}.innerHTML = "
                f"{callable_name(invocation.component)}({invocation.args});"
            )

        for event_id, statements in groups.items():
            context.emit(f"function event_{js_name(event_id)}() {{")
            context.enter_scope()
            for statement in statements:
                context.emit(statement)
            context.exit_scope()
            context.emit("}")

        return groups

    def _emit_startup(
        self,
        context: CodegenContext,
        unit: ComponentUnit,
        groups: Dict[str, List[str]],
        overrides: Dict[str, Any],
    ) -> None:
        context.emit('window.addEventListener("load", () => {')
        context.enter_scope()

        # (a) First render: every declaration, in source order
        for variable in unit.variables:
            if variable.name in overrides:
                value = js_literal(overrides[variable.name])
            elif variable.value is not None:
                value = variable.value
            else:
                continue
            context.emit(f"set_{variable.name}({value});")

        # (b) Invocations no setter will ever fire
        started: Set[str] = set()
        for invocation in unit.invocations:
            if not invocation.variable_dependent:
                context.emit(f"event_{js_name(invocation.id)}();")
                started.add(invocation.id)

        # (c) Remaining events without a variable dependency
        dependent = {
            event_id for events in unit.variable_events.values() for event_id in events
        }
        for event_id in groups:
            if event_id not in dependent and event_id not in started:
                context.emit(f"event_{js_name(event_id)}();")

        context.exit_scope()
        context.emit("});")

    def _require(self, name: str, unit_name: str, known: Set[str]) -> None:
        if name not in known:
            raise UnknownComponentError(
                f"Component '{name}' called from '{unit_name}' is not defined"
            )

    def _mark_emitted(self, unit: ComponentUnit) -> None:
        # Emission only reads units, so emitting again is allowed
        for component in all_units(unit):
            if component.state != UnitState.EMITTED:
                component.advance(UnitState.EMITTED)


def _unique_names(unit: ComponentUnit) -> List[str]:
    names: List[str] = []
    for variable in unit.variables:
        if variable.name not in names:
            names.append(variable.name)
    return names


def emit_runtime(
    unit: ComponentUnit,
    overrides: Optional[Mapping[str, Any]] = None,
) -> str:
    """Emit the runtime program of ``unit`` with the default generator."""
    return RuntimeEmitter().emit(unit, overrides)
