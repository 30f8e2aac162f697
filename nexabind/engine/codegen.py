"""
NexaBind Render Function Generator
==================================

Generates the JavaScript render function of a nested component unit.

Output:
    function template_<name>(locals) {
      let html = "";
      let { a, b } = locals;
      ...
      return html;
    }

Control flow is rendered natively: conditionals become ``if`` blocks,
loops become ``forEach`` calls and ``let`` declarations become block
scoped locals. A declaration of a name already visible in the enclosing
blocks (a parameter, a loop binding or an earlier ``let``) is emitted as
a plain assignment. Component calls go through the generic lookup
``nb_mixins["name"](...)``; the runtime emitter resolves each lookup to
the generated callable of that component.
"""

from __future__ import annotations

from html import escape as html_escape
from typing import Iterable, List, Set

import orjson

from nexabind.engine.errors import TemplateRenderError
from nexabind.engine.pyxm_parser import VOID_ELEMENTS, NodeType, PyxmNode
from nexabind.engine.rewriter import parse_declaration

MIXIN_LOOKUP = "nb_mixins"


def script_safe(literal: str) -> str:
    """
    Make a JavaScript literal safe to embed in an inline ``<script>``.

    ``</`` would end the script element early and ``<!--`` switches the
    HTML tokenizer into its escaped state; inside a string literal the
    backslash forms decode to the same characters.
    """
    return literal.replace("</", "<\\/").replace("<!--", "<\\!--")


def js_string(text: str) -> str:
    """Encode text as a JavaScript string literal."""
    return script_safe(orjson.dumps(text).decode("utf-8"))


def mixin_lookup(name: str) -> str:
    """Generic component lookup emitted into render functions."""
    return f"{MIXIN_LOOKUP}[{js_string(name)}]"


class CodegenContext:
    """Code generation state for one render function."""

    def __init__(self) -> None:
        self.indent_level = 0
        self.output_parts: List[str] = []

    def indent(self) -> str:
        """Get current indentation."""
        return "  " * self.indent_level

    def emit(self, code: str) -> None:
        """Emit a line of code."""
        self.output_parts.append(f"{self.indent()}{code}")

    def append(self, markup: str) -> None:
        """Emit a static markup append."""
        if markup:
            self.emit(f"html += {js_string(markup)};")

    def enter_scope(self) -> None:
        """Enter a new scope (increase indent)."""
        self.indent_level += 1

    def exit_scope(self) -> None:
        """Exit scope (decrease indent)."""
        self.indent_level -= 1

    def get_code(self) -> str:
        """Get generated code."""
        return "\n".join(self.output_parts)


class RenderFunctionGenerator:
    """
    Compiles a component tree to a JavaScript render function.

    Example:
        generator = RenderFunctionGenerator()
        code = generator.generate(unit.tree, unit.name, unit.params)
    """

    def __init__(self) -> None:
        self.context = CodegenContext()
        self.template_name = "template"
        # Names declared per open JavaScript block, innermost last
        self.blocks: List[Set[str]] = []

    def _open_block(self, names: Iterable[str] = ()) -> None:
        self.context.enter_scope()
        self.blocks.append(set(names))

    def _close_block(self) -> None:
        self.blocks.pop()
        self.context.exit_scope()

    def _is_visible(self, name: str) -> bool:
        return any(name in block for block in self.blocks)

    def generate(
        self,
        nodes: List[PyxmNode],
        template_name: str,
        params: List[str],
    ) -> str:
        """
        Generate the render function source.

        Args:
            nodes: Component tree after the component-scope pass
            template_name: Unit name; the function is ``template_<name>``
            params: Names destructured from ``locals``

        Returns:
            JavaScript function declaration
        """
        self.context = CodegenContext()
        self.template_name = template_name
        self.blocks = []

        self.context.emit(f"function template_{template_name}(locals) {{")
        self._open_block(params)
        self.context.emit('let html = "";')
        if params:
            # Declarations may reassign parameters
            self.context.emit(f"let {{ {', '.join(params)} }} = locals;")

        for node in nodes:
            self._compile_node(node)

        self.context.emit("return html;")
        self._close_block()
        self.context.emit("}")

        return self.context.get_code()

    def _compile_node(self, node: PyxmNode) -> None:
        """Compile a single node."""
        if node.type == NodeType.ELEMENT:
            self._compile_element(node)

        elif node.type in (NodeType.TEXT, NodeType.RAW):
            self.context.append(node.content or "")

        elif node.type == NodeType.COMMENT:
            # Skip comments in output
            pass

        elif node.type == NodeType.CODE:
            self._compile_code(node)

        elif node.type == NodeType.IF:
            self._compile_if(node)

        elif node.type == NodeType.FOR:
            self._compile_for(node)

        elif node.type == NodeType.CALL:
            self.context.emit(f"html += {mixin_lookup(node.tag)}({node.args});")

        else:
            raise TemplateRenderError(
                f"{self.template_name}: {node.type.name} node at line {node.line} "
                "cannot be compiled into a render function"
            )

    def _compile_element(self, node: PyxmNode) -> None:
        """Compile HTML element."""
        tag = node.tag
        start = [f"<{tag}"]

        # Static attributes
        for name, value in node.attributes.items():
            if value is True:
                start.append(f" {name}")
            elif value is not False and value is not None:
                start.append(f' {name}="{html_escape(str(value), quote=True)}"')

        void = node.is_self_closing or tag in VOID_ELEMENTS
        close = " />" if void else ">"

        if node.bindings:
            self.context.append("".join(start))
            # Dynamic attribute bindings
            for name, expression in node.bindings.items():
                self.context.emit(f"html += nb_attr({js_string(name)}, ({expression}));")
            self.context.append(close)
        else:
            self.context.append("".join(start) + close)

        if void:
            return

        for child in node.children:
            self._compile_node(child)

        self.context.append(f"</{tag}>")

    def _compile_code(self, node: PyxmNode) -> None:
        """Compile a declaration or an escaped expression."""
        declaration = parse_declaration(node.content)
        if declaration is not None:
            name, value = declaration
            if self._is_visible(name):
                self.context.emit(f"{name} = {value};")
            else:
                self.blocks[-1].add(name)
                self.context.emit(f"let {name} = {value};")
        else:
            self.context.emit(f"html += nb_escape({node.content});")

    def _compile_if(self, node: PyxmNode) -> None:
        """Compile if/else block."""
        self.context.emit(f"if ({node.condition}) {{")
        self._open_block()
        for child in node.children:
            self._compile_node(child)
        self._close_block()

        if node.alternate is not None:
            self.context.emit("} else {")
            self._open_block()
            for child in node.alternate:
                self._compile_node(child)
            self._close_block()

        self.context.emit("}")

    def _compile_for(self, node: PyxmNode) -> None:
        """Compile loop over an array source."""
        self.context.emit(f"({node.source}).forEach(({', '.join(node.params)}) => {{")
        self._open_block(node.params)
        for child in node.children:
            self._compile_node(child)
        self._close_block()
        self.context.emit("});")


def generate_render_function(
    nodes: List[PyxmNode],
    template_name: str,
    params: List[str],
) -> str:
    """Generate a render function; the default ``generate`` collaborator."""
    return RenderFunctionGenerator().generate(nodes, template_name, params)
