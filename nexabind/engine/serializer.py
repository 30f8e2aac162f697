"""
NexaBind Markup Serializer
==========================

Pure function from a rewritten root tree to static HTML.

Everything dynamic has already been replaced by anchors, so the
serializer only ever sees elements, text, raw markup, comments and
``let`` declarations. Bindings are left out of the markup: the runtime
assigns them during startup.
"""

from __future__ import annotations

from html import escape as html_escape
from typing import List

from nexabind.engine.errors import TemplateRenderError
from nexabind.engine.pyxm_parser import VOID_ELEMENTS, NodeType, PyxmNode
from nexabind.engine.rewriter import parse_declaration


def render_markup(nodes: List[PyxmNode], template_name: str = "template") -> str:
    """
    Serialize a node sequence to HTML.

    Args:
        nodes: Rewritten top-level nodes
        template_name: Name used in error messages

    Returns:
        HTML string

    Raises:
        TemplateRenderError: If a node still needs runtime evaluation
    """
    output: List[str] = []
    for node in nodes:
        _render_node(node, output, template_name)
    return "".join(output)


def _render_node(node: PyxmNode, output: List[str], template_name: str) -> None:
    if node.type == NodeType.ELEMENT:
        _render_element(node, output, template_name)

    elif node.type in (NodeType.TEXT, NodeType.RAW):
        output.append(node.content or "")

    elif node.type == NodeType.COMMENT:
        # Template comments never reach the output
        pass

    elif node.type == NodeType.CODE and parse_declaration(node.content):
        # Declarations run in the runtime program
        pass

    else:
        raise TemplateRenderError(
            f"{template_name}: {node.type.name} node at line {node.line} "
            "cannot be rendered as static markup"
        )


def _render_element(node: PyxmNode, output: List[str], template_name: str) -> None:
    tag = node.tag
    output.append(f"<{tag}")

    # Static attributes
    for name, value in node.attributes.items():
        if value is True:
            output.append(f" {name}")
        elif value is False or value is None:
            continue
        else:
            output.append(f' {name}="{html_escape(str(value), quote=True)}"')

    # Close start tag
    if node.is_self_closing or tag in VOID_ELEMENTS:
        output.append(" />")
        return
    output.append(">")

    # Children
    for child in node.children:
        _render_node(child, output, template_name)

    # End tag
    output.append(f"</{tag}>")
