"""Tests for the PYXM lexer and parser."""

from __future__ import annotations

import pytest

from nexabind.engine.errors import TemplateSyntaxError
from nexabind.engine.pyxm_parser import NodeType, PyxmLexer, TokenType, parse_template


def only(source: str):
    nodes = parse_template(source).nodes
    assert len(nodes) == 1, [n.type for n in nodes]
    return nodes[0]


class TestLexer:
    def test_bound_attribute_token(self):
        tokens = PyxmLexer('<a :href="url">').tokenize()
        types = [t.type for t in tokens]
        assert TokenType.ATTR_BIND in types
        bind = next(t for t in tokens if t.type == TokenType.ATTR_BIND)
        assert bind.value == "href"

    def test_raw_body_is_one_token(self):
        tokens = PyxmLexer("{% raw %}{{ not parsed }}<b>{% endraw %}").tokenize()
        raw = [t for t in tokens if t.type == TokenType.RAW_CONTENT]
        assert [t.value for t in raw] == ["{{ not parsed }}<b>"]

    def test_token_positions(self):
        tokens = PyxmLexer("ab\n{{ x }}").tokenize()
        expr = next(t for t in tokens if t.type == TokenType.EXPR_OPEN)
        assert (expr.line, expr.column) == (2, 1)


class TestElements:
    def test_static_and_bound_attributes(self):
        node = only('<a class="btn" disabled :href="base + path">go</a>')
        assert node.type == NodeType.ELEMENT
        assert node.attributes == {"class": "btn", "disabled": True}
        assert node.bindings == {"href": "base + path"}
        assert node.children[0].content == "go"

    def test_void_and_self_closing(self):
        nodes = parse_template('<br><img src="a.png"/><x-icon />').nodes
        assert [n.is_self_closing for n in nodes] == [True, True, True]

    def test_indentation_text_is_dropped(self):
        node = only("<ul>\n  <li>a</li>\n  <li>b</li>\n</ul>")
        assert [c.tag for c in node.children] == ["li", "li"]

    def test_inline_whitespace_is_kept(self):
        node = only("<p>{{ a }} {{ b }}</p>")
        assert [c.type for c in node.children] == [NodeType.CODE, NodeType.TEXT, NodeType.CODE]

    def test_mismatched_closing_tag(self):
        with pytest.raises(TemplateSyntaxError, match="Mismatched tags"):
            parse_template("<div><span></div>")

    def test_unclosed_element(self):
        with pytest.raises(TemplateSyntaxError, match="Unclosed <div>"):
            parse_template("<div><p>text</p>")

    def test_unquoted_attribute_value(self):
        with pytest.raises(TemplateSyntaxError, match="quoted"):
            parse_template("<a href=x>y</a>")


class TestStatements:
    def test_expression(self):
        node = only("{{ count + 1 }}")
        assert node.type == NodeType.CODE
        assert node.content == "count + 1"

    def test_let_declaration(self):
        node = only("{% let title = 'Home' %}")
        assert node.type == NodeType.CODE
        assert node.content == "let title = 'Home'"

    def test_if_else(self):
        node = only("{% if ok %}<b>yes</b>{% else %}<i>no</i>{% endif %}")
        assert node.type == NodeType.IF
        assert node.condition == "ok"
        assert node.children[0].tag == "b"
        assert node.alternate[0].tag == "i"

    def test_if_without_else_has_no_alternate(self):
        node = only("{% if ok %}yes{% endif %}")
        assert node.alternate is None

    def test_elif_nests_in_alternate(self):
        node = only("{% if a %}A{% elif b %}B{% else %}C{% endif %}")
        inner = node.alternate[0]
        assert inner.type == NodeType.IF
        assert inner.condition == "b"
        assert inner.alternate[0].content == "C"

    def test_for_with_index(self):
        node = only("{% for pet, i in pets %}{{ pet }}{% endfor %}")
        assert node.type == NodeType.FOR
        assert node.params == ["pet", "i"]
        assert node.source == "pets"

    def test_component_definition(self):
        node = only("{% component card(title, body) %}<h2>{{ title }}</h2>{% endcomponent %}")
        assert node.type == NodeType.COMPONENT
        assert node.tag == "card"
        assert node.params == ["title", "body"]

    def test_component_without_params(self):
        node = only("{% component divider %}<hr>{% endcomponent %}")
        assert node.params == []

    def test_call(self):
        node = only("{% call card(title, 'Body text') %}")
        assert node.type == NodeType.CALL
        assert node.tag == "card"
        assert node.args == "title, 'Body text'"

    def test_include(self):
        node = only('{% include "partials/nav.pyxm" %}')
        assert node.type == NodeType.INCLUDE
        assert node.content == "partials/nav.pyxm"

    def test_raw(self):
        node = only("{% raw %}{{ x }}{% endraw %}")
        assert node.type == NodeType.RAW
        assert node.content == "{{ x }}"

    def test_comment(self):
        node = only("{# note #}")
        assert node.type == NodeType.COMMENT


class TestSyntaxErrors:
    @pytest.mark.parametrize(
        "source, message",
        [
            ("{% if x %}a", "Unclosed"),
            ("{% for x in %}{% endfor %}", "for <names> in"),
            ("{% for 1x in xs %}{% endfor %}", "Invalid name"),
            ("{% endif %}", "Unexpected"),
            ("{% while x %}", "Unknown statement"),
            ("{% let = 3 %}", "let <name>"),
            ("{{ x", "Unclosed"),
            ("{{   }}", "Empty expression"),
            ("{% raw %}abc", "Unclosed"),
            ("{% if x %}<div>{% endif %}", "Unclosed <div>"),
        ],
    )
    def test_malformed_source(self, source, message):
        with pytest.raises(TemplateSyntaxError, match=message):
            parse_template(source)

    def test_error_location(self):
        with pytest.raises(TemplateSyntaxError) as info:
            parse_template("<p>\n  {% while x %}\n</p>", "page.pyxm")
        error = info.value
        assert error.filename == "page.pyxm"
        assert error.line == 2
        assert str(error).startswith("page.pyxm:2:")


class TestTreeHelpers:
    def test_walk_covers_alternate(self):
        ast = parse_template("{% if a %}<b></b>{% else %}<i></i>{% endif %}")
        tags = [n.tag for n in ast.root.walk() if n.type == NodeType.ELEMENT]
        assert tags == ["b", "i"]

    def test_blocks_without_alternate(self):
        node = parse_template("{% for a in b %}<i></i>{% endfor %}").nodes[0]
        assert list(node.blocks()) == [node.children]
