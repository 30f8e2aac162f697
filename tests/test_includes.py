"""Tests for template loaders and include resolution."""

from __future__ import annotations

import pytest

from nexabind.engine.errors import IncludeCycleError, TemplateNotFoundError
from nexabind.engine.includes import DictLoader, FileSystemLoader, resolve_includes
from nexabind.engine.pyxm_parser import NodeType, parse_template


def resolved(source, loader):
    nodes = parse_template(source).nodes
    resolve_includes(nodes, loader)
    return nodes


class TestDictLoader:
    def test_get_source(self):
        loader = DictLoader({"nav.pyxm": "<nav></nav>"})
        assert loader.get_source("nav.pyxm") == ("<nav></nav>", None)
        assert loader.list_templates() == ["nav.pyxm"]

    def test_suggestion_for_close_name(self):
        loader = DictLoader({"header.pyxm": ""})
        with pytest.raises(TemplateNotFoundError, match="Did you mean 'header.pyxm'"):
            loader.get_source("heade.pyxm")


class TestFileSystemLoader:
    def test_search_order_and_extension(self, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        (second / "partials").mkdir(parents=True)
        first.mkdir()
        (first / "nav.pyxm").write_text("<nav>first</nav>")
        (second / "nav.pyxm").write_text("<nav>second</nav>")
        (second / "partials" / "foot.pyxm").write_text("<footer></footer>")

        loader = FileSystemLoader([first, second])
        assert loader.get_source("nav")[0] == "<nav>first</nav>"
        source, filename = loader.get_source("partials/foot")
        assert source == "<footer></footer>"
        assert filename == str(second / "partials" / "foot.pyxm")
        assert loader.list_templates() == ["nav.pyxm", "partials/foot.pyxm"]

    def test_missing_template(self, tmp_path):
        loader = FileSystemLoader(str(tmp_path))
        assert loader.resolve("nope") is None
        with pytest.raises(TemplateNotFoundError, match="'nope' not found"):
            loader.get_source("nope")


class TestResolveIncludes:
    def test_include_is_spliced(self):
        nodes = resolved(
            '<body>{% include "nav" %}<main></main></body>',
            DictLoader({"nav": "<nav></nav><hr>"}),
        )
        assert [n.tag for n in nodes[0].children] == ["nav", "hr", "main"]

    def test_nested_includes(self):
        loader = DictLoader({"a": '<a>{% include "b" %}</a>', "b": "<b></b>"})
        nodes = resolved('{% include "a" %}', loader)
        assert nodes[0].tag == "a"
        assert nodes[0].children[0].tag == "b"

    def test_includes_inside_blocks(self):
        loader = DictLoader({"x": "<i></i>"})
        nodes = resolved('{% if ok %}{% include "x" %}{% else %}{% include "x" %}{% endif %}', loader)
        assert nodes[0].children[0].tag == "i"
        assert nodes[0].alternate[0].tag == "i"

    def test_cycle(self):
        loader = DictLoader({"a": '{% include "b" %}', "b": '{% include "a" %}'})
        with pytest.raises(IncludeCycleError, match="a -> b -> a"):
            resolved('{% include "a" %}', loader)

    def test_self_include(self):
        loader = DictLoader({"a": '{% include "a" %}'})
        with pytest.raises(IncludeCycleError):
            resolved('{% include "a" %}', loader)

    def test_no_loader(self):
        with pytest.raises(TemplateNotFoundError, match="no template loader"):
            resolved('{% include "a" %}', None)

    def test_tree_without_includes_needs_no_loader(self):
        nodes = resolved("<p>x</p>", None)
        assert nodes[0].type == NodeType.ELEMENT
