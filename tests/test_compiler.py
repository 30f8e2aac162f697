"""End-to-end tests for the compiler facade."""

from __future__ import annotations

import pytest

from nexabind import Config, compile_file, compile_string
from nexabind.engine.anchors import CounterIds
from nexabind.engine.compiler import Compiler, template_loader
from nexabind.engine.errors import (
    EmptyDocumentError,
    RenderBeforeParseError,
    TemplateNotFoundError,
    TemplateRenderError,
    UnitStateError,
    UnknownVariableError,
)
from nexabind.engine.includes import DictLoader
from nexabind.engine.pyxm_parser import parse_template


def split_document(document: str):
    """(runtime, markup) of a rendered document."""
    assert document.startswith("\n<script>\n")
    runtime, markup = document[len("\n<script>\n"):].split("\n</script>\n", 1)
    return runtime, markup


class TestRenderDocument:
    def test_href_binding(self, compiler):
        compiler.parse("{% let x = 'Hi' %}\n<a :href=\"x\">link</a>")
        runtime, markup = split_document(compiler.render_document())
        assert markup == '<a id="nb1">link</a>'
        assert "set_x('Hi');" in runtime
        assert 'nb_bind(document.getElementById("nb1"), "href", (x));' in runtime

    def test_pets_loop(self, compiler):
        compiler.parse(
            "{% let pets = ['cat', 'dog'] %}\n"
            "<ul>{% for pet in pets %}<li>{{ pet }}</li>{% endfor %}</ul>"
        )
        runtime, markup = split_document(compiler.render_document())
        assert markup == '<ul><div id="nb1"></div></ul>'
        assert "const c_each_nb1 = (pet) => {" in runtime
        assert '.map((pet) => c_each_nb1(pet)).join("");' in runtime

    def test_shared_flag(self, compiler):
        compiler.parse(
            "{% let flag = false %}\n"
            "{% if flag %}<p>A</p>{% endif %}\n"
            "{% if flag %}<p>B</p>{% else %}<p>C</p>{% endif %}"
        )
        runtime, markup = split_document(compiler.render_document())
        setter = runtime[runtime.index("const set_flag"):]
        assert setter.index("event_nb2();") < setter.index("event_nb5();")
        assert markup == (
            '<div id="nb1" style="display: none;"><p>A</p></div>'
            '<div id="nb4" style="display: none;"><p>C</p></div>'
            '<div id="nb3" style="display: none;"><p>B</p></div>'
        )
        assert compiler.dependency_graph() == {"flag": ["nb2", "nb5"]}

    def test_overrides(self, compiler):
        compiler.parse("{% let count = 1 %}<p>{{ count }}</p>")
        runtime, _ = split_document(compiler.render_document({"count": 42}))
        assert "set_count(42);" in runtime
        assert "set_count(1);" not in runtime
        assert compiler.dependency_graph() == {"count": ["nb1"]}

    def test_script_in_loop_body_stays_inside_runtime(self, compiler):
        compiler.parse(
            "{% let xs = [1] %}<ul>{% for x in xs %}<li>{{ x }}</li>"
            "<script>go()</script>{% endfor %}</ul>"
        )
        document = compiler.render_document()
        assert document.count("</script>") == 1
        runtime, markup = split_document(document)
        assert 'html += "<script>";' in runtime
        assert 'html += "<\\/script>";' in runtime
        assert markup == '<ul><div id="nb1"></div></ul>'

    def test_override_cannot_close_runtime(self, compiler):
        compiler.parse("{% let t = '' %}<p>{{ t }}</p>")
        document = compiler.render_document({"t": "</script><b>x</b><!--"})
        assert document.count("</script>") == 1
        runtime, _ = split_document(document)
        assert 'set_t("<\\/script><b>x<\\/b><\\!--");' in runtime

    def test_unknown_override(self, compiler):
        compiler.parse("{% let count = 1 %}")
        with pytest.raises(UnknownVariableError):
            compiler.render_document({"total": 1})

    def test_includes(self, compiler):
        compiler.parse(
            "{% let title = 'Home' %}"
            '{% include "header.pyxm" %}<main></main>{% include "footer.pyxm" %}'
        )
        runtime, markup = split_document(compiler.render_document())
        assert markup == (
            '<header><div id="nb1"></div></header><main></main><footer>bye</footer>'
        )
        assert compiler.dependency_graph() == {"title": ["nb1"]}

    def test_runtime_only(self, compiler):
        compiler.parse("{% let a = 1 %}")
        assert compiler.render_runtime().endswith("});")


class TestLifecycle:
    def test_render_before_parse(self, compiler):
        with pytest.raises(RenderBeforeParseError):
            compiler.render_document()
        with pytest.raises(RenderBeforeParseError):
            compiler.dependency_graph()

    def test_parse_twice(self, compiler):
        compiler.parse("<p>a</p>")
        with pytest.raises(UnitStateError):
            compiler.parse("<p>b</p>")

    @pytest.mark.parametrize("source", ["", "\n   \n", "{% include \"empty\" %}"])
    def test_empty_document(self, source):
        compiler = Compiler(loader=DictLoader({"empty": ""}))
        with pytest.raises(EmptyDocumentError):
            compiler.parse(source)

    def test_render_twice(self, compiler):
        compiler.parse("{% let a = 1 %}<p>{{ a }}</p>")
        assert compiler.render_document() == compiler.render_document()

    def test_custom_parser(self, ids):
        seen = []

        def parse_source(source, name):
            seen.append(name)
            return parse_template(source.replace("hi", "bye"), name)

        compiler = Compiler("page", ids=ids, parse_source=parse_source)
        compiler.parse("<p>hi</p>")
        assert seen == ["page"]
        assert split_document(compiler.render_document())[1] == "<p>bye</p>"


class TestComponents:
    def test_render_component(self, ids):
        compiler = Compiler("card", "component", params=["title"], ids=ids)
        compiler.parse("<h2>{{ title }}</h2>{% for t in title %}<i>{{ t }}</i>{% endfor %}")
        code = compiler.render_component()
        assert code.startswith("const c_card = (title) => {")
        assert "const c_each_nb1 = (title, t) => {" in code
        assert "html += c_each_nb1(title, t);" in code

    def test_kind_mismatch(self, compiler):
        compiler.parse("<p>x</p>")
        with pytest.raises(TemplateRenderError, match="not a component unit"):
            compiler.render_component()

    def test_describe(self, compiler):
        compiler.parse(
            "{% let items = [] %}{% for item in items %}{{ item }}{% endfor %}"
        )
        summary = compiler.describe()
        assert summary["name"] == "index"
        assert summary["kind"] == "root"
        assert summary["variables"] == [{"name": "items", "value": "[]"}]
        assert summary["loops"] == [
            {"id": "nb1", "source": "items", "params": ["item"], "component": "each_nb1"}
        ]
        assert summary["components"][0]["name"] == "each_nb1"
        assert summary["components"][0]["kind"] == "component"


class TestHelpers:
    def test_compile_string(self):
        document = compile_string(
            "{% let n = 2 %}<b>{{ n }}</b>", ids=CounterIds("x"), overrides=None
        )
        runtime, markup = split_document(document)
        assert markup == '<b><div id="x1"></div></b>'
        assert "set_n(2);" in runtime

    def test_compile_string_uses_config(self):
        config = Config()
        config.set("compiler.prefix", "app")
        _, markup = split_document(compile_string("<p>{{ 1 }}</p>", config=config))
        assert markup == '<p><div id="app1"></div></p>'

    def test_compile_file_resolves_relative_includes(self, tmp_path):
        (tmp_path / "nav.pyxm").write_text("<nav>menu</nav>")
        page = tmp_path / "page.pyxm"
        page.write_text('{% include "nav" %}<main></main>')
        _, markup = split_document(compile_file(page))
        assert markup == "<nav>menu</nav><main></main>"

    def test_compile_file_overrides(self, tmp_path):
        page = tmp_path / "page.pyxm"
        page.write_text("{% let who = 'a' %}<p>{{ who }}</p>")
        runtime, _ = split_document(compile_file(page, {"who": "b"}))
        assert 'set_who("b");' in runtime

    def test_template_loader_search_path(self, tmp_path):
        shared = tmp_path / "shared"
        shared.mkdir()
        (shared / "nav.pyxm").write_text("<nav></nav>")
        config = Config()
        config.set("templates.path", str(shared))

        loader = template_loader(config, tmp_path / "pages" / "index.pyxm")
        assert loader.paths[0] == tmp_path / "pages"
        assert loader.get_source("nav")[0] == "<nav></nav>"

    def test_missing_include(self, tmp_path):
        page = tmp_path / "page.pyxm"
        page.write_text('{% include "nowhere" %}')
        with pytest.raises(TemplateNotFoundError):
            compile_file(page)
