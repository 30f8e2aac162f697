"""Tests for the command line interface."""

from __future__ import annotations

import argparse

import orjson
import pytest

from nexabind.cli.main import cli, create_parser, parse_assignment


@pytest.fixture
def page(tmp_path):
    path = tmp_path / "page.pyxm"
    path.write_text("{% let who = 'world' %}<p>{{ who }}</p>")
    return path


class TestParseAssignment:
    def test_json_values(self):
        assert parse_assignment('title="Home"') == ("title", "Home")
        assert parse_assignment("items=[1, 2]") == ("items", [1, 2])
        assert parse_assignment("flag=true") == ("flag", True)

    @pytest.mark.parametrize("text", ["novalue", "=1", "x={bad"])
    def test_rejected(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_assignment(text)

    def test_parser_collects_overrides(self):
        args = create_parser().parse_args(["build", "p.pyxm", "--set", "a=1", "--set", 'b="x"'])
        assert dict(args.overrides) == {"a": 1, "b": "x"}
        assert args.output == "index.html"


class TestBuild:
    def test_writes_document(self, page, tmp_path, capsys):
        output = tmp_path / "out" / "page.html"
        assert cli(["build", str(page), "-o", str(output), "--set", 'who="you"']) == 0

        document = output.read_text(encoding="utf-8")
        assert 'set_who("you");' in document
        assert document.endswith('<p><div id="nb1"></div></p>')
        assert f"Built {output}" in capsys.readouterr().out

    def test_config_file(self, page, tmp_path):
        config_file = tmp_path / "nexabind_config.py"
        config_file.write_text('config = {"compiler": {"prefix": "app"}}\n')
        output = tmp_path / "page.html"

        assert cli(["-c", str(config_file), "build", str(page), "-o", str(output)]) == 0
        assert '<div id="app1"></div>' in output.read_text(encoding="utf-8")

    def test_syntax_error(self, tmp_path, capsys):
        bad = tmp_path / "bad.pyxm"
        bad.write_text("<div>{% if x %}</div>")
        assert cli(["build", str(bad), "-o", str(tmp_path / "bad.html")]) == 1
        assert "Error: " in capsys.readouterr().err
        assert not (tmp_path / "bad.html").exists()

    def test_unknown_override(self, page, tmp_path, capsys):
        assert cli(["build", str(page), "-o", str(tmp_path / "x.html"), "--set", "nobody=1"]) == 1
        assert "nobody" in capsys.readouterr().err

    def test_missing_source(self, tmp_path, capsys):
        assert cli(["build", str(tmp_path / "absent.pyxm")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_invalid_assignment_exits(self, page):
        with pytest.raises(SystemExit) as info:
            cli(["build", str(page), "--set", "broken"])
        assert info.value.code == 2


class TestInspect:
    def test_prints_unit_summary(self, page, capsys):
        assert cli(["inspect", str(page)]) == 0
        summary = orjson.loads(capsys.readouterr().out)
        assert summary["name"] == "page"
        assert summary["variable_events"] == {"who": ["nb1"]}
        assert summary["bound_values"] == [{"id": "nb1", "attr": None, "expression": "who"}]


class TestServe:
    def test_options_and_config(self, page, monkeypatch):
        calls = []

        def fake_run_server(source, host, port, config):
            calls.append((source, host, port))
            return 0

        monkeypatch.setattr("nexabind.cli.commands.serve.run_server", fake_run_server)
        assert cli(["serve", str(page), "--port", "9001"]) == 0
        assert calls == [(str(page), "127.0.0.1", 9001)]

    def test_missing_template(self, tmp_path, capsys):
        assert cli(["serve", str(tmp_path / "absent.pyxm")]) == 1
        assert "template not found" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert cli([]) == 0
    assert "usage: nexabind" in capsys.readouterr().out


def test_bad_log_level(page, capsys):
    assert cli(["--log-level", "loud", "inspect", str(page)]) == 1
    assert "Unknown log level" in capsys.readouterr().err
