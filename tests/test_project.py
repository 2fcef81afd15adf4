"""
Tests for the YAML project config, re-parsing on change and the command line.
"""

from pathlib import Path
from types import SimpleNamespace

import pytest
import yaml

from slimparse.__main__ import main
from slimparse.config import load_config
from slimparse.parser import Parser
from slimparse.watcher import ChangeHandler, trigger_reparse


def write_project(tmp_path, template="ul\n  li Item\n", **extra):
    views = tmp_path / "views"
    views.mkdir()
    src = views / "index.slim"
    src.write_text(template)
    dst = tmp_path / "build" / "index.yml"
    cfg = {'parse': [{'src': str(src), 'dst': str(dst)}]}
    cfg.update(extra)
    config_path = tmp_path / "project.yml"
    config_path.write_text(yaml.safe_dump(cfg))
    return config_path, src, dst


class TestConfig:

    def test_load_config(self, tmp_path):
        (tmp_path / "partials").mkdir()
        (tmp_path / "partials" / "nav.slim").write_text("nav\n")
        config_path, src, dst = write_project(tmp_path, options={'default_tag': 'span', 'tabsize': 2},
                                              watch=['partials/*.slim'])

        cfg = load_config(config_path, base_path=tmp_path)

        assert cfg.options.default_tag == 'span'
        assert cfg.options.tabsize == 2
        assert cfg.write_pairs == {src: dst}
        assert cfg.watch_paths == {tmp_path / "partials" / "nav.slim"}

    def test_missing_parse_section(self, tmp_path):
        config_path = tmp_path / "project.yml"
        config_path.write_text("options:\n  tabsize: 2\n")
        with pytest.raises(ValueError, match="'parse'"):
            load_config(config_path)

    def test_unknown_option(self, tmp_path):
        config_path, _, _ = write_project(tmp_path, options={'indent': 2})
        with pytest.raises(ValueError, match="Unknown parser option"):
            load_config(config_path)


class TestReparse:

    def test_trigger_reparse_writes_dump(self, tmp_path):
        _, src, dst = write_project(tmp_path)
        errors = trigger_reparse({src: dst}, Parser())
        assert errors == {}
        assert yaml.safe_load(dst.read_text())[1][2] == 'ul'

    def test_syntax_errors_are_collected(self, tmp_path):
        _, src, dst = write_project(tmp_path, template="ul\n    li\n  li\n")
        errors = trigger_reparse({src: dst}, Parser())
        assert list(errors) == [src]
        assert errors[src].file == str(src)
        assert errors[src].error == 'Malformed indentation'
        assert not dst.exists()

    def test_change_handler_reparses_watched_files(self, tmp_path):
        _, src, dst = write_project(tmp_path)
        handler = ChangeHandler({src}, write_pairs={src: dst}, parser=Parser())

        handler.on_modified(SimpleNamespace(is_directory=False, src_path=str(tmp_path / "other.slim")))
        assert not dst.exists()

        handler.on_modified(SimpleNamespace(is_directory=False, src_path=str(src)))
        assert dst.exists()


class TestCommandLine:

    def test_once(self, tmp_path):
        config_path, _, dst = write_project(tmp_path)
        assert main([str(config_path), '--once']) == 0
        assert yaml.safe_load(dst.read_text())[0] == 'multi'

    def test_once_with_syntax_error(self, tmp_path, capsys):
        config_path, _, dst = write_project(tmp_path, template="<p>\n")
        assert main([str(config_path), '--once']) == 1
        assert "Unknown line indicator" in capsys.readouterr().err
        assert not Path(dst).exists()

    def test_once_with_bad_config(self, tmp_path, capsys):
        config_path = tmp_path / "project.yml"
        config_path.write_text("options:\n  tabsize: 2\n")
        assert main([str(config_path), '--once']) == 1
        assert "Error: " in capsys.readouterr().err
        assert main([str(tmp_path / "missing.yml"), '--once']) == 1
