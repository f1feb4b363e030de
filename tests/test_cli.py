"""Tests for the glustervol CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from glustervol import __version__
from glustervol.cli import main
from glustervol.cli._common import state_path_for
from glustervol.driver import VolumeDriver
from glustervol.models import PluginConfig

from conftest import FakeMounter


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def populated_root(plugin_root: Path) -> Path:
    driver = VolumeDriver(
        PluginConfig(root=plugin_root, default_servers="s1,s2", default_volname="gv0"),
        backend=FakeMounter(),
    )
    driver.create("v1", {"subdir": "a", "ro": ""})
    driver.create("v2")
    driver.mount("v2")
    return plugin_root


def test_state_path_matches_plugin_config(plugin_root):
    assert state_path_for(str(plugin_root)) == PluginConfig(root=plugin_root).state_path


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_capabilities(runner):
    result = runner.invoke(main, ["capabilities"])
    assert result.exit_code == 0
    assert json.loads(result.output) == {"Capabilities": {"Scope": "local"}}


class TestVolumesList:
    def test_empty(self, runner, plugin_root):
        result = runner.invoke(main, ["volumes", "list", "--root", str(plugin_root)])
        assert result.exit_code == 0
        assert "No volumes registered" in result.output

    def test_table(self, runner, populated_root):
        result = runner.invoke(main, ["volumes", "list", "--root", str(populated_root)])
        assert result.exit_code == 0
        assert "v1" in result.output
        assert "v2" in result.output
        assert "gv0" in result.output

    def test_json(self, runner, populated_root):
        result = runner.invoke(main, ["volumes", "list", "--root", str(populated_root), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["v1"]["options"] == ["ro"]
        assert data["v2"]["connections"] == 1

    def test_corrupt_state(self, runner, plugin_root):
        state = plugin_root / "state" / "gfs-state.json"
        state.parent.mkdir()
        state.write_text("{{{")
        result = runner.invoke(main, ["volumes", "list", "--root", str(plugin_root)])
        assert result.exit_code == 1
        assert "Cannot read volume state" in result.output


class TestVolumesInspect:
    def test_json(self, runner, populated_root):
        result = runner.invoke(
            main, ["volumes", "inspect", "v1", "--root", str(populated_root), "--json"]
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["subdir"] == "a"
        assert data["servers"] == ["s1", "s2"]

    def test_panel(self, runner, populated_root):
        result = runner.invoke(main, ["volumes", "inspect", "v2", "--root", str(populated_root)])
        assert result.exit_code == 0
        assert "s1,s2:/gv0" in result.output

    def test_missing(self, runner, populated_root):
        result = runner.invoke(main, ["volumes", "inspect", "nope", "--root", str(populated_root)])
        assert result.exit_code == 1
        assert "not found" in result.output


def test_serve_exits_on_corrupt_state(runner, plugin_root, monkeypatch):
    state = plugin_root / "state" / "gfs-state.json"
    state.parent.mkdir()
    state.write_text("not json")
    monkeypatch.setattr("glustervol.cli.serve.setup_logging", lambda *a, **k: None)

    result = runner.invoke(
        main,
        ["serve", "--root", str(plugin_root), "--socket", str(plugin_root / "p.sock")],
        env={"SERVERS": "", "VOLNAME": "", "GLUSTERVOL_CONFIG": ""},
    )
    assert result.exit_code == 1
    assert "Cannot load volume state" in result.output
