"""CLI tests for the edit and prune commands."""

from __future__ import annotations

import importlib
import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

import cargo_features
from cargo_features import app
from cargo_features.cli.editor import Editor, EditorState

runner = CliRunner()

helpers_module = importlib.import_module("cargo_features.cli.helpers")
prune_module = importlib.import_module("cargo_features.cli.commands.prune")

MANIFEST = """\
[package]
name = "app"

[dependencies]
demo = { version = "1.2", features = ["c"] }
log = "0.4"
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("CARGO_FEATURES_CHECK_COMMAND", "CARGO_FEATURES_REGISTRY", "CARGO_FEATURES_INDEX_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def manifest(write_manifest):
    return write_manifest(MANIFEST)


@pytest.fixture()
def static_registry(registry):
    with patch.object(helpers_module, "build_registry", return_value=registry):
        yield registry


def _oracle_factory(manifest, scripted_oracle, verdict, created):
    def factory(command, cwd=None, timeout=None):
        created.append((command, cwd, timeout))
        return scripted_oracle(manifest, verdict)

    return factory


class TestPrune:
    def test_dry_run_json(self, manifest, static_registry, scripted_oracle):
        created = []
        factory = _oracle_factory(manifest, scripted_oracle, lambda text: "default-features" in text, created)

        with patch.object(prune_module, "CommandOracle", side_effect=factory):
            result = runner.invoke(app, ["--manifest-path", str(manifest), "prune", "--dry-run", "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["dry_run"] is True
        assert payload["dependencies"] == [
            {
                "package": "app",
                "dependency": "demo",
                "candidates": ["a", "b", "c"],
                "removable": ["a", "b"],
                "applied": False,
            }
        ]
        assert manifest.read_text(encoding="utf-8") == MANIFEST
        assert created == [(["cargo", "check"], manifest.parent.resolve(), None)]

    def test_check_command_option(self, manifest, static_registry, scripted_oracle):
        created = []
        factory = _oracle_factory(manifest, scripted_oracle, lambda text: False, created)

        with patch.object(prune_module, "CommandOracle", side_effect=factory):
            result = runner.invoke(
                app,
                ["prune", "--manifest-path", str(manifest), "--check-command", "cargo test --no-run"],
            )

        assert result.exit_code == 0, result.output
        assert created[0][0] == ["cargo", "test", "--no-run"]
        assert "No features could be removed." in result.output

    def test_prune_applies_and_prints_table(self, manifest, static_registry, scripted_oracle):
        factory = _oracle_factory(manifest, scripted_oracle, lambda text: True, [])

        with patch.object(prune_module, "CommandOracle", side_effect=factory):
            result = runner.invoke(app, ["--manifest-path", str(manifest), "prune"])

        assert result.exit_code == 0, result.output
        assert "Removed features" in result.output
        assert "demo" in result.output
        assert 'demo = "1.2"' not in manifest.read_text(encoding="utf-8")
        assert "default-features = false" in manifest.read_text(encoding="utf-8")

    def test_malformed_ignore_list_is_reported(self, manifest, static_registry):
        (manifest.parent / "Features.toml").write_text('demo = "c"\n', encoding="utf-8")

        result = runner.invoke(app, ["--manifest-path", str(manifest), "prune", "--dry-run"])

        assert result.exit_code == 1
        assert "error: Invalid Features.toml format" in result.output

    def test_missing_manifest(self, tmp_path):
        result = runner.invoke(app, ["prune", "--manifest-path", str(tmp_path / "Cargo.toml")])

        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_cancelled_run_exits_130(self, manifest, static_registry, scripted_oracle):
        factory = _oracle_factory(manifest, scripted_oracle, lambda text: True, [])

        with (
            patch.object(prune_module, "CommandOracle", side_effect=factory),
            patch.object(prune_module.CancelFlag, "is_set", return_value=True),
        ):
            result = runner.invoke(app, ["--manifest-path", str(manifest), "prune", "--json"])

        assert result.exit_code == 130
        assert json.loads(result.stdout)["cancelled"] is True
        assert manifest.read_text(encoding="utf-8") == MANIFEST


class TestEdit:
    def test_opens_requested_dependency(self, manifest, static_registry):
        opened = []

        def fake_run(self, read_key=None):
            opened.append((self.state, self.current_dependency().name))

        with patch.object(Editor, "run", fake_run):
            result = runner.invoke(app, ["--manifest-path", str(manifest), "-d", "demo"])

        assert result.exit_code == 0, result.output
        assert opened == [(EditorState.FEATURE, "demo")]

    def test_unknown_dependency(self, manifest, static_registry):
        with patch.object(Editor, "run") as run:
            result = runner.invoke(app, ["--manifest-path", str(manifest), "-d", "nope"])

        assert result.exit_code == 1
        assert "error: dependency nope not found in app" in result.output
        run.assert_not_called()

    def test_manifest_without_dependencies(self, write_manifest, static_registry):
        path = write_manifest('[package]\nname = "empty"\n')

        result = runner.invoke(app, ["--manifest-path", str(path)])

        assert result.exit_code == 1
        assert "no dependencies were found" in result.output


def test_cancel_flag_request():
    flag = prune_module.CancelFlag()
    assert not flag.is_set()
    flag.request()
    assert flag.is_set()


def test_main_strips_cargo_subcommand(monkeypatch):
    calls = []
    monkeypatch.setattr(cargo_features, "app", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setattr("sys.argv", ["cargo-features", "features", "prune", "--dry-run"])

    cargo_features.main()

    assert calls == [{"args": ["prune", "--dry-run"], "prog_name": "cargo features"}]
