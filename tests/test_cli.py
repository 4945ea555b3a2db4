"""Tests for the scaffold CLI."""

import os

import pytest

from scaffolder.cli import main
from scaffolder.lib.constants import EXIT_ERROR, EXIT_INVALID, EXIT_SUCCESS

from tests.test_engine import BROKEN_TEMPLATE, DEMO_TEMPLATE


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Config dir with demo and broken templates, no SCAFFOLDER_* leakage."""
    for name in list(os.environ):
        if name.startswith("SCAFFOLDER_"):
            monkeypatch.delenv(name)
    (tmp_path / "demo.yaml").write_text(DEMO_TEMPLATE)
    (tmp_path / "broken.yaml").write_text(BROKEN_TEMPLATE)
    return tmp_path


def run_cli(workdir, *args):
    return main(["--config-dir", str(workdir), "--templates-dir", str(workdir), *args])


class TestValidateCommand:
    def test_bundled_template(self, workdir, capsys):
        assert run_cli(workdir, "validate", "s-project") == EXIT_SUCCESS
        assert "OK: S Project Template" in capsys.readouterr().out

    def test_template_by_path(self, workdir, capsys):
        assert run_cli(workdir, "validate", str(workdir / "demo.yaml")) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "OK: Demo Template v1.2.0" in out
        assert "3 environment(s)" in out

    def test_reference_errors(self, workdir, capsys):
        assert run_cli(workdir, "validate", "broken") == EXIT_INVALID
        assert "Feature 'Ghost' referenced in epic 'Setup' does not exist" in capsys.readouterr().out

    def test_schema_errors(self, workdir, capsys):
        path = workdir / "off-schema.yaml"
        path.write_text("name: x\n")
        assert run_cli(workdir, "validate", str(path)) == EXIT_INVALID
        assert "'work_items' is a required property" in capsys.readouterr().out

    def test_unknown_template(self, workdir, capsys):
        assert run_cli(workdir, "validate", "missing") == EXIT_ERROR
        assert "Template 'missing' not found" in capsys.readouterr().out


class TestPlanCommand:
    def test_plan(self, workdir, capsys):
        assert run_cli(workdir, "plan", "demo", "--project-name", "Acme") == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "Plan for 'Acme' (template: demo)" in out
        assert "Total steps: 15" in out
        assert "1 Epic, 1 Feature, 1 User Story, 3 Task" in out
        assert "Acme Dev, Acme Test, Acme Prod" in out

    def test_plan_with_skips(self, workdir, capsys):
        assert run_cli(workdir, "plan", "demo", "-n", "Acme", "--skip-identity", "--skip-platform") == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "Total steps: 7" in out
        assert "Identity:" not in out
        assert "Environments:" not in out

    def test_plan_invalid_template(self, workdir, capsys):
        assert run_cli(workdir, "plan", "broken", "-n", "Acme") == EXIT_INVALID
        assert "Ghost" in capsys.readouterr().out

    def test_plan_default_template(self, workdir, capsys):
        assert run_cli(workdir, "plan", "-n", "Acme") == EXIT_SUCCESS
        assert "(template: s-project)" in capsys.readouterr().out


class TestTemplatesCommand:
    def test_lists_configured_and_bundled(self, workdir, capsys):
        assert run_cli(workdir, "templates") == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "demo" in out
        assert "broken" in out
        assert "(default)" in out


class TestSettings:
    def test_bad_settings_file(self, workdir, capsys):
        (workdir / "scaffolder.env").write_text("PARALLEL_BATCH_SIZE=zero\n")
        assert run_cli(workdir, "templates") == EXIT_ERROR
        assert "PARALLEL_BATCH_SIZE" in capsys.readouterr().out

    def test_default_template_from_settings(self, workdir, capsys):
        (workdir / "scaffolder.env").write_text("DEFAULT_TEMPLATE=demo\n")
        assert run_cli(workdir, "plan", "-n", "Acme") == EXIT_SUCCESS
        assert "(template: demo)" in capsys.readouterr().out
