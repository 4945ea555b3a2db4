"""Tests for scaffolder.lib.templates and scaffolder.lib.validate modules."""

import pytest

from scaffolder.lib.templates import (
    BUNDLED_TEMPLATES_DIR,
    TemplateNotFound,
    list_templates,
    load_template,
    resolve_template,
)
from scaffolder.lib.validate import SchemaError, collect_errors, validate
from scaffolder.workitems.template_parser import TemplateParser, ParseConfig, validate_template

LEAN_TEMPLATE = """\
name: "Lean"
version: "0.3.0"
work_items:
  epics:
    - name: "Discovery"
      estimated_effort: 2
      features: ["Interviews"]
  features:
    - name: "Interviews"
      epic: "Discovery"
      user_stories: ["Schedule stakeholder interviews"]
"""


class TestBundledTemplate:
    """The default template ships with the package and is consistent."""

    def test_default_resolves(self):
        template = resolve_template(None)
        assert template.name == "S Project Template"
        assert template.duration_weeks == 12
        assert len(template.epics) == 3
        assert len(template.features) == 7

    def test_passes_reference_checks(self):
        assert validate_template(resolve_template("s-project")) == []

    def test_platform_section(self):
        template = resolve_template("s-project")
        assert [e.short_name for e in template.environments] == ["dev", "test", "prod"]
        assert template.publisher.prefix == "def"
        assert template.solutions[0].unique_name == "CoreSolution"
        assert len(template.solutions[0].components) == 2

    def test_parses(self):
        result = TemplateParser(ParseConfig(project="Demo")).parse(resolve_template("s-project"))
        assert len(result.batch.user_stories) == 16
        assert len(result.batch.tasks) >= 16 * 3


class TestResolveTemplate:
    def test_not_found(self, tmp_path):
        with pytest.raises(TemplateNotFound) as exc:
            resolve_template("does-not-exist", tmp_path)
        assert exc.value.name == "does-not-exist"
        assert exc.value.searched == [tmp_path, BUNDLED_TEMPLATES_DIR]

    def test_configured_dir_shadows_bundled(self, tmp_path):
        (tmp_path / "s-project.yaml").write_text(LEAN_TEMPLATE)
        assert resolve_template("s-project", tmp_path).name == "Lean"

    def test_falls_back_to_bundled(self, tmp_path):
        assert resolve_template("s-project", tmp_path).name == "S Project Template"

    def test_integer_effort_is_text(self, tmp_path):
        path = tmp_path / "lean.yaml"
        path.write_text(LEAN_TEMPLATE)
        template = load_template(path)
        assert template.epics[0].estimated_effort == "2"
        assert template.features[0].user_stories == ("Schedule stakeholder interviews",)


class TestListTemplates:
    def test_bundled_only(self):
        names = [name for name, _ in list_templates()]
        assert "s-project" in names

    def test_configured_first_and_deduplicated(self, tmp_path):
        (tmp_path / "lean.yaml").write_text(LEAN_TEMPLATE)
        (tmp_path / "s-project.yaml").write_text(LEAN_TEMPLATE)
        found = list_templates(tmp_path)
        names = [name for name, _ in found]
        assert names[:2] == ["lean", "s-project"]
        assert names.count("s-project") == 1
        assert dict(found)["s-project"] == tmp_path / "s-project.yaml"


class TestSchemaValidation:
    """JSON-Schema checks report every violation."""

    def test_all_problems_reported(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text(
            "description: no name\n"
            "work_items:\n"
            "  epics:\n"
            "    - name: Setup\n"
            "      priority: 9\n"
            "      colour: blue\n"
        )
        with pytest.raises(SchemaError) as exc:
            load_template(path)
        problems = exc.value.problems
        assert len(problems) == 3
        assert any("'name' is a required property" in p for p in problems)
        assert any(p.startswith("work_items.epics.0.priority") for p in problems)
        assert any("colour" in p for p in problems)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: [unclosed\n")
        with pytest.raises(SchemaError, match="Invalid YAML"):
            load_template(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SchemaError, match="File not found"):
            load_template(tmp_path / "nope.yaml")

    def test_collect_errors_empty_when_valid(self):
        assert collect_errors({"MAX_RETRIES": "2"}, "settings") == []

    def test_validate_names_source(self):
        with pytest.raises(SchemaError) as exc:
            validate({"MAX_RETRIES": "x"}, "settings", source="scaffolder.env")
        assert "scaffolder.env" in str(exc.value)
