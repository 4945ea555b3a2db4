"""Tests for scaffolder.workitems.template_parser module."""

import pytest

from scaffolder.lib.templates import BugTemplate, EpicTemplate, FeatureTemplate, ProjectTemplate
from scaffolder.lib.types import CreationItem, ItemKind, RelationshipRequest
from scaffolder.workitems.template_parser import (
    ParseConfig,
    TemplateParser,
    TemplateValidationError,
    estimate_story_effort,
    parse_template,
    task_title,
    task_types_for,
    validate_template,
)


def small_template(**overrides) -> ProjectTemplate:
    """1 epic / 1 feature / 1 story."""
    values = dict(
        name="Small",
        version="2.1.0",
        duration_weeks=4,
        epics=(EpicTemplate("Setup", "Initial setup", "1 sprint", 1, ("Config",)),),
        features=(FeatureTemplate("Config", "Setup", "Configure things", ("Create env",)),),
    )
    values.update(overrides)
    return ProjectTemplate(**values)


@pytest.fixture
def parser():
    return TemplateParser(ParseConfig(project="Demo"))


class TestValidateTemplate:
    """Tests for validate_template()."""

    def test_valid_template_has_no_errors(self):
        assert validate_template(small_template()) == []

    def test_reports_every_dangling_reference(self):
        """All problems are collected, not just the first."""
        template = small_template(
            epics=(
                EpicTemplate("Setup", features=("Config", "Ghost A")),
                EpicTemplate("Other", features=("Ghost B",)),
            ),
            features=(
                FeatureTemplate("Config", "Setup"),
                FeatureTemplate("Orphan", "Nowhere"),
            ),
        )
        errors = validate_template(template)
        assert len(errors) == 3
        assert any("'Ghost A'" in e for e in errors)
        assert any("'Ghost B'" in e for e in errors)
        assert any("'Nowhere'" in e and "'Orphan'" in e for e in errors)

    def test_missing_name_and_epics(self):
        errors = validate_template(ProjectTemplate(name=" "))
        assert "Template name is required" in errors
        assert "At least one epic is required" in errors

    def test_bug_with_unknown_story(self):
        template = small_template(bugs=(BugTemplate("Crash", user_story="No such story"),))
        errors = validate_template(template)
        assert errors == ["User story 'No such story' referenced in bug 'Crash' does not exist"]

    def test_parse_template_raises_with_all_errors(self):
        template = small_template(features=(FeatureTemplate("Config", "Missing"),))
        with pytest.raises(TemplateValidationError) as exc:
            parse_template(template)
        assert len(exc.value.errors) == 1
        assert "Missing" in str(exc.value)


class TestParseSmallTemplate:
    """One epic, one feature, one story."""

    def test_item_counts(self, parser):
        result = parser.parse(small_template())
        batch = result.batch
        assert [i.title for i in batch.epics] == ["Setup"]
        assert [i.title for i in batch.features] == ["Config"]
        assert [i.title for i in batch.user_stories] == ["Create env"]
        assert [i.title for i in batch.tasks] == [
            "Analysis: Create env",
            "Implementation: Create env",
            "Testing: Create env",
        ]
        assert batch.bugs == []

    def test_relationships(self, parser):
        result = parser.parse(small_template())
        assert result.relationships == (
            RelationshipRequest(ItemKind.EPIC, "Setup", ItemKind.FEATURE, "Config"),
            RelationshipRequest(ItemKind.FEATURE, "Config", ItemKind.USER_STORY, "Create env"),
            RelationshipRequest(ItemKind.USER_STORY, "Create env", ItemKind.TASK, "Analysis: Create env"),
            RelationshipRequest(ItemKind.USER_STORY, "Create env", ItemKind.TASK, "Implementation: Create env"),
            RelationshipRequest(ItemKind.USER_STORY, "Create env", ItemKind.TASK, "Testing: Create env"),
        )

    def test_metadata(self, parser):
        metadata = parser.parse(small_template()).metadata
        assert metadata.template_name == "Small"
        assert metadata.template_version == "2.1.0"
        assert metadata.estimated_duration_weeks == 4
        assert metadata.counts["Task"] == 3
        assert metadata.total_items == 6

    def test_parse_is_repeatable(self, parser):
        """Same template, same output."""
        template = small_template()
        assert parser.parse(template) == parser.parse(template)

    def test_parse_does_not_depend_on_parser_instance(self):
        template = small_template()
        a = TemplateParser(ParseConfig(project="Demo")).parse(template)
        b = TemplateParser(ParseConfig(project="Demo")).parse(template)
        assert a == b


class TestItemFields:
    """Tests for synthesized item fields."""

    def test_epic_fields(self, parser):
        epic = parser.parse(small_template()).batch.epics[0]
        assert epic.fields["title"] == "Setup"
        assert epic.fields["priority"] == 1
        assert epic.fields["effort"] == 5  # 1 sprint
        assert epic.fields["tags"] == "Epic; Template; S-Project; Generated"

    def test_feature_tags_carry_epic(self, parser):
        feature = parser.parse(small_template()).batch.features[0]
        assert feature.fields["tags"] == "Feature; Template; Setup; S-Project; Generated"

    def test_story_fields(self, parser):
        story = parser.parse(small_template()).batch.user_stories[0]
        assert "Config feature" in story.fields["description"]
        assert story.fields["acceptance_criteria"].startswith("1. Given that I am working with create env")
        assert story.fields["effort"] == 5  # "create"

    def test_optional_paths_only_when_configured(self):
        plain = TemplateParser(ParseConfig(project="Demo")).parse(small_template())
        assert "area_path" not in plain.batch.epics[0].fields

        configured = TemplateParser(ParseConfig(
            project="Demo", area_path="Demo\\Core", iteration_path="Demo\\Sprint 1", assigned_to="lead@example.test",
        )).parse(small_template())
        fields = configured.batch.tasks[0].fields
        assert fields["area_path"] == "Demo\\Core"
        assert fields["iteration_path"] == "Demo\\Sprint 1"
        assert fields["assigned_to"] == "lead@example.test"

    def test_custom_tags(self):
        parser = TemplateParser.for_project("Demo", tags=("Pilot",))
        epic = parser.parse(small_template()).batch.epics[0]
        assert epic.fields["tags"] == "Epic; Template; Pilot"

    def test_fields_are_read_only(self, parser):
        """Produced items cannot be changed through their fields."""
        epic = parser.parse(small_template()).batch.epics[0]
        with pytest.raises(TypeError):
            epic.fields["title"] = "Changed"
        assert epic.fields["title"] == "Setup"

    def test_fields_do_not_alias_the_source_dict(self):
        source = {"title": "Setup"}
        item = CreationItem(ItemKind.EPIC, "Setup", source)
        source["title"] = "Changed"
        assert item.fields["title"] == "Setup"


class TestEffort:
    """Tests for effort parsing and story estimation."""

    @pytest.mark.parametrize("text,points", [
        ("1 sprint", 5),
        ("2 sprints", 10),
        ("3 weeks", 6),
        ("8", 8),
        ("", 3),
        ("a while", 3),
    ])
    def test_parse_effort(self, parser, text, points):
        assert parser.parse_effort(text) == points

    def test_story_effort_by_keywords(self):
        assert estimate_story_effort("Review documents") == 3
        assert estimate_story_effort("Configure security roles") == 5
        assert estimate_story_effort("Create and deploy the base solution") == 8


class TestTaskSynthesis:
    """Tests for keyword-driven task types."""

    def test_base_tasks(self):
        assert task_types_for("Build canvas intake app") == ["Analysis", "Implementation", "Testing"]

    def test_environment_keyword(self):
        types = task_types_for("Create production Environment")
        assert types[-2:] == ["Configuration", "Deployment"]

    def test_multiple_keywords_in_stable_order(self):
        types = task_types_for("Set up data environment security")
        assert types == [
            "Analysis", "Implementation", "Testing",
            "Configuration", "Deployment",
            "Security Review", "Compliance Check",
            "Data Modeling", "Migration",
        ]

    def test_task_title(self):
        assert task_title("Testing", "Set up connections") == "Testing: Set up connections"

    def test_keyword_tasks_are_linked_to_story(self, parser):
        template = small_template(
            features=(FeatureTemplate("Config", "Setup", user_stories=("Load data",)),),
        )
        result = parser.parse(template)
        assert len(result.batch.tasks) == 5
        task_links = [r for r in result.relationships if r.child_kind == ItemKind.TASK]
        assert all(r.parent_name == "Load data" for r in task_links)
        assert len(task_links) == 5


class TestBugs:
    """Tests for bug items."""

    def test_bug_with_story_is_linked(self, parser):
        template = small_template(bugs=(
            BugTemplate("Env creation times out", "Seen in test", user_story="Create env", priority=1),
            BugTemplate("Typo on form"),
        ))
        result = parser.parse(template)
        assert [b.title for b in result.batch.bugs] == ["Env creation times out", "Typo on form"]
        assert result.batch.bugs[0].fields["priority"] == 1
        assert result.batch.bugs[1].fields["priority"] == 2
        assert result.relationships[-1] == RelationshipRequest(
            ItemKind.USER_STORY, "Create env", ItemKind.BUG, "Env creation times out",
        )
        assert sum(1 for r in result.relationships if r.child_kind == ItemKind.BUG) == 1


class TestFeatureGrouping:
    """Features are emitted under their own epic, in template order."""

    def test_features_follow_their_epic(self, parser):
        template = ProjectTemplate(
            name="Two epics",
            epics=(EpicTemplate("A", features=("A1",)), EpicTemplate("B", features=("B1", "B2"))),
            features=(
                FeatureTemplate("B1", "B"),
                FeatureTemplate("A1", "A"),
                FeatureTemplate("B2", "B"),
            ),
        )
        result = parser.parse(template)
        assert [f.title for f in result.batch.features] == ["A1", "B1", "B2"]
        epic_links = [(r.parent_name, r.child_name) for r in result.relationships]
        assert epic_links == [("A", "A1"), ("B", "B1"), ("B", "B2")]
