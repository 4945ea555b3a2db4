"""
Template parser: project template -> flat creation batch.

Turns the epic/feature/user-story tree (parents referenced by name) into a
CreationBatch plus the parent->child RelationshipRequests to establish once
the items exist remotely. Pure: no I/O, no hidden state.
"""

import re
from dataclasses import dataclass, field

from scaffolder.lib.templates import EpicTemplate, FeatureTemplate, BugTemplate, ProjectTemplate
from scaffolder.lib.types import CreationBatch, CreationItem, ItemKind, RelationshipRequest

BASE_TASK_TYPES = ["Analysis", "Implementation", "Testing"]

# Story title keyword -> extra synthesized tasks
KEYWORD_TASK_TYPES = [
    ("environment", ["Configuration", "Deployment"]),
    ("security", ["Security Review", "Compliance Check"]),
    ("data", ["Data Modeling", "Migration"]),
]

TASK_DESCRIPTIONS = {
    "Analysis": "Analyze requirements and design approach for: {story}",
    "Implementation": "Implement the solution for: {story}",
    "Testing": "Test the implementation for: {story}",
    "Configuration": "Configure system settings for: {story}",
    "Deployment": "Deploy and validate: {story}",
    "Security Review": "Conduct security review for: {story}",
    "Compliance Check": "Verify compliance requirements for: {story}",
    "Data Modeling": "Design and validate data model for: {story}",
    "Migration": "Plan and execute data migration for: {story}",
}

TASK_EFFORT = {
    "Analysis": 2,
    "Implementation": 5,
    "Testing": 3,
    "Configuration": 2,
    "Deployment": 3,
    "Security Review": 2,
    "Compliance Check": 1,
    "Data Modeling": 4,
    "Migration": 4,
}

STORY_COMPLEXITY_KEYWORDS = ["create", "configure", "setup", "deploy"]

POINTS_PER_SPRINT = 5
POINTS_PER_WEEK = 2

EFFORT_RE = re.compile(r'(\d+)')


class TemplateValidationError(Exception):
    """Template has dangling references or missing required parts."""

    def __init__(self, errors: list[str], operation_id: str | None = None):
        self.errors = errors
        self.operation_id = operation_id
        super().__init__(f"Template validation failed: {'; '.join(errors)}")


@dataclass(frozen=True)
class ParseConfig:
    """Per-project defaults applied to every synthesized item."""
    project: str
    default_priority: int = 2
    default_effort: int = 3
    area_path: str | None = None
    iteration_path: str | None = None
    assigned_to: str | None = None
    tags: tuple[str, ...] = ("S-Project", "Generated")


@dataclass(frozen=True)
class ParseMetadata:
    template_name: str
    template_version: str
    estimated_duration_weeks: int
    counts: dict = field(default_factory=dict)

    @property
    def total_items(self) -> int:
        return sum(self.counts.values())


@dataclass(frozen=True)
class ParseResult:
    batch: CreationBatch
    relationships: tuple[RelationshipRequest, ...]
    metadata: ParseMetadata


def validate_template(template: ProjectTemplate) -> list[str]:
    """Check names and cross-references. Returns every problem found."""
    errors = []

    if not template.name or not template.name.strip():
        errors.append("Template name is required")

    if not template.epics:
        errors.append("At least one epic is required")

    feature_names = {f.name for f in template.features}
    epic_names = {e.name for e in template.epics}

    for epic in template.epics:
        for feature_name in epic.features:
            if feature_name not in feature_names:
                errors.append(f"Feature '{feature_name}' referenced in epic '{epic.name}' does not exist")

    for feature in template.features:
        if feature.epic not in epic_names:
            errors.append(f"Epic '{feature.epic}' referenced in feature '{feature.name}' does not exist")

    story_names = {story for f in template.features for story in f.user_stories}
    for bug in template.bugs:
        if bug.user_story and bug.user_story not in story_names:
            errors.append(f"User story '{bug.user_story}' referenced in bug '{bug.name}' does not exist")

    return errors


def task_types_for(story: str) -> list[str]:
    """Standard tasks plus keyword-triggered extras, in a stable order."""
    lowered = story.lower()
    types = list(BASE_TASK_TYPES)
    for keyword, extras in KEYWORD_TASK_TYPES:
        if keyword in lowered:
            types.extend(extras)
    return types


def task_title(task_type: str, story: str) -> str:
    return f"{task_type}: {story}"


class TemplateParser:
    """Parse a ProjectTemplate into a CreationBatch and relationships."""

    def __init__(self, config: ParseConfig):
        self.config = config

    @classmethod
    def for_project(cls, project: str, tags: tuple[str, ...] | None = None) -> "TemplateParser":
        if tags is None:
            return cls(ParseConfig(project=project))
        return cls(ParseConfig(project=project, tags=tags))

    @staticmethod
    def validate(template: ProjectTemplate) -> list[str]:
        return validate_template(template)

    def parse(self, template: ProjectTemplate) -> ParseResult:
        batch = CreationBatch()
        relationships: list[RelationshipRequest] = []

        for epic in template.epics:
            batch.add(self._epic_item(epic))

            for feature in (f for f in template.features if f.epic == epic.name):
                batch.add(self._feature_item(feature))
                relationships.append(RelationshipRequest(
                    ItemKind.EPIC, epic.name, ItemKind.FEATURE, feature.name,
                ))

                for story in feature.user_stories:
                    batch.add(self._story_item(story, feature.name))
                    relationships.append(RelationshipRequest(
                        ItemKind.FEATURE, feature.name, ItemKind.USER_STORY, story,
                    ))

                    for task in self._task_items(story):
                        batch.add(task)
                        relationships.append(RelationshipRequest(
                            ItemKind.USER_STORY, story, ItemKind.TASK, task.title,
                        ))

        for bug in template.bugs:
            batch.add(self._bug_item(bug))
            if bug.user_story:
                relationships.append(RelationshipRequest(
                    ItemKind.USER_STORY, bug.user_story, ItemKind.BUG, bug.name,
                ))

        metadata = ParseMetadata(
            template_name=template.name,
            template_version=template.version,
            estimated_duration_weeks=template.duration_weeks,
            counts=batch.counts(),
        )
        return ParseResult(batch=batch, relationships=tuple(relationships), metadata=metadata)

    # --- item synthesis ---

    def _common_fields(self) -> dict:
        fields = {}
        if self.config.area_path:
            fields["area_path"] = self.config.area_path
        if self.config.iteration_path:
            fields["iteration_path"] = self.config.iteration_path
        if self.config.assigned_to:
            fields["assigned_to"] = self.config.assigned_to
        return fields

    def _tags(self, *tags: str) -> str:
        return "; ".join(t for t in [*tags, *self.config.tags] if t and t.strip())

    def _epic_item(self, epic: EpicTemplate) -> CreationItem:
        fields = {
            "title": epic.name,
            "description": epic.description,
            "priority": epic.priority or self.config.default_priority,
            "effort": self.parse_effort(epic.estimated_effort),
            "tags": self._tags("Epic", "Template"),
            **self._common_fields(),
        }
        return CreationItem(ItemKind.EPIC, epic.name, fields)

    def _feature_item(self, feature: FeatureTemplate) -> CreationItem:
        fields = {
            "title": feature.name,
            "description": feature.description,
            "priority": self.config.default_priority,
            "effort": self.config.default_effort,
            "tags": self._tags("Feature", "Template", feature.epic),
            **self._common_fields(),
        }
        return CreationItem(ItemKind.FEATURE, feature.name, fields)

    def _story_item(self, story: str, feature_name: str) -> CreationItem:
        fields = {
            "title": story,
            "description": story_description(story, feature_name),
            "acceptance_criteria": acceptance_criteria(story),
            "priority": self.config.default_priority,
            "effort": estimate_story_effort(story),
            "tags": self._tags("User Story", "Template", feature_name),
            **self._common_fields(),
        }
        return CreationItem(ItemKind.USER_STORY, story, fields)

    def _task_items(self, story: str) -> list[CreationItem]:
        tasks = []
        for task_type in task_types_for(story):
            title = task_title(task_type, story)
            description = TASK_DESCRIPTIONS.get(
                task_type, f"Complete {task_type.lower()} work for: {{story}}"
            ).format(story=story)
            fields = {
                "title": title,
                "description": description,
                "priority": self.config.default_priority,
                "effort": TASK_EFFORT.get(task_type, 2),
                "tags": self._tags("Task", "Template", task_type),
                **self._common_fields(),
            }
            tasks.append(CreationItem(ItemKind.TASK, title, fields))
        return tasks

    def _bug_item(self, bug: BugTemplate) -> CreationItem:
        fields = {
            "title": bug.name,
            "description": bug.description,
            "priority": bug.priority or self.config.default_priority,
            "tags": self._tags("Bug", "Template"),
            **self._common_fields(),
        }
        return CreationItem(ItemKind.BUG, bug.name, fields)

    def parse_effort(self, effort: str) -> int:
        """'1 sprint' -> 5, '2 weeks' -> 4, '3' -> 3, anything else -> default."""
        match = EFFORT_RE.search(effort or "")
        if not match:
            return self.config.default_effort
        number = int(match.group(1))
        if "sprint" in effort:
            return number * POINTS_PER_SPRINT
        if "week" in effort:
            return number * POINTS_PER_WEEK
        return number


def estimate_story_effort(story: str) -> int:
    lowered = story.lower()
    hits = sum(1 for keyword in STORY_COMPLEXITY_KEYWORDS if keyword in lowered)
    if hits >= 2:
        return 8
    if hits == 1:
        return 5
    return 3


def story_description(story: str, feature_name: str) -> str:
    return (
        f"As a user of the {feature_name} feature, I want to {story.lower()} "
        f"so that I can achieve my business objectives effectively.\n\n"
        f"This user story is part of the {feature_name} feature and contributes "
        f"to the overall project goals.\n\n"
        f"## Context\n"
        f"Generated from a project template; refine with specific business requirements."
    )


def acceptance_criteria(story: str) -> str:
    criteria = [
        f"Given that I am working with {story.lower()}",
        "When I perform the required actions",
        "Then the system should respond appropriately",
        "And all security and performance requirements are met",
    ]
    return "\n".join(f"{i}. {c}" for i, c in enumerate(criteria, 1))


def parse_template(template: ProjectTemplate, config: ParseConfig | None = None) -> ParseResult:
    """Validate then parse.

    Raises:
        TemplateValidationError: with every problem found
    """
    errors = validate_template(template)
    if errors:
        raise TemplateValidationError(errors)
    parser = TemplateParser(config or ParseConfig(project=template.name))
    return parser.parse(template)
