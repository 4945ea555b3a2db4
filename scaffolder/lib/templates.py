"""
Project template loading.

Templates are YAML files validated against template.schema.json and
mapped onto immutable dataclasses. Reference checks (features pointing at
epics and so on) belong to the template parser, not here.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from scaffolder.lib import validate
from scaffolder.lib.constants import DEFAULT_TEMPLATE, TEMPLATE_SUFFIX

logger = logging.getLogger(__name__)

BUNDLED_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class TemplateNotFound(Exception):
    """No template file with the requested name."""

    def __init__(self, name: str, searched: list[Path]):
        self.name = name
        self.searched = searched
        dirs = ", ".join(str(d) for d in searched)
        super().__init__(f"Template '{name}' not found (searched: {dirs})")


@dataclass(frozen=True)
class EpicTemplate:
    name: str
    description: str = ""
    estimated_effort: str = ""
    priority: int | None = None
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class FeatureTemplate:
    name: str
    epic: str
    description: str = ""
    user_stories: tuple[str, ...] = ()


@dataclass(frozen=True)
class BugTemplate:
    name: str
    description: str = ""
    user_story: str | None = None
    priority: int | None = None


@dataclass(frozen=True)
class EnvironmentTemplate:
    name: str
    short_name: str = ""
    type: str = "development"
    region: str | None = None
    description: str = ""
    dataverse: bool = True


@dataclass(frozen=True)
class PublisherTemplate:
    unique_name: str
    prefix: str
    friendly_name: str = ""
    option_value_prefix: int = 10000


@dataclass(frozen=True)
class SolutionTemplate:
    unique_name: str
    friendly_name: str = ""
    version: str = "1.0.0.0"
    description: str = ""
    components: tuple[dict, ...] = ()


@dataclass(frozen=True)
class ProjectTemplate:
    """A resolved project template. Immutable input to the orchestrators."""
    name: str
    description: str = ""
    version: str = "1.0.0"
    duration_weeks: int = 0
    epics: tuple[EpicTemplate, ...] = ()
    features: tuple[FeatureTemplate, ...] = ()
    bugs: tuple[BugTemplate, ...] = ()
    environments: tuple[EnvironmentTemplate, ...] = ()
    publisher: PublisherTemplate | None = None
    solutions: tuple[SolutionTemplate, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectTemplate":
        """Build from a schema-valid template document."""
        work_items = data.get("work_items") or {}
        platform = data.get("platform") or {}

        epics = tuple(
            EpicTemplate(
                name=e["name"],
                description=e.get("description", ""),
                estimated_effort=str(e.get("estimated_effort", "")),
                priority=e.get("priority"),
                features=tuple(e.get("features", [])),
            )
            for e in work_items.get("epics", [])
        )
        features = tuple(
            FeatureTemplate(
                name=f["name"],
                epic=f["epic"],
                description=f.get("description", ""),
                user_stories=tuple(f.get("user_stories", [])),
            )
            for f in work_items.get("features", [])
        )
        bugs = tuple(
            BugTemplate(
                name=b["name"],
                description=b.get("description", ""),
                user_story=b.get("user_story"),
                priority=b.get("priority"),
            )
            for b in work_items.get("bugs", [])
        )
        environments = tuple(EnvironmentTemplate(**env) for env in platform.get("environments", []))
        publisher = PublisherTemplate(**platform["publisher"]) if platform.get("publisher") else None
        solutions = tuple(
            SolutionTemplate(
                unique_name=s["unique_name"],
                friendly_name=s.get("friendly_name", ""),
                version=s.get("version", "1.0.0.0"),
                description=s.get("description", ""),
                components=tuple(s.get("components", [])),
            )
            for s in platform.get("solutions", [])
        )

        return cls(
            name=data["name"],
            description=data.get("description", ""),
            version=data.get("version", "1.0.0"),
            duration_weeks=data.get("duration_weeks", 0),
            epics=epics,
            features=features,
            bugs=bugs,
            environments=environments,
            publisher=publisher,
            solutions=solutions,
        )


def load_template(path: Path) -> ProjectTemplate:
    """Load and schema-check a template file.

    Raises:
        SchemaError: If the file is missing, not YAML, or off-schema
    """
    data = validate.validate_yaml_file(Path(path), "template")
    template = ProjectTemplate.from_dict(data)
    logger.debug(f"Loaded template '{template.name}' v{template.version} from {path}")
    return template


def _search_dirs(templates_dir: Path | None) -> list[Path]:
    dirs = []
    if templates_dir:
        dirs.append(Path(templates_dir))
    dirs.append(BUNDLED_TEMPLATES_DIR)
    return dirs


def resolve_template(name: str | None, templates_dir: Path | None = None) -> ProjectTemplate:
    """Find a template by name; a configured directory shadows bundled templates.

    Raises:
        TemplateNotFound: If no <name>.yaml exists in any search directory
    """
    name = name or DEFAULT_TEMPLATE
    searched = _search_dirs(templates_dir)
    for directory in searched:
        candidate = directory / f"{name}{TEMPLATE_SUFFIX}"
        if candidate.exists():
            return load_template(candidate)
    raise TemplateNotFound(name, searched)


def list_templates(templates_dir: Path | None = None) -> list[tuple[str, Path]]:
    """List (name, path) of available templates, configured dir first."""
    seen = set()
    found = []
    for directory in _search_dirs(templates_dir):
        if not directory.is_dir():
            continue
        for path in sorted(directory.glob(f"*{TEMPLATE_SUFFIX}")):
            if path.stem not in seen:
                seen.add(path.stem)
                found.append((path.stem, path))
    return found
