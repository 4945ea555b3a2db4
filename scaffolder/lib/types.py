"""
Shared data types for scaffolder.

This module contains the dataclasses passed between the template parser,
the item orchestrator and the phase orchestrator, kept here to avoid
circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class ItemKind(Enum):
    """Work-item kinds, values match the work-tracking type names."""

    EPIC = "Epic"
    FEATURE = "Feature"
    USER_STORY = "User Story"
    TASK = "Task"
    BUG = "Bug"


# Creation order is also dependency order: children reference parents by name
KIND_ORDER = [
    ItemKind.EPIC,
    ItemKind.FEATURE,
    ItemKind.USER_STORY,
    ItemKind.TASK,
    ItemKind.BUG,
]


@dataclass(frozen=True)
class CreationItem:
    """One fully-resolved item to create. Remote-system agnostic."""
    kind: ItemKind
    title: str
    fields: Mapping = field(default_factory=dict)

    def __post_init__(self):
        # read-only view over a private copy
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))


@dataclass
class CreationBatch:
    """Items grouped by kind, each list in template insertion order."""
    epics: list[CreationItem] = field(default_factory=list)
    features: list[CreationItem] = field(default_factory=list)
    user_stories: list[CreationItem] = field(default_factory=list)
    tasks: list[CreationItem] = field(default_factory=list)
    bugs: list[CreationItem] = field(default_factory=list)

    def items_of(self, kind: ItemKind) -> list[CreationItem]:
        return {
            ItemKind.EPIC: self.epics,
            ItemKind.FEATURE: self.features,
            ItemKind.USER_STORY: self.user_stories,
            ItemKind.TASK: self.tasks,
            ItemKind.BUG: self.bugs,
        }[kind]

    def add(self, item: CreationItem) -> None:
        self.items_of(item.kind).append(item)

    def total(self) -> int:
        return sum(len(self.items_of(kind)) for kind in KIND_ORDER)

    def counts(self) -> dict[str, int]:
        """Planned item count per kind, keyed by kind value."""
        return {kind.value: len(self.items_of(kind)) for kind in KIND_ORDER}


@dataclass(frozen=True)
class RelationshipRequest:
    """Parent -> child link declared at parse time, resolved after creation."""
    parent_kind: ItemKind
    parent_name: str
    child_kind: ItemKind
    child_name: str

    def __str__(self):
        return (
            f"{self.parent_kind.value} '{self.parent_name}' -> "
            f"{self.child_kind.value} '{self.child_name}'"
        )


@dataclass(frozen=True)
class CreatedItem:
    """A CreationItem that now exists remotely."""
    remote_id: int | str
    kind: ItemKind
    title: str
    fields: dict = field(default_factory=dict)


@dataclass
class CreationError(Exception):
    """An item could not be created after its retry budget was spent."""
    kind: ItemKind
    title: str
    message: str
    attempts: int

    def __str__(self):
        return f"[{self.kind.value}] {self.title}: {self.message} (after {self.attempts} attempt(s))"


@dataclass
class RelationshipError(Exception):
    """A relationship could not be established.

    Either an endpoint never got a remote id (unresolved) or the link call
    itself failed.
    """
    request: RelationshipRequest
    message: str
    unresolved: bool = False

    def __str__(self):
        return f"[relationship] {self.request}: {self.message}"


@dataclass
class OrchestrationSummary:
    """Per-kind planned/created counts for one orchestration call."""
    planned: dict[str, int]
    created: dict[str, int]
    relationships_planned: int
    relationships_linked: int

    @property
    def total_planned(self) -> int:
        return sum(self.planned.values())

    @property
    def total_created(self) -> int:
        return sum(self.created.values())

    @property
    def failure_rate(self) -> float:
        """Percentage of planned items that were not created."""
        if self.total_planned == 0:
            return 0.0
        return (self.total_planned - self.total_created) / self.total_planned * 100


@dataclass(frozen=True)
class OrchestrationOutcome:
    """Result of one item orchestration call. Never mutated after return."""
    created: tuple[CreatedItem, ...]
    failed: tuple[CreationError, ...]
    relationships_linked: int
    warnings: tuple[str, ...]
    relationship_errors: tuple[RelationshipError, ...] = ()
    missing_after_create: tuple = ()
    summary: OrchestrationSummary | None = None
    dry_run: bool = False
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return not self.failed and not self.relationship_errors and not self.missing_after_create
