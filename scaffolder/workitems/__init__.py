"""
Work item creation for scaffolder.

Parses a project template into a flat creation batch and drives it
against a work-tracking system, rebuilding the hierarchy with links.
"""

from scaffolder.workitems.template_parser import (
    ParseConfig,
    ParseMetadata,
    ParseResult,
    TemplateParser,
    TemplateValidationError,
    parse_template,
    validate_template,
)
from scaffolder.workitems.orchestrator import (
    ItemOrchestrator,
    OrchestrationAborted,
    orchestrate,
)

__all__ = [
    "ParseConfig",
    "ParseMetadata",
    "ParseResult",
    "TemplateParser",
    "TemplateValidationError",
    "parse_template",
    "validate_template",
    "ItemOrchestrator",
    "OrchestrationAborted",
    "orchestrate",
]
