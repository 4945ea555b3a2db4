"""
scaffold validate - Check a template without touching any remote system.
"""

from pathlib import Path

from scaffolder.lib.config import Settings
from scaffolder.lib.constants import EXIT_ERROR, EXIT_INVALID, EXIT_SUCCESS, TEMPLATE_SUFFIX
from scaffolder.lib.templates import ProjectTemplate, TemplateNotFound, load_template, resolve_template
from scaffolder.lib.validate import SchemaError
from scaffolder.workitems.template_parser import validate_template


def load_named_or_path(template: str, settings: Settings) -> ProjectTemplate:
    """Accept either a template name or a path to a template file."""
    path = Path(template)
    if path.suffix == TEMPLATE_SUFFIX or path.exists():
        return load_template(path)
    return resolve_template(template, settings.templates_dir)


def cmd_validate(args, settings: Settings) -> int:
    """Schema and reference checks for one template."""
    try:
        template = load_named_or_path(args.template, settings)
    except TemplateNotFound as e:
        print(f"ERROR: {e}")
        return EXIT_ERROR
    except SchemaError as e:
        print(f"INVALID: {args.template}")
        for problem in e.problems:
            print(f"  - {problem}")
        return EXIT_INVALID

    errors = validate_template(template)
    if errors:
        print(f"INVALID: {template.name}")
        for error in errors:
            print(f"  - {error}")
        return EXIT_INVALID

    print(f"OK: {template.name} v{template.version}")
    print(f"  {len(template.epics)} epic(s), {len(template.features)} feature(s), "
          f"{len(template.environments)} environment(s), {len(template.solutions)} solution(s)")
    return EXIT_SUCCESS
