"""
scaffold templates - List available templates.
"""

from scaffolder.lib.config import Settings
from scaffolder.lib.constants import EXIT_SUCCESS
from scaffolder.lib.templates import list_templates


def cmd_templates(args, settings: Settings) -> int:
    found = list_templates(settings.templates_dir)
    if not found:
        print("Templates: none")
        return EXIT_SUCCESS

    print("Templates")
    print("-" * 60)
    for name, path in found:
        marker = " (default)" if name == settings.default_template else ""
        print(f"  {name:<24} {path}{marker}")
    return EXIT_SUCCESS
