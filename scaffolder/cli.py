#!/usr/bin/env python3
"""scaffold CLI entrypoint."""

import sys
import argparse
import logging
from pathlib import Path

from scaffolder.lib.config import SettingsError, load_settings
from scaffolder.lib.constants import EXIT_ERROR
from scaffolder.commands import plan as cmd_plan_module
from scaffolder.commands import templates as cmd_templates_module
from scaffolder.commands import validate as cmd_validate_module


def get_settings(args):
    """Load settings from --config-dir (or the working directory)."""
    config_dir = Path(args.config_dir) if args.config_dir else Path.cwd()
    settings = load_settings(config_dir)
    if args.templates_dir:
        settings = settings.with_overrides(templates_dir=Path(args.templates_dir))
    return settings


def cmd_validate(args, settings):
    return cmd_validate_module.cmd_validate(args, settings)


def cmd_plan(args, settings):
    return cmd_plan_module.cmd_plan(args, settings)


def cmd_templates(args, settings):
    return cmd_templates_module.cmd_templates(args, settings)


def main(argv=None):
    parser = argparse.ArgumentParser(prog='scaffold', description='Project scaffolding CLI')
    parser.add_argument('--config-dir', '-c', help='Directory containing scaffolder.env')
    parser.add_argument('--templates-dir', '-t', help='Extra template directory (shadows bundled templates)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # scaffold validate
    p_validate = subparsers.add_parser('validate', help='Validate a template')
    p_validate.add_argument('template', help='Template name or path to a .yaml file')
    p_validate.set_defaults(func=cmd_validate)

    # scaffold plan
    p_plan = subparsers.add_parser('plan', help='Dry-run project creation')
    p_plan.add_argument('template', nargs='?', help='Template name (default from settings)')
    p_plan.add_argument('--project-name', '-n', required=True, help='Project name')
    p_plan.add_argument('--skip-identity', action='store_true', help='Leave out app registration')
    p_plan.add_argument('--skip-work-tracking', action='store_true', help='Leave out work items')
    p_plan.add_argument('--skip-platform', action='store_true', help='Leave out environments and solutions')
    p_plan.set_defaults(func=cmd_plan)

    # scaffold templates
    p_templates = subparsers.add_parser('templates', help='List available templates')
    p_templates.set_defaults(func=cmd_templates)

    args = parser.parse_args(argv)

    try:
        settings = get_settings(args)
    except SettingsError as e:
        print(f"ERROR: {e}")
        return EXIT_ERROR

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args, settings)


if __name__ == '__main__':
    sys.exit(main())
