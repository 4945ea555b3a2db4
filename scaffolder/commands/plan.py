"""
scaffold plan - Dry-run a project: parse the template and show what would be created.
"""

import asyncio

from scaffolder.lib.config import Settings
from scaffolder.lib.constants import EXIT_ERROR, EXIT_INVALID, EXIT_SUCCESS
from scaffolder.lib.templates import TemplateNotFound
from scaffolder.lib.validate import SchemaError
from scaffolder.workflow.engine import PhaseOrchestrator, ProjectOptions, ProjectRequest
from scaffolder.workflow.progress import OperationRegistry
from scaffolder.workitems.template_parser import TemplateValidationError


def cmd_plan(args, settings: Settings) -> int:
    """Run a project-level dry run and print the plan."""
    request = ProjectRequest(
        project_name=args.project_name,
        template_name=args.template,
        options=ProjectOptions(
            dry_run=True,
            skip_identity=args.skip_identity,
            skip_work_tracking=args.skip_work_tracking,
            skip_platform=args.skip_platform,
        ),
    )
    orchestrator = PhaseOrchestrator(settings, registry=OperationRegistry())

    try:
        result = asyncio.run(orchestrator.create_project(request))
    except TemplateNotFound as e:
        print(f"ERROR: {e}")
        return EXIT_ERROR
    except SchemaError as e:
        print(f"INVALID: {e}")
        return EXIT_INVALID
    except TemplateValidationError as e:
        print("INVALID: template validation failed")
        for error in e.errors:
            print(f"  - {error}")
        return EXIT_INVALID

    plan = result.plan or {}
    print(f"Plan for '{result.project_name}' (template: {result.template_name})")
    print("-" * 60)
    print(f"  Operation:   {result.operation_id}")
    print(f"  Total steps: {result.total_steps}")

    identity = plan.get("identity")
    if identity:
        print(f"  Identity:    {identity['application']} ({identity['steps']} steps)")

    work = plan.get("work_tracking")
    if work:
        counts = ", ".join(f"{n} {kind}" for kind, n in work["items"].items() if n)
        print(f"  Work items:  {counts or 'none'}")
        print(f"  Links:       {work['relationships']}")

    platform = plan.get("platform")
    if platform:
        print(f"  Environments: {', '.join(platform['environments']) or 'none'}")
        print(f"  Publisher:   {platform['publisher'] or 'none'}")
        print(f"  Solutions:   {', '.join(platform['solutions']) or 'none'}")

    return EXIT_SUCCESS
