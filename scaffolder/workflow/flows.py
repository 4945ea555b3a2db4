"""Prefect flow wrapping project creation.

The flow adds run tracking in Prefect on top of PhaseOrchestrator; all
behaviour lives in the orchestrator. Outside a flow run (tests calling
`scaffold_project.fn`) messages go to the module logger instead.
"""

import logging

from prefect import flow, get_run_logger
from prefect.exceptions import MissingContextError

from scaffolder.workflow.engine import PhaseOrchestrator, ProjectCreationResult, ProjectRequest

logger = logging.getLogger(__name__)


def _run_logger():
    try:
        return get_run_logger()
    except MissingContextError:
        return logger


@flow(
    name="project-scaffold",
    persist_result=False,
    retries=0,
    validate_parameters=False,
)
async def scaffold_project(orchestrator: PhaseOrchestrator, request: ProjectRequest) -> ProjectCreationResult:
    """Create one project through the given orchestrator.

    Args:
        orchestrator: Configured PhaseOrchestrator (clients, settings, registry)
        request: What to create

    Returns:
        ProjectCreationResult; phase failures are in its warnings
    """
    log = _run_logger()
    log.info(f"Starting project scaffold: {request.project_name}")

    result = await orchestrator.create_project(request)

    log.info(
        f"Project scaffold {result.status}: {result.project_name} "
        f"({result.completed_steps}/{result.total_steps} steps, {len(result.warnings)} warning(s))"
    )
    for warning in result.warnings:
        log.warning(warning)
    return result
