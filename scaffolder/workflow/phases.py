"""
Project phases: identity, work tracking, platform.

Each phase talks to one collaborator and returns a small result record.
A phase that cannot run at all raises PhaseError; the engine turns that
into a warning so sibling phases keep going. Partial trouble inside the
platform phase (one environment failing, a solution failing) is kept as
phase warnings rather than raised.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

from scaffolder.lib.clients import IdentityClient, PlatformClient, WorkTrackingClient
from scaffolder.lib.config import ItemOrchestratorConfig
from scaffolder.lib.constants import DEFAULT_APP_PERMISSIONS, MAX_CONCURRENT_ENVIRONMENTS
from scaffolder.lib.observer import OrchestrationObserver
from scaffolder.lib.templates import EnvironmentTemplate, ProjectTemplate, SolutionTemplate
from scaffolder.lib.types import OrchestrationOutcome
from scaffolder.workitems.orchestrator import ItemOrchestrator
from scaffolder.workitems.template_parser import ParseMetadata, ParseResult

IDENTITY = "identity"
WORK_TRACKING = "work_tracking"
PLATFORM = "platform"

# Warning prefix per phase when the phase as a whole fails
PHASE_LABELS = {
    IDENTITY: "App registration",
    WORK_TRACKING: "Work tracking",
    PLATFORM: "Platform",
}


@dataclass
class PhaseError(Exception):
    """A phase failed as a whole."""
    phase: str
    message: str
    details: Optional[dict] = None

    def __str__(self):
        return f"[{self.phase}] {self.message}"

    @property
    def warning(self) -> str:
        return f"{PHASE_LABELS.get(self.phase, self.phase)} failed: {self.message}"


@dataclass(frozen=True)
class AppRegistrationResult:
    app_id: str
    object_id: str
    service_principal_id: str | None = None
    client_secret: str | None = field(default=None, repr=False)
    secret_expires_at: str | None = None


@dataclass(frozen=True)
class WorkTrackingResult:
    outcome: OrchestrationOutcome
    metadata: ParseMetadata

    @property
    def items_created(self) -> int:
        return len(self.outcome.created)


@dataclass(frozen=True)
class EnvironmentResult:
    name: str
    environment_id: Any
    url: str


@dataclass(frozen=True)
class SolutionResult:
    unique_name: str
    solution_id: Any
    components_added: int = 0


@dataclass(frozen=True)
class PlatformResult:
    environments: tuple[EnvironmentResult, ...] = ()
    publisher_id: Any = None
    solutions: tuple[SolutionResult, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def solutions_created(self) -> int:
        return len(self.solutions)


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


async def _bounded(awaitable, timeout: float | None):
    if timeout:
        return await asyncio.wait_for(awaitable, timeout)
    return await awaitable


# --- identity ---

async def run_identity_phase(
    client: IdentityClient | None,
    project_name: str,
    observer: OrchestrationObserver,
    timeout: float | None = None,
) -> AppRegistrationResult:
    """Create application, service principal and client secret, in that order.

    Raises:
        PhaseError: If no client is configured or any step fails
    """
    if client is None:
        raise PhaseError(IDENTITY, "no identity client configured")

    app_name = f"{project_name} Service Principal"
    app = None
    try:
        observer.log("info", f"Creating application registration: {app_name}")
        app = await _bounded(client.create_application(app_name, list(DEFAULT_APP_PERMISSIONS)), timeout)
        observer.step_completed("Application registration")

        principal = await _bounded(client.create_service_principal(app["app_id"]), timeout)
        observer.step_completed("Service principal")

        secret = await _bounded(client.create_secret(app["object_id"]), timeout)
        observer.step_completed("Client secret")
    except Exception as e:
        if app is None:
            raise PhaseError(IDENTITY, _error_text(e)) from e
        # application exists remotely
        created = {"app_id": app.get("app_id"), "object_id": app.get("object_id")}
        raise PhaseError(
            IDENTITY,
            f"{_error_text(e)} (application {created['app_id']} was created and left in place)",
            created,
        ) from e

    observer.log("info", "Application registration completed", {"app_id": app["app_id"]})
    return AppRegistrationResult(
        app_id=app["app_id"],
        object_id=app["object_id"],
        service_principal_id=(principal or {}).get("id"),
        client_secret=(secret or {}).get("value"),
        secret_expires_at=(secret or {}).get("expires_at"),
    )


# --- work tracking ---

async def run_work_tracking_phase(
    client: WorkTrackingClient | None,
    parsed: ParseResult,
    config: ItemOrchestratorConfig,
    observer: OrchestrationObserver,
) -> WorkTrackingResult:
    """Run the item orchestrator over an already parsed template.

    A dry run needs no client; anything else does.

    Raises:
        PhaseError: If no client is configured or connect() fails
    """
    if client is None and not config.dry_run:
        raise PhaseError(WORK_TRACKING, "no work tracking client configured")

    orchestrator = ItemOrchestrator(client, config, observer)
    try:
        outcome = await orchestrator.orchestrate(parsed.batch, parsed.relationships)
    except Exception as e:
        raise PhaseError(WORK_TRACKING, _error_text(e)) from e

    return WorkTrackingResult(outcome=outcome, metadata=parsed.metadata)


# --- platform ---

def environment_spec(env: EnvironmentTemplate, project_name: str, default_region: str) -> dict:
    return {
        "name": f"{project_name} {env.name}",
        "short_name": env.short_name,
        "type": env.type,
        "region": env.region or default_region,
        "description": env.description,
        "dataverse": env.dataverse,
    }


def solution_spec(solution: SolutionTemplate) -> dict:
    return {
        "unique_name": solution.unique_name,
        "friendly_name": solution.friendly_name or solution.unique_name,
        "version": solution.version,
        "description": solution.description,
    }


async def run_platform_phase(
    client: PlatformClient | None,
    template: ProjectTemplate,
    project_name: str,
    default_region: str,
    observer: OrchestrationObserver,
    timeout: float | None = None,
) -> PlatformResult:
    """Environments (at most two in flight), then publisher, then solutions.

    The publisher and solutions go into the first environment that was
    created. Without any environment, or without a publisher, solutions
    are skipped with a warning.

    Raises:
        PhaseError: If no client is configured
    """
    if client is None:
        raise PhaseError(PLATFORM, "no platform client configured")

    warnings: list[str] = []
    semaphore = asyncio.Semaphore(MAX_CONCURRENT_ENVIRONMENTS)

    async def create_environment(env: EnvironmentTemplate) -> EnvironmentResult:
        async with semaphore:
            spec = environment_spec(env, project_name, default_region)
            observer.log("info", f"Creating environment: {spec['name']}", {"region": spec["region"]})
            response = await _bounded(client.create_environment(spec), timeout)
            observer.step_completed(f"Environment: {env.name}")
            return EnvironmentResult(name=spec["name"], environment_id=response["id"], url=response["url"])

    results = await asyncio.gather(
        *(create_environment(env) for env in template.environments),
        return_exceptions=True,
    )
    environments = []
    for env, result in zip(template.environments, results):
        if isinstance(result, EnvironmentResult):
            environments.append(result)
        elif isinstance(result, Exception):
            warnings.append(f"Environment '{env.name}' failed: {_error_text(result)}")
            observer.log("warning", warnings[-1])
        else:
            raise result

    publisher_id = None
    solutions: list[SolutionResult] = []

    if template.solutions and template.publisher:
        if not environments:
            warnings.append("Solutions skipped: no environment was created")
            observer.log("warning", warnings[-1])
        else:
            primary = environments[0]
            publisher = template.publisher
            try:
                response = await _bounded(client.create_publisher({
                    "unique_name": publisher.unique_name,
                    "friendly_name": publisher.friendly_name or publisher.unique_name,
                    "prefix": publisher.prefix,
                    "option_value_prefix": publisher.option_value_prefix,
                }, primary.url), timeout)
                publisher_id = response["id"]
                observer.step_completed(f"Publisher: {publisher.unique_name}")
            except Exception as e:
                warnings.append(f"Publisher '{publisher.unique_name}' failed: {_error_text(e)}")
                observer.log("warning", warnings[-1])

            if publisher_id is not None:
                for solution in template.solutions:
                    result = await _create_solution(client, solution, publisher_id, observer, timeout, warnings)
                    if result is not None:
                        solutions.append(result)
    elif template.solutions:
        warnings.append("Solutions skipped: template defines no publisher")
        observer.log("warning", warnings[-1])

    observer.log("info", "Platform phase completed", {
        "environments": len(environments),
        "solutions": len(solutions),
    })
    return PlatformResult(
        environments=tuple(environments),
        publisher_id=publisher_id,
        solutions=tuple(solutions),
        warnings=tuple(warnings),
    )


async def _create_solution(
    client: PlatformClient,
    solution: SolutionTemplate,
    publisher_id: Any,
    observer: OrchestrationObserver,
    timeout: float | None,
    warnings: list[str],
) -> SolutionResult | None:
    """Create one solution and add its components. Failures go to warnings."""
    try:
        response = await _bounded(client.create_solution(solution_spec(solution), publisher_id), timeout)
    except Exception as e:
        warnings.append(f"Solution '{solution.unique_name}' failed: {_error_text(e)}")
        observer.log("warning", warnings[-1])
        return None

    solution_id = (response or {}).get("id")
    if solution_id is None:
        warnings.append(f"Solution '{solution.unique_name}' failed: remote system returned no id")
        observer.log("warning", warnings[-1])
        return None

    added = 0
    for component in solution.components:
        try:
            await _bounded(client.add_component(solution_id, dict(component)), timeout)
            added += 1
        except Exception as e:
            warnings.append(
                f"Component {component.get('type')}:{component.get('name')} not added to "
                f"'{solution.unique_name}': {_error_text(e)}"
            )
            observer.log("warning", warnings[-1])
    observer.step_completed(f"Solution: {solution.unique_name}")
    return SolutionResult(unique_name=solution.unique_name, solution_id=solution_id, components_added=added)
