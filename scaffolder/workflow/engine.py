"""Phase orchestrator for project creation.

Resolves a template, validates it, then runs the identity, work tracking
and platform phases (concurrently or in order), folding phase failures
into warnings. Every call is tracked as an OperationProgress in a registry
so its status can be queried while and after it runs.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field

from scaffolder.lib.clients import IdentityClient, PlatformClient, WorkTrackingClient
from scaffolder.lib.config import Settings
from scaffolder.lib.constants import IDENTITY_STEPS, LINK_BATCH_SIZE
from scaffolder.lib.templates import ProjectTemplate, TemplateNotFound, resolve_template
from scaffolder.lib.validate import SchemaError
from scaffolder.workflow.phases import (
    IDENTITY,
    PHASE_LABELS,
    PLATFORM,
    WORK_TRACKING,
    AppRegistrationResult,
    PhaseError,
    PlatformResult,
    WorkTrackingResult,
    environment_spec,
    run_identity_phase,
    run_platform_phase,
    run_work_tracking_phase,
)
from scaffolder.workflow.progress import (
    OperationProgress,
    OperationRegistry,
    ProgressObserver,
    default_registry,
)
from scaffolder.workitems.template_parser import (
    ParseConfig,
    ParseResult,
    TemplateParser,
    TemplateValidationError,
    validate_template,
)

logger = logging.getLogger(__name__)

PHASE_ORDER = [IDENTITY, WORK_TRACKING, PLATFORM]


class ProjectOptions(BaseModel):
    """Per-request switches. enable_parallel_execution=None defers to settings."""
    dry_run: bool = False
    skip_identity: bool = False
    skip_work_tracking: bool = False
    skip_platform: bool = False
    enable_parallel_execution: Optional[bool] = None


class ProjectRequest(BaseModel):
    """Input schema for project creation."""
    project_name: str = Field(min_length=1)
    template_name: Optional[str] = None
    customization: dict[str, Any] = Field(default_factory=dict)
    options: ProjectOptions = Field(default_factory=ProjectOptions)


@dataclass(frozen=True)
class ProjectCreationResult:
    operation_id: str
    project_name: str
    template_name: str
    status: str
    identity: AppRegistrationResult | None = None
    work_tracking: WorkTrackingResult | None = None
    platform: PlatformResult | None = None
    warnings: tuple[str, ...] = ()
    total_steps: int = 0
    completed_steps: int = 0
    duration_seconds: float = 0.0
    dry_run: bool = False
    plan: dict | None = None


def enabled_phases(options: ProjectOptions) -> list[str]:
    skipped = {
        IDENTITY: options.skip_identity,
        WORK_TRACKING: options.skip_work_tracking,
        PLATFORM: options.skip_platform,
    }
    return [phase for phase in PHASE_ORDER if not skipped[phase]]


def count_steps(template: ProjectTemplate, parsed: ParseResult, phases: list[str]) -> int:
    """Planned step count for progress reporting, derived from the template."""
    steps = 0
    if IDENTITY in phases:
        steps += IDENTITY_STEPS
    if WORK_TRACKING in phases:
        link_batches = -(-len(parsed.relationships) // LINK_BATCH_SIZE)
        steps += parsed.batch.total() + link_batches
    if PLATFORM in phases:
        steps += len(template.environments) + len(template.solutions)
        if template.publisher and template.solutions:
            steps += 1
    return steps


def _phase_warning(phase: str, error: Exception) -> str:
    if isinstance(error, PhaseError):
        return error.warning
    return f"{PHASE_LABELS[phase]} failed: {str(error) or type(error).__name__}"


class PhaseOrchestrator:
    """Creates a project across the configured collaborators.

    Collaborators are optional: a phase whose client is missing fails with
    a warning unless the request skips it.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        work_tracking: WorkTrackingClient | None = None,
        platform: PlatformClient | None = None,
        identity: IdentityClient | None = None,
        registry: OperationRegistry | None = None,
    ):
        self.settings = settings or Settings()
        self.work_tracking = work_tracking
        self.platform = platform
        self.identity = identity
        self.registry = registry if registry is not None else default_registry

    async def create_project(self, request: ProjectRequest) -> ProjectCreationResult:
        """Create everything the template describes.

        Raises:
            TemplateNotFound: If the template name does not resolve
            SchemaError: If the template file is off-schema
            TemplateValidationError: If template references dangle; no remote call is made
        """
        start = time.monotonic()
        progress = self.registry.create(self.settings.operation_prefix)
        observer = ProgressObserver(progress, tag=progress.operation_id)
        template_name = request.template_name or self.settings.default_template

        observer.log("info", f"Starting project creation: {request.project_name}", {
            "template": template_name,
            "options": request.options.model_dump(),
        })

        try:
            template = resolve_template(template_name, self.settings.templates_dir)
        except (TemplateNotFound, SchemaError) as e:
            progress.fail(str(e))
            raise

        errors = validate_template(template)
        if errors:
            progress.fail(f"Template validation failed: {len(errors)} error(s)")
            raise TemplateValidationError(errors, progress.operation_id)

        parsed = TemplateParser(self._parse_config(request)).parse(template)
        phases = enabled_phases(request.options)
        progress.set_total_steps(count_steps(template, parsed, phases))
        observer.log("info", "Template validation completed", {
            "template": template.name,
            "phases": phases,
            "total_steps": progress.total_steps,
        })

        try:
            if request.options.dry_run or self.settings.dry_run:
                result = await self._dry_run(request, template, parsed, phases, progress, observer)
            else:
                result = await self._execute(request, template, parsed, phases, progress, observer)
        except Exception as e:
            progress.fail(f"Project creation failed: {e}")
            raise

        observer.log("info", f"Project creation completed: {request.project_name}", {
            "warnings": len(result.warnings),
            "completed_steps": progress.completed_steps,
        })
        progress.complete()
        logger.info(f"Project '{request.project_name}' finished in {time.monotonic() - start:.1f}s "
                    f"with {len(result.warnings)} warning(s)")
        return ProjectCreationResult(
            operation_id=progress.operation_id,
            project_name=request.project_name,
            template_name=template_name,
            status=progress.status.value,
            identity=result.identity,
            work_tracking=result.work_tracking,
            platform=result.platform,
            warnings=result.warnings,
            total_steps=progress.total_steps,
            completed_steps=progress.completed_steps,
            duration_seconds=time.monotonic() - start,
            dry_run=result.dry_run,
            plan=result.plan,
        )

    def get_operation_status(self, operation_id: str) -> OperationProgress:
        """
        Raises:
            OperationNotFound: If the id is unknown to this registry
        """
        return self.registry.get(operation_id)

    # --- phase execution ---

    def _parse_config(self, request: ProjectRequest) -> ParseConfig:
        custom = request.customization
        tags = custom.get("tags")
        return ParseConfig(
            project=request.project_name,
            area_path=custom.get("area_path"),
            iteration_path=custom.get("iteration_path"),
            assigned_to=custom.get("assigned_to"),
            tags=tuple(tags) if tags is not None else self.settings.project_tags,
        )

    def _region(self, request: ProjectRequest) -> str:
        return request.customization.get("region") or self.settings.default_region

    def _phase_call(self, phase, request, template, parsed, observer, dry_run=False):
        timeout = self.settings.call_timeout_seconds
        if phase == IDENTITY:
            return run_identity_phase(self.identity, request.project_name, observer, timeout)
        if phase == WORK_TRACKING:
            config = self.settings.item_config(request.project_name, dry_run=dry_run)
            return run_work_tracking_phase(self.work_tracking, parsed, config, observer)
        return run_platform_phase(
            self.platform, template, request.project_name, self._region(request), observer, timeout,
        )

    async def _execute(self, request, template, parsed, phases, progress, observer) -> "_PhaseResults":
        parallel = request.options.enable_parallel_execution
        if parallel is None:
            parallel = self.settings.enable_parallel_execution

        results: dict[str, Any] = {}
        warnings: list[str] = []

        if parallel:
            observer.log("info", f"Running {len(phases)} phase(s) in parallel")
            for phase in phases:
                progress.begin_phase(phase)
            settled = await asyncio.gather(
                *(self._phase_call(phase, request, template, parsed, observer) for phase in phases),
                return_exceptions=True,
            )
            for phase, outcome in zip(phases, settled):
                if isinstance(outcome, Exception):
                    warnings.append(_phase_warning(phase, outcome))
                    observer.log("error", warnings[-1])
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    results[phase] = outcome
        else:
            observer.log("info", f"Running {len(phases)} phase(s) sequentially")
            for phase in phases:
                progress.begin_phase(phase)
                try:
                    results[phase] = await self._phase_call(phase, request, template, parsed, observer)
                except Exception as e:
                    warnings.append(_phase_warning(phase, e))
                    observer.log("error", warnings[-1])

        work_tracking = results.get(WORK_TRACKING)
        platform = results.get(PLATFORM)
        if work_tracking is not None:
            warnings.extend(work_tracking.outcome.warnings)
        if platform is not None:
            warnings.extend(platform.warnings)

        return _PhaseResults(
            identity=results.get(IDENTITY),
            work_tracking=work_tracking,
            platform=platform,
            warnings=tuple(warnings),
        )

    async def _dry_run(self, request, template, parsed, phases, progress, observer) -> "_PhaseResults":
        """Parse and preview work items; identity and platform are only planned."""
        observer.log("info", "Performing dry run - no resources will be created")
        plan: dict[str, Any] = {"phases": phases}
        work_tracking = None

        if IDENTITY in phases:
            plan[IDENTITY] = {
                "application": f"{request.project_name} Service Principal",
                "steps": IDENTITY_STEPS,
            }
        if WORK_TRACKING in phases:
            progress.begin_phase(WORK_TRACKING)
            work_tracking = await self._phase_call(
                WORK_TRACKING, request, template, parsed, observer, dry_run=True,
            )
            plan[WORK_TRACKING] = {
                "items": parsed.metadata.counts,
                "relationships": len(parsed.relationships),
            }
        if PLATFORM in phases:
            region = self._region(request)
            plan[PLATFORM] = {
                "environments": [environment_spec(e, request.project_name, region)["name"]
                                 for e in template.environments],
                "publisher": template.publisher.unique_name if template.publisher else None,
                "solutions": [s.unique_name for s in template.solutions],
            }

        return _PhaseResults(work_tracking=work_tracking, dry_run=True, plan=plan)


@dataclass(frozen=True)
class _PhaseResults:
    identity: AppRegistrationResult | None = None
    work_tracking: WorkTrackingResult | None = None
    platform: PlatformResult | None = None
    warnings: tuple[str, ...] = ()
    dry_run: bool = False
    plan: dict | None = None


def get_operation_status(operation_id: str, registry: OperationRegistry | None = None) -> OperationProgress:
    """Look up an operation in the given (or process-wide) registry.

    Raises:
        OperationNotFound
    """
    return (registry if registry is not None else default_registry).get(operation_id)
