"""
Configuration loaders for scaffolder.

Loads settings from a scaffolder.env file, lets SCAFFOLDER_* environment
variables override it, and validates the result against settings.schema.json.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path

from . import envparse
from . import validate
from .constants import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_DELAY_BETWEEN_BATCHES_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_OPERATION_PREFIX,
    DEFAULT_PARALLEL_BATCH_SIZE,
    DEFAULT_RETRY_BASE_DELAY_MS,
    DEFAULT_TEMPLATE,
    LINK_BATCH_DELAY_MS,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "SCAFFOLDER_"
SETTINGS_FILE = "scaffolder.env"


class SettingsError(Exception):
    """Settings file or overrides are unusable."""
    pass


@dataclass(frozen=True)
class ItemOrchestratorConfig:
    """Knobs for one item orchestration call."""
    project: str = ""
    parallel_batch_size: int = DEFAULT_PARALLEL_BATCH_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    delay_between_batches_ms: int = DEFAULT_DELAY_BETWEEN_BATCHES_MS
    retry_base_delay_ms: int = DEFAULT_RETRY_BASE_DELAY_MS
    link_batch_delay_ms: int = LINK_BATCH_DELAY_MS
    call_timeout_seconds: float | None = DEFAULT_CALL_TIMEOUT_SECONDS
    validate_creation: bool = True
    dry_run: bool = False

    @classmethod
    def default(cls, project: str) -> "ItemOrchestratorConfig":
        return cls(project=project)

    @classmethod
    def production(cls, project: str) -> "ItemOrchestratorConfig":
        """More conservative batching for production tenants."""
        return cls(
            project=project,
            parallel_batch_size=3,
            max_retries=5,
            delay_between_batches_ms=2000,
        )


@dataclass(frozen=True)
class Settings:
    """Process-level settings from scaffolder.env"""
    parallel_batch_size: int = DEFAULT_PARALLEL_BATCH_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    delay_between_batches_ms: int = DEFAULT_DELAY_BETWEEN_BATCHES_MS
    retry_base_delay_ms: int = DEFAULT_RETRY_BASE_DELAY_MS
    link_batch_delay_ms: int = LINK_BATCH_DELAY_MS
    call_timeout_seconds: float | None = DEFAULT_CALL_TIMEOUT_SECONDS
    validate_creation: bool = True
    dry_run: bool = False
    enable_parallel_execution: bool = True
    templates_dir: Path | None = None
    default_template: str = DEFAULT_TEMPLATE
    default_region: str = "unitedstates"
    operation_prefix: str = DEFAULT_OPERATION_PREFIX
    log_level: str = "INFO"
    project_tags: tuple[str, ...] = field(default=("S-Project", "Generated"))

    def item_config(self, project: str, dry_run: bool | None = None) -> ItemOrchestratorConfig:
        """Item orchestrator config for one project."""
        return ItemOrchestratorConfig(
            project=project,
            parallel_batch_size=self.parallel_batch_size,
            max_retries=self.max_retries,
            delay_between_batches_ms=self.delay_between_batches_ms,
            retry_base_delay_ms=self.retry_base_delay_ms,
            link_batch_delay_ms=self.link_batch_delay_ms,
            call_timeout_seconds=self.call_timeout_seconds,
            validate_creation=self.validate_creation,
            dry_run=self.dry_run if dry_run is None else dry_run,
        )

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)


def _flag(value: str) -> bool:
    return value.strip().lower() in ("true", "1")


def settings_from_env(env: dict[str, str], source: str = "<env>") -> Settings:
    """Validate a KEY=value mapping and map it onto Settings."""
    try:
        validate.validate(env, "settings", source)
    except validate.SchemaError as e:
        raise SettingsError(str(e)) from None

    timeout = float(env.get("CALL_TIMEOUT_SECONDS", DEFAULT_CALL_TIMEOUT_SECONDS))
    tags = env.get("PROJECT_TAGS")
    return Settings(
        parallel_batch_size=int(env.get("PARALLEL_BATCH_SIZE", DEFAULT_PARALLEL_BATCH_SIZE)),
        max_retries=int(env.get("MAX_RETRIES", DEFAULT_MAX_RETRIES)),
        delay_between_batches_ms=int(env.get("DELAY_BETWEEN_BATCHES_MS", DEFAULT_DELAY_BETWEEN_BATCHES_MS)),
        retry_base_delay_ms=int(env.get("RETRY_BASE_DELAY_MS", DEFAULT_RETRY_BASE_DELAY_MS)),
        link_batch_delay_ms=int(env.get("LINK_BATCH_DELAY_MS", LINK_BATCH_DELAY_MS)),
        call_timeout_seconds=timeout or None,  # 0 disables the ceiling
        validate_creation=_flag(env.get("VALIDATE_CREATION", "true")),
        dry_run=_flag(env.get("DRY_RUN", "false")),
        enable_parallel_execution=_flag(env.get("ENABLE_PARALLEL_EXECUTION", "true")),
        templates_dir=Path(env["TEMPLATES_DIR"]) if env.get("TEMPLATES_DIR") else None,
        default_template=env.get("DEFAULT_TEMPLATE", DEFAULT_TEMPLATE),
        default_region=env.get("DEFAULT_REGION", "unitedstates"),
        operation_prefix=env.get("OPERATION_PREFIX", DEFAULT_OPERATION_PREFIX),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        project_tags=tuple(t.strip() for t in tags.split(",") if t.strip()) if tags is not None
        else ("S-Project", "Generated"),
    )


def load_settings(config_dir: Path | None = None, environ: dict | None = None) -> Settings:
    """Load scaffolder.env (if present) and apply SCAFFOLDER_* overrides.

    A missing file is not an error: defaults plus overrides apply.

    Raises:
        SettingsError: on syntax errors or schema violations
    """
    env: dict[str, str] = {}
    source = "<environment>"
    if config_dir is not None:
        path = Path(config_dir) / SETTINGS_FILE
        if path.exists():
            try:
                env = envparse.load_env(path)
            except ValueError as e:
                raise SettingsError(str(e)) from None
            source = str(path)
        else:
            logger.debug(f"No {SETTINGS_FILE} in {config_dir}, using defaults")

    env = envparse.overlay_environ(env, ENV_PREFIX, environ)
    return settings_from_env(env, source)
