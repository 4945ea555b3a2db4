"""
Item orchestrator: executes a CreationBatch against a work-tracking system.

The remote side only offers "create one item" and "link two items", so
hierarchy is rebuilt in two passes:

1. Create items kind by kind (Epic -> Feature -> User Story -> Task -> Bug),
   each kind in bounded concurrent batches with per-item retry. Remote ids
   are recorded in a (kind, name) -> id map once a kind has settled.
2. Resolve every RelationshipRequest through that map and link the pairs in
   batches. Requests whose endpoints never got an id are reported, not
   attempted.

Individual failures never abort the run; they are collected into the
outcome. Only a failing connect() is fatal.
"""

import asyncio
import time
from typing import Any

from scaffolder.lib.clients import WorkTrackingClient
from scaffolder.lib.config import ItemOrchestratorConfig
from scaffolder.lib.constants import (
    LINK_BATCH_SIZE,
    PARENT_RELATION,
    VALIDATION_BATCH_SIZE,
)
from scaffolder.lib.observer import LoggingObserver, OrchestrationObserver
from scaffolder.lib.retry import RetryExhausted, RetryPolicy
from scaffolder.lib.types import (
    KIND_ORDER,
    CreatedItem,
    CreationBatch,
    CreationError,
    CreationItem,
    ItemKind,
    OrchestrationOutcome,
    OrchestrationSummary,
    RelationshipError,
    RelationshipRequest,
)


class OrchestrationAborted(Exception):
    """The work-tracking system could not be reached; nothing was attempted."""

    def __init__(self, project: str, cause: BaseException):
        self.project = project
        self.cause = cause
        super().__init__(f"Cannot connect to work tracking for '{project}': {cause}")


def chunks(items: list, size: int) -> list[list]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


class ItemOrchestrator:
    """Create a batch of items, then link them.

    One instance may run several orchestrations; all per-run state (the id
    map, collected errors) lives inside orchestrate().
    """

    def __init__(
        self,
        client: WorkTrackingClient,
        config: ItemOrchestratorConfig,
        observer: OrchestrationObserver | None = None,
    ):
        self.client = client
        self.config = config
        self.observer = observer or LoggingObserver(tag="items")
        self.retry = RetryPolicy(
            max_attempts=config.max_retries,
            base_delay_seconds=config.retry_base_delay_ms / 1000,
        )

    async def orchestrate(
        self,
        batch: CreationBatch,
        relationships: list[RelationshipRequest] | tuple[RelationshipRequest, ...],
    ) -> OrchestrationOutcome:
        """Create every item in kind order, link, optionally read back.

        Raises:
            OrchestrationAborted: if connect() fails
        """
        relationships = list(relationships)
        self.observer.log("info", "Starting work item orchestration", {
            "project": self.config.project,
            "total_items": batch.total(),
            "dry_run": self.config.dry_run,
        })

        if self.config.dry_run:
            return self._dry_run(batch, relationships)

        start = time.monotonic()

        try:
            await self._call(self.client.connect)
        except Exception as e:
            self.observer.log("error", f"Connect failed: {_error_text(e)}")
            raise OrchestrationAborted(self.config.project, e) from e

        id_map: dict[tuple[ItemKind, str], Any] = {}
        created: list[CreatedItem] = []
        failed: list[CreationError] = []
        warnings: list[str] = []

        for kind in KIND_ORDER:
            items = batch.items_of(kind)
            if not items:
                continue
            kind_created, kind_failed = await self._create_kind(kind, items)
            created.extend(kind_created)
            failed.extend(kind_failed)
            warnings.extend(self._record_ids(id_map, kind_created))

        linked, relationship_errors = await self._link(relationships, id_map)

        missing: list = []
        if self.config.validate_creation and created:
            missing = await self._validate_created(created)
            for remote_id in missing:
                warnings.append(f"Item {remote_id} was created but could not be read back")

        for error in failed:
            warnings.append(f"Failed to create {error}")
        for error in relationship_errors:
            warnings.append(str(error))

        summary = self._summary(batch, created, relationships, linked)
        duration = time.monotonic() - start
        self.observer.log("info", "Work item orchestration completed", {
            "created": len(created),
            "failed": len(failed),
            "relationships_linked": linked,
            "relationship_errors": len(relationship_errors),
            "duration_seconds": round(duration, 2),
        })

        return OrchestrationOutcome(
            created=tuple(created),
            failed=tuple(failed),
            relationships_linked=linked,
            warnings=tuple(warnings),
            relationship_errors=tuple(relationship_errors),
            missing_after_create=tuple(missing),
            summary=summary,
            dry_run=False,
            duration_seconds=duration,
        )

    # --- creation ---

    async def _call(self, fn, *args):
        """One remote call bounded by the configured timeout."""
        timeout = self.config.call_timeout_seconds
        if timeout:
            return await asyncio.wait_for(fn(*args), timeout)
        return await fn(*args)

    async def _create_kind(
        self, kind: ItemKind, items: list[CreationItem]
    ) -> tuple[list[CreatedItem], list[CreationError]]:
        created: list[CreatedItem] = []
        failed: list[CreationError] = []
        batches = chunks(items, self.config.parallel_batch_size)

        self.observer.log(
            "info",
            f"Creating {len(items)} {kind.value} item(s) in {len(batches)} batch(es) "
            f"of up to {self.config.parallel_batch_size}",
        )

        for index, group in enumerate(batches, 1):
            self.observer.log("debug", f"{kind.value} batch {index}/{len(batches)}")
            results = await asyncio.gather(
                *(self._create_with_retry(item) for item in group),
                return_exceptions=True,
            )
            for item, result in zip(group, results):
                if isinstance(result, CreatedItem):
                    created.append(result)
                    self.observer.step_completed(f"{kind.value}: {item.title}")
                elif isinstance(result, CreationError):
                    failed.append(result)
                    self.observer.log("warning", f"Failed to create {result}")
                elif isinstance(result, Exception):
                    error = CreationError(kind, item.title, _error_text(result), 0)
                    failed.append(error)
                    self.observer.log("warning", f"Failed to create {error}")
                else:
                    raise result

            if index < len(batches) and self.config.delay_between_batches_ms:
                await asyncio.sleep(self.config.delay_between_batches_ms / 1000)

        self.observer.log(
            "info", f"{kind.value} phase completed: {len(created)} created, {len(failed)} failed"
        )
        return created, failed

    async def _create_with_retry(self, item: CreationItem) -> CreatedItem:
        def on_retry(attempt: int, error: BaseException) -> None:
            self.observer.log(
                "warning",
                f"Retry {attempt}/{self.retry.max_attempts} for {item.kind.value} "
                f"'{item.title}': {_error_text(error)}",
            )

        try:
            response = await self.retry.run(
                lambda: self.client.create_item(item.kind.value, dict(item.fields)),
                timeout=self.config.call_timeout_seconds,
                on_retry=on_retry,
            )
        except RetryExhausted as e:
            raise CreationError(item.kind, item.title, _error_text(e.last_error), e.attempts) from e

        remote_id = (response or {}).get("id")
        if remote_id is None:
            raise CreationError(item.kind, item.title, "Remote system returned no id", 1)
        return CreatedItem(remote_id=remote_id, kind=item.kind, title=item.title, fields=dict(item.fields))

    def _record_ids(self, id_map: dict, created: list[CreatedItem]) -> list[str]:
        """Add a settled kind to the id map. Later duplicates overwrite earlier ones."""
        warnings = []
        for item in created:
            key = (item.kind, item.title)
            if key in id_map and id_map[key] != item.remote_id:
                warnings.append(
                    f"Duplicate {item.kind.value} name '{item.title}': relationships will use "
                    f"remote id {item.remote_id} (also created as {id_map[key]})"
                )
                self.observer.log("warning", warnings[-1])
            id_map[key] = item.remote_id
        return warnings

    # --- relationships ---

    async def _link(
        self, relationships: list[RelationshipRequest], id_map: dict
    ) -> tuple[int, list[RelationshipError]]:
        errors: list[RelationshipError] = []
        resolved: list[tuple[RelationshipRequest, Any, Any]] = []

        for request in relationships:
            parent_id = id_map.get((request.parent_kind, request.parent_name))
            child_id = id_map.get((request.child_kind, request.child_name))
            if parent_id is None or child_id is None:
                missing = [
                    name for name, found in (
                        (request.parent_name, parent_id), (request.child_name, child_id)
                    ) if found is None
                ]
                errors.append(RelationshipError(
                    request,
                    f"missing remote id for {', '.join(repr(m) for m in missing)}",
                    unresolved=True,
                ))
            else:
                resolved.append((request, parent_id, child_id))

        if not relationships:
            return 0, errors

        self.observer.log(
            "info",
            f"Linking {len(resolved)} relationship(s); {len(errors)} unresolved",
        )

        linked = 0
        batches = chunks(resolved, LINK_BATCH_SIZE)
        for index, group in enumerate(batches, 1):
            results = await asyncio.gather(
                *(self._call(self.client.link_items, parent_id, child_id, PARENT_RELATION)
                  for _, parent_id, child_id in group),
                return_exceptions=True,
            )
            for (request, _, _), result in zip(group, results):
                if isinstance(result, Exception):
                    errors.append(RelationshipError(request, f"link failed: {_error_text(result)}"))
                elif isinstance(result, BaseException):
                    raise result
                else:
                    linked += 1
            self.observer.step_completed(f"relationships batch {index}/{len(batches)}")

            if index < len(batches) and self.config.link_batch_delay_ms:
                await asyncio.sleep(self.config.link_batch_delay_ms / 1000)

        self.observer.log("info", f"Relationship linking completed: {linked} linked, {len(errors)} errors")
        return linked, errors

    # --- read-back validation ---

    async def _validate_created(self, created: list[CreatedItem]) -> list:
        """Re-fetch created items; return the ids that cannot be found."""
        ids = [item.remote_id for item in created]
        missing = []
        self.observer.log("info", f"Validating creation of {len(ids)} item(s)")

        for group in chunks(ids, VALIDATION_BATCH_SIZE):
            results = await asyncio.gather(
                *(self._call(self.client.get_item, remote_id) for remote_id in group),
                return_exceptions=True,
            )
            for remote_id, result in zip(group, results):
                if isinstance(result, BaseException) and not isinstance(result, Exception):
                    raise result
                if result is None or isinstance(result, Exception):
                    missing.append(remote_id)
                    self.observer.log("error", f"Validation failed for item {remote_id}")

        self.observer.log("info", f"Validation completed: {'PASSED' if not missing else 'FAILED'}")
        return missing

    # --- summaries ---

    def _summary(
        self,
        batch: CreationBatch,
        created: list[CreatedItem],
        relationships: list[RelationshipRequest],
        linked: int,
    ) -> OrchestrationSummary:
        created_counts = {kind.value: 0 for kind in KIND_ORDER}
        for item in created:
            created_counts[item.kind.value] += 1
        return OrchestrationSummary(
            planned=batch.counts(),
            created=created_counts,
            relationships_planned=len(relationships),
            relationships_linked=linked,
        )

    def _dry_run(
        self, batch: CreationBatch, relationships: list[RelationshipRequest]
    ) -> OrchestrationOutcome:
        """Preview: no remote calls, counts come from the input sizes only."""
        self.observer.log("info", "Performing dry run - no work items will be created", batch.counts())
        summary = self._summary(batch, [], relationships, len(relationships))
        return OrchestrationOutcome(
            created=(),
            failed=(),
            relationships_linked=len(relationships),
            warnings=(),
            summary=summary,
            dry_run=True,
            duration_seconds=0.0,
        )


async def orchestrate(
    client: WorkTrackingClient,
    batch: CreationBatch,
    relationships: list[RelationshipRequest] | tuple[RelationshipRequest, ...],
    config: ItemOrchestratorConfig,
    observer: OrchestrationObserver | None = None,
) -> OrchestrationOutcome:
    """Functional entry point: one orchestrator, one call."""
    return await ItemOrchestrator(client, config, observer).orchestrate(batch, relationships)
