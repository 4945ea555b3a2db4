"""
Collaborator contracts for the three remote platforms.

The orchestrators only talk to these protocols. Concrete Azure DevOps,
Power Platform and Microsoft Graph wrappers live outside this package and
must raise RemoteError with the right retryable flag; the orchestrators
trust that classification.
"""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class RemoteError(Exception):
    """A remote call failed.

    retryable=True for rate limits and transient network faults,
    False for validation and not-found errors.
    """
    message: str
    retryable: bool = True
    status_code: int | None = None

    def __str__(self):
        code = f" (HTTP {self.status_code})" if self.status_code else ""
        return f"{self.message}{code}"


class WorkTrackingClient(Protocol):
    async def connect(self) -> None:
        """Authenticate/open the project. Failure is fatal to the whole call."""
        ...

    async def create_item(self, kind: str, fields: dict) -> dict:
        """Create one item, returning at least {"id": ...}."""
        ...

    async def link_items(self, parent_id: Any, child_id: Any, relation: str) -> None:
        ...

    async def get_item(self, item_id: Any) -> dict | None:
        """Return the item, or None when it does not exist."""
        ...


class PlatformClient(Protocol):
    async def create_environment(self, spec: dict) -> dict:
        """Returns {"id": ..., "url": ...}."""
        ...

    async def create_publisher(self, spec: dict, environment_url: str) -> dict:
        """Returns {"id": ...}."""
        ...

    async def create_solution(self, spec: dict, publisher_id: Any) -> dict:
        """Returns {"id": ...}."""
        ...

    async def add_component(self, solution_id: Any, component_ref: dict) -> None:
        ...


class IdentityClient(Protocol):
    async def create_application(self, name: str, permissions: list[str]) -> dict:
        """Returns {"app_id": ..., "object_id": ...}."""
        ...

    async def create_service_principal(self, app_id: str) -> dict:
        """Returns {"id": ...}."""
        ...

    async def create_secret(self, object_id: str) -> dict:
        """Returns {"value": ..., "expires_at": ...}."""
        ...
