"""
Project-level orchestration: phases, operation progress and the Prefect flow.
"""

from scaffolder.workflow.engine import (
    PhaseOrchestrator,
    ProjectCreationResult,
    ProjectOptions,
    ProjectRequest,
    get_operation_status,
)
from scaffolder.workflow.progress import (
    InvalidTransition,
    OperationNotFound,
    OperationProgress,
    OperationRegistry,
    OperationStatus,
)

__all__ = [
    "PhaseOrchestrator",
    "ProjectCreationResult",
    "ProjectOptions",
    "ProjectRequest",
    "get_operation_status",
    "InvalidTransition",
    "OperationNotFound",
    "OperationProgress",
    "OperationRegistry",
    "OperationStatus",
]
