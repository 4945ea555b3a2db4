"""Operation progress records and the in-process registry.

Thin layer over the FSM in fsm.py: the FSM decides which status moves are
legal, OperationProgress keeps the log, timestamps and step counters, and
OperationRegistry makes records findable by operation id.

Usage:
    from scaffolder.workflow.progress import default_registry

    progress = default_registry.create("proj")
    progress.begin_phase("identity")
    progress.append_log("info", "Creating app registration")
    progress.complete()
"""

import logging
import secrets
import string
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from transitions import MachineError

from scaffolder.lib.constants import DEFAULT_OPERATION_PREFIX, OPERATION_ID_RANDOM_LEN
from scaffolder.lib.observer import LoggingObserver
from scaffolder.workflow.fsm import OperationFSM

logger = logging.getLogger(__name__)

BASE36 = string.digits + string.ascii_lowercase


class OperationStatus(Enum):
    """Values match FSM state strings."""
    STARTED = "started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class InvalidTransition(Exception):
    """Raised when an operation is moved out of a terminal state."""

    def __init__(self, operation_id: str, from_state: str, trigger: str):
        self.operation_id = operation_id
        self.from_state = from_state
        self.trigger = trigger
        super().__init__(f"Invalid transition: {trigger} from {from_state} (operation: {operation_id})")


class OperationNotFound(Exception):
    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"Operation not found: {operation_id}")


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str
    details: dict | None = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_operation_id(prefix: str = DEFAULT_OPERATION_PREFIX) -> str:
    """prefix_<epoch-ms>_<random base36>"""
    suffix = "".join(secrets.choice(BASE36) for _ in range(OPERATION_ID_RANDOM_LEN))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


@dataclass
class OperationProgress:
    """Status, append-only log and step counters for one operation."""
    operation_id: str
    started_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None
    current_phase: str | None = None
    current_step: str | None = None
    total_steps: int = 0
    completed_steps: int = 0
    logs: list[LogEntry] = field(default_factory=list)

    def __post_init__(self):
        self._lock = threading.Lock()
        self._fsm = OperationFSM(self.operation_id)

    @property
    def status(self) -> OperationStatus:
        return OperationStatus(self._fsm.state)

    @property
    def is_terminal(self) -> bool:
        return self._fsm.is_terminal

    def _fire(self, trigger: str) -> None:
        from_state = self._fsm.state
        try:
            getattr(self._fsm, trigger)()
        except MachineError as e:
            raise InvalidTransition(self.operation_id, from_state, trigger) from e

    def begin_phase(self, phase: str) -> None:
        """Enter (or re-enter) running for the named phase.

        Raises:
            InvalidTransition: If the operation already finished
        """
        with self._lock:
            self._fire("begin_phase")
            self.current_phase = phase
            self.logs.append(LogEntry(_now(), "info", f"Phase started: {phase}", {"phase": phase}))

    def append_log(self, level: str, message: str, details: dict | None = None) -> bool:
        """Append a log entry. Returns False (and drops the entry) once terminal."""
        with self._lock:
            if self._fsm.is_terminal:
                logger.debug(f"[OP] {self.operation_id}: dropping log after finish: {message}")
                return False
            self.logs.append(LogEntry(_now(), level, message, details))
            return True

    def set_total_steps(self, total: int) -> None:
        with self._lock:
            if not self._fsm.is_terminal:
                self.total_steps = total

    def step_completed(self, step: str) -> None:
        with self._lock:
            if self._fsm.is_terminal:
                return
            self.completed_steps += 1
            self.current_step = step

    def complete(self) -> None:
        with self._lock:
            self._fire("complete")
            self.current_phase = None
            self.completed_at = _now()

    def fail(self, reason: str = "") -> None:
        with self._lock:
            self._fire("fail")
            if reason:
                self.logs.append(LogEntry(_now(), "error", reason))
            self.completed_at = _now()

    def snapshot(self) -> dict:
        """Plain-dict view for status output."""
        with self._lock:
            return {
                "operation_id": self.operation_id,
                "status": self.status.value,
                "started_at": self.started_at.isoformat(),
                "completed_at": self.completed_at.isoformat() if self.completed_at else None,
                "current_phase": self.current_phase,
                "current_step": self.current_step,
                "total_steps": self.total_steps,
                "completed_steps": self.completed_steps,
                "logs": [
                    {
                        "timestamp": e.timestamp.isoformat(),
                        "level": e.level,
                        "message": e.message,
                        "details": e.details,
                    }
                    for e in self.logs
                ],
            }


class OperationRegistry:
    """Process-wide map of operation id -> OperationProgress. Not persisted."""

    def __init__(self):
        self._lock = threading.Lock()
        self._operations: dict[str, OperationProgress] = {}

    def create(self, prefix: str = DEFAULT_OPERATION_PREFIX) -> OperationProgress:
        with self._lock:
            operation_id = generate_operation_id(prefix)
            while operation_id in self._operations:
                operation_id = generate_operation_id(prefix)
            progress = OperationProgress(operation_id)
            self._operations[operation_id] = progress
        logger.debug(f"[OP] {operation_id}: registered")
        return progress

    def get(self, operation_id: str) -> OperationProgress:
        """
        Raises:
            OperationNotFound: If no operation has this id
        """
        with self._lock:
            progress = self._operations.get(operation_id)
        if progress is None:
            raise OperationNotFound(operation_id)
        return progress

    def operations(self) -> list[OperationProgress]:
        with self._lock:
            return list(self._operations.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._operations)


default_registry = OperationRegistry()


class ProgressObserver(LoggingObserver):
    """Observer that writes to an OperationProgress and to logging."""

    def __init__(self, progress: OperationProgress, tag: str = ""):
        super().__init__(logging.getLogger("scaffolder.operations"), tag=tag)
        self.progress = progress

    def log(self, level: str, message: str, details: dict | None = None) -> None:
        super().log(level, message, details)
        self.progress.append_log(level, message, details)

    def step_completed(self, step: str) -> None:
        super().step_completed(step)
        self.progress.step_completed(step)
