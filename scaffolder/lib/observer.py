"""
Observer interface for orchestration progress.

The orchestration cores never log directly. They report through an
observer handed to them by the caller, which decides where messages go
(Python logging, an operation progress record, or both).
"""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class OrchestrationObserver(Protocol):
    def log(self, level: str, message: str, details: dict | None = None) -> None:
        ...

    def step_completed(self, step: str) -> None:
        ...


class LoggingObserver:
    """Forward observer events to a standard logger."""

    def __init__(self, log: logging.Logger | None = None, tag: str = ""):
        self._logger = log or logger
        self._prefix = f"[{tag}] " if tag else ""

    def log(self, level: str, message: str, details: dict | None = None) -> None:
        suffix = f" {details}" if details else ""
        self._logger.log(LEVELS.get(level, logging.INFO), f"{self._prefix}{message}{suffix}")

    def step_completed(self, step: str) -> None:
        self._logger.debug(f"{self._prefix}step done: {step}")


class RecordingObserver:
    """Keep every event in memory. Used for previews and in tests."""

    def __init__(self):
        self.events: list[tuple[str, str, dict | None]] = []
        self.steps: list[str] = []

    def log(self, level: str, message: str, details: dict | None = None) -> None:
        self.events.append((level, message, details))

    def step_completed(self, step: str) -> None:
        self.steps.append(step)

    def messages(self, level: str | None = None) -> list[str]:
        return [m for lvl, m, _ in self.events if level is None or lvl == level]
