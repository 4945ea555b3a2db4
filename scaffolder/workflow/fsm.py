"""Operation status state machine using transitions library.

An operation starts in `started`, re-enters `running` once per phase and
ends in `completed` or `failed`. Terminal states have no outgoing
transitions, so any trigger fired after the end raises MachineError.

Usage:
    from scaffolder.workflow.fsm import OperationFSM

    fsm = OperationFSM("proj_1700000000000_abc123xyz")
    fsm.begin_phase()  # started -> running
    fsm.begin_phase()  # running -> running (next phase)
    fsm.complete()     # running -> completed
"""

import logging
from typing import Callable

from transitions import Machine

logger = logging.getLogger(__name__)


STATES = ["started", "running", "completed", "failed"]

TERMINAL_STATES = frozenset({"completed", "failed"})

TRANSITIONS = [
    {"trigger": "begin_phase", "source": ["started", "running"], "dest": "running"},
    {"trigger": "complete", "source": ["started", "running"], "dest": "completed"},
    {"trigger": "fail", "source": ["started", "running"], "dest": "failed"},
]


class OperationFSM:
    """State machine for one operation's status.

    Holds no persistence: the owning OperationProgress keeps the record,
    this only decides which moves are legal and logs the ones taken.
    """

    def __init__(
        self,
        operation_id: str,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        """Initialize FSM for an operation.

        Args:
            operation_id: Used in log lines only
            on_transition: Optional callback(from_state, to_state, trigger) called after transitions
        """
        self.operation_id = operation_id
        self.on_transition = on_transition

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="started",
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.info(f"[OP] {self.operation_id}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in current state."""
        return trigger in self.machine.get_triggers(self.state)
