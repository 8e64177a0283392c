"""
Indent Workflow.

State machine for requisitions: pending -> approved -> fulfilled, or
pending -> cancelled.  ``fulfilled`` and ``cancelled`` are terminal.  No
transition moves stock; fulfilment is recorded only.
"""

from __future__ import annotations

from dataclasses import dataclass

from stockroom_kernel.domain.models import IndentStatus
from stockroom_kernel.domain.permissions import Permission
from stockroom_kernel.logging_config import get_logger

logger = get_logger("domain.indent_workflow")


@dataclass(frozen=True)
class Transition:
    """A valid status change and the capability that unlocks it."""
    from_state: IndentStatus
    to_state: IndentStatus
    action: str
    permission: Permission


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: IndentStatus
    states: tuple[IndentStatus, ...]
    transitions: tuple[Transition, ...]

    @property
    def terminal_states(self) -> frozenset[IndentStatus]:
        sources = {t.from_state for t in self.transitions}
        return frozenset(s for s in self.states if s not in sources)

    def find(self, from_state: IndentStatus, to_state: IndentStatus) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == from_state and transition.to_state == to_state:
                return transition
        return None

    def allowed_targets(self, from_state: IndentStatus) -> tuple[IndentStatus, ...]:
        return tuple(t.to_state for t in self.transitions if t.from_state == from_state)


INDENT_WORKFLOW = Workflow(
    name="indent",
    description="Material requisition approval",
    initial_state=IndentStatus.PENDING,
    states=(
        IndentStatus.PENDING,
        IndentStatus.APPROVED,
        IndentStatus.FULFILLED,
        IndentStatus.CANCELLED,
    ),
    transitions=(
        Transition(
            IndentStatus.PENDING, IndentStatus.APPROVED,
            action="approve", permission=Permission.IND_APPROVE,
        ),
        Transition(
            IndentStatus.PENDING, IndentStatus.CANCELLED,
            action="reject", permission=Permission.IND_REJECT,
        ),
        Transition(
            IndentStatus.APPROVED, IndentStatus.FULFILLED,
            action="fulfill", permission=Permission.IND_FULFILL,
        ),
    ),
)

logger.debug(
    "indent_workflow_registered",
    extra={
        "workflow_name": INDENT_WORKFLOW.name,
        "state_count": len(INDENT_WORKFLOW.states),
        "transition_count": len(INDENT_WORKFLOW.transitions),
        "initial_state": INDENT_WORKFLOW.initial_state.value,
    },
)
