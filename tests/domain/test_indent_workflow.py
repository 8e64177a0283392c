"""Tests for the indent state machine definition."""

from stockroom_kernel.domain.indent_workflow import INDENT_WORKFLOW
from stockroom_kernel.domain.models import IndentStatus
from stockroom_kernel.domain.permissions import Permission


class TestIndentWorkflow:
    def test_initial_state_is_pending(self):
        assert INDENT_WORKFLOW.initial_state == IndentStatus.PENDING

    def test_terminal_states(self):
        assert INDENT_WORKFLOW.terminal_states == {
            IndentStatus.FULFILLED,
            IndentStatus.CANCELLED,
        }

    def test_edges_and_permissions(self):
        edges = {
            (t.from_state, t.to_state): t.permission for t in INDENT_WORKFLOW.transitions
        }
        assert edges == {
            (IndentStatus.PENDING, IndentStatus.APPROVED): Permission.IND_APPROVE,
            (IndentStatus.PENDING, IndentStatus.CANCELLED): Permission.IND_REJECT,
            (IndentStatus.APPROVED, IndentStatus.FULFILLED): Permission.IND_FULFILL,
        }

    def test_pending_cannot_skip_to_fulfilled(self):
        assert INDENT_WORKFLOW.find(IndentStatus.PENDING, IndentStatus.FULFILLED) is None

    def test_approved_cannot_be_cancelled(self):
        assert INDENT_WORKFLOW.find(IndentStatus.APPROVED, IndentStatus.CANCELLED) is None

    def test_allowed_targets(self):
        assert INDENT_WORKFLOW.allowed_targets(IndentStatus.PENDING) == (
            IndentStatus.APPROVED,
            IndentStatus.CANCELLED,
        )
        assert INDENT_WORKFLOW.allowed_targets(IndentStatus.FULFILLED) == ()
