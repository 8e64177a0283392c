"""
IndentService -- raise requisitions and move them through their workflow.

Responsibility:
    Creates indents stamped with the requester's department and name, and
    applies status transitions defined by ``INDENT_WORKFLOW``, checking the
    capability each transition carries.

Architecture position:
    Kernel > Services.  Reads products from ``InventoryState`` but never
    writes them: fulfilling an indent is a record only, stock is issued
    separately through ``LedgerService``.

Failure modes:
    - PermissionDeniedError: actor lacks IND_CREATE or the transition's
      capability.
    - InvalidIndentTransitionError: status change is not a workflow edge
      (including any move out of a terminal state).
    - IndentNotFoundError / ProductNotFoundError: unknown ids.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

from stockroom_kernel.domain.clock import Clock, SystemClock
from stockroom_kernel.domain.indent_workflow import INDENT_WORKFLOW, Workflow
from stockroom_kernel.domain.models import Indent, IndentPriority, IndentStatus, User
from stockroom_kernel.domain.permissions import Permission, has_permission, require_permission
from stockroom_kernel.domain.validation import to_decimal
from stockroom_kernel.exceptions import InvalidIndentTransitionError, InvalidQuantityError
from stockroom_kernel.logging_config import LogContext, get_logger
from stockroom_kernel.services.state_store import StateRepository
from stockroom_kernel.state import KEY_INDENTS, InventoryState

logger = get_logger("services.indent")


class IndentService:
    """Requisition lifecycle over ``InventoryState.indents`` (newest first)."""

    def __init__(
        self,
        state: InventoryState,
        repository: StateRepository | None = None,
        clock: Clock | None = None,
        workflow: Workflow = INDENT_WORKFLOW,
    ):
        self._state = state
        self._repository = repository
        self._clock = clock or SystemClock()
        self._workflow = workflow

    def _persist(self) -> None:
        if self._repository is not None:
            self._repository.persist(self._state, KEY_INDENTS)

    def raise_indent(
        self,
        actor: User,
        product_id: str,
        quantity: Decimal | int | str,
        priority: IndentPriority | str = IndentPriority.MEDIUM,
    ) -> Indent:
        """
        Raise a pending indent for ``product_id`` on behalf of ``actor``.

        The indent copies the product's name and unit and is booked against
        the actor's own department.
        """
        require_permission(actor, Permission.IND_CREATE)
        qty = to_decimal("quantity", quantity)
        if qty <= 0:
            raise InvalidQuantityError("quantity", str(qty), "indent quantity must be positive")
        product = self._state.product(product_id)

        indent = Indent(
            id=str(uuid4()),
            product_id=product.id,
            product_name=product.name,
            department=actor.department,
            quantity=qty,
            unit=product.unit,
            priority=IndentPriority(priority),
            requested_by=actor.name,
            created_at=self._clock.now(),
            status=self._workflow.initial_state,
        )
        self._state.indents.insert(0, indent)

        with LogContext.bind(actor_id=actor.id, indent_id=indent.id, product_id=product.id):
            logger.info(
                "indent_raised",
                extra={"quantity": qty, "priority": indent.priority.value},
            )
        self._persist()
        return indent

    def transition(self, actor: User, indent_id: str, to_status: IndentStatus | str) -> Indent:
        """Move an indent to ``to_status`` if the workflow allows it."""
        to_status = IndentStatus(to_status)
        indent = self._state.indent(indent_id)
        edge = self._workflow.find(indent.status, to_status)
        if edge is None:
            logger.warning(
                "indent_transition_rejected",
                extra={
                    "indent": indent.id,
                    "from_status": indent.status.value,
                    "to_status": to_status.value,
                },
            )
            raise InvalidIndentTransitionError(indent.id, indent.status.value, to_status.value)
        require_permission(actor, edge.permission)

        updated = replace(indent, status=to_status)
        self._state.indents = [updated if i.id == indent.id else i for i in self._state.indents]

        with LogContext.bind(actor_id=actor.id, indent_id=indent.id):
            logger.info(
                "indent_transitioned",
                extra={
                    "action": edge.action,
                    "from_status": indent.status.value,
                    "to_status": to_status.value,
                },
            )
        self._persist()
        return updated

    def approve(self, actor: User, indent_id: str) -> Indent:
        return self.transition(actor, indent_id, IndentStatus.APPROVED)

    def reject(self, actor: User, indent_id: str) -> Indent:
        return self.transition(actor, indent_id, IndentStatus.CANCELLED)

    def fulfill(self, actor: User, indent_id: str) -> Indent:
        """Mark an approved indent fulfilled.  Product balances are untouched."""
        return self.transition(actor, indent_id, IndentStatus.FULFILLED)

    def allowed_actions(self, actor: User, indent_id: str) -> tuple[IndentStatus, ...]:
        """Target statuses ``actor`` could move this indent to right now."""
        indent = self._state.indent(indent_id)
        return tuple(
            target
            for target in self._workflow.allowed_targets(indent.status)
            if has_permission(actor, self._workflow.find(indent.status, target).permission)
        )
