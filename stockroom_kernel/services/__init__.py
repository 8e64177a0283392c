"""
Stockroom kernel services.

Each service operates on one shared ``InventoryState`` and persists the
stores it changes through ``StateRepository``.
"""

from stockroom_kernel.services.admin_service import AdminService
from stockroom_kernel.services.indent_service import IndentService
from stockroom_kernel.services.ledger_service import (
    LedgerService,
    MovementResult,
    OverIssuePolicy,
)
from stockroom_kernel.services.state_store import StateRepository, StateStore
from stockroom_kernel.services.user_service import UserService

__all__ = [
    "AdminService",
    "IndentService",
    "LedgerService",
    "MovementResult",
    "OverIssuePolicy",
    "StateRepository",
    "StateStore",
    "UserService",
]
