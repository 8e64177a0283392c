"""
stockroom_kernel.domain.permissions -- Capability model and access checks.

Responsibility:
    Closed set of capabilities, their catalogue (label + group), the grant
    sets used when seeding accounts, and the pure checks that decide whether
    a user holds a capability.  Also maps each screen of the application to
    the capability that opens it, with the placeholder text shown on denial.

Architecture position:
    Kernel > Domain.  Pure lookups, no mutation, no I/O.  Services call
    ``require_permission`` before mutating; read views call ``guard_view``
    and render the denial message instead of raising.

Invariants:
    - Administrators hold every permission by construction.
    - A user's grant is a set-membership test over ``Permission`` members,
      never free-form strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from stockroom_kernel.exceptions import PermissionDeniedError
from stockroom_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from stockroom_kernel.domain.models import User

logger = get_logger("domain.permissions")


class Permission(str, Enum):
    """Every capability that can be granted to an account."""

    # Inventory
    INV_VIEW = "INV_VIEW"
    INV_ADD = "INV_ADD"
    INV_EDIT = "INV_EDIT"
    INV_DELETE = "INV_DELETE"
    STOCK_IN = "STOCK_IN"
    STOCK_OUT = "STOCK_OUT"
    STOCK_RECONCILE = "STOCK_RECONCILE"
    MIN_STOCK_EDIT = "MIN_STOCK_EDIT"
    CAT_MANAGE = "CAT_MANAGE"
    UNIT_MANAGE = "UNIT_MANAGE"
    # Indents
    IND_VIEW = "IND_VIEW"
    IND_CREATE = "IND_CREATE"
    IND_APPROVE = "IND_APPROVE"
    IND_REJECT = "IND_REJECT"
    IND_FULFILL = "IND_FULFILL"
    # Reporting
    REPORTS_VIEW = "REPORTS_VIEW"
    REPORTS_EXPORT = "REPORTS_EXPORT"
    REPORTS_PRINT = "REPORTS_PRINT"
    PRICE_VIEW = "PRICE_VIEW"
    PRICE_EDIT = "PRICE_EDIT"
    AUDIT_LOGS = "AUDIT_LOGS"
    # AI
    AI_INSIGHTS = "AI_INSIGHTS"
    AI_DESC_GEN = "AI_DESC_GEN"
    # System
    DEPT_MANAGE = "DEPT_MANAGE"
    USER_MANAGE = "USER_MANAGE"
    USER_PASS_RESET = "USER_PASS_RESET"
    PURGE_DATA = "PURGE_DATA"
    GLOBAL_ACCESS = "GLOBAL_ACCESS"
    DASHBOARD_VIEW = "DASHBOARD_VIEW"
    SETTINGS_ACCESS = "SETTINGS_ACCESS"


class PermissionGroup(str, Enum):
    INVENTORY = "Inventory"
    INDENTS = "Indents"
    REPORTING = "Reporting"
    AI = "AI"
    SYSTEM = "System"


@dataclass(frozen=True)
class PermissionInfo:
    """Catalogue entry shown in the access-control screen."""
    permission: Permission
    label: str
    group: PermissionGroup


_P = Permission
_G = PermissionGroup

PERMISSION_CATALOG: tuple[PermissionInfo, ...] = (
    PermissionInfo(_P.INV_VIEW, "View Stock Ledger", _G.INVENTORY),
    PermissionInfo(_P.INV_ADD, "Register New Assets", _G.INVENTORY),
    PermissionInfo(_P.INV_EDIT, "Edit Asset Details", _G.INVENTORY),
    PermissionInfo(_P.INV_DELETE, "Delete Asset Records", _G.INVENTORY),
    PermissionInfo(_P.STOCK_IN, "Post Receipt (Add)", _G.INVENTORY),
    PermissionInfo(_P.STOCK_OUT, "Post Issue (Out)", _G.INVENTORY),
    PermissionInfo(_P.STOCK_RECONCILE, "Manual Correction", _G.INVENTORY),
    PermissionInfo(_P.MIN_STOCK_EDIT, "Edit Min Stock Levels", _G.INVENTORY),
    PermissionInfo(_P.CAT_MANAGE, "Manage Categories", _G.INVENTORY),
    PermissionInfo(_P.UNIT_MANAGE, "Manage Units", _G.INVENTORY),
    PermissionInfo(_P.IND_VIEW, "View Requisitions", _G.INDENTS),
    PermissionInfo(_P.IND_CREATE, "Create Requisitions", _G.INDENTS),
    PermissionInfo(_P.IND_APPROVE, "Approve Requisitions", _G.INDENTS),
    PermissionInfo(_P.IND_REJECT, "Reject Requisitions", _G.INDENTS),
    PermissionInfo(_P.IND_FULFILL, "Close/Fulfill Indents", _G.INDENTS),
    PermissionInfo(_P.REPORTS_VIEW, "Access Analytics", _G.REPORTING),
    PermissionInfo(_P.REPORTS_EXPORT, "Export Data (CSV)", _G.REPORTING),
    PermissionInfo(_P.REPORTS_PRINT, "Print Stock Lists", _G.REPORTING),
    PermissionInfo(_P.PRICE_VIEW, "View Asset Pricing", _G.REPORTING),
    PermissionInfo(_P.PRICE_EDIT, "Modify Asset Price", _G.REPORTING),
    PermissionInfo(_P.AUDIT_LOGS, "View Activity Logs", _G.REPORTING),
    PermissionInfo(_P.AI_INSIGHTS, "AI Analysis Access", _G.AI),
    PermissionInfo(_P.AI_DESC_GEN, "AI Description Generator", _G.AI),
    PermissionInfo(_P.DEPT_MANAGE, "Manage Departments", _G.SYSTEM),
    PermissionInfo(_P.USER_MANAGE, "Manage User Accounts", _G.SYSTEM),
    PermissionInfo(_P.USER_PASS_RESET, "Reset User Passwords", _G.SYSTEM),
    PermissionInfo(_P.PURGE_DATA, "Purge System Data", _G.SYSTEM),
    PermissionInfo(_P.GLOBAL_ACCESS, "Global (All Dept) Access", _G.SYSTEM),
    PermissionInfo(_P.DASHBOARD_VIEW, "View Main Dashboard", _G.SYSTEM),
    PermissionInfo(_P.SETTINGS_ACCESS, "Access System Settings", _G.SYSTEM),
)

ADMIN_PERMISSIONS: frozenset[Permission] = frozenset(Permission)

DEFAULT_USER_PERMISSIONS: frozenset[Permission] = frozenset({
    Permission.INV_VIEW,
    Permission.IND_VIEW,
    Permission.DASHBOARD_VIEW,
})


def permissions_in_group(group: PermissionGroup) -> tuple[Permission, ...]:
    """Catalogue order of the permissions belonging to ``group``."""
    return tuple(info.permission for info in PERMISSION_CATALOG if info.group == group)


def has_permission(user: User | None, permission: Permission) -> bool:
    """True iff ``user`` holds ``permission``. Nobody logged in holds nothing."""
    if user is None:
        return False
    if user.is_admin:
        return True
    return permission in user.permissions


def check_access(user: User | None, permission: Permission) -> tuple[bool, str]:
    """Check whether the actor may use a capability.

    Returns:
        (allowed, reason). reason is empty when allowed, or a short message
        when denied.
    """
    if user is None:
        return (False, "Access denied: not logged in")
    if has_permission(user, permission):
        return (True, "")
    return (False, f"Access denied: {permission.value} not granted to {user.username}")


def require_permission(user: User | None, permission: Permission) -> None:
    """Raise ``PermissionDeniedError`` unless ``user`` holds ``permission``."""
    allowed, reason = check_access(user, permission)
    if allowed:
        return
    actor = user.username if user is not None else "anonymous"
    logger.warning(
        "access_denied",
        extra={"actor": actor, "permission": permission.value, "reason": reason},
    )
    raise PermissionDeniedError(actor, permission.value)


# ---------------------------------------------------------------------------
# View guards
# ---------------------------------------------------------------------------


class View(str, Enum):
    """Screens of the application that are gated by a capability."""
    DASHBOARD = "dashboard"
    INVENTORY = "inventory"
    STOCK_ENTRY = "stock_entry"
    STOCK_ISSUE = "stock_issue"
    INDENTS = "indents"
    ANALYTICS = "analytics"
    COST_ANALYSIS = "cost_analysis"
    ADMIN_PANEL = "admin_panel"
    SETTINGS = "settings"


@dataclass(frozen=True)
class ViewAccess:
    """Outcome of a view guard. ``message`` is the placeholder shown on denial."""
    view: View
    allowed: bool
    message: str = ""


# Any one of the listed permissions opens the view.
VIEW_REQUIREMENTS: dict[View, tuple[tuple[Permission, ...], str]] = {
    View.DASHBOARD: ((_P.DASHBOARD_VIEW,), "Access Denied: Dashboard View Restricted"),
    View.INVENTORY: ((_P.INV_VIEW,), "Access Denied: Inventory Restricted"),
    View.STOCK_ENTRY: ((_P.STOCK_IN,), "Access Denied: Stock Entry Restricted"),
    View.STOCK_ISSUE: ((_P.STOCK_OUT,), "Access Denied: Stock Issue Restricted"),
    View.INDENTS: ((_P.IND_VIEW,), "Access Denied: Indents Restricted"),
    View.ANALYTICS: ((_P.REPORTS_VIEW,), "Access Denied: Reports Restricted"),
    View.COST_ANALYSIS: ((_P.REPORTS_VIEW,), "Access Denied: Reports Restricted"),
    View.ADMIN_PANEL: (
        (_P.USER_MANAGE, _P.DEPT_MANAGE),
        "Access Denied: Admin Panel Restricted",
    ),
    View.SETTINGS: ((_P.SETTINGS_ACCESS,), "Access Denied: Settings Restricted"),
}


def guard_view(user: User | None, view: View) -> ViewAccess:
    """Decide whether ``user`` may open ``view``; never raises."""
    required, denial = VIEW_REQUIREMENTS[view]
    if any(has_permission(user, p) for p in required):
        return ViewAccess(view=view, allowed=True)
    logger.info(
        "view_denied",
        extra={
            "view": view.value,
            "actor": user.username if user is not None else None,
        },
    )
    return ViewAccess(view=view, allowed=False, message=denial)
