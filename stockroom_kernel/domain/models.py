"""
Stockroom Domain Models (``stockroom_kernel.domain.models``).

Responsibility
--------------
Frozen value objects representing the nouns of the stockroom: products,
stock movements (transactions), indents, user accounts, and the two
configuration objects (registration form fields, app branding).

Architecture
------------
Layer: **Kernel domain** -- pure data structures.  All dataclasses are
``frozen=True``; mutation is expressed as ``dataclasses.replace`` inside the
services, which swap whole records in ``InventoryState``.  No I/O.

Invariants
----------
- ``Product.quantity`` is never negative.
- ``Transaction.quantity`` is strictly positive; transactions are never
  updated after creation.
- Departments are plain strings; ``ALL_DEPARTMENTS`` is a view-only sentinel
  and is never stored on a Product, Indent or User.
- Quantities and prices use ``Decimal`` -- never ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from stockroom_kernel.domain.permissions import Permission
from stockroom_kernel.logging_config import get_logger

logger = get_logger("domain.models")

ALL_DEPARTMENTS = "All"

PROTECTED_FORM_FIELDS: frozenset[str] = frozenset({"name", "quantity", "unit"})

ZERO = Decimal("0")


class Unit(str, Enum):
    """Unit of measure for a stocked material."""
    PIECES = "Pieces"
    KG = "KG"
    GRAM = "Gram"
    PACKET = "Packet"
    METER = "Meter"
    LITRE = "Litre"
    SET = "Set"
    ROLL = "Roll"


class MovementType(str, Enum):
    """Direction of a stock movement."""
    IN = "IN"
    OUT = "OUT"


class IndentPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IndentStatus(str, Enum):
    """Indent lifecycle states (see ``indent_workflow``)."""
    PENDING = "pending"
    APPROVED = "approved"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


@dataclass(frozen=True)
class Product:
    """
    A stocked material.

    Contract: Immutable value object.  ``quantity`` is the current balance;
    ``total_received`` and ``total_issued`` are lifetime counters maintained
    only by the ledger service.
    """
    id: str
    name: str
    sku: str
    category: str
    department: str
    unit: Unit
    price: Decimal = ZERO
    quantity: Decimal = ZERO
    total_received: Decimal = ZERO
    total_issued: Decimal = ZERO
    min_stock: Decimal = ZERO
    description: str = ""
    updated_at: datetime | None = None
    batch_number: str | None = None
    supplier: str | None = None
    location: str | None = None
    expiry_date: str | None = None

    def __post_init__(self):
        if self.quantity < 0:
            logger.warning(
                "product_negative_quantity",
                extra={"product_id": self.id, "quantity": str(self.quantity)},
            )
            raise ValueError(f"quantity cannot be negative (got {self.quantity})")

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock

    @property
    def stock_value(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class Transaction:
    """
    One stock movement.

    Contract: Immutable.  ``product_name`` and ``price_at_time`` are
    snapshots taken when the movement was applied and do not follow later
    edits to the product.
    """
    id: str
    date: datetime
    product_id: str
    product_name: str
    type: MovementType
    quantity: Decimal
    department: str
    user: str
    reference: str | None = None
    remarks: str | None = None
    price_at_time: Decimal = ZERO

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"movement quantity must be positive (got {self.quantity})")

    @property
    def value(self) -> Decimal:
        return self.quantity * self.price_at_time


@dataclass(frozen=True)
class Indent:
    """
    A requisition for material raised by a department.

    Contract: Immutable.  Only ``status`` ever changes, through
    ``IndentService.transition``.
    """
    id: str
    product_id: str
    product_name: str
    department: str
    quantity: Decimal
    unit: Unit
    priority: IndentPriority
    requested_by: str
    created_at: datetime
    status: IndentStatus = IndentStatus.PENDING


@dataclass(frozen=True)
class User:
    """
    A user account.

    Contract: ``password`` is stored and compared in plaintext (behaviour
    parity with the browser application).  Administrators hold every
    permission regardless of ``permissions``.
    """
    id: str
    username: str
    password: str
    name: str
    department: str
    role: UserRole = UserRole.USER
    permissions: frozenset[Permission] = field(default_factory=frozenset)
    created_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class FormFieldSetting:
    """Visibility/required flags for one registration form field."""
    id: str
    label: str
    is_enabled: bool = True
    is_required: bool = False


@dataclass(frozen=True)
class FormConfig:
    """Registration form configuration."""
    fields: tuple[FormFieldSetting, ...] = ()

    def get(self, field_id: str) -> FormFieldSetting | None:
        for setting in self.fields:
            if setting.id == field_id:
                return setting
        return None

    def required_field_ids(self) -> tuple[str, ...]:
        """Fields that are both enabled and required, in form order."""
        return tuple(f.id for f in self.fields if f.is_enabled and f.is_required)


@dataclass(frozen=True)
class AppConfig:
    """App branding."""
    app_name: str = "InventoryPro"
    logo_url: str = ""
