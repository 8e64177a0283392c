"""
LedgerService -- the only writer of product balances and stock movements.

Responsibility:
    Keeps a product's balance, its lifetime received/issued counters and the
    append-only transaction log consistent with one another.  Entry points:
    ``register`` (with opening stock), ``apply_movement`` (IN / OUT),
    ``edit``, ``delete`` (cascades to transactions) and ``purge_all``, plus
    the receipt, issue and quick-adjust forms built on ``apply_movement``.

Architecture position:
    Kernel > Services.  Operates on an ``InventoryState`` passed in by the
    caller and persists through ``StateRepository``.

Invariants enforced:
    - Every product change and its transaction are applied to the state
      before anything is persisted, and both stores are persisted in one
      database transaction.
    - After ``register`` and after every non-clamping movement,
      ``quantity == total_received - total_issued``.
    - Over-issue handling is decided in exactly one place
      (``_resolve_issue``), from ``OverIssuePolicy``.
    - ``edit`` never touches quantity or counters and never creates a
      transaction.

Failure modes:
    - PermissionDeniedError: actor lacks the capability for the operation.
    - ValidationError subclasses: rejected before any state change.
    - ProductNotFoundError: unknown product id.
    - PersistenceError: durable write failed; in-memory state is kept.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from stockroom_kernel.domain.clock import Clock, SystemClock
from stockroom_kernel.domain.models import (
    ZERO,
    MovementType,
    Product,
    Transaction,
    Unit,
    User,
)
from stockroom_kernel.domain.permissions import Permission, require_permission
from stockroom_kernel.domain.validation import (
    to_decimal,
    validate_department,
    validate_registration,
    validate_unit,
)
from stockroom_kernel.exceptions import (
    ConfirmationRequiredError,
    ImmutableFieldError,
    InsufficientStockError,
    InvalidQuantityError,
)
from stockroom_kernel.logging_config import LogContext, get_logger
from stockroom_kernel.services.state_store import StateRepository
from stockroom_kernel.state import (
    KEY_INDENTS,
    KEY_PRODUCTS,
    KEY_TRANSACTIONS,
    InventoryState,
)

logger = get_logger("services.ledger")

OPENING_STOCK_REFERENCE = "Opening Stock"
OPENING_STOCK_REMARKS = "Initial Entry"

# Fields owned by the ledger; edits may not set them.
LEDGER_FIELDS = frozenset({"id", "quantity", "total_received", "total_issued"})

EDITABLE_FIELDS = frozenset({
    "name", "sku", "category", "department", "unit", "price", "min_stock",
    "description", "batch_number", "supplier", "location", "expiry_date",
})

_DECIMAL_FIELDS = frozenset({"price", "min_stock"})


class OverIssuePolicy(str, Enum):
    """What an OUT movement larger than the balance does."""

    CLAMP = "clamp"    # balance floors at 0; counters record the full request
    REJECT = "reject"  # raise InsufficientStockError, nothing changes


@dataclass(frozen=True)
class MovementResult:
    """Product after the movement and the transaction it appended."""

    product: Product
    transaction: Transaction
    clamped: bool = False


class LedgerService:
    """
    Stock-ledger mutations.

    Contract:
        Every public method takes the acting ``User`` first and checks its
        capability before touching state.  Methods return the new records.

    Non-goals:
        - Does NOT move stock when an indent is fulfilled.
        - Does NOT recompute statistics; see ``domain.statistics``.
    """

    def __init__(
        self,
        state: InventoryState,
        repository: StateRepository | None = None,
        clock: Clock | None = None,
        over_issue_policy: OverIssuePolicy = OverIssuePolicy.CLAMP,
    ):
        self._state = state
        self._repository = repository
        self._clock = clock or SystemClock()
        self._over_issue_policy = OverIssuePolicy(over_issue_policy)

    @property
    def over_issue_policy(self) -> OverIssuePolicy:
        return self._over_issue_policy

    def _persist(self, *keys: str) -> None:
        if self._repository is not None:
            self._repository.persist(self._state, *keys)

    # -----------------------------------------------------------------
    # Register
    # -----------------------------------------------------------------

    def register(
        self,
        actor: User,
        *,
        name: str,
        sku: str,
        category: str,
        department: str,
        unit: Unit | str = Unit.PIECES,
        price: Decimal | int | str = ZERO,
        quantity: Decimal | int | str = ZERO,
        min_stock: Decimal | int | str = ZERO,
        description: str = "",
        batch_number: str | None = None,
        supplier: str | None = None,
        location: str | None = None,
        expiry_date: str | None = None,
        total_received: Decimal | int | str | None = None,
    ) -> Product:
        """
        Register a product.

        A positive opening quantity counts as a receipt: ``total_received``
        defaults to it and one IN transaction tagged ``Opening Stock`` is
        appended in the same step. A supplied ``total_received`` must equal
        the opening quantity.

        Raises:
            PermissionDeniedError: actor lacks INV_ADD.
            MissingFieldError / InvalidDepartmentError / InvalidQuantityError.
        """
        require_permission(actor, Permission.INV_ADD)
        values = {
            "name": name, "sku": sku, "category": category,
            "department": department, "unit": unit, "price": price,
            "quantity": quantity, "min_stock": min_stock,
            "description": description, "batch_number": batch_number,
            "supplier": supplier, "location": location,
            "expiry_date": expiry_date,
        }
        validate_registration(values, self._state.form_config, self._state.departments)

        opening = to_decimal("quantity", quantity)
        received = opening if total_received is None else to_decimal("total_received", total_received)
        if received != opening:
            # Nothing has been issued yet, so the counter must match the balance.
            raise InvalidQuantityError(
                "total_received", str(received), f"must equal opening quantity {opening}"
            )
        now = self._clock.now()
        product = Product(
            id=str(uuid4()),
            name=name.strip(),
            sku=sku.strip(),
            category=category,
            department=department,
            unit=validate_unit(unit),
            price=to_decimal("price", price),
            quantity=opening,
            total_received=received,
            total_issued=ZERO,
            min_stock=to_decimal("min_stock", min_stock),
            description=description or "",
            updated_at=now,
            batch_number=batch_number or None,
            supplier=supplier or None,
            location=location or None,
            expiry_date=expiry_date or None,
        )

        self._state.products.append(product)
        if opening > 0:
            self._state.transactions.append(Transaction(
                id=str(uuid4()),
                date=now,
                product_id=product.id,
                product_name=product.name,
                type=MovementType.IN,
                quantity=opening,
                department=product.department,
                user=actor.name,
                reference=OPENING_STOCK_REFERENCE,
                remarks=OPENING_STOCK_REMARKS,
                price_at_time=product.price,
            ))

        with LogContext.bind(actor_id=actor.id, product_id=product.id):
            logger.info(
                "product_registered",
                extra={
                    "sku": product.sku,
                    "department": product.department,
                    "opening_quantity": opening,
                },
            )
        self._persist(KEY_PRODUCTS, KEY_TRANSACTIONS)
        return product

    # -----------------------------------------------------------------
    # Movements
    # -----------------------------------------------------------------

    def _resolve_issue(
        self,
        product: Product,
        quantity: Decimal,
        policy: OverIssuePolicy,
    ) -> tuple[Decimal, bool]:
        """New balance after issuing ``quantity`` and whether it clamped."""
        if quantity <= product.quantity:
            return product.quantity - quantity, False
        if policy == OverIssuePolicy.REJECT:
            logger.info(
                "issue_rejected_insufficient_stock",
                extra={"requested": quantity, "available": product.quantity},
            )
            raise InsufficientStockError(
                product.id, str(quantity), str(product.quantity), product.unit.value
            )
        return ZERO, True

    def apply_movement(
        self,
        actor: User,
        product_id: str,
        movement_type: MovementType | str,
        quantity: Decimal | int | str,
        *,
        reference: str | None = None,
        remarks: str | None = None,
        target_department: str | None = None,
        changes: dict[str, Any] | None = None,
        receipt_price: Decimal | None = None,
        policy: OverIssuePolicy | None = None,
    ) -> MovementResult:
        """
        Apply one IN or OUT movement and append its transaction.

        Args:
            actor: Acting user; needs STOCK_IN or STOCK_OUT.
            product_id: Product to move.
            movement_type: IN (receipt) or OUT (issue).
            quantity: Strictly positive amount.
            reference: Voucher / source reference.
            remarks: Free text.
            target_department: OUT only; books the transaction against
                another department.  Blank means the product's own.
            changes: Non-ledger field edits applied in the same step, before
                the price snapshot is taken.
            receipt_price: IN only; the rate on the receipt voucher.  Becomes
                the product price without PRICE_EDIT.
            policy: Overrides the service's over-issue policy for this call.

        Returns:
            MovementResult with the updated product and the new transaction.
        """
        movement_type = MovementType(movement_type)
        required = Permission.STOCK_IN if movement_type == MovementType.IN else Permission.STOCK_OUT
        require_permission(actor, required)

        qty = to_decimal("quantity", quantity)
        if qty <= 0:
            raise InvalidQuantityError("quantity", str(qty), "movement quantity must be positive")

        product = self._state.product(product_id)
        if changes:
            product = self._apply_changes(actor, product, changes)
        if receipt_price is not None and movement_type == MovementType.IN:
            product = replace(product, price=receipt_price)

        department = product.department
        if movement_type == MovementType.OUT and target_department:
            department = validate_department(target_department, self._state.departments)

        with LogContext.bind(actor_id=actor.id, product_id=product.id):
            clamped = False
            if movement_type == MovementType.IN:
                product = replace(
                    product,
                    quantity=product.quantity + qty,
                    total_received=product.total_received + qty,
                    updated_at=self._clock.now(),
                )
            else:
                balance, clamped = self._resolve_issue(
                    product, qty, policy or self._over_issue_policy
                )
                product = replace(
                    product,
                    quantity=balance,
                    total_issued=product.total_issued + qty,
                    updated_at=self._clock.now(),
                )

            transaction = Transaction(
                id=str(uuid4()),
                date=self._clock.now(),
                product_id=product.id,
                product_name=product.name,
                type=movement_type,
                quantity=qty,
                department=department,
                user=actor.name,
                reference=reference or None,
                remarks=remarks or None,
                price_at_time=product.price,
            )
            self._state.replace_product(product)
            self._state.transactions.append(transaction)

            if clamped:
                logger.warning(
                    "issue_clamped_to_zero",
                    extra={"requested": qty, "total_issued": product.total_issued},
                )
            logger.info(
                "ledger_movement_applied",
                extra={
                    "movement_type": movement_type.value,
                    "quantity": qty,
                    "balance": product.quantity,
                    "transaction_department": department,
                    "transaction_id": transaction.id,
                },
            )

        self._persist(KEY_PRODUCTS, KEY_TRANSACTIONS)
        return MovementResult(product=product, transaction=transaction, clamped=clamped)

    def receive_stock(
        self,
        actor: User,
        product_id: str,
        quantity: Decimal | int | str,
        *,
        reference: str | None = None,
        remarks: str | None = None,
        unit_price: Decimal | int | str | None = None,
    ) -> MovementResult:
        """Stock entry form: a positive ``unit_price`` becomes the new price."""
        price = None
        if unit_price is not None:
            price = to_decimal("price", unit_price)
            if price <= 0:
                price = None
        return self.apply_movement(
            actor, product_id, MovementType.IN, quantity,
            reference=reference, remarks=remarks, receipt_price=price,
        )

    def issue_stock(
        self,
        actor: User,
        product_id: str,
        quantity: Decimal | int | str,
        *,
        target_department: str | None = None,
        issued_to: str | None = None,
        remarks: str | None = None,
    ) -> MovementResult:
        """Stock issue voucher: never issues more than the balance."""
        return self.apply_movement(
            actor, product_id, MovementType.OUT, quantity,
            reference=issued_to, remarks=remarks,
            target_department=target_department,
            policy=OverIssuePolicy.REJECT,
        )

    def quick_adjust(
        self,
        actor: User,
        product_id: str,
        operation: str,
        quantity: Decimal | int | str,
    ) -> MovementResult:
        """Inline add/issue from the stock ledger table."""
        if operation not in ("add", "issue"):
            raise ValueError(f"operation must be 'add' or 'issue', got {operation!r}")
        movement_type = MovementType.IN if operation == "add" else MovementType.OUT
        return self.apply_movement(
            actor, product_id, movement_type, quantity,
            remarks=f"Quick {operation} operation",
        )

    # -----------------------------------------------------------------
    # Edit / delete / purge
    # -----------------------------------------------------------------

    def _apply_changes(self, actor: User, product: Product, changes: dict[str, Any]) -> Product:
        for field in changes:
            if field in LEDGER_FIELDS:
                raise ImmutableFieldError(field)
            if field not in EDITABLE_FIELDS:
                raise ValueError(f"Unknown product field: {field}")

        updates = dict(changes)
        for field in _DECIMAL_FIELDS & updates.keys():
            updates[field] = to_decimal(field, updates[field])
            if updates[field] < 0:
                raise InvalidQuantityError(field, str(updates[field]), "cannot be negative")
        if "unit" in updates:
            updates["unit"] = validate_unit(updates["unit"])
        if "department" in updates:
            validate_department(updates["department"], self._state.departments)

        if "price" in updates and updates["price"] != product.price:
            require_permission(actor, Permission.PRICE_EDIT)
        if "min_stock" in updates and updates["min_stock"] != product.min_stock:
            require_permission(actor, Permission.MIN_STOCK_EDIT)

        return replace(product, **updates, updated_at=self._clock.now())

    def edit(self, actor: User, product_id: str, **changes: Any) -> Product:
        """
        Replace non-ledger fields of a product.

        Changing ``price`` additionally needs PRICE_EDIT and changing
        ``min_stock`` needs MIN_STOCK_EDIT.  No transaction is created.
        """
        require_permission(actor, Permission.INV_EDIT)
        product = self._apply_changes(actor, self._state.product(product_id), changes)
        self._state.replace_product(product)
        with LogContext.bind(actor_id=actor.id, product_id=product.id):
            logger.info("product_edited", extra={"fields": sorted(changes)})
        self._persist(KEY_PRODUCTS)
        return product

    def delete(self, actor: User, product_id: str) -> int:
        """Remove a product and every transaction referencing it.

        Returns:
            Number of transactions removed with it.
        """
        require_permission(actor, Permission.INV_DELETE)
        product = self._state.product(product_id)
        before = len(self._state.transactions)
        self._state.products = [p for p in self._state.products if p.id != product.id]
        self._state.transactions = [
            t for t in self._state.transactions if t.product_id != product.id
        ]
        removed = before - len(self._state.transactions)
        with LogContext.bind(actor_id=actor.id, product_id=product.id):
            logger.info("product_deleted", extra={"transactions_removed": removed})
        self._persist(KEY_PRODUCTS, KEY_TRANSACTIONS)
        return removed

    def purge_all(self, actor: User, *, confirm: bool = False) -> None:
        """Clear products, transactions and indents.  Irreversible."""
        require_permission(actor, Permission.PURGE_DATA)
        if not confirm:
            raise ConfirmationRequiredError("Purge of all inventory data")
        counts = {
            "products": len(self._state.products),
            "transactions": len(self._state.transactions),
            "indents": len(self._state.indents),
        }
        self._state.products = []
        self._state.transactions = []
        self._state.indents = []
        with LogContext.bind(actor_id=actor.id):
            logger.warning("inventory_purged", extra=counts)
        self._persist(KEY_PRODUCTS, KEY_TRANSACTIONS, KEY_INDENTS)
