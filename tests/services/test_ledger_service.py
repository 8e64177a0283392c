"""
Tests for LedgerService.

Covers:
- Registration with opening stock (one IN transaction, counters seeded)
- IN/OUT movements keep balance and counters consistent
- Over-issue: clamp (default) vs reject, single policy point
- Department booking of issues
- Edit permissions and ledger-owned fields
- Cascade delete and confirmed purge
- Durability of products and transactions together
"""

from decimal import Decimal

import pytest

from stockroom_kernel.db.engine import drop_tables
from stockroom_kernel.domain.models import MovementType, Unit
from stockroom_kernel.domain.permissions import Permission
from stockroom_kernel.exceptions import (
    ConfirmationRequiredError,
    ImmutableFieldError,
    InsufficientStockError,
    InvalidDepartmentError,
    InvalidQuantityError,
    MissingFieldError,
    PermissionDeniedError,
    PersistenceError,
    ProductNotFoundError,
)
from stockroom_kernel.services import LedgerService, OverIssuePolicy, StateRepository
from stockroom_kernel.services.ledger_service import (
    OPENING_STOCK_REFERENCE,
    OPENING_STOCK_REMARKS,
)


def _balanced(product) -> bool:
    return product.quantity == product.total_received - product.total_issued


class TestRegister:
    def test_opening_stock_creates_one_in_transaction(self, ledger, state, register_product, admin):
        product = register_product(quantity="100", price="2.50")

        assert product.quantity == Decimal("100")
        assert product.total_received == Decimal("100")
        assert product.total_issued == Decimal("0")
        assert _balanced(product)

        txns = state.transactions_for(product.id)
        assert len(txns) == 1
        opening = txns[0]
        assert opening.type is MovementType.IN
        assert opening.quantity == Decimal("100")
        assert opening.reference == OPENING_STOCK_REFERENCE
        assert opening.remarks == OPENING_STOCK_REMARKS
        assert opening.price_at_time == Decimal("2.50")
        assert opening.user == admin.name
        assert opening.department == "Store"

    def test_zero_opening_stock_has_no_transaction(self, state, register_product):
        product = register_product(quantity="0")
        assert state.transactions_for(product.id) == []
        assert product.total_received == 0

    def test_stamps_updated_at_from_clock(self, register_product, deterministic_clock):
        assert register_product().updated_at == deterministic_clock.now()

    def test_requires_inv_add(self, ledger, make_user):
        viewer = make_user("viewer", "Store", {Permission.INV_VIEW})
        with pytest.raises(PermissionDeniedError):
            ledger.register(viewer, name="X", sku="X", category="Tools", department="Store")

    def test_missing_required_field(self, ledger, admin, state):
        with pytest.raises(MissingFieldError) as exc_info:
            ledger.register(admin, name="Gasket", sku="", category="", department="Store")
        assert exc_info.value.fields == ["SKU / Part No", "Category"]
        assert state.products == []

    def test_all_is_not_a_department(self, register_product, state):
        with pytest.raises(InvalidDepartmentError):
            register_product(department="All")
        assert state.products == []

    def test_total_received_matching_opening_is_accepted(self, register_product):
        product = register_product(quantity="10", total_received="10")
        assert product.total_received == Decimal("10")
        assert _balanced(product)

    @pytest.mark.parametrize("total_received", ["-50", "25", "0"])
    def test_total_received_must_match_opening(self, register_product, state, total_received):
        with pytest.raises(InvalidQuantityError) as exc_info:
            register_product(quantity="10", total_received=total_received)
        assert exc_info.value.field == "total_received"
        assert state.products == []
        assert state.transactions == []


class TestMovements:
    def test_receive_then_issue(self, ledger, admin, register_product):
        product = register_product(quantity="100")

        received = ledger.apply_movement(admin, product.id, MovementType.IN, "20")
        assert received.product.quantity == Decimal("120")
        assert received.product.total_received == Decimal("120")

        issued = ledger.apply_movement(admin, product.id, "OUT", "45")
        assert issued.product.quantity == Decimal("75")
        assert issued.product.total_issued == Decimal("45")
        assert _balanced(issued.product)
        assert not issued.clamped

    @pytest.mark.parametrize("quantity", ["0", "-3"])
    def test_non_positive_quantity_rejected_without_change(self, ledger, admin, state, register_product, quantity):
        product = register_product()
        before = list(state.transactions)
        with pytest.raises(InvalidQuantityError):
            ledger.apply_movement(admin, product.id, MovementType.IN, quantity)
        assert state.product(product.id) == product
        assert state.transactions == before

    def test_movement_permission_depends_on_direction(self, ledger, make_user, register_product):
        product = register_product()
        receiver = make_user("receiver", "Store", {Permission.STOCK_IN})

        ledger.apply_movement(receiver, product.id, MovementType.IN, "1")
        with pytest.raises(PermissionDeniedError):
            ledger.apply_movement(receiver, product.id, MovementType.OUT, "1")

    def test_unknown_product(self, ledger, admin):
        with pytest.raises(ProductNotFoundError):
            ledger.apply_movement(admin, "nope", MovementType.IN, "1")

    def test_price_snapshot_does_not_follow_later_edits(self, ledger, admin, state, register_product):
        product = register_product(price="2")
        result = ledger.apply_movement(admin, product.id, MovementType.OUT, "5")
        ledger.edit(admin, product.id, price=Decimal("9"), name="Bolt M6 Zinc")

        stored = next(t for t in state.transactions if t.id == result.transaction.id)
        assert stored.price_at_time == Decimal("2")
        assert stored.product_name == "Bolt M6"

    def test_issue_booked_to_target_department(self, ledger, clerk, admin, register_product):
        product = register_product(department="HR")
        result = ledger.apply_movement(
            clerk, product.id, MovementType.OUT, "10", target_department="Mechanical"
        )
        assert result.transaction.department == "Mechanical"
        assert result.product.department == "HR"

    def test_receipt_ignores_target_department(self, ledger, admin, register_product):
        product = register_product(department="HR")
        result = ledger.apply_movement(
            admin, product.id, MovementType.IN, "1", target_department="Mechanical"
        )
        assert result.transaction.department == "HR"

    def test_unknown_target_department_rejected(self, ledger, admin, register_product):
        product = register_product()
        with pytest.raises(InvalidDepartmentError):
            ledger.apply_movement(admin, product.id, "OUT", "1", target_department="Nowhere")

    def test_movement_logged(self, ledger, admin, register_product, captured_logs):
        product = register_product()
        ledger.apply_movement(admin, product.id, MovementType.OUT, "3")

        applied = [r for r in captured_logs() if r["message"] == "ledger_movement_applied"]
        assert len(applied) == 1
        assert applied[0]["balance"] == "97"
        assert applied[0]["product_id"] == product.id
        assert applied[0]["actor_id"] == admin.id


class TestOverIssue:
    def test_clamp_scenario(self, ledger, admin, state, register_product):
        product = register_product(quantity="100", department="Store")

        first = ledger.apply_movement(
            admin, product.id, MovementType.OUT, "30", target_department="HR"
        )
        assert first.product.quantity == Decimal("70")
        assert first.product.total_issued == Decimal("30")
        assert first.transaction.department == "HR"

        second = ledger.apply_movement(admin, product.id, MovementType.OUT, "1000")
        assert second.clamped
        assert second.product.quantity == Decimal("0")
        assert second.product.total_issued == Decimal("1030")
        assert second.transaction.quantity == Decimal("1000")
        assert len(state.transactions_for(product.id)) == 3

    def test_clamp_logged_as_warning(self, ledger, admin, register_product, captured_logs):
        product = register_product(quantity="5")
        ledger.apply_movement(admin, product.id, MovementType.OUT, "8")

        clamped = [r for r in captured_logs() if r["message"] == "issue_clamped_to_zero"]
        assert clamped and clamped[0]["level"] == "WARNING"

    def test_reject_policy_leaves_everything_unchanged(self, state, repository, deterministic_clock, admin):
        strict = LedgerService(state, repository, deterministic_clock, OverIssuePolicy.REJECT)
        product = strict.register(
            admin, name="Valve", sku="V-1", category="Spare Parts",
            department="Store", unit=Unit.PIECES, quantity="10",
        )
        txn_count = len(state.transactions)

        with pytest.raises(InsufficientStockError) as exc_info:
            strict.apply_movement(admin, product.id, MovementType.OUT, "11")

        assert exc_info.value.available == "10"
        assert state.product(product.id) == product
        assert len(state.transactions) == txn_count

    def test_exact_balance_is_not_over_issue(self, ledger, admin, register_product):
        product = register_product(quantity="10")
        result = ledger.apply_movement(
            admin, product.id, MovementType.OUT, "10", policy=OverIssuePolicy.REJECT
        )
        assert result.product.quantity == 0
        assert not result.clamped


class TestForms:
    def test_receive_stock_updates_price(self, ledger, admin, register_product):
        product = register_product(price="2")
        result = ledger.receive_stock(
            admin, product.id, "10", reference="GRN-42", unit_price="2.40"
        )
        assert result.product.price == Decimal("2.40")
        assert result.transaction.price_at_time == Decimal("2.40")
        assert result.transaction.reference == "GRN-42"

    def test_receive_stock_zero_price_keeps_current(self, ledger, admin, register_product):
        product = register_product(price="2")
        result = ledger.receive_stock(admin, product.id, "10", unit_price="0")
        assert result.product.price == Decimal("2")

    def test_receipt_rate_needs_no_price_edit(self, ledger, clerk, state, register_product):
        assert Permission.PRICE_EDIT not in clerk.permissions
        product = register_product(price="2")

        result = ledger.receive_stock(clerk, product.id, "5", unit_price="7")

        assert result.product.price == Decimal("7")
        assert result.transaction.price_at_time == Decimal("7")
        assert state.product(product.id).price == Decimal("7")
        with pytest.raises(PermissionDeniedError):
            ledger.edit(clerk, product.id, price=Decimal("8"))

    def test_issue_stock_rejects_over_issue(self, ledger, admin, register_product):
        product = register_product(quantity="4", unit=Unit.KG)
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.issue_stock(admin, product.id, "5")
        assert str(exc_info.value) == "Insufficient balance: 4 KG available."

    def test_issue_stock_records_recipient(self, ledger, admin, register_product):
        product = register_product()
        result = ledger.issue_stock(
            admin, product.id, "5", target_department="ETP", issued_to="Shift B"
        )
        assert result.transaction.reference == "Shift B"
        assert result.transaction.department == "ETP"

    def test_quick_adjust(self, ledger, admin, register_product):
        product = register_product(quantity="10")
        added = ledger.quick_adjust(admin, product.id, "add", "5")
        assert added.transaction.remarks == "Quick add operation"
        issued = ledger.quick_adjust(admin, product.id, "issue", "3")
        assert issued.transaction.type is MovementType.OUT
        assert issued.product.quantity == Decimal("12")

    def test_quick_adjust_unknown_operation(self, ledger, admin, register_product):
        product = register_product()
        with pytest.raises(ValueError):
            ledger.quick_adjust(admin, product.id, "transfer", "1")


class TestEdit:
    def test_edit_creates_no_transaction(self, ledger, admin, state, register_product):
        product = register_product()
        count = len(state.transactions)
        edited = ledger.edit(admin, product.id, description="Zinc plated", location="R2-S4")

        assert edited.description == "Zinc plated"
        assert edited.quantity == product.quantity
        assert len(state.transactions) == count

    @pytest.mark.parametrize("field", ["quantity", "total_received", "total_issued", "id"])
    def test_ledger_fields_are_immutable(self, ledger, admin, register_product, field):
        product = register_product()
        with pytest.raises(ImmutableFieldError):
            ledger.edit(admin, product.id, **{field: Decimal("1")})

    def test_price_change_needs_price_edit(self, ledger, make_user, register_product):
        product = register_product(price="2")
        editor = make_user("editor", "Store", {Permission.INV_EDIT})

        ledger.edit(editor, product.id, price=Decimal("2"), name="Same Price")
        with pytest.raises(PermissionDeniedError) as exc_info:
            ledger.edit(editor, product.id, price=Decimal("3"))
        assert exc_info.value.permission == "PRICE_EDIT"

    def test_min_stock_change_needs_min_stock_edit(self, ledger, make_user, register_product):
        product = register_product()
        editor = make_user("editor", "Store", {Permission.INV_EDIT, Permission.MIN_STOCK_EDIT})
        assert ledger.edit(editor, product.id, min_stock="15").min_stock == Decimal("15")

    def test_unknown_field(self, ledger, admin, register_product):
        product = register_product()
        with pytest.raises(ValueError):
            ledger.edit(admin, product.id, colour="blue")


class TestDeleteAndPurge:
    def test_delete_cascades_to_transactions(self, ledger, admin, state, register_product):
        keep = register_product("Washer")
        gone = register_product("Bolt M6")
        ledger.apply_movement(admin, gone.id, MovementType.OUT, "1")

        removed = ledger.delete(admin, gone.id)

        assert removed == 2
        assert [p.id for p in state.products] == [keep.id]
        assert all(t.product_id == keep.id for t in state.transactions)

    def test_purge_requires_confirmation(self, ledger, admin, state, register_product):
        register_product()
        with pytest.raises(ConfirmationRequiredError):
            ledger.purge_all(admin)
        assert len(state.products) == 1

        ledger.purge_all(admin, confirm=True)
        assert state.products == [] and state.transactions == [] and state.indents == []
        assert state.users and state.departments

    def test_purge_requires_permission(self, ledger, clerk):
        with pytest.raises(PermissionDeniedError):
            ledger.purge_all(clerk, confirm=True)


class TestDurability:
    def test_products_and_transactions_survive_reload(
        self, ledger, admin, state, state_store, defaults, register_product
    ):
        product = register_product()
        ledger.apply_movement(admin, product.id, MovementType.OUT, "40")

        reloaded = StateRepository(state_store, defaults).load()

        assert reloaded.products == state.products
        assert reloaded.transactions == state.transactions
        assert _balanced(reloaded.product(product.id))

    def test_failed_write_keeps_memory_state(self, ledger, admin, state, register_product):
        product = register_product()
        drop_tables()

        with pytest.raises(PersistenceError):
            ledger.apply_movement(admin, product.id, MovementType.IN, "5")

        assert state.product(product.id).quantity == Decimal("105")
