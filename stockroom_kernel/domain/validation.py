"""
Registration validation.

Checks a candidate product against the registration form configuration and
the department list before the ledger accepts it.  Everything here raises a
``ValidationError`` subclass; nothing mutates state.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from stockroom_kernel.domain.models import ALL_DEPARTMENTS, FormConfig, Unit
from stockroom_kernel.exceptions import (
    InvalidDepartmentError,
    InvalidQuantityError,
    MissingFieldError,
)

# Form field id -> keyword accepted by LedgerService.register.
FIELD_ATTRIBUTES: dict[str, str] = {
    "name": "name",
    "sku": "sku",
    "category": "category",
    "quantity": "quantity",
    "unit": "unit",
    "price": "price",
    "minStock": "min_stock",
    "batchNumber": "batch_number",
    "supplier": "supplier",
    "location": "location",
    "expiryDate": "expiry_date",
    "description": "description",
}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def to_decimal(field: str, value: Any) -> Decimal:
    """Coerce a numeric form value; blank means zero."""
    if _is_blank(value):
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise InvalidQuantityError(field, str(value), "not a number") from None
    if not result.is_finite():
        raise InvalidQuantityError(field, str(value), "not a finite number")
    return result


def validate_department(department: str, departments: Iterable[str]) -> str:
    """Return ``department`` if it can be assigned to a record."""
    if _is_blank(department):
        raise InvalidDepartmentError(department or "", "department is required")
    if department == ALL_DEPARTMENTS:
        raise InvalidDepartmentError(department, "'All' is a view filter, not a department")
    if department not in set(departments):
        raise InvalidDepartmentError(department, "unknown department")
    return department


def validate_unit(value: Unit | str) -> Unit:
    try:
        return Unit(value)
    except ValueError:
        raise InvalidQuantityError("unit", str(value), "unknown unit of measure") from None


def validate_registration(
    values: Mapping[str, Any],
    form_config: FormConfig,
    departments: Iterable[str],
) -> None:
    """
    Validate registration input.

    Args:
        values: Keyword values keyed by ``LedgerService.register`` argument
            names (``min_stock``, ``batch_number``...) plus ``department``.
        form_config: Current registration form configuration.
        departments: Assignable department names.

    Raises:
        MissingFieldError: An enabled, required field is blank.
        InvalidDepartmentError: Department is blank, ``All`` or unknown.
        InvalidQuantityError: Negative quantity/price/minimum or bad unit.
    """
    missing = [
        form_config.get(field_id).label
        for field_id in form_config.required_field_ids()
        if _is_blank(values.get(FIELD_ATTRIBUTES.get(field_id, field_id)))
    ]
    if missing:
        raise MissingFieldError(missing)

    validate_department(values.get("department", ""), departments)
    validate_unit(values.get("unit", Unit.PIECES))

    for field in ("quantity", "price", "min_stock"):
        amount = to_decimal(field, values.get(field))
        if amount < 0:
            raise InvalidQuantityError(field, str(amount), "cannot be negative")
