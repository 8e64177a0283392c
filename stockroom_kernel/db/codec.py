"""
Module: stockroom_kernel.db.codec
Responsibility: Convert domain dataclasses to and from the JSON records
    stored under each state key.  Records use camelCase keys so a snapshot
    exported from the browser application loads unchanged.
Architecture position: Kernel > DB.  Imports domain models only.

Invariants enforced:
    - Every field missing from a stored record takes the dataclass default
      explicitly; a stored ``0`` is never confused with an absent value.
    - Decimals are written as strings and read from strings or numbers.
    - Datetimes are ISO-8601 strings; naive values are read as UTC.

Failure modes:
    - ValueError/KeyError on records missing identity fields (``id``,
      ``name``...).  Callers treat an undecodable snapshot as corrupt.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from stockroom_kernel.domain.models import (
    ZERO,
    AppConfig,
    FormConfig,
    FormFieldSetting,
    Indent,
    IndentPriority,
    IndentStatus,
    MovementType,
    Product,
    Transaction,
    Unit,
    User,
    UserRole,
)
from stockroom_kernel.domain.permissions import Permission
from stockroom_kernel.logging_config import get_logger

logger = get_logger("db.codec")


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def _dec(value: Any, default: Decimal = ZERO) -> Decimal:
    if value is None or value == "":
        return default
    return Decimal(str(value))


def _dt(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _drop_none(record: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in record.items() if v is not None}


# ---------------------------------------------------------------------------
# Products and transactions
# ---------------------------------------------------------------------------


def product_to_record(p: Product) -> dict[str, Any]:
    return _drop_none({
        "id": p.id,
        "name": p.name,
        "sku": p.sku,
        "category": p.category,
        "department": p.department,
        "unit": p.unit.value,
        "price": str(p.price),
        "quantity": str(p.quantity),
        "totalReceived": str(p.total_received),
        "totalIssued": str(p.total_issued),
        "minStock": str(p.min_stock),
        "description": p.description,
        "updatedAt": _iso(p.updated_at),
        "batchNumber": p.batch_number,
        "supplier": p.supplier,
        "location": p.location,
        "expiryDate": p.expiry_date,
    })


def product_from_record(r: dict[str, Any]) -> Product:
    return Product(
        id=r["id"],
        name=r["name"],
        sku=r.get("sku", ""),
        category=r.get("category", ""),
        department=r["department"],
        unit=Unit(r.get("unit", Unit.PIECES.value)),
        price=_dec(r.get("price")),
        quantity=_dec(r.get("quantity")),
        total_received=_dec(r.get("totalReceived")),
        total_issued=_dec(r.get("totalIssued")),
        min_stock=_dec(r.get("minStock")),
        description=r.get("description", ""),
        updated_at=_dt(r.get("updatedAt")),
        batch_number=r.get("batchNumber"),
        supplier=r.get("supplier"),
        location=r.get("location"),
        expiry_date=r.get("expiryDate"),
    )


def transaction_to_record(t: Transaction) -> dict[str, Any]:
    return _drop_none({
        "id": t.id,
        "date": _iso(t.date),
        "productId": t.product_id,
        "productName": t.product_name,
        "type": t.type.value,
        "quantity": str(t.quantity),
        "department": t.department,
        "user": t.user,
        "reference": t.reference,
        "remarks": t.remarks,
        "priceAtTime": str(t.price_at_time),
    })


def transaction_from_record(r: dict[str, Any]) -> Transaction:
    return Transaction(
        id=r["id"],
        date=_dt(r["date"]),
        product_id=r["productId"],
        product_name=r.get("productName", ""),
        type=MovementType(r["type"]),
        quantity=_dec(r["quantity"]),
        department=r.get("department", ""),
        user=r.get("user", ""),
        reference=r.get("reference"),
        remarks=r.get("remarks"),
        price_at_time=_dec(r.get("priceAtTime")),
    )


# ---------------------------------------------------------------------------
# Indents and users
# ---------------------------------------------------------------------------


def indent_to_record(i: Indent) -> dict[str, Any]:
    return {
        "id": i.id,
        "productId": i.product_id,
        "productName": i.product_name,
        "department": i.department,
        "quantity": str(i.quantity),
        "unit": i.unit.value,
        "priority": i.priority.value,
        "status": i.status.value,
        "requestedBy": i.requested_by,
        "createdAt": _iso(i.created_at),
    }


def indent_from_record(r: dict[str, Any]) -> Indent:
    return Indent(
        id=r["id"],
        product_id=r["productId"],
        product_name=r.get("productName", ""),
        department=r["department"],
        quantity=_dec(r["quantity"]),
        unit=Unit(r.get("unit", Unit.PIECES.value)),
        priority=IndentPriority(r.get("priority", IndentPriority.MEDIUM.value)),
        requested_by=r.get("requestedBy", ""),
        created_at=_dt(r["createdAt"]),
        status=IndentStatus(r.get("status", IndentStatus.PENDING.value)),
    )


def user_to_record(u: User) -> dict[str, Any]:
    return _drop_none({
        "id": u.id,
        "username": u.username,
        "password": u.password,
        "name": u.name,
        "department": u.department,
        "role": u.role.value,
        # Catalogue order keeps snapshots stable between writes.
        "permissions": [p.value for p in Permission if p in u.permissions],
        "createdAt": _iso(u.created_at),
    })


def user_from_record(r: dict[str, Any]) -> User:
    granted = set()
    for raw in r.get("permissions", []):
        try:
            granted.add(Permission(raw))
        except ValueError:
            logger.warning("unknown_permission_dropped", extra={"permission": raw})
    return User(
        id=r["id"],
        username=r["username"],
        password=r.get("password", ""),
        name=r.get("name", r["username"]),
        department=r["department"],
        role=UserRole(r.get("role", UserRole.USER.value)),
        permissions=frozenset(granted),
        created_at=_dt(r.get("createdAt")),
    )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def form_config_to_record(c: FormConfig) -> dict[str, Any]:
    return {
        "fields": [
            {
                "id": f.id,
                "label": f.label,
                "isEnabled": f.is_enabled,
                "isRequired": f.is_required,
            }
            for f in c.fields
        ]
    }


def form_config_from_record(r: dict[str, Any]) -> FormConfig:
    return FormConfig(fields=tuple(
        FormFieldSetting(
            id=f["id"],
            label=f.get("label", f["id"]),
            is_enabled=bool(f.get("isEnabled", True)),
            is_required=bool(f.get("isRequired", False)),
        )
        for f in r.get("fields", [])
    ))


def app_config_to_record(c: AppConfig) -> dict[str, Any]:
    return {"appName": c.app_name, "logoUrl": c.logo_url}


def app_config_from_record(r: dict[str, Any]) -> AppConfig:
    return AppConfig(
        app_name=r.get("appName", AppConfig.app_name),
        logo_url=r.get("logoUrl") or "",
    )


def dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def loads(text: str) -> Any:
    return json.loads(text)
