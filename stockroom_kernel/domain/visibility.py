"""
Visibility filters (``stockroom_kernel.domain.visibility``).

Responsibility
--------------
Derive the department-scoped and search-scoped subsets of products, indents
and transactions that a user is allowed to see.  Department match is an
exact, case-sensitive string comparison; search is a case-insensitive
substring match on product name or SKU.  Both predicates are independent,
and results keep the insertion order of the underlying collection.

Architecture
------------
Layer: **Kernel domain** -- pure functions.  No I/O, no session.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from stockroom_kernel.domain.models import ALL_DEPARTMENTS, Indent, Product, Transaction, User
from stockroom_kernel.domain.permissions import Permission, has_permission


def effective_department(user: User, selected: str | None = ALL_DEPARTMENTS) -> str:
    """
    Resolve the department scope for ``user``.

    Users holding GLOBAL_ACCESS see whatever the department selector says
    (``All`` when nothing is selected).  Everybody else is pinned to their
    own department, whatever the selector holds.
    """
    if has_permission(user, Permission.GLOBAL_ACCESS):
        return selected or ALL_DEPARTMENTS
    return user.department


def in_department(item_department: str, department: str) -> bool:
    return department == ALL_DEPARTMENTS or item_department == department


def matches_search(product: Product, term: str | None) -> bool:
    if not term:
        return True
    needle = term.lower()
    return needle in product.name.lower() or needle in product.sku.lower()


def filter_products(
    products: Iterable[Product],
    department: str,
    search: str | None = None,
) -> list[Product]:
    """Products in ``department`` whose name or SKU contains ``search``."""
    return [
        p for p in products
        if in_department(p.department, department) and matches_search(p, search)
    ]


def filter_indents(indents: Iterable[Indent], department: str) -> list[Indent]:
    return [i for i in indents if in_department(i.department, department)]


def filter_transactions(
    transactions: Iterable[Transaction],
    department: str,
    product_id: str | None = None,
) -> list[Transaction]:
    """Movements booked against ``department`` (and optionally one product)."""
    return [
        t for t in transactions
        if in_department(t.department, department)
        and (product_id is None or t.product_id == product_id)
    ]


def low_stock_products(products: Sequence[Product]) -> list[Product]:
    """Products at or below their minimum, lowest balance first."""
    return sorted((p for p in products if p.is_low_stock), key=lambda p: p.quantity)


def visible_products(
    products: Iterable[Product],
    user: User,
    selected_department: str | None = ALL_DEPARTMENTS,
    search: str | None = None,
) -> list[Product]:
    """Products ``user`` sees for the given selector value and search box."""
    return filter_products(products, effective_department(user, selected_department), search)


def visible_indents(
    indents: Iterable[Indent],
    user: User,
    selected_department: str | None = ALL_DEPARTMENTS,
) -> list[Indent]:
    return filter_indents(indents, effective_department(user, selected_department))


def visible_transactions(
    transactions: Iterable[Transaction],
    user: User,
    selected_department: str | None = ALL_DEPARTMENTS,
    product_id: str | None = None,
) -> list[Transaction]:
    return filter_transactions(
        transactions, effective_department(user, selected_department), product_id
    )
