"""
Application state (``stockroom_kernel.state``).

``InventoryState`` is the single explicit container for every store the
application keeps.  It is built once by ``StateRepository.load()`` and then
passed to each service; services replace records in its lists and ask the
repository to persist the stores they touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from stockroom_kernel.domain.models import (
    AppConfig,
    FormConfig,
    Indent,
    Product,
    Transaction,
    User,
)
from stockroom_kernel.exceptions import (
    IndentNotFoundError,
    ProductNotFoundError,
    UserNotFoundError,
)

# Durable keys, one JSON value per store.
KEY_CURRENT_USER = "inventory_user"
KEY_PRODUCTS = "inventory_products"
KEY_TRANSACTIONS = "inventory_transactions"
KEY_DEPARTMENTS = "inventory_depts"
KEY_USERS = "inventory_users_list"
KEY_INDENTS = "inventory_indents"
KEY_FORM_CONFIG = "inventory_form_config"
KEY_APP_CONFIG = "inventory_app_config"

ALL_KEYS: tuple[str, ...] = (
    KEY_CURRENT_USER,
    KEY_PRODUCTS,
    KEY_TRANSACTIONS,
    KEY_DEPARTMENTS,
    KEY_USERS,
    KEY_INDENTS,
    KEY_FORM_CONFIG,
    KEY_APP_CONFIG,
)


@dataclass
class InventoryState:
    """Every store of one session. Lists keep insertion order."""

    products: list[Product] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    indents: list[Indent] = field(default_factory=list)
    users: list[User] = field(default_factory=list)
    departments: list[str] = field(default_factory=list)
    form_config: FormConfig = field(default_factory=FormConfig)
    app_config: AppConfig = field(default_factory=AppConfig)
    current_user: User | None = None

    def product(self, product_id: str) -> Product:
        for p in self.products:
            if p.id == product_id:
                return p
        raise ProductNotFoundError(product_id)

    def replace_product(self, updated: Product) -> None:
        for index, p in enumerate(self.products):
            if p.id == updated.id:
                self.products[index] = updated
                return
        raise ProductNotFoundError(updated.id)

    def indent(self, indent_id: str) -> Indent:
        for i in self.indents:
            if i.id == indent_id:
                return i
        raise IndentNotFoundError(indent_id)

    def user(self, user_id: str) -> User:
        for u in self.users:
            if u.id == user_id:
                return u
        raise UserNotFoundError(user_id)

    def transactions_for(self, product_id: str) -> list[Transaction]:
        return [t for t in self.transactions if t.product_id == product_id]
