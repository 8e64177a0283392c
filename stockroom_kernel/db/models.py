"""
Module: stockroom_kernel.db.models
Responsibility: ORM mapping for the namespaced key/value state table.  Each row
    holds one JSON-serialised store (products, transactions, users, ...).
Architecture position: Kernel > DB.  Imported by services/state_store.py.
"""

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Mapped, mapped_column

from stockroom_kernel.db.base import Base, JSONText


class StateEntry(Base):
    """
    One persisted store.

    Contract:
        ``key`` is the namespaced store name (e.g. ``inventory_products``);
        ``value`` is the JSON document for the whole store.
    """

    __tablename__ = "stockroom_state"

    key: Mapped[str] = mapped_column(primary_key=True)
    value: Mapped[str] = mapped_column(JSONText, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StateEntry {self.key}>"
