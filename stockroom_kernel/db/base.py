"""
Module: stockroom_kernel.db.base
Responsibility: Declarative base class for the SQLAlchemy ORM models and the
    type annotation map used for consistent column types.
Architecture position: Kernel > DB.  Lowest-level import target within the
    db package.  MUST NOT import from services/ or domain/.

Invariants enforced:
    - datetime maps to DateTime(timezone=True) -- always timezone-aware.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base for all stockroom ORM models.

    Guarantees:
        - datetime maps to DateTime(timezone=True).
        - str maps to String(255) unless a column overrides it.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        str: String(255),
    }


# Long JSON payloads
JSONText = Text
