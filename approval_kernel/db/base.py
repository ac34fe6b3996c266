"""
Module: approval_kernel.db.base
Responsibility: Declarative base for all SQLAlchemy ORM models.  Provides a
    type annotation map for consistent column types and a UTC-normalizing
    timestamp type.
Architecture position: Kernel > DB.  The lowest-level import target within
    the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Timestamps round-trip as timezone-aware UTC on every backend.  SQLite
      stores naive values; ``UTCDateTime`` converts to UTC on bind and
      re-attaches UTC on load.
    - Integer ids map to BigInteger so sequence values never overflow.
"""

from datetime import datetime, timezone
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored in UTC.

    Guarantees:
        - process_bind_param: aware values are converted to UTC; naive
          values are assumed to already be UTC.
        - process_result_value: always returns an aware UTC datetime.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# SQLite only autoincrements INTEGER PRIMARY KEY; keep BIGINT elsewhere.
SequenceInteger = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model inherits from Base and declares its own primary
        key.  Request ids come from the sequence counter, not the database.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        int: SequenceInteger,
    }
