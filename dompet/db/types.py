"""
SQLAlchemy custom types for cross-dialect compatibility.

Production runs on Postgres (native UUID), while the test suite runs on SQLite.
`GUID` keeps the models importable and lets `Base.metadata.create_all()` work
under SQLite without a running Postgres instance.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import CHAR, TypeDecorator


class GUID(TypeDecorator):
    """
    Platform-independent GUID/UUID type.

    - Postgres: native UUID (returns/accepts `uuid.UUID`)
    - Other DBs (e.g. SQLite): stores as CHAR(36), returns `uuid.UUID`
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value: Any, dialect):
        if value is None:
            return None

        if isinstance(value, uuid.UUID):
            u = value
        elif isinstance(value, str):
            u = uuid.UUID(value)
        else:
            raise ValueError(f"Invalid UUID value: {value!r}")

        if dialect.name == "postgresql":
            return u

        return str(u)

    def process_result_value(self, value: Any, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


def parse_uuid(value: Any) -> uuid.UUID | None:
    """Coerce a path/body identifier into a UUID, returning None when malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None
