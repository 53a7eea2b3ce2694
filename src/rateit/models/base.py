"""Declarative base and shared column types."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite for tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Timezone-aware current time, used for Python-side timestamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all RateIt models."""

    type_annotation_map: dict[Any, Any] = {
        dict[str, Any]: JSONType,
    }
