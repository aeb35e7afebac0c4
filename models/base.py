"""Declarative base and shared column helpers for the ORM records."""

from __future__ import annotations

import random
import re
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


_IDENTIFIER_RE = re.compile(r"^[0-9a-f]{32}$")


class Base(DeclarativeBase):
    """Declarative base for all records."""


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores datetimes without a zone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_identifier() -> str:
    return uuid.uuid4().hex


def is_identifier(value) -> bool:
    """True if value has the shape of a record identifier."""
    return isinstance(value, str) and bool(_IDENTIFIER_RE.match(value))


def generate_record_number(prefix: str, now: datetime | None = None) -> str:
    """
    Human-readable record number: prefix + yymmdd + three random digits.

    Example: QUO251019042
    """
    now = now or utcnow()
    return f"{prefix}{now:%y%m%d}{random.randint(0, 999):03d}"
