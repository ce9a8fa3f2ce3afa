from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column in this schema is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
