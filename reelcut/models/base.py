"""Declarative base for ledger models."""

import uuid

from sqlalchemy.orm import DeclarativeBase


def new_id() -> str:
    """Fresh string UUID used as primary key for ledger rows."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass
