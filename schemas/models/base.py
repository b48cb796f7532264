"""
Declarative base for all relational models.

BaseModel gives every table a UUID primary key and a ``created_at`` stamped
on the Python side, so SQLite (tests) and PostgreSQL (production) behave
alike.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shared.datetime_utils import utcnow


class Base(DeclarativeBase):
    """Registry/metadata holder; ``Base.metadata`` lists every table."""


class BaseModel(Base):
    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
