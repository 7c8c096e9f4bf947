"""Durable key/value storage for device-local state."""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from madad_plus.db.session import Base
from madad_plus.db.time import utcnow


class LocalStorageItem(Base):
    """A single named value in the device's local storage namespace.

    The offline report queue is stored as one JSON document under a
    well-known key, so every queue mutation rewrites exactly one row.
    """

    __tablename__ = "local_storage"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
