"""Durable key/value storage backed by the local database.

Plays the role a browser's ``localStorage`` plays for a web client: a flat
namespace of string values that survive process restarts. Every write is
committed before the call returns.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from madad_plus.db.session import SessionLocal
from madad_plus.models import LocalStorageItem

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when local storage cannot be read or written."""


class LocalStorage:
    """Synchronous key/value facade over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def get_item(self, key: str) -> str | None:
        """Return the stored value for ``key``, or None if absent."""
        try:
            with self._session_factory() as db:
                item = db.get(LocalStorageItem, key)
                return item.value if item else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read local storage key {key!r}: {exc}") from exc

    def set_item(self, key: str, value: str) -> None:
        """Persist ``value`` under ``key``, replacing any previous value."""
        with self._session_factory() as db:
            try:
                item = db.get(LocalStorageItem, key)
                if item is None:
                    db.add(LocalStorageItem(key=key, value=value))
                else:
                    item.value = value
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("Local storage write failed for key %s: %s", key, exc)
                raise StorageError(f"Failed to write local storage key {key!r}: {exc}") from exc

    def remove_item(self, key: str) -> None:
        """Delete ``key`` if present."""
        with self._session_factory() as db:
            try:
                item = db.get(LocalStorageItem, key)
                if item is not None:
                    db.delete(item)
                    db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise StorageError(f"Failed to remove local storage key {key!r}: {exc}") from exc
