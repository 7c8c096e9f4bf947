import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from madad_plus.models import LocalStorageItem
from madad_plus.services.local_storage import LocalStorage, StorageError


def test_get_item_missing_key_returns_none(local_storage):
    assert local_storage.get_item("nothing-here") is None


def test_set_item_then_get_item(local_storage):
    local_storage.set_item("madadgar-offline-queue", "[]")

    assert local_storage.get_item("madadgar-offline-queue") == "[]"


def test_set_item_overwrites_previous_value(local_storage, session_factory):
    local_storage.set_item("key", "first")
    local_storage.set_item("key", "second")

    assert local_storage.get_item("key") == "second"
    with session_factory() as db:
        assert db.query(LocalStorageItem).count() == 1


def test_remove_item(local_storage):
    local_storage.set_item("key", "value")

    local_storage.remove_item("key")

    assert local_storage.get_item("key") is None


def test_remove_missing_item_is_noop(local_storage):
    local_storage.remove_item("never-set")

    assert local_storage.get_item("never-set") is None


def test_values_are_visible_to_new_instances(local_storage, session_factory):
    local_storage.set_item("key", "persisted")

    assert LocalStorage(session_factory).get_item("key") == "persisted"


def test_database_errors_surface_as_storage_error():
    # No tables created, so every statement fails.
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    storage = LocalStorage(sessionmaker(bind=engine))

    with pytest.raises(StorageError):
        storage.get_item("key")
    with pytest.raises(StorageError):
        storage.set_item("key", "value")
    with pytest.raises(StorageError):
        storage.remove_item("key")

    engine.dispose()
