"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from contactlink.database import Contact
from contactlink.logger import get_logger, reset_logger
from contactlink.resolver import IdentityResolver
from contactlink.storage import ContactStore

BASE_TIME = datetime(2023, 4, 1, 9, 0, 0)


@pytest.fixture(autouse=True)
def quiet_logger():
    """Global logger with no console or file output."""
    reset_logger()
    logger = get_logger(enable_file=False, enable_console=False)
    yield logger
    reset_logger()


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "contacts.db"


@pytest.fixture
def store(db_path):
    """Contact store on a temporary SQLite database."""
    store = ContactStore(db_path)
    yield store
    store.close()


@pytest.fixture
def resolver(store, quiet_logger) -> IdentityResolver:
    return IdentityResolver(store, logger=quiet_logger)


@pytest.fixture
def add_contact(store):
    """
    Insert a contact row directly and return its id.

    `minutes` offsets created_at from a fixed base time so tests control
    which contact is oldest independently of insertion order.
    """
    def _add(email=None, phone_number=None, link_precedence="primary",
             linked_id=None, minutes=0, deleted=False):
        created_at = BASE_TIME + timedelta(minutes=minutes)
        with store.transaction() as session:
            contact = Contact(
                email=email,
                phone_number=phone_number,
                link_precedence=link_precedence,
                linked_id=linked_id,
                created_at=created_at,
                updated_at=created_at,
                deleted_at=created_at if deleted else None,
            )
            session.add(contact)
            session.flush()
            return contact.id

    return _add


@pytest.fixture
def fetch(store):
    """Load a contact by id (including soft-deleted rows)."""
    def _fetch(contact_id):
        with store.transaction() as session:
            return session.get(Contact, contact_id)

    return _fetch


@pytest.fixture
def count_contacts(store):
    def _count():
        with store.transaction() as session:
            return session.query(Contact).count()

    return _count
