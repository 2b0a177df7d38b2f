"""
Tests for storage.py - store lifecycle and repository operations.
"""

import pytest

from contactlink.database import Contact
from contactlink.storage import ContactRepository, ContactStore


class TestContactStore:
    """Test the store handle lifecycle."""

    def test_creates_database_and_tables(self, tmp_path):
        db_path = tmp_path / "nested" / "contacts.db"

        with ContactStore(db_path) as store:
            with store.transaction() as session:
                assert session.query(Contact).count() == 0

        assert db_path.exists()
        assert store.closed

    def test_transaction_commits(self, store, count_contacts):
        with store.transaction() as session:
            ContactRepository(session).create("a@x.com", None)

        assert count_contacts() == 1

    def test_transaction_rolls_back_on_error(self, store, count_contacts):
        with pytest.raises(RuntimeError):
            with store.transaction() as session:
                ContactRepository(session).create("a@x.com", None)
                raise RuntimeError("boom")

        assert count_contacts() == 0

    def test_closed_store_refuses_transactions(self, db_path):
        store = ContactStore(db_path)
        store.close()
        store.close()  # idempotent

        with pytest.raises(RuntimeError, match="closed"):
            with store.transaction():
                pass


class TestContactRepository:
    """Test repository reads and writes."""

    def test_find_matching_by_either_identifier(self, store, add_contact):
        by_email = add_contact(email="a@x.com", minutes=5)
        by_phone = add_contact(phone_number="111", minutes=1)
        add_contact(email="other@x.com", phone_number="999", minutes=0)

        with store.transaction() as session:
            found = ContactRepository(session).find_matching("a@x.com", "111")
            assert [c.id for c in found] == [by_phone, by_email]

    def test_find_matching_skips_absent_side(self, store, add_contact):
        add_contact(email="a@x.com")
        add_contact(phone_number="111", minutes=1)

        with store.transaction() as session:
            repo = ContactRepository(session)
            assert [c.email for c in repo.find_matching("a@x.com", None)] == ["a@x.com"]
            assert repo.find_matching(None, None) == []

    def test_find_matching_excludes_deleted(self, store, add_contact):
        add_contact(email="a@x.com", deleted=True)

        with store.transaction() as session:
            assert ContactRepository(session).find_matching("a@x.com", None) == []

    def test_find_cluster_includes_primary_and_linked(self, store, add_contact):
        p1 = add_contact(email="a@x.com", minutes=0)
        s1 = add_contact(email="b@x.com", link_precedence="secondary", linked_id=p1, minutes=2)
        s2 = add_contact(email="c@x.com", link_precedence="secondary", linked_id=p1, minutes=1)
        add_contact(email="d@x.com", minutes=3)

        with store.transaction() as session:
            cluster = ContactRepository(session).find_cluster([p1])
            assert [c.id for c in cluster] == [p1, s2, s1]

    def test_find_cluster_empty_ids(self, store):
        with store.transaction() as session:
            assert ContactRepository(session).find_cluster([]) == []

    def test_create_nulls_empty_values(self, store):
        with store.transaction() as session:
            contact = ContactRepository(session).create("", "111")
            assert contact.id is not None
            assert contact.email is None
            assert contact.link_precedence == "primary"

    def test_update_missing_contact(self, store):
        with pytest.raises(LookupError):
            with store.transaction() as session:
                ContactRepository(session).update(42, linked_id=1)

    def test_relink_moves_all_secondaries(self, store, add_contact, fetch):
        p1 = add_contact(email="a@x.com", minutes=0)
        p2 = add_contact(email="b@x.com", minutes=1)
        s1 = add_contact(email="c@x.com", link_precedence="secondary", linked_id=p2, minutes=2)
        gone = add_contact(email="d@x.com", link_precedence="secondary", linked_id=p2,
                           minutes=3, deleted=True)

        with store.transaction() as session:
            assert ContactRepository(session).relink(p2, p1) == 2

        assert fetch(s1).linked_id == p1
        assert fetch(gone).linked_id == p1

    def test_get_and_all_exclude_deleted(self, store, add_contact):
        live = add_contact(email="a@x.com")
        gone = add_contact(email="b@x.com", minutes=1, deleted=True)

        with store.transaction() as session:
            repo = ContactRepository(session)
            assert repo.get(live).id == live
            assert repo.get(gone) is None
            assert [c.id for c in repo.all()] == [live]
