"""
Tests for integrity.py - graph invariant checks.
"""

from contactlink.integrity import check_graph


class TestCheckGraph:
    """Test invariant violations are reported."""

    def test_empty_graph_is_consistent(self, store):
        with store.transaction() as session:
            assert check_graph(session) == []

    def test_resolver_output_is_consistent(self, store, resolver, add_contact):
        add_contact(email="a@x.com", minutes=0)
        add_contact(phone_number="222", minutes=10)
        resolver.identify(email="a@x.com", phone_number="333")
        resolver.identify(email="b@x.com", phone_number="222")
        resolver.identify(email="a@x.com", phone_number="222")

        with store.transaction() as session:
            assert check_graph(session) == []

    def test_secondary_linked_to_secondary(self, store, add_contact):
        p1 = add_contact(email="a@x.com", minutes=0)
        s1 = add_contact(email="b@x.com", link_precedence="secondary", linked_id=p1, minutes=1)
        s2 = add_contact(email="c@x.com", link_precedence="secondary", linked_id=s1, minutes=2)

        with store.transaction() as session:
            violations = check_graph(session)

        assert violations == [f"Secondary contact {s2} links to secondary contact {s1}"]

    def test_secondary_linked_to_deleted_primary(self, store, add_contact):
        p1 = add_contact(email="a@x.com", deleted=True)
        s1 = add_contact(email="b@x.com", link_precedence="secondary", linked_id=p1, minutes=1)

        with store.transaction() as session:
            violations = check_graph(session)

        assert violations == [f"Secondary contact {s1} links to missing contact {p1}"]

    def test_primary_not_oldest(self, store, add_contact):
        p1 = add_contact(email="a@x.com", minutes=10)
        s1 = add_contact(email="b@x.com", link_precedence="secondary", linked_id=p1, minutes=0)

        with store.transaction() as session:
            violations = check_graph(session)

        assert len(violations) == 1
        assert f"Primary contact {p1} is not the oldest" in violations[0]
        assert f"contact {s1} is older" in violations[0]

    def test_independent_primaries_are_fine(self, store, add_contact):
        add_contact(email="a@x.com", minutes=0)
        add_contact(email="b@x.com", minutes=1)

        with store.transaction() as session:
            assert check_graph(session) == []
