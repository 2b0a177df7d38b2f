"""
Graph integrity check.

Lists every place where the stored contact graph breaks the cluster
invariants. Read-only; repairs are done by replaying identify requests.
"""

from typing import Dict, List

from sqlalchemy.orm import Session

from .database import Contact
from .storage import ContactRepository


def check_graph(session: Session) -> List[str]:
    """
    Returns a list of violation messages. Empty list means the graph is consistent.
    """
    contacts = ContactRepository(session).all()
    by_id: Dict[int, Contact] = {c.id: c for c in contacts}
    members: Dict[int, List[Contact]] = {}
    violations: List[str] = []

    for c in contacts:
        if not c.email and not c.phone_number:
            violations.append(f"Contact {c.id} has neither email nor phone number")

        if c.is_primary:
            if c.linked_id is not None:
                violations.append(f"Primary contact {c.id} has linked_id {c.linked_id}")
            members.setdefault(c.id, []).append(c)
            continue

        if c.linked_id is None:
            violations.append(f"Secondary contact {c.id} has no linked_id")
            continue

        target = by_id.get(c.linked_id)
        if target is None:
            violations.append(f"Secondary contact {c.id} links to missing contact {c.linked_id}")
        elif not target.is_primary:
            violations.append(
                f"Secondary contact {c.id} links to secondary contact {c.linked_id}"
            )
        else:
            members.setdefault(target.id, []).append(c)

    for primary_id, cluster in members.items():
        oldest = min(cluster, key=lambda c: (c.created_at, c.id))
        if oldest.id != primary_id:
            violations.append(
                f"Primary contact {primary_id} is not the oldest member of its cluster "
                f"(contact {oldest.id} is older)"
            )

    return violations
