"""
Error taxonomy for contact identification.

Validation failures are raised before the resolver touches the store.
Everything raised from inside an identify call is either a graph
corruption (NoPrimaryContactError) or a wrapped store failure (StoreError).
"""

from typing import List, Optional


class ContactLinkError(Exception):
    """Base class for contactlink errors."""

    retryable = False


class ValidationError(ContactLinkError):
    """Raised when an identify request is malformed."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid request")


class NoPrimaryContactError(ContactLinkError):
    """Raised when a cluster has no primary contact (corrupted graph)."""

    def __init__(self, contact_ids: Optional[List[int]] = None):
        self.contact_ids = list(contact_ids or [])
        super().__init__(f"No primary contact found among contacts {self.contact_ids}")


class ContactNotFoundError(ContactLinkError):
    """Raised when a contact id does not exist or is soft-deleted."""

    def __init__(self, contact_id: int):
        self.contact_id = contact_id
        super().__init__(f"Contact {contact_id} not found")


class StoreError(ContactLinkError):
    """Raised when the contact store fails; safe to retry the whole operation."""

    retryable = True
