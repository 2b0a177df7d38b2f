"""
Identity Resolution Orchestrator.

Responsibilities:
- Match an (email, phone) pair against the contact graph.
- Expand matches to the full clusters they belong to.
- Record new information as a secondary contact.
- Merge clusters bridged by one request, oldest primary surviving.
- Return the consolidated view of the resulting cluster.

Non-Responsibilities:
- No request format validation.
- No SQL; all store access goes through ContactRepository.

Invariant:
Every cluster has exactly one primary, the oldest member, and every
secondary links directly to it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .database import Contact, PRIMARY, SECONDARY
from .errors import ContactNotFoundError, NoPrimaryContactError, StoreError, ValidationError
from .logger import StructuredLogger, get_logger, mask_email, mask_phone
from .storage import ContactRepository, ContactStore

CREATED = "created"
LINKED = "linked"
MERGED = "merged"
UNCHANGED = "unchanged"


@dataclass
class ConsolidatedContact:
    """Externally visible summary of one cluster."""

    primary_contact_id: int
    emails: List[str] = field(default_factory=list)
    phone_numbers: List[str] = field(default_factory=list)
    secondary_contact_ids: List[int] = field(default_factory=list)
    # created, linked, merged or unchanged; not part of the view itself
    outcome: str = field(default=UNCHANGED, compare=False)

    def to_dict(self) -> Dict[str, object]:
        return {
            "primaryContactId": self.primary_contact_id,
            "emails": list(self.emails),
            "phoneNumbers": list(self.phone_numbers),
            "secondaryContactIds": list(self.secondary_contact_ids),
        }

    def to_response(self) -> Dict[str, object]:
        return {"contact": self.to_dict()}


def _oldest_first(contacts: List[Contact]) -> List[Contact]:
    return sorted(contacts, key=lambda c: (c.created_at, c.id))


def _primary_first(values: List[str], primary_value: Optional[str]) -> List[str]:
    """Distinct values in first-seen order, with the primary's value leading."""
    ordered: List[str] = []
    if primary_value:
        ordered.append(primary_value)
    for value in values:
        if value and value not in ordered:
            ordered.append(value)
    return ordered


def consolidate(contacts: List[Contact]) -> ConsolidatedContact:
    """
    Build the consolidated view of one cluster.

    Args:
        contacts: Cluster members in cluster order (oldest first)

    Raises:
        NoPrimaryContactError: If no member is a primary
    """
    primary = next((c for c in contacts if c.is_primary), None)
    if primary is None:
        raise NoPrimaryContactError([c.id for c in contacts])

    return ConsolidatedContact(
        primary_contact_id=primary.id,
        emails=_primary_first([c.email for c in contacts], primary.email),
        phone_numbers=_primary_first([c.phone_number for c in contacts], primary.phone_number),
        secondary_contact_ids=[c.id for c in contacts if not c.is_primary],
    )


class IdentityResolver:
    """
    Resolves (email, phone) pairs into consolidated identities.

    The resolver holds no graph state of its own; each call runs in a
    single store transaction so a failure leaves the graph untouched.
    """

    def __init__(self, store: ContactStore, logger: Optional[StructuredLogger] = None):
        self.store = store
        self.logger = logger or get_logger()

    def identify(self, email: Optional[str] = None, phone_number: Optional[str] = None) -> ConsolidatedContact:
        """
        Resolve an identifier pair, creating or merging contacts as needed.

        Args:
            email: Email address, or None
            phone_number: Phone number, or None

        Returns:
            ConsolidatedContact for the cluster the pair belongs to

        Raises:
            ValidationError: If both identifiers are absent
            NoPrimaryContactError: If a touched cluster has no primary
            StoreError: If the store fails; no writes of this call persist
        """
        email = email or None
        phone_number = phone_number or None
        if email is None and phone_number is None:
            raise ValidationError(["At least one of email or phoneNumber must be provided"])

        self.logger.record_identify()
        self.logger.info(
            "Starting contact identification",
            email=mask_email(email),
            phone_number=mask_phone(phone_number),
        )

        try:
            with self.store.transaction() as session:
                result = self._identify(ContactRepository(session), email, phone_number)
        except SQLAlchemyError as e:
            self.logger.record_failure(type(e).__name__)
            self.logger.error("Contact identification failed", error=str(e))
            raise StoreError("Failed to identify contact") from e
        except NoPrimaryContactError as e:
            self.logger.record_failure(type(e).__name__)
            self.logger.critical("Contact graph is corrupted", contact_ids=e.contact_ids)
            raise

        self.logger.info(
            "Identify completed",
            primary_contact_id=result.primary_contact_id,
            email_count=len(result.emails),
            phone_count=len(result.phone_numbers),
            secondary_count=len(result.secondary_contact_ids),
        )
        return result

    def lookup(self, contact_id: int) -> ConsolidatedContact:
        """Consolidated view of the cluster containing contact_id, without writes."""
        try:
            with self.store.transaction() as session:
                repo = ContactRepository(session)
                contact = repo.get(contact_id)
                if contact is None:
                    raise ContactNotFoundError(contact_id)
                return consolidate(repo.find_cluster([contact.primary_id]))
        except SQLAlchemyError as e:
            self.logger.record_failure(type(e).__name__)
            self.logger.error("Contact lookup failed", contact_id=contact_id, error=str(e))
            raise StoreError(f"Failed to look up contact {contact_id}") from e

    def _identify(self, repo: ContactRepository, email: Optional[str], phone_number: Optional[str]) -> ConsolidatedContact:
        matches = repo.find_matching(email, phone_number)

        if not matches:
            contact = repo.create(email, phone_number, link_precedence=PRIMARY)
            self.logger.record_contact_created(PRIMARY)
            self.logger.info("Created new primary contact", contact_id=contact.id)
            result = consolidate([contact])
            result.outcome = CREATED
            return result

        primary_ids = {c.primary_id for c in matches}
        cluster = repo.find_cluster(primary_ids)

        known_emails = {c.email for c in cluster if c.email}
        known_phones = {c.phone_number for c in cluster if c.phone_number}
        has_new_email = email is not None and email not in known_emails
        has_new_phone = phone_number is not None and phone_number not in known_phones

        if has_new_email or has_new_phone:
            primary = next((c for c in cluster if c.is_primary), None)
            if primary is None:
                raise NoPrimaryContactError([c.id for c in cluster])
            secondary = repo.create(email, phone_number, link_precedence=SECONDARY, linked_id=primary.id)
            self.logger.record_contact_created(SECONDARY)
            self.logger.info("Created new secondary contact", contact_id=secondary.id, linked_to=primary.id)
            cluster.append(secondary)
            outcome = LINKED
        else:
            outcome = UNCHANGED

        primaries = [c for c in cluster if c.is_primary]
        if len(primaries) > 1:
            survivor_id = self._merge(repo, primaries)
            repo.session.expire_all()
            result = consolidate(repo.find_cluster([survivor_id]))
            result.outcome = MERGED
            return result

        result = consolidate(cluster)
        result.outcome = outcome
        return result

    def _merge(self, repo: ContactRepository, primaries: List[Contact]) -> int:
        """Demote every primary except the oldest and flatten links onto it."""
        ordered = _oldest_first(primaries)
        survivor, demoted = ordered[0], ordered[1:]
        survivor_id = survivor.id

        for contact in demoted:
            contact_id = contact.id
            repo.update(contact_id, link_precedence=SECONDARY, linked_id=survivor_id)
            relinked = repo.relink(contact_id, survivor_id)
            self.logger.debug(
                "Demoted primary contact",
                contact_id=contact_id,
                survivor_id=survivor_id,
                relinked=relinked,
            )

        self.logger.record_merge(len(demoted))
        self.logger.info(
            "Merged primary contacts",
            survivor_id=survivor_id,
            demoted_ids=[c.id for c in demoted],
        )
        return survivor_id
