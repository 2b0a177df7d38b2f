"""
Contact store and repository.

ContactStore owns the engine and hands out transactional sessions. It is
created by the caller, injected into the resolver, and closed by the caller.

ContactRepository responsibilities:
- Query, create and update rows of the contacts table.
- Exclude soft-deleted rows from every read.
- Flush each write so later reads in the same transaction observe it.

Non-Responsibilities:
- No matching, linking or merge decisions.

Invariant:
Repositories must not encode domain decisions.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, sessionmaker

from .database import Base, Contact, PRIMARY, create_db_engine


class ContactStore:
    """Handle on the contact database with an explicit open/close lifecycle."""

    def __init__(self, db_path: Path, serialize_writes: bool = True, create_tables: bool = True):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_db_engine(self.db_path, serialize_writes=serialize_writes)
        if create_tables:
            Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._closed = False

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Yield a session whose work is committed on success and rolled back
        on any exception.
        """
        if self._closed:
            raise RuntimeError("ContactStore is closed")
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        if not self._closed:
            self.engine.dispose()
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "ContactStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ContactRepository:
    """Contact table operations bound to one session."""

    def __init__(self, session: Session):
        self.session = session

    def _live(self):
        return self.session.query(Contact).filter(Contact.deleted_at.is_(None))

    def find_matching(self, email: Optional[str], phone_number: Optional[str]) -> List[Contact]:
        """Contacts whose email or phone equals the given values, oldest first."""
        conditions = []
        if email:
            conditions.append(Contact.email == email)
        if phone_number:
            conditions.append(Contact.phone_number == phone_number)
        if not conditions:
            return []
        return (
            self._live()
            .filter(or_(*conditions))
            .order_by(Contact.created_at.asc(), Contact.id.asc())
            .all()
        )

    def find_cluster(self, primary_ids: Iterable[int]) -> List[Contact]:
        """The primaries themselves plus everything linked to them, oldest first."""
        ids = sorted(set(primary_ids))
        if not ids:
            return []
        return (
            self._live()
            .filter(or_(Contact.id.in_(ids), Contact.linked_id.in_(ids)))
            .order_by(Contact.created_at.asc(), Contact.id.asc())
            .all()
        )

    def get(self, contact_id: int) -> Optional[Contact]:
        return self._live().filter(Contact.id == contact_id).one_or_none()

    def all(self) -> List[Contact]:
        return self._live().order_by(Contact.created_at.asc(), Contact.id.asc()).all()

    def create(
        self,
        email: Optional[str],
        phone_number: Optional[str],
        link_precedence: str = PRIMARY,
        linked_id: Optional[int] = None,
    ) -> Contact:
        contact = Contact(
            email=email or None,
            phone_number=phone_number or None,
            link_precedence=link_precedence,
            linked_id=linked_id,
        )
        self.session.add(contact)
        self.session.flush()
        return contact

    def update(self, contact_id: int, **fields) -> Contact:
        """Set fields on one contact. Only link_precedence and linked_id change in practice."""
        contact = self.session.get(Contact, contact_id)
        if contact is None:
            raise LookupError(f"Contact {contact_id} does not exist")
        for name, value in fields.items():
            setattr(contact, name, value)
        self.session.flush()
        return contact

    def relink(self, from_id: int, to_id: int) -> int:
        """
        Point every contact linked to from_id at to_id instead, soft-deleted
        rows included so a restored row never links to a secondary.

        Returns:
            Number of rows updated
        """
        count = (
            self.session.query(Contact)
            .filter(Contact.linked_id == from_id)
            .update({Contact.linked_id: to_id}, synchronize_session="fetch")
        )
        self.session.flush()
        return count
