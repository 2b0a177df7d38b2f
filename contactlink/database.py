"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for contact storage.
"""

from pathlib import Path

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    create_engine,
    event,
    func,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()

PRIMARY = "primary"
SECONDARY = "secondary"


class Contact(Base):
    """Contact node in the identity graph."""

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=True, index=True)
    phone_number = Column(String, nullable=True, index=True)
    linked_id = Column(Integer, ForeignKey("contacts.id"), nullable=True, index=True)
    link_precedence = Column(String(10), nullable=False, default=PRIMARY)
    # Assigned by the database so every writer shares one clock
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True)

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint(
            "link_precedence IN ('primary', 'secondary')",
            name="valid_link_precedence",
        ),
        CheckConstraint(
            "email IS NOT NULL OR phone_number IS NOT NULL",
            name="contact_info_required",
        ),
        CheckConstraint(
            "(link_precedence = 'primary' AND linked_id IS NULL) OR "
            "(link_precedence = 'secondary' AND linked_id IS NOT NULL)",
            name="secondary_requires_link",
        ),
    )

    @property
    def is_primary(self) -> bool:
        return self.link_precedence == PRIMARY

    @property
    def primary_id(self) -> int:
        """Id of the primary that owns this contact."""
        return self.id if self.is_primary else self.linked_id

    def __repr__(self) -> str:
        return (
            f"<Contact(id={self.id}, email={self.email!r}, phone={self.phone_number!r}, "
            f"precedence={self.link_precedence}, linked_id={self.linked_id})>"
        )


def create_db_engine(db_path: Path, serialize_writes: bool = True, timeout: float = 30.0) -> Engine:
    """
    Create an engine for the SQLite database.

    Args:
        db_path: Path to SQLite database file
        serialize_writes: Open every transaction with BEGIN IMMEDIATE so
            concurrent writers queue on the database lock
        timeout: Seconds a connection waits for the lock before failing

    Returns:
        SQLAlchemy engine
    """
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"timeout": timeout, "check_same_thread": False},
    )

    if serialize_writes:
        # pysqlite's implicit BEGIN is deferred; take over transaction start.
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path)
    Base.metadata.create_all(engine)
    engine.dispose()

