"""ORM model for the key-value storage backend (one row per storage key)."""

from sqlalchemy import Column, DateTime, String, Text, func

from sharejoy.models.base import Base


class KeyValueEntry(Base):
    """
    A single persisted value. The credential store keeps two keys here:
    'users' (JSON blob of all user records) and 'currentUser'.
    """

    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
