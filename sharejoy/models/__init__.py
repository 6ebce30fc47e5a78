"""SQLAlchemy ORM models."""

from sharejoy.models.base import Base
from sharejoy.models.kv_entry import KeyValueEntry

__all__ = ["Base", "KeyValueEntry"]
