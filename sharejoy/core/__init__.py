"""Core app configuration, database, hashing and storage."""

from sharejoy.core.config import get_settings, settings
from sharejoy.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
