"""
Key-value storage backends for the credential store.

Every backend is async and string-valued: get(key) -> str | None, set(key, value), delete(key).
Production deployments wrap the backend in EncryptedStorage so user salts and hashes are
encrypted at rest.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session, sessionmaker

from sharejoy.models import KeyValueEntry

if TYPE_CHECKING:
    from sharejoy.core.config import Settings

logger = logging.getLogger(__name__)


class StorageDecryptionError(Exception):
    """Raised when a stored value cannot be decrypted (wrong key or tampered data)."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Stored value for key {key!r} could not be decrypted")


class KeyValueStorage(Protocol):
    """Async, string-valued persistent store."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryStorage:
    """Dict-backed storage; state is lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class DatabaseStorage:
    """
    One row per key in the kv_entries table. SQLAlchemy sessions are synchronous,
    so each call runs in a worker thread.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _get_sync(self, key: str) -> str | None:
        db = self._session_factory()
        try:
            row = db.get(KeyValueEntry, key)
            return row.value if row is not None else None
        finally:
            db.close()

    def _set_sync(self, key: str, value: str) -> None:
        db = self._session_factory()
        try:
            row = db.get(KeyValueEntry, key)
            if row is None:
                db.add(KeyValueEntry(key=key, value=value))
            else:
                row.value = value
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _delete_sync(self, key: str) -> None:
        db = self._session_factory()
        try:
            db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete(
                synchronize_session=False
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set_sync, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete_sync, key)


class EncryptedStorage:
    """Encrypts values with Fernet before handing them to the wrapped backend. Keys stay in clear."""

    def __init__(self, inner: KeyValueStorage, key: str | bytes) -> None:
        self._inner = inner
        self._fernet = Fernet(key.encode("ascii") if isinstance(key, str) else key)

    async def get(self, key: str) -> str | None:
        token = await self._inner.get(key)
        if token is None:
            return None
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise StorageDecryptionError(key) from e

    async def set(self, key: str, value: str) -> None:
        token = self._fernet.encrypt(value.encode("utf-8")).decode("ascii")
        await self._inner.set(key, token)

    async def delete(self, key: str) -> None:
        await self._inner.delete(key)


def build_storage(
    settings: "Settings",
    session_factory: sessionmaker[Session] | None = None,
) -> KeyValueStorage:
    """Build the configured backend, wrapped in EncryptedStorage when a key is configured."""
    storage: KeyValueStorage
    if settings.STORAGE_BACKEND == "memory":
        storage = InMemoryStorage()
    else:
        if session_factory is None:
            from sharejoy.core.database import SessionLocal

            session_factory = SessionLocal
        storage = DatabaseStorage(session_factory)

    if settings.STORAGE_ENCRYPTION_KEY is not None:
        storage = EncryptedStorage(storage, settings.STORAGE_ENCRYPTION_KEY.get_secret_value())
    else:
        logger.warning(
            "Storage backend=%s is not encrypted at rest (STORAGE_ENCRYPTION_KEY unset)",
            settings.STORAGE_BACKEND,
        )
    return storage
