"""
Credential store: user records and the current-user pointer, persisted in a key-value backend.

Layout in the backend (two independent keys):
  users       -> JSON object {username: {username, salt, hash, role}}
  currentUser -> plain username string, or absent

Every mutation of the users mapping rewrites the whole blob. Read-modify-write cycles on one
store instance are serialized by an asyncio.Lock; writers in other processes are not
coordinated.
"""

import asyncio
import json
import logging

from pydantic import ValidationError

from sharejoy.core.security import (
    EntropySource,
    generate_salt,
    hash_password,
    verify_password,
)
from sharejoy.core.storage import KeyValueStorage, StorageDecryptionError
from sharejoy.schemas.user import UserRecord
from sharejoy.services.errors import (
    AuthenticationFailure,
    CorruptStateError,
    UserAlreadyExistsError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)

USERS_KEY = "users"
CURRENT_USER_KEY = "currentUser"


def _parse_users(raw: str) -> dict[str, UserRecord]:
    """Decode the users blob. Raises CorruptStateError when it is not a valid mapping."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptStateError(f"users blob is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise CorruptStateError("users blob is not a JSON object")
    users: dict[str, UserRecord] = {}
    for username, entry in data.items():
        try:
            record = UserRecord.model_validate(entry)
        except ValidationError as e:
            raise CorruptStateError(f"invalid user record under key {username!r}") from e
        if record.username != username:
            raise CorruptStateError(f"user record key {username!r} does not match its username")
        users[username] = record
    return users


def _dump_users(users: dict[str, UserRecord]) -> str:
    return json.dumps(
        {username: record.model_dump(mode="json") for username, record in users.items()}
    )


class CredentialStore:
    """CRUD over user records and the current-user pointer. Owns both storage keys."""

    def __init__(self, storage: KeyValueStorage, entropy: EntropySource | None = None) -> None:
        self._storage = storage
        self._entropy = entropy
        self._write_lock = asyncio.Lock()

    async def get_users(self) -> dict[str, UserRecord]:
        """
        Read the full mapping. A missing blob yields {}; a blob that cannot be decrypted
        or parsed is logged and also yields {} so a corrupt device state does not crash the app.
        """
        try:
            raw = await self._storage.get(USERS_KEY)
        except StorageDecryptionError as e:
            logger.warning("Corrupt users state, treating as empty: %s", e)
            return {}
        if not raw:
            return {}
        try:
            return _parse_users(raw)
        except CorruptStateError as e:
            logger.warning("Corrupt users state, treating as empty: %s", e.message)
            return {}

    async def save_users(self, users: dict[str, UserRecord]) -> None:
        """Persist the full mapping, replacing the previous blob."""
        await self._storage.set(USERS_KEY, _dump_users(users))

    async def add_user(self, record: UserRecord) -> None:
        """Insert or overwrite the record for record.username."""
        async with self._write_lock:
            users = await self.get_users()
            users[record.username] = record
            await self.save_users(users)

    async def update_user(self, record: UserRecord) -> None:
        """Upsert by username; used for generic field updates."""
        await self.add_user(record)

    async def create_user(self, record: UserRecord) -> None:
        """Insert a new record; raises UserAlreadyExistsError if the username is taken."""
        async with self._write_lock:
            users = await self.get_users()
            if record.username in users:
                raise UserAlreadyExistsError(record.username)
            users[record.username] = record
            await self.save_users(users)
        logger.info("Created user %s (role=%s)", record.username, record.role.value)

    async def get_user(self, username: str) -> UserRecord | None:
        users = await self.get_users()
        return users.get(username)

    async def change_user_password(
        self,
        username: str,
        current_password: str,
        new_password: str,
    ) -> UserRecord:
        """
        Verify current_password, then replace salt and hash together in a single write.
        Raises UserNotFoundError or AuthenticationFailure without touching stored state.
        """
        async with self._write_lock:
            users = await self.get_users()
            user = users.get(username)
            if user is None:
                raise UserNotFoundError(username)
            if not verify_password(current_password, user.salt, user.hash):
                raise AuthenticationFailure("Current password incorrect")

            salt = await generate_salt(self._entropy)
            updated = user.model_copy(
                update={"salt": salt, "hash": hash_password(new_password, salt)}
            )
            users[username] = updated
            await self.save_users(users)
        logger.info("Password changed for user %s", username)
        return updated

    async def delete_user(self, username: str) -> None:
        """Remove the record if present, then clear the current-user pointer if it names it."""
        async with self._write_lock:
            users = await self.get_users()
            if users.pop(username, None) is not None:
                await self.save_users(users)
                logger.info("Deleted user %s", username)
            if await self.get_current_user() == username:
                await self.remove_current_user()

    async def set_current_user(self, username: str) -> None:
        await self._storage.set(CURRENT_USER_KEY, username)

    async def get_current_user(self) -> str | None:
        """Return the persisted current username, or None when unset or unreadable."""
        try:
            value = await self._storage.get(CURRENT_USER_KEY)
        except StorageDecryptionError as e:
            logger.warning("Unreadable current-user pointer, treating as unset: %s", e)
            return None
        return value or None

    async def remove_current_user(self) -> None:
        await self._storage.delete(CURRENT_USER_KEY)
