"""Session state (who is logged in) and the startup accessor used by the app shell."""

import logging

from sharejoy.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class SessionState:
    """
    Explicit owner of the current username. Account flows go through begin()/end()
    instead of writing the persisted pointer directly; the value is mirrored to the
    credential store so it survives restarts.
    """

    def __init__(self, store: CredentialStore) -> None:
        self._store = store
        self._current_username: str | None = None

    @property
    def current_username(self) -> str | None:
        return self._current_username

    @property
    def is_authenticated(self) -> bool:
        return self._current_username is not None

    async def load(self) -> str | None:
        """Restore the persisted pointer, dropping it if its user no longer exists."""
        username = await self._store.get_current_user()
        if username is not None and await self._store.get_user(username) is None:
            logger.warning("Current-user pointer names a missing user; clearing it")
            await self._store.remove_current_user()
            username = None
        self._current_username = username
        return username

    async def begin(self, username: str) -> None:
        await self._store.set_current_user(username)
        self._current_username = username

    async def end(self) -> None:
        await self._store.remove_current_user()
        self._current_username = None

    async def refresh(self) -> str | None:
        """Re-read the persisted pointer (e.g. after delete_user cleared it)."""
        self._current_username = await self._store.get_current_user()
        return self._current_username


async def get_initial_user(store: CredentialStore) -> str | None:
    """Username to show at startup, or None. Safe to call before any UI state exists."""
    return await store.get_current_user()
