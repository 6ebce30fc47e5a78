"""Account flows: register, login, logout, change password, delete account."""

import logging

from sharejoy.core.security import EntropySource, generate_salt, hash_password, verify_password
from sharejoy.schemas.user import Role, UserRecord
from sharejoy.services.credential_store import CredentialStore
from sharejoy.services.errors import (
    AuthenticationFailure,
    NotAuthenticatedError,
    UserNotFoundError,
)
from sharejoy.services.session import SessionState

logger = logging.getLogger(__name__)

# Min/max lengths for username and password validation.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 1
PASSWORD_MAX_LEN = 128


def _validate_username(username: str) -> None:
    if not (USERNAME_MIN_LEN <= len(username) <= USERNAME_MAX_LEN):
        raise ValueError("Invalid username length.")


def _validate_password(password: str) -> None:
    if not (PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN):
        raise ValueError("Invalid password length.")


class AccountService:
    """Runs the account flows against one credential store and session."""

    def __init__(
        self,
        store: CredentialStore,
        session: SessionState,
        entropy: EntropySource | None = None,
    ) -> None:
        self.store = store
        self.session = session
        self._entropy = entropy

    def _require_user(self) -> str:
        username = self.session.current_username
        if username is None:
            raise NotAuthenticatedError()
        return username

    async def register(self, username: str, password: str, role: Role = Role.USER) -> UserRecord:
        """Create the account and log it in. Raises UserAlreadyExistsError for a taken username."""
        _validate_username(username)
        _validate_password(password)
        salt = await generate_salt(self._entropy)
        record = UserRecord(
            username=username,
            salt=salt,
            hash=hash_password(password, salt),
            role=role,
        )
        await self.store.create_user(record)
        await self.session.begin(username)
        return record

    async def login(self, username: str, password: str) -> UserRecord:
        """Verify credentials and make username the current user; state is untouched on failure."""
        _validate_username(username)
        _validate_password(password)
        user = await self.store.get_user(username)
        if user is None:
            raise UserNotFoundError(username)
        if not verify_password(password, user.salt, user.hash):
            logger.info("Failed login for user %s", username)
            raise AuthenticationFailure("Invalid credentials")
        await self.session.begin(username)
        return user

    async def logout(self) -> None:
        await self.session.end()

    async def current_user(self) -> UserRecord:
        username = self._require_user()
        user = await self.store.get_user(username)
        if user is None:
            await self.session.end()
            raise NotAuthenticatedError()
        return user

    async def change_password(
        self,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> UserRecord:
        username = self._require_user()
        _validate_password(new_password)
        if new_password != confirm_password:
            raise ValueError("New password and confirmation do not match")
        return await self.store.change_user_password(username, current_password, new_password)

    async def delete_account(self, password: str) -> None:
        """Delete the logged-in account after re-checking its password."""
        username = self._require_user()
        user = await self.store.get_user(username)
        if user is None:
            raise UserNotFoundError(username)
        if not verify_password(password, user.salt, user.hash):
            raise AuthenticationFailure("Password incorrect")
        await self.store.delete_user(username)
        await self.session.refresh()
