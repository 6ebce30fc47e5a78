"""Closed set of credential errors and their user-facing text."""

from sharejoy.core.security import EntropyFailure


class CredentialError(Exception):
    """Base for errors raised by the credential store and account flows."""

    code = "credential_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UserNotFoundError(CredentialError):
    """No record exists for the username."""

    code = "not_found"

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__("User not found")


class AuthenticationFailure(CredentialError):
    """Password verification failed."""

    code = "authentication_failure"


class UserAlreadyExistsError(CredentialError):
    code = "already_exists"

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__("User already exists")


class CorruptStateError(CredentialError):
    """
    The persisted users blob could not be read. Never raised to callers: the store
    logs it and treats the mapping as empty.
    """

    code = "corrupt_state"


class NotAuthenticatedError(CredentialError):
    """An account flow that needs a logged-in user ran without one."""

    code = "not_authenticated"

    def __init__(self) -> None:
        super().__init__("No user is logged in")


# (title, message) shown by the client for each error code.
USER_MESSAGES: dict[str, tuple[str, str]] = {
    UserNotFoundError.code: ("Account not found", "No user found with that username."),
    AuthenticationFailure.code: ("Authentication Failed", "Invalid credentials."),
    UserAlreadyExistsError.code: ("User exists", "Choose a different username or log in."),
    CorruptStateError.code: ("Storage error", "Saved accounts could not be read."),
    NotAuthenticatedError.code: ("Not signed in", "Please log in first."),
    EntropyFailure.code: ("Security error", "Secure random data is unavailable on this device."),
}


def user_message(error: CredentialError | EntropyFailure) -> tuple[str, str]:
    """Return the (title, message) pair for an error, falling back to the error text."""
    return USER_MESSAGES.get(error.code, ("Error", error.message))
