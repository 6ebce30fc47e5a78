"""Account endpoints (register, login, logout, password, delete) and the session accessor."""

from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request, status

from sharejoy.core.security import EntropyFailure
from sharejoy.schemas.auth import (
    ChangePasswordRequest,
    CurrentUser,
    DeleteAccountRequest,
    LoginRequest,
    RegisterRequest,
    SessionResponse,
)
from sharejoy.services.accounts import AccountService
from sharejoy.services.errors import (
    AuthenticationFailure,
    CredentialError,
    NotAuthenticatedError,
    UserAlreadyExistsError,
    UserNotFoundError,
    user_message,
)
from sharejoy.services.session import get_initial_user

router = APIRouter()

_STATUS_BY_CODE = {
    UserNotFoundError.code: status.HTTP_404_NOT_FOUND,
    AuthenticationFailure.code: status.HTTP_401_UNAUTHORIZED,
    NotAuthenticatedError.code: status.HTTP_401_UNAUTHORIZED,
    UserAlreadyExistsError.code: status.HTTP_409_CONFLICT,
}


def get_accounts(request: Request) -> AccountService:
    """Dependency: the process-wide account service built at startup."""
    return request.app.state.accounts


def _raise_http(error: CredentialError | EntropyFailure) -> NoReturn:
    title, message = user_message(error)
    raise HTTPException(
        status_code=_STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"code": error.code, "title": title, "detail": message},
    )


def _raise_validation(error: ValueError) -> NoReturn:
    raise HTTPException(
        status_code=422,
        detail={"code": "invalid_input", "title": "Invalid input", "detail": str(error)},
    )


@router.get("/session", response_model=SessionResponse)
async def read_session(
    accounts: Annotated[AccountService, Depends(get_accounts)],
) -> SessionResponse:
    """Who is logged in; used by the client at startup to pick its first screen."""
    return SessionResponse(username=await get_initial_user(accounts.store))


@router.post("/register", response_model=CurrentUser, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    accounts: Annotated[AccountService, Depends(get_accounts)],
) -> CurrentUser:
    try:
        user = await accounts.register(body.username, body.password, body.role)
    except ValueError as e:
        _raise_validation(e)
    except (CredentialError, EntropyFailure) as e:
        _raise_http(e)
    return CurrentUser(username=user.username, role=user.role)


@router.post("/login", response_model=CurrentUser)
async def login(
    body: LoginRequest,
    accounts: Annotated[AccountService, Depends(get_accounts)],
) -> CurrentUser:
    try:
        user = await accounts.login(body.username, body.password)
    except ValueError as e:
        _raise_validation(e)
    except CredentialError as e:
        _raise_http(e)
    return CurrentUser(username=user.username, role=user.role)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(accounts: Annotated[AccountService, Depends(get_accounts)]) -> None:
    await accounts.logout()


@router.get("/me", response_model=CurrentUser)
async def read_me(accounts: Annotated[AccountService, Depends(get_accounts)]) -> CurrentUser:
    try:
        user = await accounts.current_user()
    except CredentialError as e:
        _raise_http(e)
    return CurrentUser(username=user.username, role=user.role)


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    body: ChangePasswordRequest,
    accounts: Annotated[AccountService, Depends(get_accounts)],
) -> None:
    """Change the logged-in user's password; salt and hash are replaced together."""
    try:
        await accounts.change_password(
            body.current_password, body.new_password, body.confirm_password
        )
    except ValueError as e:
        _raise_validation(e)
    except (CredentialError, EntropyFailure) as e:
        _raise_http(e)


@router.delete("/account", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    body: DeleteAccountRequest,
    accounts: Annotated[AccountService, Depends(get_accounts)],
) -> None:
    """Delete the logged-in account; the password must be re-entered to confirm."""
    try:
        await accounts.delete_account(body.password)
    except ValueError as e:
        _raise_validation(e)
    except CredentialError as e:
        _raise_http(e)
