"""
Create a user (e.g. the first approver) in the configured storage. Run from project root:
  python -m sharejoy.scripts.create_user USERNAME PASSWORD [role]
Example:
  python -m sharejoy.scripts.create_user alice your-secure-password approver
"""
import argparse
import asyncio
import logging
import sys

from sharejoy.core.config import get_settings
from sharejoy.core.security import EntropyFailure, generate_salt, hash_password
from sharejoy.core.storage import build_storage
from sharejoy.schemas.user import Role, UserRecord
from sharejoy.services.credential_store import CredentialStore
from sharejoy.services.errors import UserAlreadyExistsError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


async def create_user(store: CredentialStore, username: str, password: str, role: Role) -> UserRecord:
    salt = await generate_salt()
    record = UserRecord(
        username=username,
        salt=salt,
        hash=hash_password(password, salt),
        role=role,
    )
    await store.create_user(record)
    return record


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a ShareJoy user.")
    parser.add_argument("username", help="Username (1-255 chars)")
    parser.add_argument("password", help="Password (1-128 chars)")
    parser.add_argument(
        "role",
        nargs="?",
        default=Role.USER.value,
        choices=[r.value for r in Role],
    )
    args = parser.parse_args(argv)

    username = args.username.strip()
    if not username or len(username) > 255:
        print("Invalid username length.", file=sys.stderr)
        return 1
    if not args.password or len(args.password) > 128:
        print("Password must be 1-128 characters.", file=sys.stderr)
        return 1

    store = CredentialStore(build_storage(get_settings()))
    try:
        asyncio.run(create_user(store, username, args.password, Role(args.role)))
    except UserAlreadyExistsError:
        print(f"User '{username}' already exists.", file=sys.stderr)
        return 1
    except EntropyFailure as e:
        logger.error("Cannot create user: %s", e.message)
        return 1
    print(f"Created user '{username}' with role '{args.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
