"""Unit tests for sharejoy.services.credential_store: user records, pointer, password change."""

import asyncio
import json
import unittest
from unittest.mock import AsyncMock

from cryptography.fernet import Fernet
from pydantic import ValidationError

from sharejoy.core.security import EntropyFailure, hash_password, verify_password
from sharejoy.core.storage import EncryptedStorage, InMemoryStorage
from sharejoy.schemas.user import Role, UserRecord
from sharejoy.services.credential_store import (
    CURRENT_USER_KEY,
    USERS_KEY,
    CredentialStore,
)
from sharejoy.services.errors import (
    AuthenticationFailure,
    UserAlreadyExistsError,
    UserNotFoundError,
)

SALT_A = "00112233445566778899aabbccddeeff"
SALT_B = "ffeeddccbbaa99887766554433221100"


def _user(username: str, password: str = "pw", salt: str = SALT_A, role: Role = Role.USER) -> UserRecord:
    """Build a record whose hash really derives from password and salt."""
    return UserRecord(
        username=username,
        salt=salt,
        hash=hash_password(password, salt),
        role=role,
    )


class _FixedEntropy:
    """Entropy source returning a known salt."""

    def __init__(self, salt_hex: str) -> None:
        self.raw = bytes.fromhex(salt_hex)

    async def get_random_bytes(self, n: int) -> bytes:
        return self.raw[:n]


class _YieldingStorage(InMemoryStorage):
    """InMemoryStorage that yields to the event loop on every call, exposing interleavings."""

    async def get(self, key: str) -> str | None:
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        await super().set(key, value)


class TestUserRecords(unittest.IsolatedAsyncioTestCase):
    """get_users / add_user / get_user / update_user / save_users."""

    def setUp(self) -> None:
        self.storage = InMemoryStorage()
        self.store = CredentialStore(self.storage)

    async def test_empty_store(self) -> None:
        self.assertEqual(await self.store.get_users(), {})
        self.assertIsNone(await self.store.get_user("alice"))

    async def test_add_then_get_round_trip(self) -> None:
        alice = _user("alice", role=Role.APPROVER)
        await self.store.add_user(alice)
        self.assertEqual(await self.store.get_user("alice"), alice)

    async def test_persisted_layout(self) -> None:
        alice = _user("alice")
        await self.store.add_user(alice)
        blob = json.loads(await self.storage.get(USERS_KEY))
        self.assertEqual(
            blob,
            {"alice": {"username": "alice", "salt": SALT_A, "hash": alice.hash, "role": "user"}},
        )

    async def test_add_user_overwrites_silently(self) -> None:
        await self.store.add_user(_user("alice", "first"))
        await self.store.add_user(_user("alice", "second", SALT_B))
        users = await self.store.get_users()
        self.assertEqual(len(users), 1)
        self.assertEqual(users["alice"].salt, SALT_B)

    async def test_update_user_persists_modified_fields(self) -> None:
        await self.store.add_user(_user("up1", "old"))
        await self.store.update_user(_user("up1", "new", SALT_B))
        after = await self.store.get_user("up1")
        self.assertEqual(after.salt, SALT_B)
        self.assertEqual(after.hash, hash_password("new", SALT_B))

    async def test_save_users_replaces_mapping(self) -> None:
        await self.store.add_user(_user("a"))
        await self.store.save_users({"b": _user("b")})
        self.assertEqual(list(await self.store.get_users()), ["b"])

    async def test_record_without_role_defaults_to_user(self) -> None:
        await self.storage.set(USERS_KEY, json.dumps({"old": {"username": "old", "salt": SALT_A, "hash": "ab" * 32}}))
        self.assertEqual((await self.store.get_user("old")).role, Role.USER)

    async def test_create_user_rejects_duplicate(self) -> None:
        await self.store.create_user(_user("alice", "first"))
        with self.assertRaises(UserAlreadyExistsError):
            await self.store.create_user(_user("alice", "second", SALT_B))
        self.assertEqual((await self.store.get_user("alice")).salt, SALT_A)

    async def test_concurrent_adds_do_not_lose_updates(self) -> None:
        store = CredentialStore(_YieldingStorage())
        await asyncio.gather(*(store.add_user(_user(f"u{i}")) for i in range(5)))
        self.assertEqual(sorted(await store.get_users()), [f"u{i}" for i in range(5)])

    async def test_concurrent_creates_of_same_username_admit_one(self) -> None:
        store = CredentialStore(_YieldingStorage())
        results = await asyncio.gather(
            store.create_user(_user("dup", "a")),
            store.create_user(_user("dup", "b", SALT_B)),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, UserAlreadyExistsError)]
        self.assertEqual(len(errors), 1)


class TestUserRecordValidation(unittest.TestCase):
    """UserRecord only accepts hex salts and hashes of the stored lengths."""

    def test_rejects_malformed_salt_and_hash(self) -> None:
        for salt, hash_ in (("s0", "ab" * 32), (SALT_A, "zz"), (SALT_A[:-2], "ab" * 32), (SALT_A, "ab" * 31)):
            with self.subTest(salt=salt, hash=hash_):
                with self.assertRaises(ValidationError):
                    UserRecord(username="x", salt=salt, hash=hash_)

    def test_accepts_uppercase_hash(self) -> None:
        self.assertEqual(UserRecord(username="x", salt=SALT_A, hash="AB" * 32).hash, "AB" * 32)


class TestCorruptState(unittest.IsolatedAsyncioTestCase):
    """An unreadable users blob is logged and treated as an empty mapping."""

    async def _assert_empty_with_warning(self, storage: InMemoryStorage) -> None:
        store = CredentialStore(storage)
        with self.assertLogs("sharejoy.services.credential_store", level="WARNING"):
            self.assertEqual(await store.get_users(), {})

    async def test_invalid_json(self) -> None:
        await self._assert_empty_with_warning(InMemoryStorage({USERS_KEY: "{not json"}))

    async def test_not_an_object(self) -> None:
        await self._assert_empty_with_warning(InMemoryStorage({USERS_KEY: "[1, 2]"}))

    async def test_invalid_record(self) -> None:
        blob = json.dumps({"alice": {"username": "alice", "role": "admin"}})
        await self._assert_empty_with_warning(InMemoryStorage({USERS_KEY: blob}))

    async def test_key_username_mismatch(self) -> None:
        blob = json.dumps({"alice": {"username": "mallory", "salt": SALT_A, "hash": "ab" * 32}})
        await self._assert_empty_with_warning(InMemoryStorage({USERS_KEY: blob}))

    async def test_malformed_salt_and_hash(self) -> None:
        blob = json.dumps({"carol": {"username": "carol", "salt": "s0", "hash": "ab"}})
        storage = InMemoryStorage({USERS_KEY: blob})
        store = CredentialStore(storage)
        with self.assertLogs("sharejoy.services.credential_store", level="WARNING"):
            self.assertIsNone(await store.get_user("carol"))

    async def test_uppercase_salt_rejected(self) -> None:
        blob = json.dumps({"carol": {"username": "carol", "salt": SALT_A.upper(), "hash": "ab" * 32}})
        await self._assert_empty_with_warning(InMemoryStorage({USERS_KEY: blob}))

    async def test_undecryptable_blob(self) -> None:
        inner = InMemoryStorage({USERS_KEY: "garbage"})
        store = CredentialStore(EncryptedStorage(inner, Fernet.generate_key()))
        with self.assertLogs("sharejoy.services.credential_store", level="WARNING"):
            self.assertEqual(await store.get_users(), {})
            self.assertIsNone(await store.get_user("alice"))

    async def test_storage_io_errors_propagate(self) -> None:
        storage = AsyncMock()
        storage.get.side_effect = OSError("disk gone")
        with self.assertRaises(OSError):
            await CredentialStore(storage).get_users()


class TestCurrentUserPointer(unittest.IsolatedAsyncioTestCase):
    """set/get/remove current user and its interaction with delete_user."""

    def setUp(self) -> None:
        self.storage = InMemoryStorage()
        self.store = CredentialStore(self.storage)

    async def test_set_get_remove(self) -> None:
        self.assertIsNone(await self.store.get_current_user())
        await self.store.set_current_user("bob")
        self.assertEqual(await self.store.get_current_user(), "bob")
        self.assertEqual(await self.storage.get(CURRENT_USER_KEY), "bob")
        await self.store.remove_current_user()
        self.assertIsNone(await self.store.get_current_user())

    async def test_delete_current_user_clears_pointer(self) -> None:
        await self.store.add_user(_user("dave"))
        await self.store.set_current_user("dave")
        await self.store.delete_user("dave")
        self.assertIsNone(await self.store.get_user("dave"))
        self.assertIsNone(await self.store.get_current_user())

    async def test_delete_other_user_keeps_pointer(self) -> None:
        await self.store.add_user(_user("u1"))
        await self.store.add_user(_user("u2"))
        await self.store.set_current_user("u2")
        await self.store.delete_user("u1")
        self.assertEqual(await self.store.get_current_user(), "u2")
        self.assertIsNone(await self.store.get_user("u1"))
        self.assertIsNotNone(await self.store.get_user("u2"))

    async def test_delete_is_idempotent(self) -> None:
        await self.store.add_user(_user("x"))
        await self.store.delete_user("x")
        await self.store.delete_user("x")
        self.assertEqual(await self.store.get_users(), {})

    async def test_delete_missing_user_clears_dangling_pointer(self) -> None:
        await self.store.set_current_user("ghost")
        await self.store.delete_user("ghost")
        self.assertIsNone(await self.store.get_current_user())


class TestChangeUserPassword(unittest.IsolatedAsyncioTestCase):
    """change_user_password verifies first and replaces salt and hash together."""

    def setUp(self) -> None:
        self.storage = InMemoryStorage()
        self.store = CredentialStore(self.storage, entropy=_FixedEntropy(SALT_B))

    async def test_changes_salt_and_hash(self) -> None:
        await self.store.add_user(_user("carol", "old", SALT_A))
        returned = await self.store.change_user_password("carol", "old", "new")
        stored = await self.store.get_user("carol")
        self.assertEqual(returned, stored)
        self.assertEqual(stored.salt, SALT_B)
        self.assertEqual(stored.hash, hash_password("new", SALT_B))
        self.assertTrue(verify_password("new", stored.salt, stored.hash))
        self.assertFalse(verify_password("old", stored.salt, stored.hash))

    async def test_preserves_role(self) -> None:
        await self.store.add_user(_user("carol", "old", role=Role.APPROVER))
        await self.store.change_user_password("carol", "old", "new")
        self.assertEqual((await self.store.get_user("carol")).role, Role.APPROVER)

    async def test_fresh_salt_from_system_entropy(self) -> None:
        store = CredentialStore(self.storage)
        await store.add_user(_user("carol", "old", SALT_A))
        await store.change_user_password("carol", "old", "new")
        stored = await store.get_user("carol")
        self.assertNotEqual(stored.salt, SALT_A)
        self.assertEqual(len(stored.salt), 32)
        self.assertTrue(verify_password("new", stored.salt, stored.hash))

    async def test_wrong_current_password_changes_nothing(self) -> None:
        await self.store.add_user(_user("edge1", "correct"))
        before = await self.storage.get(USERS_KEY)
        with self.assertRaises(AuthenticationFailure) as ctx:
            await self.store.change_user_password("edge1", "wrong", "newpw")
        self.assertEqual(ctx.exception.message, "Current password incorrect")
        self.assertEqual(await self.storage.get(USERS_KEY), before)

    async def test_unknown_user(self) -> None:
        with self.assertRaises(UserNotFoundError) as ctx:
            await self.store.change_user_password("nobody", "a", "b")
        self.assertEqual(ctx.exception.username, "nobody")

    async def test_entropy_failure_propagates_without_writing(self) -> None:
        broken = AsyncMock()
        broken.get_random_bytes.side_effect = RuntimeError("no rng")
        store = CredentialStore(self.storage, entropy=broken)
        await store.add_user(_user("carol", "old"))
        before = await self.storage.get(USERS_KEY)
        with self.assertRaises(EntropyFailure):
            await store.change_user_password("carol", "old", "new")
        self.assertEqual(await self.storage.get(USERS_KEY), before)


class TestAliceScenario(unittest.IsolatedAsyncioTestCase):
    """Register alice with S3cr3t!, check the stored hash, log in right and wrong."""

    async def test_alice(self) -> None:
        storage = InMemoryStorage()
        store = CredentialStore(storage)
        await store.create_user(_user("alice", "S3cr3t!", SALT_A))

        alice = await store.get_user("alice")
        self.assertEqual(alice.hash, hash_password("S3cr3t!", alice.salt))
        self.assertTrue(verify_password("S3cr3t!", alice.salt, alice.hash))

        before = await storage.get(USERS_KEY)
        self.assertFalse(verify_password("wrong", alice.salt, alice.hash))
        self.assertEqual(await storage.get(USERS_KEY), before)


if __name__ == "__main__":
    unittest.main()
