"""Tests for app.services.credential_store against an in-memory SQLite database."""

import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.errors import DuplicateUsernameError, UserNotFoundError
from app.models import Base, Role, User
from app.services.credential_store import (
    SqlAlchemyCredentialStore,
    UserRecord,
    normalize_roles,
    normalize_username,
)


def _session_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


class CredentialStoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.Session = _session_factory()
        self.db = self.Session()
        self.store = SqlAlchemyCredentialStore(self.db)

    def tearDown(self) -> None:
        self.db.close()


class TestCreateUser(CredentialStoreTestCase):
    """create_user inserts users with roles and rejects duplicates atomically."""

    def test_create_and_find(self) -> None:
        user_id = self.store.create_user("alice", "hash-1", ["user"], full_name="Alice A.")
        record = self.store.find_by_username("alice")
        self.assertIsInstance(record, UserRecord)
        self.assertEqual(record.id, user_id)
        self.assertEqual(record.username, "alice")
        self.assertEqual(record.full_name, "Alice A.")
        self.assertEqual(record.password_hash, "hash-1")
        self.assertEqual(record.roles, frozenset({"user"}))
        self.assertTrue(record.is_active)
        self.assertIsNotNone(record.created_at)

    def test_roles_are_shared_between_users(self) -> None:
        self.store.create_user("alice", "h", ["user"])
        self.store.create_user("bob", "h", ["user", "admin"])
        self.assertEqual(self.db.query(Role).count(), 2)
        self.assertEqual(self.store.find_by_username("bob").roles, frozenset({"admin", "user"}))

    def test_user_without_roles(self) -> None:
        self.store.create_user("carol", "h", [])
        self.assertEqual(self.store.find_by_username("carol").roles, frozenset())

    def test_duplicate_username_leaves_store_unchanged(self) -> None:
        self.store.create_user("alice", "hash-1", ["user"])
        with self.assertRaises(DuplicateUsernameError):
            self.store.create_user("alice", "hash-2", ["auditor"])
        self.assertEqual(self.db.query(User).count(), 1)
        self.assertEqual(self.store.find_by_username("alice").password_hash, "hash-1")
        self.assertEqual(
            [r.name for r in self.db.query(Role).all()],
            ["user"],
        )

    def test_duplicate_is_case_insensitive(self) -> None:
        self.store.create_user("alice", "h", ["user"])
        with self.assertRaises(DuplicateUsernameError):
            self.store.create_user("  ALICE ", "h", ["user"])

    def test_duplicate_detected_across_sessions(self) -> None:
        self.store.create_user("alice", "h", ["user"])
        other = self.Session()
        try:
            with self.assertRaises(DuplicateUsernameError):
                SqlAlchemyCredentialStore(other).create_user("alice", "h2", ["user"])
        finally:
            other.close()

    def test_invalid_role_name(self) -> None:
        with self.assertRaises(ValueError):
            self.store.create_user("alice", "h", ["  "])
        self.assertEqual(self.db.query(User).count(), 0)

    def test_username_too_long_once_normalized(self) -> None:
        with self.assertRaises(ValueError):
            self.store.create_user("ß" * 200, "h", ["user"])
        self.assertEqual(self.db.query(User).count(), 0)
        self.store.create_user("ß" * 100, "h", ["user"])
        self.assertEqual(self.store.find_by_username("SS" * 100).username, "ß" * 100)


class TestLookups(CredentialStoreTestCase):
    """find_by_username and find_by_id raise UserNotFoundError when absent."""

    def test_username_lookup_is_case_insensitive(self) -> None:
        user_id = self.store.create_user("Alice", "h", ["user"])
        record = self.store.find_by_username("alice")
        self.assertEqual(record.id, user_id)
        self.assertEqual(record.username, "Alice")

    def test_unknown_username(self) -> None:
        with self.assertRaises(UserNotFoundError):
            self.store.find_by_username("nobody")

    def test_find_by_id(self) -> None:
        user_id = self.store.create_user("alice", "h", ["user"])
        self.assertEqual(self.store.find_by_id(user_id).username, "alice")

    def test_unknown_id(self) -> None:
        with self.assertRaises(UserNotFoundError):
            self.store.find_by_id("00000000-0000-0000-0000-000000000000")

    def test_list_users(self) -> None:
        self.store.create_user("bob", "h", ["user"])
        self.store.create_user("alice", "h", ["admin"])
        names = sorted(u.username for u in self.store.list_users())
        self.assertEqual(names, ["alice", "bob"])


class TestUpdates(CredentialStoreTestCase):
    """update_password and set_active mutate existing users only."""

    def test_update_password(self) -> None:
        user_id = self.store.create_user("alice", "old", ["user"])
        self.store.update_password(user_id, "new")
        self.assertEqual(self.store.find_by_id(user_id).password_hash, "new")

    def test_update_password_unknown_user(self) -> None:
        with self.assertRaises(UserNotFoundError):
            self.store.update_password("missing", "new")

    def test_soft_disable_keeps_record(self) -> None:
        user_id = self.store.create_user("alice", "h", ["user"])
        record = self.store.set_active(user_id, False)
        self.assertFalse(record.is_active)
        self.assertFalse(self.store.find_by_username("alice").is_active)
        self.assertEqual(self.db.query(User).count(), 1)
        self.assertTrue(self.store.set_active(user_id, True).is_active)

    def test_set_active_unknown_user(self) -> None:
        with self.assertRaises(UserNotFoundError):
            self.store.set_active("missing", False)


class TestNormalization(unittest.TestCase):
    def test_normalize_username(self) -> None:
        self.assertEqual(normalize_username("  Alice "), "alice")

    def test_normalize_roles(self) -> None:
        self.assertEqual(normalize_roles([" user", "admin", "user"]), ["admin", "user"])

    def test_normalize_roles_rejects_long_names(self) -> None:
        with self.assertRaises(ValueError):
            normalize_roles(["r" * 65])


if __name__ == "__main__":
    unittest.main()
