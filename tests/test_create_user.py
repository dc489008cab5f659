"""Tests for the create_user bootstrap script."""

import contextlib
import io
import unittest
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.models import Base
from app.scripts import create_user
from app.services.credential_store import SqlAlchemyCredentialStore


class TestCreateUserScript(unittest.TestCase):
    def setUp(self) -> None:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(engine)
        self.Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        patches = [
            patch.object(create_user, "SessionLocal", self.Session),
            patch.object(create_user, "get_settings", return_value=Settings(BCRYPT_ROUNDS=4)),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def run_main(self, *argv: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = create_user.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def stored(self, username: str):
        db = self.Session()
        try:
            return SqlAlchemyCredentialStore(db).find_by_username(username)
        finally:
            db.close()

    def test_creates_admin(self) -> None:
        code, out, _ = self.run_main("root", "Admin-pass-1", "--role", "admin", "--role", "user")
        self.assertEqual(code, 0)
        self.assertIn("Created user 'root'", out)
        self.assertEqual(self.stored("root").roles, frozenset({"admin", "user"}))

    def test_default_role(self) -> None:
        self.assertEqual(self.run_main("alice", "Secret123!")[0], 0)
        self.assertEqual(self.stored("alice").roles, frozenset({"user"}))

    def test_duplicate(self) -> None:
        self.run_main("alice", "Secret123!")
        code, _, err = self.run_main("alice", "Secret123!")
        self.assertEqual(code, 1)
        self.assertIn("already exists", err)

    def test_rejects_short_password(self) -> None:
        code, _, err = self.run_main("alice", "short")
        self.assertEqual(code, 1)
        self.assertIn("Password", err)

    def test_rejects_username_too_long_once_casefolded(self) -> None:
        code, _, err = self.run_main("ß" * 200, "Secret123!")
        self.assertEqual(code, 1)
        self.assertIn("username", err)


if __name__ == "__main__":
    unittest.main()
