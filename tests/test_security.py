"""Unit tests for app.core.security: bcrypt hashing, verification and input limits."""

import unittest
from unittest.mock import patch

from app.core.security import (
    BCRYPT_MAX_BYTES,
    hash_password,
    prime_dummy_hash,
    password_is_valid,
    username_is_valid,
    verify_password,
    verify_password_or_dummy,
)

ROUNDS = 4


class TestHashPassword(unittest.TestCase):
    """hash_password salts every call and never returns the plaintext."""

    def test_hash_is_bcrypt_and_not_plaintext(self) -> None:
        hashed = hash_password("Secret123!", rounds=ROUNDS)
        self.assertTrue(hashed.startswith("$2"))
        self.assertNotIn("Secret123!", hashed)

    def test_same_password_gets_different_salts(self) -> None:
        first = hash_password("Secret123!", rounds=ROUNDS)
        second = hash_password("Secret123!", rounds=ROUNDS)
        self.assertNotEqual(first, second)
        self.assertTrue(verify_password("Secret123!", first))
        self.assertTrue(verify_password("Secret123!", second))

    def test_rounds_encoded_in_hash(self) -> None:
        self.assertEqual(hash_password("Secret123!", rounds=5).split("$")[2], "05")


class TestVerifyPassword(unittest.TestCase):
    """verify_password accepts the exact password and nothing else."""

    @classmethod
    def setUpClass(cls) -> None:
        cls.password = "Secret123!"
        cls.hashed = hash_password(cls.password, rounds=ROUNDS)

    def test_correct_password(self) -> None:
        self.assertTrue(verify_password(self.password, self.hashed))

    def test_every_single_character_mutation_fails(self) -> None:
        for i, ch in enumerate(self.password):
            replacement = "x" if ch != "x" else "y"
            mutated = self.password[:i] + replacement + self.password[i + 1 :]
            with self.subTest(position=i):
                self.assertFalse(verify_password(mutated, self.hashed))

    def test_malformed_hash_returns_false(self) -> None:
        self.assertFalse(verify_password(self.password, "not-a-bcrypt-hash"))
        self.assertFalse(verify_password(self.password, ""))

    def test_last_accepted_byte_is_significant(self) -> None:
        password = "a" * (BCRYPT_MAX_BYTES - 1) + "b"
        hashed = hash_password(password, rounds=ROUNDS)
        self.assertFalse(verify_password("a" * BCRYPT_MAX_BYTES, hashed))

    def test_input_past_byte_limit_never_matches(self) -> None:
        password = "P" * BCRYPT_MAX_BYTES
        hashed = hash_password(password, rounds=ROUNDS)
        self.assertTrue(verify_password(password, hashed))
        self.assertFalse(verify_password(password + "x", hashed))
        self.assertFalse(verify_password(password + "é", hashed))


class TestVerifyPasswordOrDummy(unittest.TestCase):
    """Missing accounts still go through bcrypt and always fail."""

    def test_none_hash_returns_false(self) -> None:
        self.assertFalse(verify_password_or_dummy("Secret123!", None, rounds=ROUNDS))

    def test_real_hash_is_checked(self) -> None:
        hashed = hash_password("Secret123!", rounds=ROUNDS)
        self.assertTrue(verify_password_or_dummy("Secret123!", hashed, rounds=ROUNDS))
        self.assertFalse(verify_password_or_dummy("Secret123?", hashed, rounds=ROUNDS))

    def test_input_past_byte_limit_fails_against_real_hash(self) -> None:
        password = "P" * BCRYPT_MAX_BYTES
        hashed = hash_password(password, rounds=ROUNDS)
        self.assertFalse(verify_password_or_dummy(password + "x", hashed, rounds=ROUNDS))
        self.assertFalse(verify_password_or_dummy(password + "x", None, rounds=ROUNDS))

    def test_primed_dummy_hash_is_reused(self) -> None:
        prime_dummy_hash(ROUNDS)
        with patch("app.core.security.bcrypt.hashpw") as hashpw:
            self.assertFalse(verify_password_or_dummy("Secret123!", None, rounds=ROUNDS))
        hashpw.assert_not_called()


class TestInputLimits(unittest.TestCase):
    """Length checks used by schemas and the create_user script."""

    def test_username(self) -> None:
        self.assertTrue(username_is_valid("alice"))
        self.assertFalse(username_is_valid("   "))
        self.assertFalse(username_is_valid("a" * 256))

    def test_username_that_grows_when_casefolded(self) -> None:
        # 200 characters, 400 once casefolded.
        self.assertFalse(username_is_valid("ß" * 200))
        self.assertTrue(username_is_valid("ß" * 100))

    def test_password_length(self) -> None:
        self.assertTrue(password_is_valid("Secret123!"))
        self.assertFalse(password_is_valid("short"))
        self.assertFalse(password_is_valid("a" * 129))

    def test_password_byte_limit(self) -> None:
        # 40 characters but 80 bytes: bcrypt would ignore the tail.
        self.assertFalse(password_is_valid("é" * 40))
        self.assertTrue(password_is_valid("é" * 36))


if __name__ == "__main__":
    unittest.main()
