"""Password hashing and verification (bcrypt)."""

import bcrypt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# bcrypt only reads the first 72 bytes of its input.
BCRYPT_MAX_BYTES = 72

# Min/max lengths for username and password validation.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

# Checked when the account does not exist so both login failures cost one bcrypt run.
# Filled by prime_dummy_hash in create_app; read-only while serving requests.
_DUMMY_HASHES: dict[int, bytes] = {}


def username_is_valid(username: str) -> bool:
    """True when the stripped username, and its casefolded form, fit the allowed length."""
    stripped = username.strip()
    return (
        USERNAME_MIN_LEN <= len(stripped) <= USERNAME_MAX_LEN
        and len(stripped.casefold()) <= USERNAME_MAX_LEN
    )


def password_is_valid(password: str) -> bool:
    """True when the password length is allowed and every byte is seen by bcrypt."""
    return (
        PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN
        and len(password.encode("utf-8")) <= BCRYPT_MAX_BYTES
    )


def hash_password(plain_password: str, rounds: int | None = None) -> str:
    """Hash a plain-text password for storage. The salt is embedded in the result."""
    # Truncate to bcrypt's input limit; validation already rejects longer passwords.
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """
    Verify a plain password against a stored hash (constant-time in bcrypt).

    Input past bcrypt's 72-byte limit never matches; the check still runs so the
    rejection costs the same time.
    """
    raw = plain_password.encode("utf-8")
    try:
        matched = bcrypt.checkpw(raw[:BCRYPT_MAX_BYTES], hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False
    return matched and len(raw) <= BCRYPT_MAX_BYTES


def prime_dummy_hash(rounds: int) -> None:
    """Compute the dummy hash for this cost up front, at startup."""
    _dummy_hash(rounds)


def _dummy_hash(rounds: int) -> bytes:
    if rounds not in _DUMMY_HASHES:
        _DUMMY_HASHES[rounds] = bcrypt.hashpw(
            b"dummy-password-for-timing", bcrypt.gensalt(rounds=rounds)
        )
    return _DUMMY_HASHES[rounds]


def verify_password_or_dummy(
    plain_password: str,
    hashed: str | None,
    rounds: int | None = None,
) -> bool:
    """
    Verify against the stored hash, or burn an equivalent bcrypt check when there is none.

    Returns False whenever hashed is None, after spending the same work as a real check.
    """
    if hashed is not None:
        return verify_password(plain_password, hashed)
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    bcrypt.checkpw(pw_bytes, _dummy_hash(rounds or BCRYPT_ROUNDS))
    return False
