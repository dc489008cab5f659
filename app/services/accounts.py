"""Account operations: registration, login and password change."""

import logging
from collections.abc import Iterable

from app.core.errors import (
    AccountDisabledError,
    BadPasswordError,
    InvalidCredentialsError,
    UserNotFoundError,
)
from app.core.security import hash_password, verify_password, verify_password_or_dummy
from app.services.credential_store import CredentialStore, UserRecord

logger = logging.getLogger(__name__)


def register_user(
    store: CredentialStore,
    username: str,
    password: str,
    roles: Iterable[str],
    full_name: str | None = None,
    rounds: int | None = None,
) -> UserRecord:
    """Hash the password and create the user. Raises DuplicateUsernameError."""
    user_id = store.create_user(
        username=username,
        password_hash=hash_password(password, rounds=rounds),
        roles=roles,
        full_name=full_name,
    )
    return store.find_by_id(user_id)


def authenticate(
    store: CredentialStore,
    username: str,
    password: str,
    rounds: int | None = None,
) -> UserRecord:
    """
    Return the user for a valid username/password pair.

    Unknown user, wrong password and disabled account all raise InvalidCredentialsError
    (or a subclass) after the same bcrypt work; the distinct reason is logged here only.
    """
    try:
        user: UserRecord | None = store.find_by_username(username)
    except UserNotFoundError:
        user = None

    password_ok = verify_password_or_dummy(
        password,
        user.password_hash if user is not None else None,
        rounds=rounds,
    )
    if user is None:
        logger.warning(
            "Login failed: %s",
            UserNotFoundError.reason,
            extra={"reason": UserNotFoundError.reason},
        )
        raise InvalidCredentialsError("Invalid username or password")
    if not password_ok:
        logger.warning(
            "Login failed: %s user_id=%s",
            BadPasswordError.reason,
            user.id,
            extra={"reason": BadPasswordError.reason, "user_id": user.id},
        )
        raise BadPasswordError("Invalid username or password")
    if not user.is_active:
        logger.warning(
            "Login failed: %s user_id=%s",
            AccountDisabledError.reason,
            user.id,
            extra={"reason": AccountDisabledError.reason, "user_id": user.id},
        )
        raise AccountDisabledError("Invalid username or password")

    logger.info("Login succeeded: user_id=%s", user.id, extra={"user_id": user.id})
    return user


def change_password(
    store: CredentialStore,
    user_id: str,
    current_password: str,
    new_password: str,
    rounds: int | None = None,
) -> None:
    """Replace the password after checking the current one. Raises BadPasswordError."""
    user = store.find_by_id(user_id)
    if not verify_password(current_password, user.password_hash):
        logger.warning(
            "Password change rejected: %s user_id=%s",
            BadPasswordError.reason,
            user_id,
            extra={"reason": BadPasswordError.reason, "user_id": user_id},
        )
        raise BadPasswordError("Current password is incorrect")
    store.update_password(user_id, hash_password(new_password, rounds=rounds))
