"""Credential store: user identity records and password hashes behind a repository interface."""

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import DuplicateUsernameError, UserNotFoundError
from app.core.security import USERNAME_MAX_LEN
from app.models import Role, User

logger = logging.getLogger(__name__)

ROLE_NAME_MAX_LEN = 64


def normalize_username(username: str) -> str:
    """Canonical form used for uniqueness and lookup."""
    return username.strip().casefold()


def normalize_roles(roles: Iterable[str]) -> list[str]:
    """Strip, de-duplicate and sort role names; reject empty or oversized names."""
    names = set()
    for role in roles:
        name = role.strip()
        if not name or len(name) > ROLE_NAME_MAX_LEN:
            raise ValueError(f"Invalid role name: {role!r}")
        names.add(name)
    return sorted(names)


@dataclass(frozen=True)
class UserRecord:
    """Plain snapshot of a stored user; detached from any session."""

    id: str
    username: str
    password_hash: str
    roles: frozenset[str]
    full_name: str | None = None
    is_active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, user: User) -> "UserRecord":
        return cls(
            id=user.id,
            username=user.username,
            password_hash=user.password_hash,
            roles=frozenset(role.name for role in user.roles),
            full_name=user.full_name,
            is_active=bool(user.is_active),
            created_at=user.created_at,
        )


class CredentialStore(ABC):
    """Persistence interface for user identities."""

    @abstractmethod
    def create_user(
        self,
        username: str,
        password_hash: str,
        roles: Iterable[str],
        full_name: str | None = None,
    ) -> str:
        """Insert a user and return its id. Raises DuplicateUsernameError, or ValueError for an oversized name."""

    @abstractmethod
    def find_by_username(self, username: str) -> UserRecord:
        """Raises UserNotFoundError."""

    @abstractmethod
    def find_by_id(self, user_id: str) -> UserRecord:
        """Raises UserNotFoundError."""

    @abstractmethod
    def update_password(self, user_id: str, new_hash: str) -> None:
        """Replace the stored hash. Raises UserNotFoundError."""

    @abstractmethod
    def set_active(self, user_id: str, is_active: bool) -> UserRecord:
        """Enable or soft-disable an account. Raises UserNotFoundError."""

    @abstractmethod
    def list_users(self) -> list[UserRecord]:
        """All users, oldest first."""


class SqlAlchemyCredentialStore(CredentialStore):
    """CredentialStore backed by the users/roles tables. One instance per session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _roles(self, names: list[str]) -> list[Role]:
        existing = self._session.query(Role).filter(Role.name.in_(names)).all() if names else []
        by_name = {role.name: role for role in existing}
        for name in names:
            if name not in by_name:
                by_name[name] = Role(name=name)
                self._session.add(by_name[name])
        return [by_name[name] for name in names]

    def _get(self, user_id: str) -> User:
        user = self._session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(f"No user with id {user_id!r}")
        return user

    def create_user(
        self,
        username: str,
        password_hash: str,
        roles: Iterable[str],
        full_name: str | None = None,
    ) -> str:
        normalized = normalize_username(username)
        # Casefolding can lengthen a name (e.g. "ß" becomes "ss").
        if len(normalized) > USERNAME_MAX_LEN:
            raise ValueError(f"Username must be at most {USERNAME_MAX_LEN} characters once normalized")
        user_id = str(uuid.uuid4())
        user = User(
            id=user_id,
            username=username.strip(),
            normalized_username=normalized,
            full_name=full_name,
            password_hash=password_hash,
            is_active=True,
        )
        user.roles = self._roles(normalize_roles(roles))
        self._session.add(user)
        try:
            self._session.commit()
        except IntegrityError as e:
            # The unique index decides; a lookup afterwards only classifies the conflict.
            self._session.rollback()
            if self._find(username) is not None:
                raise DuplicateUsernameError(username.strip()) from e
            raise
        logger.info("User created", extra={"user_id": user_id})
        return user_id

    def _find(self, username: str) -> User | None:
        return (
            self._session.query(User)
            .filter(User.normalized_username == normalize_username(username))
            .first()
        )

    def find_by_username(self, username: str) -> UserRecord:
        user = self._find(username)
        if user is None:
            raise UserNotFoundError(f"No user named {username!r}")
        return UserRecord.from_model(user)

    def find_by_id(self, user_id: str) -> UserRecord:
        return UserRecord.from_model(self._get(user_id))

    def update_password(self, user_id: str, new_hash: str) -> None:
        user = self._get(user_id)
        user.password_hash = new_hash
        self._session.commit()
        logger.info("Password updated", extra={"user_id": user_id})

    def set_active(self, user_id: str, is_active: bool) -> UserRecord:
        user = self._get(user_id)
        user.is_active = is_active
        self._session.commit()
        self._session.refresh(user)
        logger.info(
            "User %s", "enabled" if is_active else "disabled", extra={"user_id": user_id}
        )
        return UserRecord.from_model(user)

    def list_users(self) -> list[UserRecord]:
        users = self._session.query(User).order_by(User.created_at, User.username).all()
        return [UserRecord.from_model(u) for u in users]
