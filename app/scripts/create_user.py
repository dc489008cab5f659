"""
Create a user (e.g. first admin). Run from project root:
  python -m app.scripts.create_user USERNAME PASSWORD [--role ROLE ...] [--full-name NAME]
Example:
  python -m app.scripts.create_user admin your-secure-password --role admin --role user
"""
import argparse
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.errors import DuplicateUsernameError
from app.core.logging_config import configure_logging
from app.core.security import password_is_valid, username_is_valid
from app.services.accounts import register_user
from app.services.credential_store import SqlAlchemyCredentialStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create an Identity API user.")
    parser.add_argument("username", help="Username (1-255 chars)")
    parser.add_argument("password", help="Password (8-128 chars, at most 72 bytes)")
    parser.add_argument(
        "--role",
        dest="roles",
        action="append",
        default=None,
        help="Role to assign; repeat for several (default: DEFAULT_ROLE)",
    )
    parser.add_argument("--full-name", default=None, help="Display name")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    username = args.username.strip()
    if not username_is_valid(username):
        print("Invalid username length.", file=sys.stderr)
        return 1
    if not password_is_valid(args.password):
        print("Password must be 8-128 characters and at most 72 bytes.", file=sys.stderr)
        return 1
    roles = args.roles or [settings.DEFAULT_ROLE]

    db = SessionLocal()
    try:
        store = SqlAlchemyCredentialStore(db)
        try:
            user = register_user(
                store,
                username,
                args.password,
                roles=roles,
                full_name=args.full_name,
                rounds=settings.BCRYPT_ROUNDS,
            )
        except DuplicateUsernameError:
            print(f"User '{username}' already exists.", file=sys.stderr)
            return 1
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 1
        print(f"Created user '{user.username}' ({user.id}) with roles {sorted(user.roles)}.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
