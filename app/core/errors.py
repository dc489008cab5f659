"""Authentication error taxonomy.

Every failure mode of the credential store, login and token validation has its own
exception type so callers can log the precise reason while answering clients with a
single generic response.
"""


class AuthError(Exception):
    """Base class for authentication failures."""

    reason = "auth_error"


class DuplicateUsernameError(AuthError):
    """A user with the same (normalized) username already exists."""

    reason = "duplicate_username"

    def __init__(self, username: str) -> None:
        super().__init__(f"Username already exists: {username!r}")
        self.username = username


class UserNotFoundError(AuthError):
    """No user matches the given username or id."""

    reason = "not_found"


class InvalidCredentialsError(AuthError):
    """Login failed. Clients only ever see this generic form."""

    reason = "invalid_credentials"


class BadPasswordError(InvalidCredentialsError):
    reason = "bad_password"


class AccountDisabledError(InvalidCredentialsError):
    reason = "account_disabled"


class TokenError(AuthError):
    """A presented bearer token was rejected."""

    reason = "invalid_token"


class MalformedTokenError(TokenError):
    reason = "malformed"


class BadSignatureError(TokenError):
    reason = "bad_signature"


class WrongIssuerError(TokenError):
    reason = "wrong_issuer"


class WrongAudienceError(TokenError):
    reason = "wrong_audience"


class ExpiredTokenError(TokenError):
    reason = "expired"


class ConfigMissingError(RuntimeError):
    """Signing configuration is absent or unusable; raised at startup."""
