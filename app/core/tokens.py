"""JWT access token issuance and validation.

Signing material is loaded once at startup by load_signing_keys; TokenIssuer and
TokenValidator are immutable afterwards and safe to share between requests. Both take
an optional ``now`` so expiry behaviour is a pure function of token, key and time.
"""

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

import jwt
from jwt.algorithms import get_default_algorithms

from app.core.config import HMAC_ALGORITHMS
from app.core.errors import (
    BadSignatureError,
    ConfigMissingError,
    ExpiredTokenError,
    MalformedTokenError,
    WrongAudienceError,
    WrongIssuerError,
)

if TYPE_CHECKING:
    from app.core.config import Settings

REQUIRED_CLAIMS = ["sub", "iss", "aud", "iat", "exp"]


@dataclass(frozen=True)
class SigningKeys:
    """Algorithm plus the key used to sign and the key used to verify."""

    algorithm: str
    signing_key: Any
    verification_key: Any


@dataclass(frozen=True)
class TokenClaims:
    """Validated claims of an access token."""

    subject: str
    roles: tuple[str, ...]
    issuer: str
    audience: str
    issued_at: datetime
    expires_at: datetime
    username: str | None = None
    token_id: str | None = None

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return bool(set(roles) & set(self.roles))


def _read_pem(path: Path | None, label: str) -> bytes:
    if path is None:
        raise ConfigMissingError(f"{label} is not configured")
    try:
        return path.read_bytes()
    except OSError as e:
        raise ConfigMissingError(f"{label} cannot be read: {path}") from e


def signing_keys_from_secret(secret: str, algorithm: str = "HS256") -> SigningKeys:
    """Build symmetric keys from a shared secret."""
    if algorithm not in HMAC_ALGORITHMS:
        raise ConfigMissingError(f"{algorithm} is not an HMAC algorithm")
    if not secret or not secret.strip():
        raise ConfigMissingError("JWT secret is empty")
    key = secret.encode("utf-8")
    return SigningKeys(algorithm=algorithm, signing_key=key, verification_key=key)


def load_signing_keys(settings: "Settings") -> SigningKeys:
    """
    Resolve signing material from settings.

    Raises ConfigMissingError when a key is absent or cannot be parsed, so a bad
    deployment fails at startup rather than on the first login.
    """
    algorithm = settings.JWT_ALGORITHM
    if algorithm in HMAC_ALGORITHMS:
        if settings.JWT_SECRET is None:
            raise ConfigMissingError(f"JWT_SECRET is required for {algorithm}")
        return signing_keys_from_secret(settings.JWT_SECRET.get_secret_value(), algorithm)

    private_pem = _read_pem(settings.JWT_PRIVATE_KEY_FILE, "JWT_PRIVATE_KEY_FILE")
    public_pem = _read_pem(settings.JWT_PUBLIC_KEY_FILE, "JWT_PUBLIC_KEY_FILE")
    alg_impl = get_default_algorithms().get(algorithm)
    if alg_impl is None:
        raise ConfigMissingError(
            f"{algorithm} is unavailable; install PyJWT with the 'crypto' extra"
        )
    try:
        signing_key = alg_impl.prepare_key(private_pem)
        verification_key = alg_impl.prepare_key(public_pem)
    except (ValueError, TypeError, jwt.InvalidKeyError) as e:
        raise ConfigMissingError(f"Malformed PEM key for {algorithm}: {e}") from e
    return SigningKeys(
        algorithm=algorithm,
        signing_key=signing_key,
        verification_key=verification_key,
    )


def _utc(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(UTC)
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now


class TokenIssuer:
    """Mints signed access tokens with a fixed issuer, audience and TTL."""

    def __init__(
        self,
        keys: SigningKeys,
        issuer: str,
        audience: str,
        ttl: timedelta,
    ) -> None:
        self._keys = keys
        self.issuer = issuer
        self.audience = audience
        self.ttl = ttl

    @classmethod
    def from_settings(cls, settings: "Settings", keys: SigningKeys | None = None) -> "TokenIssuer":
        return cls(
            keys=keys or load_signing_keys(settings),
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            ttl=timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
        )

    def issue(
        self,
        user_id: str,
        roles: Iterable[str],
        now: datetime | None = None,
        username: str | None = None,
    ) -> str:
        """Create a JWT with sub, roles, iss, aud, iat and exp (whole seconds)."""
        issued_at = int(_utc(now).timestamp())
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "roles": sorted(set(roles)),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": issued_at,
            "exp": issued_at + int(self.ttl.total_seconds()),
            "jti": uuid.uuid4().hex,
        }
        if username is not None:
            payload["username"] = username
        return jwt.encode(payload, self._keys.signing_key, algorithm=self._keys.algorithm)


class TokenValidator:
    """Checks structure, signature, issuer, audience and expiry, in that order."""

    def __init__(
        self,
        keys: SigningKeys,
        issuer: str,
        audience: str,
        leeway: timedelta = timedelta(0),
    ) -> None:
        self._keys = keys
        self.issuer = issuer
        self.audience = audience
        self.leeway = leeway

    @classmethod
    def from_settings(cls, settings: "Settings", keys: SigningKeys | None = None) -> "TokenValidator":
        return cls(
            keys=keys or load_signing_keys(settings),
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            leeway=timedelta(seconds=settings.JWT_LEEWAY_SECONDS),
        )

    def _decode(self, token: str) -> dict[str, Any]:
        # Claim checks are done below so each failure gets its own error type.
        try:
            return jwt.decode(
                token,
                self._keys.verification_key,
                algorithms=[self._keys.algorithm],
                options={
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                    "verify_iss": False,
                    "verify_aud": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise BadSignatureError("Signature verification failed") from e
        except jwt.InvalidAlgorithmError as e:
            raise BadSignatureError("Token algorithm is not allowed") from e
        except jwt.PyJWTError as e:
            raise MalformedTokenError(str(e)) from e

    def validate(self, token: str, now: datetime | None = None) -> TokenClaims:
        """
        Validate a token and return its claims.

        Raises MalformedTokenError, BadSignatureError, WrongIssuerError,
        WrongAudienceError or ExpiredTokenError.
        """
        if not isinstance(token, str) or not token.strip():
            raise MalformedTokenError("Empty token")
        payload = self._decode(token.strip())

        roles = payload.get("roles", [])
        exp = payload["exp"]
        iat = payload["iat"]
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            raise MalformedTokenError("roles claim must be a list of strings")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise MalformedTokenError("exp claim must be numeric")
        if isinstance(iat, bool) or not isinstance(iat, (int, float)):
            raise MalformedTokenError("iat claim must be numeric")

        if payload["iss"] != self.issuer:
            raise WrongIssuerError(f"Unexpected issuer {payload['iss']!r}")

        aud = payload["aud"]
        audiences = aud if isinstance(aud, list) else [aud]
        if self.audience not in audiences:
            raise WrongAudienceError(f"Unexpected audience {aud!r}")

        current = _utc(now).timestamp()
        if current >= exp + self.leeway.total_seconds():
            raise ExpiredTokenError("Token has expired")

        return TokenClaims(
            subject=str(payload["sub"]),
            roles=tuple(roles),
            issuer=payload["iss"],
            audience=self.audience,
            issued_at=datetime.fromtimestamp(iat, UTC),
            expires_at=datetime.fromtimestamp(exp, UTC),
            username=payload.get("username"),
            token_id=payload.get("jti"),
        )
