"""Request interceptor chain: bearer authentication then access policy, before routing.

Each interceptor is a callable ``(request, context) -> (request, context) | Rejection``.
InterceptorChainMiddleware runs them in order; the first Rejection becomes the response
and the remaining interceptors and the route never run. The final context is exposed to
handlers as ``request.state.auth``.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime

from fastapi import status
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from app.core.errors import TokenError
from app.core.tokens import TokenClaims, TokenValidator

logger = logging.getLogger(__name__)

BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


@dataclass(frozen=True)
class AuthContext:
    """Per-request authentication state passed along the chain."""

    principal: TokenClaims | None = None
    failure_reason: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None


@dataclass(frozen=True)
class Rejection:
    """Short-circuit result of an interceptor."""

    status_code: int
    detail: str
    headers: dict[str, str] = field(default_factory=dict)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            {"detail": self.detail},
            status_code=self.status_code,
            headers=self.headers or None,
        )


Interceptor = Callable[[Request, AuthContext], tuple[Request, AuthContext] | Rejection]


def unauthorized() -> Rejection:
    return Rejection(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers=dict(BEARER_CHALLENGE),
    )


def bearer_token(request: Request) -> str | None:
    """Token from 'Authorization: Bearer <token>', or None for any other header shape."""
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class BearerAuthentication:
    """
    Validate the bearer token, if any, and attach its claims to the context.

    Never rejects: a missing or invalid token leaves the request anonymous and the
    reason is logged. Whether anonymous access is allowed is AccessPolicy's decision.
    """

    def __init__(self, validator: TokenValidator, clock: Callable[[], datetime]) -> None:
        self.validator = validator
        self.clock = clock

    def __call__(self, request: Request, context: AuthContext) -> tuple[Request, AuthContext]:
        token = bearer_token(request)
        if token is None:
            return request, context
        try:
            claims = self.validator.validate(token, now=self.clock())
        except TokenError as e:
            logger.warning(
                "Bearer token rejected: %s",
                e,
                extra={"reason": e.reason, "path": request.url.path},
            )
            return request, replace(context, principal=None, failure_reason=e.reason)
        return request, replace(context, principal=claims, failure_reason=None)


@dataclass(frozen=True)
class AccessRule:
    """Paths under prefix need a principal (if authenticated) holding one of roles (if any)."""

    prefix: str
    authenticated: bool = True
    roles: frozenset[str] = frozenset()

    def matches(self, path: str) -> bool:
        base = self.prefix.rstrip("/")
        return path == base or path.startswith(base + "/")


class AccessPolicy:
    """First matching rule wins; paths no rule matches are public."""

    def __init__(self, rules: Iterable[AccessRule]) -> None:
        self.rules = tuple(rules)

    def rule_for(self, path: str) -> AccessRule | None:
        for rule in self.rules:
            if rule.matches(path):
                return rule
        return None

    def __call__(
        self, request: Request, context: AuthContext
    ) -> tuple[Request, AuthContext] | Rejection:
        if request.method == "OPTIONS":
            return request, context
        rule = self.rule_for(request.url.path)
        if rule is None or not rule.authenticated:
            return request, context
        if context.principal is None:
            return unauthorized()
        if rule.roles and not context.principal.has_any_role(rule.roles):
            logger.warning(
                "Access denied: user_id=%s path=%s",
                context.principal.subject,
                request.url.path,
                extra={"user_id": context.principal.subject, "path": request.url.path},
            )
            return Rejection(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return request, context


class InterceptorChainMiddleware:
    """ASGI middleware running an ordered interceptor chain on every HTTP request."""

    def __init__(self, app: ASGIApp, interceptors: Sequence[Interceptor]) -> None:
        self.app = app
        self.interceptors = tuple(interceptors)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        context = AuthContext()
        for interceptor in self.interceptors:
            outcome = interceptor(request, context)
            if isinstance(outcome, Rejection):
                await outcome.to_response()(scope, receive, send)
                return
            request, context = outcome

        request.state.auth = context
        await self.app(request.scope, receive, send)
