"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.httpsredirect import HTTPSRedirectMiddleware

from app.api.v1 import router as v1_router
from app.core.config import Settings, get_settings
from app.core.logging_config import configure_logging
from app.core.middleware import (
    AccessPolicy,
    AccessRule,
    BearerAuthentication,
    InterceptorChainMiddleware,
)
from app.core.security import prime_dummy_hash
from app.core.tokens import TokenIssuer, TokenValidator, load_signing_keys

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


def access_rules(prefix: str) -> list[AccessRule]:
    """Ordered access rules for the API; first match wins."""
    return [
        AccessRule(f"{prefix}/health", authenticated=False),
        AccessRule(f"{prefix}/auth/login", authenticated=False),
        AccessRule(f"{prefix}/auth/register", authenticated=False),
        AccessRule(f"{prefix}/users", roles=frozenset({"admin"})),
        AccessRule(prefix),
    ]


def create_app(
    settings: Settings | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """
    Build the application.

    Signing keys are loaded here, so missing or malformed key material raises
    ConfigMissingError before the server accepts any request.
    """
    settings = settings or get_settings()
    clock = clock or utc_now
    configure_logging(settings.LOG_LEVEL)

    keys = load_signing_keys(settings)
    prime_dummy_hash(settings.BCRYPT_ROUNDS)
    issuer = TokenIssuer.from_settings(settings, keys=keys)
    validator = TokenValidator.from_settings(settings, keys=keys)

    is_dev = settings.APP_ENV == "dev"
    app = FastAPI(
        title="Identity API",
        version="0.1.0",
        docs_url="/docs" if is_dev else None,
        redoc_url="/redoc" if is_dev else None,
        openapi_url="/openapi.json" if is_dev else None,
    )
    app.state.settings = settings
    app.state.clock = clock
    app.state.token_issuer = issuer
    app.state.token_validator = validator

    # Starlette runs the last-added middleware first: HTTPS redirect, CORS, then auth.
    app.add_middleware(
        InterceptorChainMiddleware,
        interceptors=[
            BearerAuthentication(validator, clock),
            AccessPolicy(access_rules(settings.API_V1_PREFIX)),
        ],
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if is_dev else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.FORCE_HTTPS:
        app.add_middleware(HTTPSRedirectMiddleware)

    app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Identity API"}

    logger.info(
        "Identity API configured",
        extra={"env": settings.APP_ENV, "algorithm": settings.JWT_ALGORITHM},
    )
    return app


app = create_app()
