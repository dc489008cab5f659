"""JWT login, registration and auth dependencies (get_current_user, require_admin)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.database import get_db
from app.core.errors import (
    BadPasswordError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    UserNotFoundError,
)
from app.core.middleware import BEARER_CHALLENGE, AuthContext
from app.core.tokens import TokenIssuer
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    PasswordChangeRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from app.services.accounts import authenticate, change_password, register_user
from app.services.credential_store import CredentialStore, SqlAlchemyCredentialStore

router = APIRouter()
# Declares the bearer scheme in OpenAPI; the token itself is checked by the interceptor chain.
security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_credential_store(db: Annotated[Session, Depends(get_db)]) -> CredentialStore:
    return SqlAlchemyCredentialStore(db)


def get_current_user(
    request: Request,
    _credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> CurrentUser:
    """Dependency: require a principal set by the interceptor chain. Raises 401 otherwise."""
    context: AuthContext | None = getattr(request.state, "auth", None)
    if context is None or context.principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=BEARER_CHALLENGE,
        )
    claims = context.principal
    return CurrentUser(id=claims.subject, username=claims.username, roles=list(claims.roles))


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require authenticated user with role 'admin'. Raises 403 for non-admin."""
    if "admin" not in current_user.roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


@router.post("/login", response_model=TokenResponse)
def login(
    body: LoginRequest,
    request: Request,
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> TokenResponse:
    """
    Authenticate with username and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    try:
        user = authenticate(store, body.username, body.password, rounds=settings.BCRYPT_ROUNDS)
    except InvalidCredentialsError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password.",
        )
    token = issuer.issue(
        user.id,
        user.roles,
        now=request.app.state.clock(),
        username=user.username,
    )
    return TokenResponse(
        access_token=token,
        token_type="bearer",
        expires_in=int(issuer.ttl.total_seconds()),
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> UserResponse:
    """Create an account with the default role. Disabled when ALLOW_REGISTRATION is false."""
    if not settings.ALLOW_REGISTRATION:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Registration is disabled.",
        )
    try:
        user = register_user(
            store,
            body.username,
            body.password,
            roles=[settings.DEFAULT_ROLE],
            full_name=body.full_name,
            rounds=settings.BCRYPT_ROUNDS,
        )
    except DuplicateUsernameError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists.",
        )
    return UserResponse.model_validate(user)


@router.get("/me", response_model=UserResponse)
def read_me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
) -> UserResponse:
    """Return the stored profile of the authenticated user."""
    try:
        user = store.find_by_id(current_user.id)
    except UserNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=BEARER_CHALLENGE,
        )
    return UserResponse.model_validate(user)


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
def update_password(
    body: PasswordChangeRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Response:
    """Change the authenticated user's password. Existing tokens stay valid until expiry."""
    try:
        change_password(
            store,
            current_user.id,
            body.current_password,
            body.new_password,
            rounds=settings.BCRYPT_ROUNDS,
        )
    except BadPasswordError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect.",
        )
    except UserNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers=BEARER_CHALLENGE,
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
