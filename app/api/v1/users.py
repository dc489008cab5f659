"""Admin user management: list accounts and soft-disable them."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.v1.auth import get_credential_store, require_admin
from app.core.errors import UserNotFoundError
from app.schemas.auth import CurrentUser, UserActiveRequest, UserResponse, UsersListResponse
from app.services.credential_store import CredentialStore

router = APIRouter()


@router.get("", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
) -> UsersListResponse:
    """List all users (admin only)."""
    return UsersListResponse(
        users=[UserResponse.model_validate(u) for u in store.list_users()]
    )


@router.put("/{user_id}/active", response_model=UserResponse)
def set_user_active(
    user_id: str,
    body: UserActiveRequest,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
) -> UserResponse:
    """
    Enable or disable an account (admin only).

    Disabled users cannot log in; tokens already issued remain valid until they expire.
    """
    try:
        user = store.set_active(user_id, body.is_active)
    except UserNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found.",
        )
    return UserResponse.model_validate(user)
